from flask import Blueprint, current_app, jsonify

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Timer sync server is running'})


@main.route('/health')
def health():
    service = current_app.extensions['timersync']
    with service.lock:
        stats = service.stats()
    return jsonify({'status': 'ok', **stats})
