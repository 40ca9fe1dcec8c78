import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Single browser origin allowed for both HTTP and Socket.IO
    FRONTEND_URL = os.environ.get('FRONTEND_URL', 'http://localhost:3000')
    CORS_ORIGINS = [FRONTEND_URL]
    PORT = int(os.environ.get('PORT', '3001'))
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/')
    # Countdown tick period (seconds)
    TICK_INTERVAL_SEC = float(os.environ.get('TICK_INTERVAL_SEC', '1'))
    # Plan limits used when a command does not carry its own
    DEFAULT_MAX_VIEWERS = int(os.environ.get('DEFAULT_MAX_VIEWERS', '4'))
    DEFAULT_MAX_TIMERS = int(os.environ.get('DEFAULT_MAX_TIMERS', '3'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
