import os
import sys
import pytest

# Ensure the backend root (containing the `timersync` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from timersync import create_app, socketio
from timersync.services.timers import TickHandle


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = ['http://localhost:3000']
    SOCKETIO_NAMESPACE = '/'
    TICK_INTERVAL_SEC = 1.0
    DEFAULT_MAX_VIEWERS = 4
    DEFAULT_MAX_TIMERS = 3
    LOG_LEVEL = 'DEBUG'
    PORT = 3001


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class ManualScheduler:
    """Scheduler double: ticks fire only when a test advances time."""

    def __init__(self, clock):
        self.clock = clock
        self._entries = []

    def every(self, callback):
        handle = TickHandle()
        self._entries.append((handle, callback))
        return handle

    def advance(self, seconds=1):
        for _ in range(int(seconds)):
            self.clock.advance(1)
            for handle, callback in list(self._entries):
                if not handle.cancelled:
                    callback()
        self._entries = [(h, c) for h, c in self._entries if not h.cancelled]

    @property
    def live_handles(self):
        return [h for h, _ in self._entries if not h.cancelled]


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def scheduler(clock):
    return ManualScheduler(clock)


@pytest.fixture()
def flask_app(scheduler, clock):
    application = create_app(TestConfig, scheduler=scheduler, clock=clock)
    with application.app_context():
        yield application


@pytest.fixture()
def service(flask_app):
    return flask_app.extensions['timersync']


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def make_sio_client(flask_app):
    created = []

    def _make():
        test_client = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
        created.append(test_client)
        return test_client

    yield _make
    for test_client in created:
        if test_client.is_connected():
            test_client.disconnect()


@pytest.fixture()
def sio_client(make_sio_client):
    return make_sio_client()


def events(packets, name):
    """Payloads of every `name` event in `packets` (from get_received())."""
    return [pkt['args'][0] if pkt['args'] else None for pkt in packets if pkt['name'] == name]
