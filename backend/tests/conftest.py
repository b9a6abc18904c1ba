import asyncio
import os
import sys
import threading
import time

import pytest

# Ensure the backend root (containing the `arena` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from arena import create_app, socketio
from arena.services.battle import SessionRegistry


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    ROUND_DURATION_SEC = 5
    ROUND_RESULT_DELAY_SEC = 0.05
    SESSION_EXPIRY_SEC = 1800
    SESSION_SWEEP_INTERVAL_SEC = 300
    STARTING_HEALTH = 100
    MAX_TEXT_LENGTH = 200
    MAX_AVATAR_LENGTH = 16
    OPENAI_API_KEY = ''
    ORACLE_TIMEOUT_SEC = 1


class ScriptedOracle:
    """Deals damage looked up by prompt text, so presentation order never matters."""

    def __init__(self):
        self.damage_by_text = {}
        self.fail = False
        self.delay = 0
        self.calls = []
        self._lock = threading.Lock()

    async def evaluate(self, first, second):
        with self._lock:
            self.calls.append((first, second))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError('oracle unavailable')
        return self.damage_by_text.get(first.text, 0), self.damage_by_text.get(second.text, 0)


class ManualTasks:
    """Stand-in for background tasks: nothing runs until the test steps it."""

    def __init__(self):
        self.pending = []

    def spawn(self, target, *args):
        self.pending.append((target, args))

    def sleep(self, seconds):
        pass

    def step(self):
        """Run the tasks queued so far; tasks they queue wait for the next step."""
        batch, self.pending = self.pending, []
        for target, args in batch:
            target(*args)
        return len(batch)


@pytest.fixture()
def oracle():
    return ScriptedOracle()


@pytest.fixture()
def flask_app(oracle):
    application = create_app(TestConfig, oracle=oracle)
    yield application
    application.extensions['battle_sessions'].shutdown()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def app_registry(flask_app):
    return flask_app.extensions['battle_sessions']


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def tasks():
    return ManualTasks()


@pytest.fixture()
def registry(oracle, tasks):
    """A standalone registry whose timers and evaluations are stepped by hand."""
    reg = SessionRegistry(oracle, spawn=tasks.spawn, sleep=tasks.sleep)
    yield reg
    reg.shutdown()


@pytest.fixture()
def wait_for():
    def _wait(predicate, timeout=3.0, interval=0.01):
        deadline = time.time() + timeout
        while time.time() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()
    return _wait


def start_match(session, avatars=('🔥', '❄️')):
    """Connect both slots and pick avatars, leaving round 1 active."""
    session.connect(0)
    session.connect(1)
    session.select_avatar(0, avatars[0])
    session.select_avatar(1, avatars[1])
    return session
