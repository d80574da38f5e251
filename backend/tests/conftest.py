import json
import os
import sys
import pytest

# Ensure the backend root (containing the `quizhub` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from quizhub import create_app, db, socketio
from quizhub.errors import CollaboratorUnavailable
from quizhub.services.rooms import SessionGateway


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SOCKETIO_NAMESPACE = '/ws'
    CORS_ORIGINS = []
    QUESTION_SET_SIZE = 10
    ALLOW_REPEAT_ANSWERS = True
    PERSIST_RETRY_ATTEMPTS = 2
    PERSIST_RETRY_BACKOFF_SEC = 0


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        from quizhub.models import Question
        db.create_all()
        # Question ids 1..3, correct answers 1, 0, 2
        db.session.add(Question(prompt='Capital of France?', options=json.dumps(['Berlin', 'Paris', 'Rome']), correct_index=1))
        db.session.add(Question(prompt='2 + 2?', options=json.dumps(['4', '5', '22']), correct_index=0))
        db.session.add(Question(prompt='Red planet?', options=json.dumps(['Venus', 'Earth', 'Mars']), correct_index=2))
        db.session.commit()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def _make():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace='/ws'
        )
        clients.append(test_client)
        return test_client

    yield _make
    for test_client in clients:
        try:
            if test_client.is_connected('/ws'):
                test_client.disconnect(namespace='/ws')
        except RuntimeError:
            pass


class RecordingTransport:
    """Transport double that records every delivery in order."""

    def __init__(self):
        self.rooms = {}
        self.sent = []  # (target kind, target, event, payload)

    def to_room(self, room_key, event, payload):
        self.sent.append(('room', room_key, event, payload))

    def to_member(self, identity, event, payload):
        self.sent.append(('member', identity, event, payload))

    def enter_room(self, identity, room_key):
        self.rooms.setdefault(room_key, set()).add(identity)

    def exit_room(self, identity, room_key):
        self.rooms.get(room_key, set()).discard(identity)

    def events(self, event, target=None):
        return [payload for kind, tgt, name, payload in self.sent
                if name == event and (target is None or tgt == target)]

    def names(self):
        return [name for _, _, name, _ in self.sent]

    def clear(self):
        self.sent.clear()


class FakeOracle:
    def __init__(self, answers=None):
        self.answers = dict(answers or {})
        self.fail = False
        self.calls = 0

    def correct_answer_for(self, question_id):
        self.calls += 1
        if self.fail:
            raise CollaboratorUnavailable('oracle down')
        return self.answers.get(question_id)

    def question_set(self, limit=10):
        if self.fail:
            raise CollaboratorUnavailable('oracle down')
        return [{'id': qid, 'prompt': f'Q{qid}', 'options': []} for qid in list(self.answers)[:limit]]


class FakePersister:
    def __init__(self, failures=0):
        self.failures = failures
        self.records = []
        self.attempts = 0

    def record(self, member_identity, final_score, room_key):
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise CollaboratorUnavailable('store down')
        self.records.append((member_identity, final_score, room_key))


@pytest.fixture()
def transport():
    return RecordingTransport()


@pytest.fixture()
def oracle():
    return FakeOracle({'q1': 1, 'q2': 0, 'q3': 3})


@pytest.fixture()
def persister():
    return FakePersister()


@pytest.fixture()
def gateway(transport, oracle, persister):
    return SessionGateway(transport, oracle, persister, sleep=lambda _: None)
