from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
socketio = SocketIO(async_mode=None)

SAMPLE_QUESTIONS = [
    ('What is the capital of France?', ['Berlin', 'Paris', 'Madrid', 'Rome'], 1),
    ('How many continents are there?', ['5', '6', '7', '8'], 2),
    ('Which planet is known as the Red Planet?', ['Mars', 'Venus', 'Jupiter', 'Saturn'], 0),
    ('What is 7 x 8?', ['54', '56', '58', '64'], 1),
    ('Which ocean is the largest?', ['Atlantic', 'Indian', 'Arctic', 'Pacific'], 3),
]


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    origins = flask_app.config.get('CORS_ORIGINS') or []
    namespace = flask_app.config.get('SOCKETIO_NAMESPACE', '/ws')

    db.init_app(flask_app)
    CORS(flask_app, origins=origins)
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    from quizhub.main import main
    flask_app.register_blueprint(main)

    from quizhub.api.questions import questions
    flask_app.register_blueprint(questions, url_prefix='/api/questions')

    from quizhub.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    # One gateway per app: tests get isolated rooms by building a new app
    from quizhub.collaborators import SqlQuestionOracle, SqlScorePersister
    from quizhub.services.rooms import SessionGateway
    from quizhub.transport import SocketIOTransport

    testing = flask_app.config.get('TESTING', False)
    gateway = SessionGateway(
        transport=SocketIOTransport(socketio, namespace),
        oracle=SqlQuestionOracle(flask_app),
        persister=SqlScorePersister(flask_app),
        logger=flask_app.logger,
        # Background tasks run inline in tests for determinism
        spawn=(lambda fn, *args: fn(*args)) if testing else socketio.start_background_task,
        sleep=socketio.sleep,
        allow_repeat_answers=flask_app.config.get('ALLOW_REPEAT_ANSWERS', True),
        question_set_size=flask_app.config.get('QUESTION_SET_SIZE', 10),
        persist_attempts=flask_app.config.get('PERSIST_RETRY_ATTEMPTS', 3),
        persist_backoff=flask_app.config.get('PERSIST_RETRY_BACKOFF_SEC', 0.5),
    )
    flask_app.extensions['quizhub'] = gateway

    from quizhub.socketio_events import register_socketio_handlers
    register_socketio_handlers(gateway.events, namespace=namespace)

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the question table."""
        from quizhub.models import Question
        import json
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            for prompt, options, correct in SAMPLE_QUESTIONS:
                db.session.add(Question(prompt=prompt, options=json.dumps(options), correct_index=correct))

            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
