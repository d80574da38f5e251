"""SQL-backed question oracle and score persister.

Both open their own app context per call so they can run from Socket.IO
handlers and from background tasks alike. Database failures surface as
CollaboratorUnavailable; the gateway decides what to do with them.
"""

from sqlalchemy.exc import SQLAlchemyError

from quizhub import db
from quizhub.errors import CollaboratorUnavailable
from quizhub.models import Question, Result


class SqlQuestionOracle:
    def __init__(self, app):
        self.app = app

    def question_set(self, limit: int = 10):
        with self.app.app_context():
            try:
                questions = Question.query.order_by(db.func.random()).limit(limit).all()
                return [q.to_dict() for q in questions]
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise CollaboratorUnavailable(f'question store unavailable: {exc}') from exc

    def correct_answer_for(self, question_id):
        """Return the correct option index, or None when no such question exists."""
        try:
            qid = int(question_id)
        except (TypeError, ValueError):
            return None
        with self.app.app_context():
            try:
                question = db.session.get(Question, qid)
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise CollaboratorUnavailable(f'question store unavailable: {exc}') from exc
            return question.correct_index if question else None


class SqlScorePersister:
    def __init__(self, app):
        self.app = app

    def record(self, member_identity: str, final_score: int, room_key: str) -> None:
        with self.app.app_context():
            try:
                db.session.add(Result(member_identity=member_identity, room_key=room_key, score=final_score))
                db.session.commit()
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise CollaboratorUnavailable(f'score store unavailable: {exc}') from exc
