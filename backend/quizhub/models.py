from quizhub import db
import json
from datetime import datetime, timezone


class Question(db.Model):
    __tablename__ = 'question'
    id = db.Column(db.Integer, primary_key=True)
    prompt = db.Column(db.Text, nullable=False)
    options = db.Column(db.Text, nullable=False)  # JSON-encoded list of strings
    correct_index = db.Column(db.Integer, nullable=False)

    def option_list(self):
        try:
            return json.loads(self.options or '[]')
        except ValueError:
            return []

    def to_dict(self):
        # Never includes the correct answer; clients only get it via feedback
        return {
            'id': self.id,
            'prompt': self.prompt,
            'options': self.option_list(),
        }


class Result(db.Model):
    __tablename__ = 'result'
    id = db.Column(db.Integer, primary_key=True)
    member_identity = db.Column(db.String(128), nullable=False, index=True)
    room_key = db.Column(db.String(128), nullable=False, index=True)
    score = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
