from quizsync import db
from quizsync.services.session.engine import GameDefinition
from quizsync.services.session.questions import question_from_dict
import json
import string
import random


def generate_game_code(length=6):
    """Generate a unique, short join code."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if not Game.query.filter_by(code=code).first():
            return code


class Game(db.Model):
    """Game definition: authored elsewhere, read-only to live sessions."""
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(6), unique=True, index=True)
    title = db.Column(db.String(128), nullable=False)
    created_by = db.Column(db.String(64), nullable=True)
    questions = db.relationship('Question', back_populates='game', order_by='Question.position',
                                cascade='all, delete-orphan')

    def __init__(self, **kwargs):
        super(Game, self).__init__(**kwargs)
        if not self.code:
            self.code = generate_game_code()

    def to_definition(self):
        return GameDefinition(
            id=self.id,
            code=self.code,
            questions=tuple(q.to_domain() for q in self.questions),
        )

    def to_dict(self, include_answers=True):
        return {
            'id': self.id,
            'code': self.code,
            'title': self.title,
            'createdBy': self.created_by,
            'questions': [q.to_domain().to_dict(include_answers=include_answers) for q in self.questions],
        }


class Question(db.Model):
    __tablename__ = 'question'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False)
    # Stable id used in player answers
    question_key = db.Column(db.String(64), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    type = db.Column(db.String(32), nullable=False)
    text = db.Column(db.Text, nullable=False, default='')
    options = db.Column(db.Text, nullable=True)  # JSON-encoded list of strings
    correct_answers = db.Column(db.Text, nullable=False)  # JSON-encoded list
    points = db.Column(db.Integer, nullable=False, default=100)
    time_limit = db.Column(db.Integer, nullable=False, default=30)
    game = db.relationship('Game', back_populates='questions')

    def to_domain(self):
        return question_from_dict({
            'id': self.question_key,
            'type': self.type,
            'text': self.text,
            'options': json.loads(self.options) if self.options else [],
            'correctAnswers': json.loads(self.correct_answers or '[]'),
            'points': self.points,
            'timeLimit': self.time_limit,
        })

    @classmethod
    def from_domain(cls, question, position):
        data = question.to_dict(include_answers=True)
        return cls(
            question_key=question.id,
            position=position,
            type=question.type,
            text=question.text,
            options=json.dumps(data['options']) if 'options' in data else None,
            correct_answers=json.dumps(data['correctAnswers']),
            points=question.points,
            time_limit=question.time_limit,
        )


def load_game_definition(game_id):
    """Definition loader for the session engine; None when the game does not exist."""
    try:
        key = int(game_id)
    except (TypeError, ValueError):
        return None
    game = db.session.get(Game, key)
    return game.to_definition() if game else None
