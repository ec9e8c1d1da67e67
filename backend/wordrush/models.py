from datetime import datetime, timedelta, timezone
import random
import string

from flask_login import UserMixin

from wordrush import db


def utcnow():
    """Naive UTC timestamp; stored columns carry no tz info."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() + 'Z' if value else None


def generate_room_code(length=4):
    """Generate a unique, short room code."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if not Room.query.filter_by(code=code).first():
            return code


class Room(db.Model):
    __tablename__ = 'room'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(8), unique=True, index=True, nullable=False)
    status = db.Column(db.String(16), default='waiting', nullable=False)  # waiting, playing, finished
    round_number = db.Column(db.Integer, default=0, nullable=False)
    total_rounds = db.Column(db.Integer, default=5, nullable=False)
    timer_duration = db.Column(db.Integer, nullable=True)  # seconds after first submission; None/0 = no timer
    categories = db.Column(db.JSON, nullable=False, default=list)
    used_letters = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, default=utcnow)
    players = db.relationship('Player', back_populates='room', order_by='Player.id')
    rounds = db.relationship('Round', back_populates='room', lazy='dynamic')

    def __init__(self, **kwargs):
        super(Room, self).__init__(**kwargs)
        if not self.code:
            self.code = generate_room_code()
        if self.used_letters is None:
            self.used_letters = []

    @property
    def has_timer(self):
        return bool(self.timer_duration)

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'status': self.status,
            'roundNumber': self.round_number,
            'totalRounds': self.total_rounds,
            'timerDuration': self.timer_duration,
            'categories': list(self.categories or []),
            'usedLetters': list(self.used_letters or []),
        }


class Player(UserMixin, db.Model):
    __tablename__ = 'player'
    __table_args__ = (db.UniqueConstraint('room_id', 'name', name='uq_player_room_name'),)
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id'), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    score = db.Column(db.Integer, default=0, nullable=False)
    is_host = db.Column(db.Boolean, default=False, nullable=False)
    token_hash = db.Column(db.String(128), nullable=True)
    joined_at = db.Column(db.DateTime, default=utcnow)
    room = db.relationship('Room', back_populates='players')

    def to_dict(self):
        return {
            'id': self.id,
            'roomId': self.room_id,
            'name': self.name,
            'score': self.score,
            'isHost': self.is_host,
        }


class Round(db.Model):
    __tablename__ = 'round'
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id'), nullable=False, index=True)
    letter = db.Column(db.String(1), nullable=False)
    status = db.Column(db.String(16), default='active', nullable=False, index=True)  # active, completed
    first_submission_at = db.Column(db.DateTime, nullable=True)
    started_at = db.Column(db.DateTime, default=utcnow)
    ended_at = db.Column(db.DateTime, nullable=True)
    validated_at = db.Column(db.DateTime, nullable=True)
    room = db.relationship('Room', back_populates='rounds')
    answers = db.relationship('Answer', back_populates='round', lazy='dynamic')

    def timer_deadline(self, timer_duration):
        if not self.first_submission_at or not timer_duration:
            return None
        return self.first_submission_at + timedelta(seconds=timer_duration)

    def to_dict(self, timer_duration=None):
        return {
            'id': self.id,
            'roomId': self.room_id,
            'letter': self.letter,
            'status': self.status,
            'firstSubmissionAt': _iso(self.first_submission_at),
            'timerDeadline': _iso(self.timer_deadline(timer_duration)),
            'startedAt': _iso(self.started_at),
            'endedAt': _iso(self.ended_at),
            'validated': self.validated_at is not None,
        }


class Answer(db.Model):
    __tablename__ = 'answer'
    __table_args__ = (db.UniqueConstraint('round_id', 'player_id', 'category', name='uq_answer_round_player_category'),)
    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey('round.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    category = db.Column(db.String(64), nullable=False)
    word = db.Column(db.String(128), nullable=False)
    is_valid = db.Column(db.Boolean, nullable=True)  # None = pending
    points = db.Column(db.Integer, default=0, nullable=False)
    validation_reason = db.Column(db.Text, nullable=True)
    community_rejected = db.Column(db.Boolean, default=False, nullable=False)
    round = db.relationship('Round', back_populates='answers')
    player = db.relationship('Player')

    def to_dict(self):
        return {
            'id': self.id,
            'roundId': self.round_id,
            'playerId': self.player_id,
            'category': self.category,
            'word': self.word,
            'isValid': self.is_valid,
            'points': self.points,
            'validationReason': self.validation_reason,
            'communityRejected': self.community_rejected,
        }


class Vote(db.Model):
    __tablename__ = 'vote'
    __table_args__ = (db.UniqueConstraint('answer_id', 'player_id', name='uq_vote_answer_player'),)
    id = db.Column(db.Integer, primary_key=True)
    answer_id = db.Column(db.Integer, db.ForeignKey('answer.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    accepted = db.Column(db.Boolean, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
