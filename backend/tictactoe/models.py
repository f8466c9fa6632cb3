from tictactoe import db
from flask_login import UserMixin


class Player(UserMixin, db.Model):
    __tablename__ = 'player'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    refresh_token = db.Column(db.Text, nullable=True, index=True)
    # Set while the player has an unfinished session
    busy_session_id = db.Column(db.String(32), nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'name': self.name,
            'busy_session_id': self.busy_session_id,
        }


class GameSession(db.Model):
    __tablename__ = 'game_session'
    id = db.Column(db.String(32), primary_key=True)
    initiator = db.Column(db.String(64), db.ForeignKey('player.username'), nullable=False, index=True)
    opponent = db.Column(db.String(64), db.ForeignKey('player.username'), nullable=False, index=True)
    next_move = db.Column(db.String(64), nullable=False)
    board = db.Column(db.JSON, nullable=True)
    status = db.Column(db.String(64), nullable=True)
    # Epoch milliseconds
    timestamp = db.Column(db.BigInteger, nullable=False, index=True)
    created_at = db.Column(db.BigInteger, nullable=False)
    concluded_at = db.Column(db.BigInteger, nullable=True)

    @property
    def participants(self):
        return (self.initiator, self.opponent)

    @property
    def in_progress(self):
        return self.concluded_at is None

    def to_dict(self):
        return {
            'id': self.id,
            'initiator': self.initiator,
            'opponent': self.opponent,
            'next_move': self.next_move,
            'board': self.board,
            'status': self.status,
            'timestamp': self.timestamp,
            'created_at': self.created_at,
            'concluded_at': self.concluded_at,
            'in_progress': self.in_progress,
        }
