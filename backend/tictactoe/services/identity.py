"""Identity & credential gateway.

The session core only uses ``find_player``, ``mark_busy`` and ``clear_busy``.
The rest backs the auth routes: bcrypt hashing and JWT access/refresh issue.
"""

from typing import Optional, Tuple

from flask import current_app
from flask_jwt_extended import create_access_token, create_refresh_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError

from tictactoe import db, bcrypt
from tictactoe.errors import DuplicatePlayer, InvalidCredentials, InvalidField, MissingField
from tictactoe.models import Player
from tictactoe.store import store_errors

PROFILE_FIELDS = ('name', 'email')


def find_player(username: str) -> Optional[Player]:
    if not username:
        return None
    with store_errors('find_player', player_id=username):
        return Player.query.filter_by(username=username).first()


def mark_busy(username: str, session_id: str) -> bool:
    """Compare-and-set the busy marker; False when the player is already busy.

    Does not commit, so the caller can keep it in the same transaction as the
    session insert.
    """
    result = db.session.execute(
        update(Player)
        .where(Player.username == username, Player.busy_session_id.is_(None))
        .values(busy_session_id=session_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def clear_busy(username: str, session_id: Optional[str] = None) -> bool:
    """Release the busy marker. With ``session_id``, only if it still points there."""
    stmt = update(Player).where(Player.username == username)
    if session_id is not None:
        stmt = stmt.where(Player.busy_session_id == session_id)
    result = db.session.execute(
        stmt.values(busy_session_id=None).execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def find_duplicate(username: Optional[str] = None, email: Optional[str] = None) -> Optional[Player]:
    clauses = []
    if username:
        clauses.append(Player.username == username)
    if email:
        clauses.append(Player.email == email)
    if not clauses:
        return None
    return Player.query.filter(or_(*clauses)).first()


def _commit_unique(message: str, username: str) -> None:
    """Commit, reporting a unique-constraint hit as DuplicatePlayer.

    Covers a concurrent insert or update that lands after ``find_duplicate``.
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        current_app.logger.info(f"[duplicate-player] player={username} lost unique race")
        raise DuplicatePlayer(message, player_id=username) from exc


def register_player(username, email, password, name) -> Player:
    missing = [k for k, v in (('username', username), ('email', email), ('password', password), ('name', name)) if not v]
    if missing:
        raise MissingField(f"Missing field: {', '.join(missing)}", field=missing[0])

    with store_errors('register_player', player_id=username):
        if find_duplicate(username=username, email=email):
            raise DuplicatePlayer('Email or Username already exists', player_id=username)

        player = Player(
            username=username,
            email=email,
            name=name,
            password_hash=bcrypt.generate_password_hash(password).decode('utf-8'),
        )
        db.session.add(player)
        _commit_unique('Email or Username already exists', username)
    current_app.logger.info(f"[register] player={username}")
    return player


def authenticate(username, password) -> Player:
    if not username or not password:
        raise MissingField('Missing field: username and password are required')
    player = find_player(username)
    if not player:
        raise InvalidCredentials('user not found', player_id=username)
    if not bcrypt.check_password_hash(player.password_hash, password):
        raise InvalidCredentials('Invalid password', player_id=username)
    return player


def issue_credentials(player: Player) -> dict:
    access_token = create_access_token(identity=player.username)
    refresh_token = create_refresh_token(identity=player.username)
    with store_errors('issue_credentials', player_id=player.username):
        player.refresh_token = refresh_token
        db.session.add(player)
        db.session.commit()
    current_app.logger.info(f"[login] player={player.username}")
    return {'access_token': access_token, 'refresh_token': refresh_token}


def decode_credential(token: str, expected_type: str) -> Optional[str]:
    """Return the username a valid token of ``expected_type`` was issued to."""
    try:
        claims = decode_token(token)
    except (JWTExtendedException, PyJWTError):
        return None
    if claims.get('type') != expected_type:
        return None
    return claims.get(current_app.config.get('JWT_IDENTITY_CLAIM', 'sub'))


def refresh_credentials(refresh_token) -> Tuple[Player, str]:
    if not refresh_token:
        raise MissingField('Missing field: refresh_token', field='refresh_token')
    username = decode_credential(refresh_token, 'refresh')
    if not username:
        raise InvalidCredentials('Invalid or expired refresh token')
    with store_errors('refresh_credentials', player_id=username):
        player = Player.query.filter_by(username=username, refresh_token=refresh_token).first()
    if not player:
        raise InvalidCredentials('User not found', player_id=username)
    return player, create_access_token(identity=player.username)


def revoke_credentials(player: Player) -> None:
    with store_errors('revoke_credentials', player_id=player.username):
        player.refresh_token = None
        db.session.add(player)
        db.session.commit()
    current_app.logger.info(f"[logout] player={player.username}")


def update_profile(player: Player, fields: dict) -> Player:
    unknown = sorted(set(fields) - set(PROFILE_FIELDS))
    if unknown:
        raise InvalidField(f"Field(s) not writable: {', '.join(unknown)}", field=unknown[0], player_id=player.username)
    for key, value in fields.items():
        if not value:
            raise MissingField(f'Missing field: {key}', field=key)
    with store_errors('update_profile', player_id=player.username):
        if 'email' in fields and fields['email'] != player.email:
            if find_duplicate(email=fields['email']):
                raise DuplicatePlayer('Email already exists', player_id=player.username)
        for key, value in fields.items():
            setattr(player, key, value)
        db.session.add(player)
        _commit_unique('Email already exists', player.username)
    return player
