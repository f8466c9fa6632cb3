import time
from typing import Any, Dict, Optional

from tictactoe.errors import InvalidMoveUpdate, SessionConcluded, SessionNotFound, WrongTurn
from tictactoe.models import GameSession

WRITABLE_FIELDS = ('board', 'next_move', 'status')
PROTECTED_FIELDS = ('id', 'initiator', 'opponent', 'timestamp', 'created_at', 'concluded_at')
# Matches the game_session.status column width
STATUS_MAX_LENGTH = 64


def now_ms() -> int:
    return int(time.time() * 1000)


def next_timestamp(previous: Optional[int] = None) -> int:
    """Current epoch ms, strictly greater than ``previous``."""
    ts = now_ms()
    if previous is not None and ts <= previous:
        ts = previous + 1
    return ts


def validate_turn(session: Optional[GameSession], player_id: str, session_id: Optional[str] = None) -> None:
    """Accept iff the session exists, is open, and ``player_id`` moves next."""
    if session is None:
        raise SessionNotFound('Session not found', session_id=session_id)
    if not session.in_progress:
        raise SessionConcluded('Session is no longer accepting moves', session_id=session.id, player_id=player_id)
    if session.next_move != player_id:
        raise WrongTurn('Wrong move!', session_id=session.id, player_id=player_id, next_move=session.next_move)


def validate_update(session: GameSession, payload: Any, allow_empty: bool = False) -> Dict[str, Any]:
    """Check a move update against the writable schema and return the changes."""
    session_id = getattr(session, 'id', None)
    if payload is None and allow_empty:
        return {}
    if not isinstance(payload, dict):
        raise InvalidMoveUpdate('Update must be a JSON object', session_id=session_id)
    if not payload and not allow_empty:
        raise InvalidMoveUpdate('Update is empty', session_id=session_id)

    for key in payload:
        if key in PROTECTED_FIELDS:
            raise InvalidMoveUpdate(f"Field '{key}' is not writable", session_id=session_id, field=key)
        if key not in WRITABLE_FIELDS:
            raise InvalidMoveUpdate(f"Unknown field '{key}'", session_id=session_id, field=key)

    if 'next_move' in payload and payload['next_move'] not in session.participants:
        raise InvalidMoveUpdate(
            'next_move must name a participant', session_id=session_id, field='next_move'
        )
    validate_status(payload.get('status'), session_id)
    return dict(payload)


def validate_status(status: Any, session_id: Optional[str] = None) -> None:
    if status is None:
        return
    if not isinstance(status, str):
        raise InvalidMoveUpdate('status must be a string', session_id=session_id, field='status')
    if len(status) > STATUS_MAX_LENGTH:
        raise InvalidMoveUpdate(
            f'status must be at most {STATUS_MAX_LENGTH} characters', session_id=session_id, field='status'
        )
