"""Session lifecycle: create, move, finish, read.

Each session runs Created -> InProgress -> Concluded. This module never
inspects the board; a session concludes only through ``finish_session``.

Busy markers act as a per-player lock: ``create_session`` takes it with a
compare-and-set and ``finish_session`` releases it. Move writes are
conditional on the ``next_move``/``timestamp`` that were read, so a move that
loses a race is rejected instead of overwriting the winner.
"""

import uuid
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy import or_, update

from tictactoe import db
from tictactoe.errors import (
    NotParticipant,
    PlayerBusy,
    PlayerNotFound,
    SelfPlayNotAllowed,
    SessionConcluded,
    SessionNotFound,
    TicTacToeError,
    WrongTurn,
)
from tictactoe.models import GameSession
from tictactoe.services.identity import clear_busy, find_player, mark_busy
from tictactoe.services.sessions.notifier import publish_board_update
from tictactoe.services.sessions.turns import next_timestamp, validate_status, validate_turn, validate_update
from tictactoe.store import store_errors

CONCLUDED_STATUS = 'concluded'


def create_session(initiator_id: str, opponent_id: str, initial_payload: Optional[Dict[str, Any]] = None) -> GameSession:
    initiator = find_player(initiator_id)
    opponent = find_player(opponent_id)
    if not initiator or not opponent:
        raise PlayerNotFound('User not found', player_id=initiator_id if not initiator else opponent_id)
    if initiator_id == opponent_id:
        raise SelfPlayNotAllowed('You cant play this game with yourself', player_id=initiator_id)
    for player in (initiator, opponent):
        if player.busy_session_id:
            raise PlayerBusy(
                'Initiator or opponent have a game to finish.',
                player_id=player.username,
                session_id=player.busy_session_id,
            )

    ts = next_timestamp()
    game_session = GameSession(
        id=uuid.uuid4().hex,
        initiator=initiator_id,
        opponent=opponent_id,
        created_at=ts,
        timestamp=ts,
    )
    changes = validate_update(game_session, initial_payload, allow_empty=True)
    game_session.board = changes.get('board')
    game_session.status = changes.get('status')
    game_session.next_move = changes.get('next_move', initiator_id)

    with store_errors('create_session', session_id=game_session.id):
        db.session.add(game_session)
        db.session.flush()
        # Sorted so concurrent creations contend in the same order
        for username in sorted(game_session.participants):
            if not mark_busy(username, game_session.id):
                db.session.rollback()
                current_app.logger.info(f"[session-create-race] player={username} lost busy marker race")
                raise PlayerBusy('Initiator or opponent have a game to finish.', player_id=username)
        db.session.commit()

    current_app.logger.info(
        f"[session-create] session={game_session.id} initiator={initiator_id} opponent={opponent_id}"
    )
    return game_session


def get_session(session_id: str) -> GameSession:
    game_session = None
    if session_id:
        with store_errors('get_session', session_id=session_id):
            game_session = db.session.get(GameSession, session_id)
    if game_session is None:
        raise SessionNotFound('Session not found', session_id=session_id)
    return game_session


def list_sessions(player_id: str) -> List[GameSession]:
    with store_errors('list_sessions', player_id=player_id):
        return (
            GameSession.query
            .filter(or_(GameSession.initiator == player_id, GameSession.opponent == player_id))
            .order_by(GameSession.timestamp.desc(), GameSession.created_at.desc())
            .all()
        )


def apply_move(session_id: str, player_id: str, payload: Any) -> Dict[str, Any]:
    try:
        game_session = get_session(session_id)
        validate_turn(game_session, player_id, session_id)
        changes = validate_update(game_session, payload)
    except TicTacToeError as exc:
        current_app.logger.info(f"[move-reject] session={session_id} player={player_id} kind={exc.kind}")
        raise

    previous_ts = game_session.timestamp
    ts = next_timestamp(previous_ts)
    board = changes['board'] if 'board' in changes else game_session.board

    with store_errors('apply_move', session_id=session_id, player_id=player_id):
        result = db.session.execute(
            update(GameSession)
            .where(
                GameSession.id == session_id,
                GameSession.next_move == player_id,
                GameSession.timestamp == previous_ts,
                GameSession.concluded_at.is_(None),
            )
            .values(timestamp=ts, **changes)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            current = db.session.get(GameSession, session_id)
            error_class = SessionConcluded if current is not None and not current.in_progress else WrongTurn
            current_app.logger.info(f"[move-reject] session={session_id} player={player_id} kind={error_class.kind} stale")
            raise error_class('Session changed before the move was written', session_id=session_id, player_id=player_id)
        db.session.commit()

    current_app.logger.info(f"[move] session={session_id} player={player_id} ts={ts}")
    publish_board_update(session_id, board)
    return {'session_id': session_id, 'updated': changes, 'timestamp': ts}


def finish_session(session_id: str, player_id: str, status: Optional[str] = None) -> GameSession:
    game_session = get_session(session_id)
    participants = game_session.participants
    if player_id not in participants:
        raise NotParticipant('Only a participant may finish this session', session_id=session_id, player_id=player_id)
    if not game_session.in_progress:
        return game_session
    validate_status(status, session_id)

    ts = next_timestamp(game_session.timestamp)
    with store_errors('finish_session', session_id=session_id, player_id=player_id):
        result = db.session.execute(
            update(GameSession)
            .where(GameSession.id == session_id, GameSession.concluded_at.is_(None))
            .values(concluded_at=ts, timestamp=ts, status=status or CONCLUDED_STATUS)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            for username in participants:
                clear_busy(username, session_id)
        db.session.commit()

    current_app.logger.info(f"[session-finish] session={session_id} by={player_id}")
    return get_session(session_id)
