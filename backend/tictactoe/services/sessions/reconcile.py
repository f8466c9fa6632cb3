from typing import Dict, List

from flask import current_app

from tictactoe import db
from tictactoe.models import GameSession, Player
from tictactoe.store import store_errors


def reconcile_busy_markers() -> List[Dict[str, str]]:
    """Recompute every player's busy marker from the session table.

    A player's marker should name the in-progress session they take part in,
    or be empty. If more than one open session names a player, the most
    recent one wins and the conflict is logged. Returns the corrections.
    """
    changes = []
    with store_errors('reconcile_busy_markers'):
        open_sessions = (
            GameSession.query
            .filter(GameSession.concluded_at.is_(None))
            .order_by(GameSession.timestamp.desc())
            .all()
        )
        expected: Dict[str, str] = {}
        for game_session in open_sessions:
            for username in game_session.participants:
                if username in expected:
                    current_app.logger.warning(
                        f"[reconcile] player={username} in several open sessions keep={expected[username]} extra={game_session.id}"
                    )
                    continue
                expected[username] = game_session.id

        for player in Player.query.order_by(Player.id).all():
            want = expected.get(player.username)
            if player.busy_session_id != want:
                changes.append({'username': player.username, 'before': player.busy_session_id, 'after': want})
                player.busy_session_id = want
                db.session.add(player)
        db.session.commit()

    for change in changes:
        current_app.logger.info(
            f"[reconcile] player={change['username']} busy {change['before']} -> {change['after']}"
        )
    return changes
