from flask import current_app

from tictactoe import socketio

NAMESPACE = '/ws'


def publish_board_update(session_id: str, board) -> bool:
    """Broadcast an accepted move's board to every connected client.

    Fire-and-forget: the move is already committed, so a failed emit is logged
    and reported through the return value only.
    """
    event = current_app.config.get('MOVE_BROADCAST_EVENT', 'board_update')
    try:
        socketio.emit(event, {'session_id': session_id, 'board': board}, namespace=NAMESPACE)
    except Exception:
        current_app.logger.exception(f"[broadcast-failed] session={session_id} event={event}")
        return False
    return True
