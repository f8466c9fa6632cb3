"""Error kinds raised by the session core and identity gateway.

Every kind maps to one HTTP status and renders as
``{"error": message, "kind": kind, **context}`` so callers can tell them apart
and retry or display a message with the session/player ids attached.
"""

from typing import Any, Dict, Optional

from flask import jsonify


class TicTacToeError(Exception):
    """Base exception for all domain errors."""

    kind = 'Error'
    status_code = 400

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context: Dict[str, Any] = {k: v for k, v in context.items() if v is not None}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        payload = {'error': self.message, 'kind': self.kind}
        payload.update(self.context)
        return payload


class PlayerNotFound(TicTacToeError):
    kind = 'PlayerNotFound'
    status_code = 404


class SelfPlayNotAllowed(TicTacToeError):
    kind = 'SelfPlayNotAllowed'
    status_code = 400


class PlayerBusy(TicTacToeError):
    kind = 'PlayerBusy'
    status_code = 409


class SessionNotFound(TicTacToeError):
    kind = 'SessionNotFound'
    status_code = 404


class WrongTurn(TicTacToeError):
    kind = 'WrongTurn'
    status_code = 409


class SessionConcluded(TicTacToeError):
    kind = 'SessionConcluded'
    status_code = 409


class NotParticipant(TicTacToeError):
    kind = 'NotParticipant'
    status_code = 403


class InvalidMoveUpdate(TicTacToeError):
    kind = 'InvalidMoveUpdate'
    status_code = 400


class MissingField(TicTacToeError):
    kind = 'MissingField'
    status_code = 400


class InvalidField(TicTacToeError):
    kind = 'InvalidField'
    status_code = 400


class DuplicatePlayer(TicTacToeError):
    kind = 'DuplicatePlayer'
    status_code = 409


class InvalidCredentials(TicTacToeError):
    kind = 'InvalidCredentials'
    status_code = 401


class StoreUnavailable(TicTacToeError):
    """Persistence failure. Never retried here; the write sequence may be partial."""

    kind = 'StoreUnavailable'
    status_code = 503

    def __init__(self, operation: str, message: Optional[str] = None, **context: Any):
        self.operation = operation
        super().__init__(message or f'Store unavailable during {operation}', operation=operation, **context)


def register_error_handlers(flask_app) -> None:
    @flask_app.errorhandler(TicTacToeError)
    def handle_domain_error(exc: TicTacToeError):
        return jsonify(exc.to_dict()), exc.status_code
