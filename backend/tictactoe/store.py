from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from tictactoe import db
from tictactoe.errors import StoreUnavailable


@contextmanager
def store_errors(operation: str, **context):
    """Roll back and re-raise any SQLAlchemy failure as StoreUnavailable."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.session.rollback()
        details = ' '.join(f"{k}={v}" for k, v in context.items())
        current_app.logger.error(f"[store-error] op={operation} {details} error={exc}")
        raise StoreUnavailable(operation, **context) from exc
