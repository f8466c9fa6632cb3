from flask import request

from tictactoe.errors import InvalidField


def json_object() -> dict:
    """Request body as a dict; a missing or unparseable body reads as empty."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidField('Request body must be a JSON object')
    return data
