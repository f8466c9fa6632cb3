from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from tictactoe.api import json_object
from tictactoe.errors import MissingField, NotParticipant
from tictactoe.services.sessions import lifecycle

sessions = Blueprint('sessions', __name__)


@sessions.route('', methods=['POST'])
@login_required
def create_session():
    """Pair the current player with ``opponent`` in a new session."""
    data = json_object()
    opponent = data.pop('opponent', None)
    if not opponent:
        raise MissingField('Missing field: opponent', field='opponent')
    initiator = data.pop('initiator', current_user.username)
    if initiator != current_user.username:
        raise NotParticipant('Sessions can only be started as yourself', player_id=current_user.username)
    game_session = lifecycle.create_session(initiator, opponent, data)
    return jsonify(game_session.to_dict()), 201


@sessions.route('', methods=['GET'])
def list_sessions():
    username = request.args.get('username')
    if not username and current_user.is_authenticated:
        username = current_user.username
    if not username:
        raise MissingField('Missing field: username', field='username')
    return jsonify([s.to_dict() for s in lifecycle.list_sessions(username)])


@sessions.route('/<string:session_id>', methods=['GET'])
def get_session(session_id):
    return jsonify(lifecycle.get_session(session_id).to_dict())


@sessions.route('/<string:session_id>', methods=['PATCH'])
@login_required
def apply_move(session_id):
    result = lifecycle.apply_move(session_id, current_user.username, request.get_json(silent=True))
    return jsonify(result)


@sessions.route('/<string:session_id>/finish', methods=['POST'])
@login_required
def finish_session(session_id):
    data = json_object()
    game_session = lifecycle.finish_session(session_id, current_user.username, data.get('status'))
    return jsonify(game_session.to_dict())
