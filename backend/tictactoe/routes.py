from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from tictactoe.models import Player
from tictactoe.api import json_object
from tictactoe.services import identity

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the server side of async tic tac toe game!'})

@main.route('/register', methods=['POST'])
def register():
    data = json_object()
    player = identity.register_player(
        username=data.get('username'),
        email=data.get('email'),
        password=data.get('password'),
        name=data.get('name'),
    )
    return jsonify(player.to_dict()), 201

@main.route('/login', methods=['POST'])
def login():
    data = json_object()
    player = identity.authenticate(data.get('username'), data.get('password'))
    tokens = identity.issue_credentials(player)
    return jsonify({**player.to_dict(), **tokens})

@main.route('/refresh', methods=['POST'])
def refresh():
    data = json_object()
    player, access_token = identity.refresh_credentials(data.get('refresh_token'))
    return jsonify({**player.to_dict(), 'access_token': access_token})

@main.route('/logout', methods=['POST'])
@login_required
def logout():
    identity.revoke_credentials(current_user._get_current_object())
    return jsonify({'message': 'Logged out successfully.'})

@main.route('/user', methods=['GET'])
def check_user():
    email = request.args.get('email')
    player = Player.query.filter_by(email=email).first() if email else None
    if player:
        return jsonify(player.to_dict())
    return jsonify(False)

@main.route('/user', methods=['PATCH'])
@login_required
def update_user():
    data = json_object()
    player = identity.update_profile(current_user._get_current_object(), data)
    return jsonify(player.to_dict())
