from conftest import auth_headers, login, register

from tictactoe import db
from tictactoe.models import GameSession, Player

BOARD = [['X', '', ''], ['', '', ''], ['', '', '']]


def _player(flask_app, username):
    with flask_app.app_context():
        return Player.query.filter_by(username=username).first().to_dict()


def _stored(flask_app, session_id):
    with flask_app.app_context():
        return db.session.get(GameSession, session_id).to_dict()


def _create(client, players, initiator='alice', opponent='bob', **payload):
    return client.post('/api/games', json={'opponent': opponent, **payload}, headers=players[initiator])


def test_index(client):
    res = client.get('/')
    assert res.status_code == 200
    assert 'tic tac toe' in res.get_json()['message']


def test_create_session_marks_both_players_busy(flask_app, client, players):
    res = _create(client, players)
    assert res.status_code == 201
    game = res.get_json()
    assert game['initiator'] == 'alice'
    assert game['opponent'] == 'bob'
    assert game['next_move'] == 'alice'
    assert game['in_progress'] is True
    assert game['timestamp'] == game['created_at']
    assert len(game['id']) == 32
    assert _player(flask_app, 'alice')['busy_session_id'] == game['id']
    assert _player(flask_app, 'bob')['busy_session_id'] == game['id']


def test_create_session_with_initial_payload(client, players):
    res = _create(client, players, board=BOARD, next_move='bob', status='open')
    assert res.status_code == 201
    game = res.get_json()
    assert game['board'] == BOARD
    assert game['next_move'] == 'bob'
    assert game['status'] == 'open'


def test_create_session_requires_auth(client, players):
    res = client.post('/api/games', json={'opponent': 'bob'})
    assert res.status_code == 401
    assert res.get_json()['kind'] == 'InvalidCredentials'


def test_create_session_unknown_opponent(flask_app, client, players):
    res = _create(client, players, opponent='nobody')
    assert res.status_code == 404
    body = res.get_json()
    assert body['kind'] == 'PlayerNotFound'
    assert body['player_id'] == 'nobody'
    assert _player(flask_app, 'alice')['busy_session_id'] is None


def test_create_session_missing_opponent(client, players):
    res = client.post('/api/games', json={}, headers=players['alice'])
    assert res.status_code == 400
    assert res.get_json()['kind'] == 'MissingField'


def test_self_play_is_rejected_and_nothing_persisted(flask_app, client, players):
    res = _create(client, players, opponent='alice')
    assert res.status_code == 400
    assert res.get_json()['kind'] == 'SelfPlayNotAllowed'
    with flask_app.app_context():
        assert GameSession.query.count() == 0
    assert _player(flask_app, 'alice')['busy_session_id'] is None


def test_busy_participants_cannot_start_another_session(flask_app, client, players):
    first = _create(client, players).get_json()

    for initiator, opponent in (('carol', 'alice'), ('carol', 'bob'), ('alice', 'carol')):
        res = _create(client, players, initiator=initiator, opponent=opponent)
        assert res.status_code == 409
        body = res.get_json()
        assert body['kind'] == 'PlayerBusy'
        assert body['session_id'] == first['id']

    assert _player(flask_app, 'carol')['busy_session_id'] is None
    with flask_app.app_context():
        assert GameSession.query.count() == 1


def test_initial_payload_rejects_protected_fields(client, players):
    res = _create(client, players, initiator_override='x', board=BOARD)
    assert res.status_code == 400
    res = _create(client, players, timestamp=1)
    assert res.status_code == 400
    assert res.get_json()['field'] == 'timestamp'


def test_wrong_turn_leaves_session_untouched(flask_app, client, players):
    game = _create(client, players).get_json()
    res = client.patch(f"/api/games/{game['id']}", json={'board': BOARD, 'next_move': 'alice'}, headers=players['bob'])
    assert res.status_code == 409
    body = res.get_json()
    assert body['kind'] == 'WrongTurn'
    assert body['session_id'] == game['id']
    assert body['player_id'] == 'bob'
    stored = _stored(flask_app, game['id'])
    assert stored['timestamp'] == game['timestamp']
    assert stored['board'] is None
    assert stored['next_move'] == 'alice'


def test_accepted_move_updates_session(flask_app, client, players):
    game = _create(client, players).get_json()
    res = client.patch(f"/api/games/{game['id']}", json={'next_move': 'bob', 'board': BOARD}, headers=players['alice'])
    assert res.status_code == 200
    result = res.get_json()
    assert result['session_id'] == game['id']
    assert result['updated'] == {'next_move': 'bob', 'board': BOARD}
    assert result['timestamp'] > game['timestamp']

    stored = _stored(flask_app, game['id'])
    assert stored['next_move'] == 'bob'
    assert stored['board'] == BOARD
    assert stored['timestamp'] == result['timestamp']


def test_replayed_move_is_rejected(client, players):
    game = _create(client, players).get_json()
    move = {'next_move': 'bob', 'board': BOARD}
    assert client.patch(f"/api/games/{game['id']}", json=move, headers=players['alice']).status_code == 200
    res = client.patch(f"/api/games/{game['id']}", json=move, headers=players['alice'])
    assert res.status_code == 409
    assert res.get_json()['kind'] == 'WrongTurn'


def test_move_cannot_touch_protected_fields(flask_app, client, players):
    game = _create(client, players).get_json()
    res = client.patch(f"/api/games/{game['id']}", json={'initiator': 'carol', 'board': BOARD}, headers=players['alice'])
    assert res.status_code == 400
    body = res.get_json()
    assert body['kind'] == 'InvalidMoveUpdate'
    assert body['field'] == 'initiator'
    stored = _stored(flask_app, game['id'])
    assert stored['initiator'] == 'alice'
    assert stored['board'] is None


def test_move_next_move_must_be_participant(client, players):
    game = _create(client, players).get_json()
    res = client.patch(f"/api/games/{game['id']}", json={'next_move': 'carol'}, headers=players['alice'])
    assert res.status_code == 400
    assert res.get_json()['field'] == 'next_move'


def test_move_on_unknown_session(client, players):
    res = client.patch('/api/games/doesnotexist', json={'board': BOARD}, headers=players['alice'])
    assert res.status_code == 404
    assert res.get_json()['kind'] == 'SessionNotFound'


def test_get_session(client, players):
    game = _create(client, players).get_json()
    res = client.get(f"/api/games/{game['id']}")
    assert res.status_code == 200
    assert res.get_json() == game


def test_get_unknown_session(client):
    res = client.get('/api/games/0123456789abcdef0123456789abcdef')
    assert res.status_code == 404
    body = res.get_json()
    assert body['kind'] == 'SessionNotFound'
    assert body['session_id'] == '0123456789abcdef0123456789abcdef'


def test_list_sessions_by_participant(client, players):
    first = _create(client, players).get_json()
    client.post(f"/api/games/{first['id']}/finish", headers=players['alice'])
    second = _create(client, players, initiator='carol', opponent='alice').get_json()
    client.post(f"/api/games/{second['id']}/finish", headers=players['carol'])
    third = _create(client, players, initiator='bob', opponent='carol').get_json()

    listed = client.get('/api/games?username=alice').get_json()
    assert {g['id'] for g in listed} == {first['id'], second['id']}
    assert [g['timestamp'] for g in listed] == sorted((g['timestamp'] for g in listed), reverse=True)

    # Defaults to the authenticated player
    listed = client.get('/api/games', headers=players['carol']).get_json()
    assert {g['id'] for g in listed} == {second['id'], third['id']}
    assert all('carol' in (g['initiator'], g['opponent']) for g in listed)


def test_list_sessions_requires_a_player(client):
    res = client.get('/api/games')
    assert res.status_code == 400
    assert res.get_json()['kind'] == 'MissingField'


def test_finish_releases_both_players(flask_app, client, players):
    game = _create(client, players).get_json()
    res = client.post(f"/api/games/{game['id']}/finish", json={'status': 'alice_won'}, headers=players['bob'])
    assert res.status_code == 200
    finished = res.get_json()
    assert finished['in_progress'] is False
    assert finished['status'] == 'alice_won'
    assert finished['timestamp'] > game['timestamp']
    assert _player(flask_app, 'alice')['busy_session_id'] is None
    assert _player(flask_app, 'bob')['busy_session_id'] is None

    # Free to pair again, and the old session stays listed
    assert _create(client, players, initiator='bob', opponent='alice').status_code == 201
    assert len(client.get('/api/games?username=alice').get_json()) == 2


def test_finish_is_idempotent(client, players):
    game = _create(client, players).get_json()
    first = client.post(f"/api/games/{game['id']}/finish", headers=players['alice']).get_json()
    second = client.post(f"/api/games/{game['id']}/finish", headers=players['alice']).get_json()
    assert first['status'] == 'concluded'
    assert second == first


def test_finish_by_non_participant(client, players):
    game = _create(client, players).get_json()
    res = client.post(f"/api/games/{game['id']}/finish", headers=players['carol'])
    assert res.status_code == 403
    assert res.get_json()['kind'] == 'NotParticipant'


def test_moves_rejected_after_finish(client, players):
    game = _create(client, players).get_json()
    client.post(f"/api/games/{game['id']}/finish", headers=players['alice'])
    res = client.patch(f"/api/games/{game['id']}", json={'board': BOARD}, headers=players['alice'])
    assert res.status_code == 409
    assert res.get_json()['kind'] == 'SessionConcluded'


def test_full_game_alternates_turns(flask_app, client, players):
    game = _create(client, players).get_json()
    turns = [('alice', 'bob'), ('bob', 'alice'), ('alice', 'bob')]
    last_ts = game['timestamp']
    for mover, following in turns:
        res = client.patch(f"/api/games/{game['id']}", json={'next_move': following, 'board': BOARD}, headers=players[mover])
        assert res.status_code == 200
        assert res.get_json()['timestamp'] > last_ts
        last_ts = res.get_json()['timestamp']
    assert _stored(flask_app, game['id'])['next_move'] == 'bob'


def test_access_token_survives_relogin(client):
    register(client, 'dave')
    register(client, 'erin')
    token = login(client, 'dave')['access_token']
    login(client, 'dave')
    res = client.post('/api/games', json={'opponent': 'erin'}, headers=auth_headers(token))
    assert res.status_code == 201


def test_create_session_initiator_must_be_caller(client, players):
    res = client.post('/api/games', json={'initiator': 'alice', 'opponent': 'bob'}, headers=players['alice'])
    assert res.status_code == 201
    res = client.post('/api/games', json={'initiator': 'bob', 'opponent': 'carol'}, headers=players['alice'])
    assert res.status_code == 403
    assert res.get_json()['kind'] == 'NotParticipant'


def test_create_session_rejects_non_object_body(flask_app, client, players):
    res = client.post('/api/games', json=['bob'], headers=players['alice'])
    assert res.status_code == 400
    assert res.get_json()['kind'] == 'InvalidField'
    assert _player(flask_app, 'alice')['busy_session_id'] is None


def test_finish_rejects_non_object_body(flask_app, client, players):
    game = _create(client, players).get_json()
    res = client.post(f"/api/games/{game['id']}/finish", json='done', headers=players['alice'])
    assert res.status_code == 400
    assert res.get_json()['kind'] == 'InvalidField'
    assert _stored(flask_app, game['id'])['in_progress'] is True


def test_overlong_status_is_rejected(flask_app, client, players):
    res = _create(client, players, status='x' * 65)
    assert res.status_code == 400
    assert res.get_json()['field'] == 'status'

    game = _create(client, players, status='x' * 64).get_json()
    res = client.patch(f"/api/games/{game['id']}", json={'status': 'y' * 65}, headers=players['alice'])
    assert res.status_code == 400
    assert res.get_json()['kind'] == 'InvalidMoveUpdate'

    res = client.post(f"/api/games/{game['id']}/finish", json={'status': 'z' * 65}, headers=players['alice'])
    assert res.status_code == 400
    stored = _stored(flask_app, game['id'])
    assert stored['in_progress'] is True
    assert stored['status'] == 'x' * 64
