from tictactoe import db
from tictactoe.models import Player
from tictactoe.services.identity import decode_credential


def load_player(player_id):
    return db.session.get(Player, int(player_id))


def load_player_from_request(request):
    """Resolve ``Authorization: Bearer <access token>`` to a Player."""
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token:
        return None
    username = decode_credential(token.strip(), 'access')
    if not username:
        return None
    return Player.query.filter_by(username=username).first()
