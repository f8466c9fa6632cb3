from datetime import timedelta

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
jwt = JWTManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.config.setdefault('JWT_ACCESS_TOKEN_EXPIRES', timedelta(seconds=flask_app.config.get('ACCESS_TOKEN_TTL_SEC', 86400)))
    flask_app.config.setdefault('JWT_REFRESH_TOKEN_EXPIRES', timedelta(seconds=flask_app.config.get('REFRESH_TOKEN_TTL_SEC', 259200)))
    allowed_origins = flask_app.config.get('CORS_ORIGINS', [])

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    jwt.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from tictactoe.errors import register_error_handlers
    register_error_handlers(flask_app)

    from tictactoe.routes import main
    flask_app.register_blueprint(main)

    from tictactoe.api.sessions import sessions
    flask_app.register_blueprint(sessions, url_prefix='/api/games')

    from tictactoe.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    # Flask-Login loaders: bearer access tokens, plus cookie sessions if present
    from tictactoe.auth import load_player, load_player_from_request
    login_manager.user_loader(load_player)
    login_manager.request_loader(load_player_from_request)

    @login_manager.unauthorized_handler
    def unauthorized():
        from tictactoe.errors import InvalidCredentials
        raise InvalidCredentials('Authentication required')

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from tictactoe.services.identity import register_player
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed players
            for u in ['testuser1', 'testuser2', 'testuser3']:
                register_player(username=u, email=f'{u}@example.com', password='password', name=u)

            print('Database has been reset and seeded!')

    @click.command('reconcile-busy')
    def reconcile_busy_command():
        """Recomputes every player's busy marker from the session table."""
        from tictactoe.services.sessions.reconcile import reconcile_busy_markers
        with flask_app.app_context():
            changes = reconcile_busy_markers()
        for change in changes:
            print(f"{change['username']}: {change['before']} -> {change['after']}")
        print(f'{len(changes)} busy marker(s) corrected')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(reconcile_busy_command)

    return flask_app
