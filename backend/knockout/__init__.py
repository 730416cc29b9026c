from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from knockout.main import main
    flask_app.register_blueprint(main)

    from knockout.api.players import players, elo
    from knockout.api.games import games
    from knockout.api.leagues import leagues
    flask_app.register_blueprint(players, url_prefix='/api/players')
    flask_app.register_blueprint(elo, url_prefix='/api/elo')
    flask_app.register_blueprint(games, url_prefix='/api/games')
    flask_app.register_blueprint(leagues, url_prefix='/api/leagues')

    from knockout.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from knockout.errors import KnockoutError

    @flask_app.errorhandler(KnockoutError)
    def handle_knockout_error(exc):
        flask_app.logger.info(f"[rejected] {exc.__class__.__name__}: {exc.message}")
        return jsonify({'error': exc.message}), exc.status_code

    # Flask-Login user loader
    from knockout.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Login required'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from knockout.models import User, Player
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed users, each with a small player pool
            users = ['testuser1', 'testuser2', 'testuser3']
            for u in users:
                user = User(username=u)
                user.set_password('password')
                db.session.add(user)
                db.session.flush()
                for name in ('Alice', 'Bob', 'Cara', 'Dan'):
                    db.session.add(Player(name=name, initials=name[:2].upper(), created_by=user.id))

            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
