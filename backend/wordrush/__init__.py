import os

from flask import Flask, g, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from wordrush.config import Config
from wordrush.errors import GameError

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
# Used as the background task runner (sweep loop, deferred validation); clients poll.
socketio = SocketIO(async_mode=None)

MIGRATIONS_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'migrations'))


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = [o.strip() for o in str(flask_app.config.get('CORS_ORIGINS', '')).split(',') if o.strip()]

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db, directory=MIGRATIONS_DIR)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from wordrush.main import main
    flask_app.register_blueprint(main)

    from wordrush.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    @flask_app.errorhandler(GameError)
    def handle_game_error(exc):
        if exc.status_code >= 500:
            flask_app.logger.error(f"[error] {exc.message}")
        return jsonify(exc.to_dict()), exc.status_code

    @flask_app.errorhandler(404)
    def handle_not_found(exc):
        return jsonify({'message': 'Not found'}), 404

    # Player identity comes from the bearer token on each request; no cookie sessions
    from wordrush.auth import load_player_from_request

    login_manager.request_loader(load_player_from_request)

    @flask_app.before_request
    def reset_player_identity():
        # Identity is per request; drop a player cached on a longer-lived app context
        g.pop('_login_user', None)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'message': 'Missing or invalid player token'}), 401

    from wordrush.services.games.scheduler import RoundSweeper
    flask_app.extensions['round_sweeper'] = RoundSweeper(
        flask_app, interval=flask_app.config.get('ROUND_SWEEP_INTERVAL_SEC', 1.0)
    )

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates all game tables."""
        import wordrush.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('sweep-rounds')
    def sweep_rounds_command():
        """Runs the round timer sweep in the foreground until interrupted."""
        sweeper = flask_app.extensions['round_sweeper']
        print(f'Sweeping expired rounds every {sweeper.interval}s (Ctrl+C to stop)')
        try:
            sweeper.run_forever()
        except KeyboardInterrupt:
            sweeper.stop()

    @click.command('flag-answer')
    @click.argument('answer_id', type=int)
    @click.option('--clear', is_flag=True, help='Remove the rejected marker instead of setting it.')
    def flag_answer_command(answer_id, clear):
        """Sets or clears the moderation rejected marker on an answer."""
        from wordrush.services.games.voting import set_community_rejected
        with flask_app.app_context():
            answer = set_community_rejected(answer_id, not clear)
            state = 'rejected' if answer.community_rejected else 'cleared'
            print(f'Answer {answer.id} {state}')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(sweep_rounds_command)
    flask_app.cli.add_command(flag_answer_command)

    return flask_app
