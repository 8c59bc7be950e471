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

DEMO_TRACKS = [
    ('Good Vibrations', ['The Beach Boys'], 1966),
    ('Hey Jude', ['The Beatles'], 1968),
    ('Bridge over Troubled Water', ['Simon & Garfunkel'], 1970),
    ('Superstition', ['Stevie Wonder'], 1972),
    ('Dancing Queen', ['ABBA'], 1976),
    ('Stayin\' Alive', ['Bee Gees'], 1977),
    ('Heart of Glass', ['Blondie'], 1979),
    ('Another One Bites the Dust', ['Queen'], 1980),
    ('Billie Jean', ['Michael Jackson'], 1982),
    ('Take On Me', ['a-ha'], 1984),
    ('Like a Prayer', ['Madonna'], 1989),
    ('Smells Like Teen Spirit', ['Nirvana'], 1991),
    ('Wonderwall', ['Oasis'], 1995),
    ('Wannabe', ['Spice Girls'], 1996),
    ('...Baby One More Time', ['Britney Spears'], 1998),
    ('Hey Ya!', ['OutKast'], 2003),
    ('Crazy in Love', ['Beyonce', 'Jay-Z'], 2003),
    ('Mr. Brightside', ['The Killers'], 2004),
    ('Umbrella', ['Rihanna', 'Jay-Z'], 2007),
    ('Poker Face', ['Lady Gaga'], 2008),
    ('Rolling in the Deep', ['Adele'], 2010),
    ('Get Lucky', ['Daft Punk', 'Pharrell Williams'], 2013),
    ('Uptown Funk', ['Mark Ronson', 'Bruno Mars'], 2014),
    ('Shape of You', ['Ed Sheeran'], 2017),
    ('Blinding Lights', ['The Weeknd'], 2019),
    ('Levitating', ['Dua Lipa'], 2020),
]


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

    from yearline.routes import main
    flask_app.register_blueprint(main, url_prefix='/api/auth')

    from yearline.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from yearline.api.playlists import playlists
    flask_app.register_blueprint(playlists, url_prefix='/api/playlists')

    from yearline.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from yearline.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Not authenticated'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from yearline.models import Playlist, Track
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed users, each owning the demo playlist
            for u in ['testuser1', 'testuser2', 'testuser3']:
                user = User(username=u)
                user.set_password('password')
                db.session.add(user)
                db.session.flush()

                playlist = Playlist(owner_id=user.id, name='Decades Mix', status='ready')
                db.session.add(playlist)
                db.session.flush()
                for position, (title, artists, year) in enumerate(DEMO_TRACKS):
                    db.session.add(Track(
                        playlist_id=playlist.id,
                        position=position,
                        title=title,
                        artist_names=artists,
                        release_year=year,
                        status='ready',
                    ))

            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
