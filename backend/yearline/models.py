from yearline import db, bcrypt
from flask_login import UserMixin
from sqlalchemy.ext.orderinglist import ordering_list
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple
import json
import random
import time


class Phase:
    LOBBY = 'lobby'
    AWAITING_START = 'awaiting_start'
    AWAITING_PLACEMENT = 'awaiting_placement'
    AWAITING_REVEAL = 'awaiting_reveal'
    REVEALED = 'revealed'
    FINISHED = 'finished'


class CardState:
    DECK = 'deck'
    IN_ROUND = 'in_round'
    TIMELINE = 'timeline'
    DISCARDED = 'discarded'


class PlayerKind:
    LOCAL = 'local'  # host-controlled seat
    USER = 'user'    # seat bound to an authenticated user


class GameMode:
    HOST_ONLY = 'host_only'
    SIDECARS = 'sidecars'

    ALL = (HOST_ONLY, SIDECARS)


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


class Playlist(db.Model):
    __tablename__ = 'playlist'
    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    name = db.Column(db.String(256), nullable=False)
    status = db.Column(db.String(32), default='importing', nullable=False)  # importing, processing, ready, failed
    imported_at = db.Column(db.Float, default=time.time)
    tracks = db.relationship('Track', back_populates='playlist', order_by='Track.position',
                             cascade='all, delete-orphan')

    @property
    def ready_tracks(self):
        """Tracks eligible for a deck: matched and dated."""
        return [t for t in self.tracks if t.is_playable]

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'status': self.status,
            'imported_at': self.imported_at,
            'total_tracks': len(self.tracks),
            'ready_tracks': len(self.ready_tracks),
            'unmatched_tracks': sum(1 for t in self.tracks if t.status == 'unmatched'),
        }


class Track(db.Model):
    __tablename__ = 'track'
    id = db.Column(db.Integer, primary_key=True)
    playlist_id = db.Column(db.Integer, db.ForeignKey('playlist.id'), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(32), default='pending', nullable=False)  # pending, ready, unmatched
    title = db.Column(db.String(256), nullable=False)
    artist_names_json = db.Column(db.Text, nullable=True)
    release_year = db.Column(db.Integer, nullable=True)
    image_url = db.Column(db.String(512), nullable=True)
    playlist = db.relationship('Playlist', back_populates='tracks')

    @property
    def artist_names(self) -> List[str]:
        return json.loads(self.artist_names_json) if self.artist_names_json else []

    @artist_names.setter
    def artist_names(self, names):
        self.artist_names_json = json.dumps(list(names or []))

    @property
    def is_playable(self) -> bool:
        return self.status == 'ready' and self.release_year is not None


@dataclass(frozen=True)
class Bet:
    bettor_player_id: int
    slot_index: int
    timestamp: float


@dataclass(frozen=True)
class ActiveRound:
    """The round in play. A game without a round stores ``None``."""
    card_id: int
    active_player_id: int
    placement_index: Optional[int] = None
    bets: Tuple[Bet, ...] = ()
    token_claimers: Tuple[int, ...] = field(default_factory=tuple)

    def bet_by(self, player_id: int) -> Optional[Bet]:
        for bet in self.bets:
            if bet.bettor_player_id == player_id:
                return bet
        return None

    def slot_taken(self, slot_index: int) -> bool:
        return any(b.slot_index == slot_index for b in self.bets)

    def with_placement(self, index: int) -> 'ActiveRound':
        return replace(self, placement_index=index)

    def with_bet(self, bet: Bet) -> 'ActiveRound':
        return replace(self, bets=self.bets + (bet,))

    def with_claimer(self, player_id: int) -> 'ActiveRound':
        return replace(self, token_claimers=self.token_claimers + (player_id,))

    def to_json(self) -> str:
        return json.dumps({
            'card_id': self.card_id,
            'active_player_id': self.active_player_id,
            'placement_index': self.placement_index,
            'bets': [
                {'bettor_player_id': b.bettor_player_id, 'slot_index': b.slot_index, 'timestamp': b.timestamp}
                for b in self.bets
            ],
            'token_claimers': list(self.token_claimers),
        })

    @classmethod
    def from_json(cls, raw: str) -> 'ActiveRound':
        data = json.loads(raw)
        return cls(
            card_id=data['card_id'],
            active_player_id=data['active_player_id'],
            placement_index=data.get('placement_index'),
            bets=tuple(Bet(**b) for b in data.get('bets', [])),
            token_claimers=tuple(data.get('token_claimers', [])),
        )


def generate_join_code(length=6):
    """Generate a unique join code without ambiguous characters (0, O, 1, I)."""
    chars = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
    for _ in range(10):
        code = ''.join(random.choices(chars, k=length))
        if not Game.query.filter_by(game_code=code).first():
            return code
    raise RuntimeError('Could not generate unique join code')


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    game_code = db.Column(db.String(8), unique=True, index=True)
    host_user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    mode = db.Column(db.String(32), default=GameMode.HOST_ONLY, nullable=False)
    playlist_id = db.Column(db.Integer, db.ForeignKey('playlist.id'), nullable=False)
    # Options
    use_tokens = db.Column(db.Boolean, default=True, nullable=False)
    starting_tokens = db.Column(db.Integer, default=2, nullable=False)
    max_tokens = db.Column(db.Integer, default=5, nullable=False)
    win_condition = db.Column(db.Integer, default=10, nullable=False)
    # State
    phase = db.Column(db.String(32), default=Phase.LOBBY, nullable=False)
    current_turn_seat_index = db.Column(db.Integer, default=0, nullable=False)
    round_state = db.Column(db.Text, nullable=True)  # JSON-encoded ActiveRound
    win_check_start_seat_index = db.Column(db.Integer, nullable=True)
    tiebreak_player_ids_json = db.Column(db.Text, nullable=True)  # JSON-encoded list of player ids
    winner_id = db.Column(db.Integer, db.ForeignKey('player.id', name='fk_game_winner_id', use_alter=True), nullable=True)
    created_at = db.Column(db.Float, default=time.time)
    started_at = db.Column(db.Float, nullable=True)
    finished_at = db.Column(db.Float, nullable=True)

    players = db.relationship('Player', back_populates='game', foreign_keys='Player.game_id',
                              order_by='Player.seat_index', cascade='all, delete-orphan')
    playlist = db.relationship('Playlist')
    cards = db.relationship('Card', back_populates='game', lazy='dynamic', cascade='all, delete-orphan')

    def __init__(self, **kwargs):
        super(Game, self).__init__(**kwargs)
        if not self.game_code:
            self.game_code = generate_join_code()

    @property
    def round(self) -> Optional[ActiveRound]:
        return ActiveRound.from_json(self.round_state) if self.round_state else None

    @round.setter
    def round(self, value: Optional[ActiveRound]) -> None:
        self.round_state = value.to_json() if value is not None else None

    @property
    def tiebreak_player_ids(self) -> List[int]:
        return json.loads(self.tiebreak_player_ids_json) if self.tiebreak_player_ids_json else []

    @tiebreak_player_ids.setter
    def tiebreak_player_ids(self, ids) -> None:
        self.tiebreak_player_ids_json = json.dumps(list(ids)) if ids else None

    def player_at_seat(self, seat_index: int) -> Optional['Player']:
        for p in self.players:
            if p.seat_index == seat_index:
                return p
        return None

    def player_by_id(self, player_id) -> Optional['Player']:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def is_participant(self, user_id) -> bool:
        if user_id is None:
            return False
        return self.host_user_id == user_id or any(
            p.kind == PlayerKind.USER and p.user_id == user_id for p in self.players
        )

    def deck_remaining(self) -> int:
        return self.cards.filter_by(state=CardState.DECK).count()

    def endgame_state(self):
        if self.tiebreak_player_ids:
            return {'type': 'tiebreak', 'contender_player_ids': self.tiebreak_player_ids}
        if self.win_check_start_seat_index is not None:
            return {'type': 'final_round', 'ends_at_seat_index': self.win_check_start_seat_index}
        return None

    def _round_dict(self):
        rnd = self.round
        if rnd is None:
            return None
        payload = {
            'active_player_id': rnd.active_player_id,
            'placement_index': rnd.placement_index,
            'bets': [{'bettor_player_id': b.bettor_player_id, 'slot_index': b.slot_index} for b in rnd.bets],
            'token_claimers': list(rnd.token_claimers),
            'card': None,
        }
        # Card identity stays hidden until reveal
        if self.phase == Phase.REVEALED:
            card = db.session.get(Card, rnd.card_id)
            if card:
                payload['card'] = card.to_dict()
        return payload

    def to_dict(self, viewer_user_id=None):
        return {
            'id': self.id,
            'game_code': self.game_code,
            'host_user_id': self.host_user_id,
            'is_current_user_host': viewer_user_id is not None and viewer_user_id == self.host_user_id,
            'mode': self.mode,
            'playlist_id': self.playlist_id,
            'playlist_name': self.playlist.name if self.playlist else None,
            'use_tokens': self.use_tokens,
            'starting_tokens': self.starting_tokens,
            'max_tokens': self.max_tokens,
            'win_condition': self.win_condition,
            'phase': self.phase,
            'current_turn_seat_index': self.current_turn_seat_index,
            'endgame_state': self.endgame_state(),
            'winner_id': self.winner_id,
            'created_at': self.created_at,
            'started_at': self.started_at,
            'finished_at': self.finished_at,
            'players': [p.to_dict(viewer_user_id) for p in self.players],
            'current_round': self._round_dict(),
            'deck_remaining': self.deck_remaining(),
        }


class Player(db.Model):
    __tablename__ = 'player'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    seat_index = db.Column(db.Integer, nullable=False)
    display_name = db.Column(db.String(64), nullable=False)
    kind = db.Column(db.String(16), default=PlayerKind.LOCAL, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    token_balance = db.Column(db.Integer, default=0, nullable=False)
    is_host_seat = db.Column(db.Boolean, default=False, nullable=False)

    game = db.relationship('Game', back_populates='players', foreign_keys=[game_id])
    # Positions stay dense: inserting shifts every later entry by one
    timeline = db.relationship('TimelineEntry', back_populates='player', order_by='TimelineEntry.position',
                               collection_class=ordering_list('position'), cascade='all, delete-orphan')

    def timeline_years(self) -> List[int]:
        return [entry.card.release_year for entry in self.timeline]

    def to_dict(self, viewer_user_id=None):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'seat_index': self.seat_index,
            'display_name': self.display_name,
            'kind': self.kind,
            'user_id': self.user_id,
            'token_balance': self.token_balance,
            'is_host_seat': self.is_host_seat,
            'is_current_user': self.kind == PlayerKind.USER and viewer_user_id is not None and self.user_id == viewer_user_id,
            'timeline_length': len(self.timeline),
        }

    def timeline_dict(self, viewer_user_id=None):
        return {
            'player_id': self.id,
            'display_name': self.display_name,
            'seat_index': self.seat_index,
            'token_balance': self.token_balance,
            'is_current_user': self.kind == PlayerKind.USER and viewer_user_id is not None and self.user_id == viewer_user_id,
            'cards': [dict(entry.card.to_dict(), position=entry.position) for entry in self.timeline],
        }


class Card(db.Model):
    __tablename__ = 'card'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    track_id = db.Column(db.Integer, db.ForeignKey('track.id'), nullable=False)
    release_year = db.Column(db.Integer, nullable=False)
    state = db.Column(db.String(16), default=CardState.DECK, nullable=False, index=True)
    owner_player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=True)
    deck_order = db.Column(db.Integer, nullable=True)

    game = db.relationship('Game', back_populates='cards')
    track = db.relationship('Track')

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.track.title if self.track else None,
            'artist_names': self.track.artist_names if self.track else [],
            'release_year': self.release_year,
            'image_url': self.track.image_url if self.track else None,
        }


class TimelineEntry(db.Model):
    __tablename__ = 'timeline_entry'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False, index=True)
    card_id = db.Column(db.Integer, db.ForeignKey('card.id'), nullable=False, unique=True)
    position = db.Column(db.Integer, nullable=False)

    player = db.relationship('Player', back_populates='timeline')
    card = db.relationship('Card')
