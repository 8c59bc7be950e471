"""Lobby: seating players before play, and starting the game."""

import time
from typing import Optional, Sequence

from flask import current_app

from yearline import db
from yearline.models import Game, GameMode, Phase, Player, PlayerKind, Playlist, User, generate_join_code
from yearline.services.games import deck
from yearline.services.games.access import require_caller, require_host, seat_of
from yearline.services.games.errors import AuthorizationError, NotFound, PhaseError, ResourceError
from yearline.services.games.rounds import insert_into_timeline


def _option(value, key):
    return current_app.config.get(key) if value is None else value


def _require_lobby(game, message):
    if game.phase != Phase.LOBBY:
        raise PhaseError(message)


def _reindex_seats(game) -> None:
    for i, player in enumerate(sorted(game.players, key=lambda p: p.seat_index)):
        player.seat_index = i


def create_game(
    caller_user_id,
    playlist_id,
    mode: str = GameMode.HOST_ONLY,
    player_names: Optional[Sequence[str]] = None,
    use_tokens: Optional[bool] = None,
    starting_tokens: Optional[int] = None,
    max_tokens: Optional[int] = None,
    win_condition: Optional[int] = None,
) -> Game:
    """Create a game in the lobby; the caller hosts and takes seat 0."""
    require_caller(caller_user_id)
    user = db.session.get(User, caller_user_id)
    if user is None:
        raise AuthorizationError('Unknown user')
    playlist = db.session.get(Playlist, playlist_id) if playlist_id is not None else None
    if playlist is None or playlist.owner_id != caller_user_id:
        raise NotFound('Playlist not found or not owned by you')
    if mode not in GameMode.ALL:
        raise ResourceError(f'Unknown game mode: {mode}')

    use_tokens = bool(_option(use_tokens, 'DEFAULT_USE_TOKENS'))
    starting_tokens = int(_option(starting_tokens, 'DEFAULT_STARTING_TOKENS'))
    max_tokens = int(_option(max_tokens, 'DEFAULT_MAX_TOKENS'))
    win_condition = int(_option(win_condition, 'DEFAULT_WIN_CONDITION'))
    if not (0 <= starting_tokens <= max_tokens) or win_condition < 1:
        raise ResourceError('Invalid game options')

    game = Game(
        game_code=generate_join_code(current_app.config.get('JOIN_CODE_LENGTH', 6)),
        host_user_id=user.id,
        mode=mode,
        playlist_id=playlist.id,
        use_tokens=use_tokens,
        starting_tokens=starting_tokens,
        max_tokens=max_tokens,
        win_condition=win_condition,
        phase=Phase.LOBBY,
        current_turn_seat_index=0,
        created_at=time.time(),
    )
    db.session.add(game)

    if mode == GameMode.HOST_ONLY:
        names = [n for n in (player_names or []) if n] or [user.username]
        for i, name in enumerate(names):
            game.players.append(Player(
                seat_index=i,
                display_name=name,
                kind=PlayerKind.LOCAL,
                token_balance=starting_tokens,
                is_host_seat=i == 0,
            ))
    else:
        game.players.append(Player(
            seat_index=0,
            display_name=user.username,
            kind=PlayerKind.USER,
            user_id=user.id,
            token_balance=starting_tokens,
            is_host_seat=True,
        ))
    db.session.flush()
    current_app.logger.info(f"[create] game={game.id} code={game.game_code} mode={mode} seats={len(game.players)}")
    return game


def add_local_player(game, caller_user_id, display_name: str) -> Player:
    require_host(game, caller_user_id, 'Only the host can add local players')
    if game.mode != GameMode.HOST_ONLY:
        raise ResourceError('Cannot add local players in sidecars mode')
    _require_lobby(game, 'Can only add players in lobby phase')
    if not display_name:
        raise ResourceError('Player name is required')

    player = Player(
        seat_index=len(game.players),
        display_name=display_name,
        kind=PlayerKind.LOCAL,
        token_balance=game.starting_tokens,
        is_host_seat=False,
    )
    game.players.append(player)
    db.session.flush()
    return player


def remove_local_player(game, caller_user_id, player_id) -> None:
    player = seat_of(game, player_id)
    require_host(game, caller_user_id, 'Only the host can remove players')
    if game.mode != GameMode.HOST_ONLY:
        raise ResourceError('Cannot remove local players in sidecars mode')
    _require_lobby(game, 'Can only remove players in lobby phase')
    if player.is_host_seat:
        raise ResourceError('Cannot remove the host seat')

    game.players.remove(player)
    _reindex_seats(game)


def join_by_code(game_code: str, caller_user_id, display_name: Optional[str] = None):
    """Take a seat in a sidecars game. Joining twice returns the same seat."""
    require_caller(caller_user_id)
    game = Game.query.filter_by(game_code=(game_code or '').upper()).first()
    if game is None:
        raise NotFound('Game not found. Check the join code.')
    if game.mode != GameMode.SIDECARS:
        raise ResourceError('This game does not accept remote players')
    _require_lobby(game, 'Game has already started')

    for p in game.players:
        if p.kind == PlayerKind.USER and p.user_id == caller_user_id:
            return game, p

    user = db.session.get(User, caller_user_id)
    player = Player(
        seat_index=len(game.players),
        display_name=display_name or (user.username if user else 'Player'),
        kind=PlayerKind.USER,
        user_id=caller_user_id,
        token_balance=game.starting_tokens,
        is_host_seat=False,
    )
    game.players.append(player)
    db.session.flush()
    current_app.logger.info(f"[join] game={game.id} player={player.id} seat={player.seat_index}")
    return game, player


def leave_game(game, caller_user_id) -> None:
    require_caller(caller_user_id)
    _require_lobby(game, 'Cannot leave after game has started')
    seat = next((p for p in game.players if p.kind == PlayerKind.USER and p.user_id == caller_user_id), None)
    if seat is None:
        raise NotFound('You are not in this game')
    if seat.is_host_seat:
        raise AuthorizationError('Host cannot leave. Delete the game instead.')

    game.players.remove(seat)
    _reindex_seats(game)


def delete_game(game, caller_user_id) -> None:
    require_host(game, caller_user_id, 'Only the host can delete the game')
    _require_lobby(game, 'Cannot delete a game that has started')
    db.session.delete(game)


def start_game(game, caller_user_id, rng=None) -> None:
    """Materialize and shuffle the deck, deal one card per seat, begin seat 0."""
    require_host(game, caller_user_id, 'Only the host can start the game')
    _require_lobby(game, 'Game has already started')
    playlist = game.playlist
    if playlist is None:
        raise NotFound('Playlist not found')
    if playlist.status != 'ready':
        raise ResourceError('Playlist is still processing. Please wait until all tracks are matched.')
    players = sorted(game.players, key=lambda p: p.seat_index)
    if not players:
        raise ResourceError('Need at least 1 player to start')
    ready = playlist.ready_tracks
    needed = len(players) + int(current_app.config.get('MIN_EXTRA_TRACKS', 10))
    if len(ready) < needed:
        raise ResourceError(f'Playlist needs at least {needed} ready tracks for a good game (has {len(ready)})')

    cards = deck.shuffle_and_seed(game.id, ready, rng)
    db.session.add_all(cards)
    for player, card in zip(players, cards):
        insert_into_timeline(game, player, card, 0)
    deck.renumber(game)

    game.phase = Phase.AWAITING_START
    game.current_turn_seat_index = 0
    game.started_at = time.time()
    current_app.logger.info(f"[start] game={game.id} seats={len(players)} deck={len(cards) - len(players)}")
