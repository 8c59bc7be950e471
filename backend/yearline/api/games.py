from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user
from yearline import db, socketio
from yearline.models import Game, Player, PlayerKind
from yearline.services.games import lobby, rounds
from yearline.services.games.access import require_caller
from yearline.socketio_events import room_for
from yearline.services.games.errors import AuthorizationError, GameError, InvariantViolation, NotFound, ResourceError


games = Blueprint('games', __name__)


@games.app_errorhandler(GameError)
def handle_game_error(err):
    db.session.rollback()
    current_app.logger.info(f"[rejected] {request.method} {request.path} status={err.status_code} reason={err.message}")
    return jsonify({'error': err.message}), err.status_code


@games.app_errorhandler(InvariantViolation)
def handle_invariant_violation(err):
    db.session.rollback()
    current_app.logger.exception(f"[invariant] {request.method} {request.path}: {err}")
    return jsonify({'error': 'Internal error'}), 500


def _caller_id():
    return current_user.id if current_user.is_authenticated else None


def _load_game(game_code, lock=False) -> Game:
    query = Game.query.filter_by(game_code=game_code.upper())
    if lock:
        # Serializes concurrent commands against the same game
        query = query.with_for_update()
    game = query.first()
    if not game:
        raise NotFound('Game not found')
    return game


def _int_field(data, key):
    value = data.get(key)
    if value is None or isinstance(value, bool):
        raise ResourceError(f'{key} is required')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ResourceError(f'{key} must be an integer')


def _commit_and_broadcast(game_code):
    db.session.commit()
    socketio.emit('state_update', {'game_code': game_code}, to=room_for(game_code), namespace='/ws')


def _state(game):
    return game.to_dict(viewer_user_id=_caller_id())


# ---- lobby ----

@games.route('/create', methods=['POST'])
def create_game():
    data = request.get_json(silent=True) or {}
    game = lobby.create_game(
        _caller_id(),
        data.get('playlist_id'),
        mode=data.get('mode') or 'host_only',
        player_names=data.get('player_names'),
        use_tokens=data.get('use_tokens'),
        starting_tokens=data.get('starting_tokens'),
        max_tokens=data.get('max_tokens'),
        win_condition=data.get('win_condition'),
    )
    db.session.commit()
    return jsonify({
        'message': 'New game created!',
        'game_id': game.id,
        'game_code': game.game_code,
    }), 201


@games.route('/join', methods=['POST'])
def join_game():
    data = request.get_json(silent=True) or {}
    if not data.get('game_code'):
        raise ResourceError('Game code is required')
    game, player = lobby.join_by_code(data['game_code'], _caller_id(), data.get('display_name'))
    _commit_and_broadcast(game.game_code)
    return jsonify({'game_id': game.id, 'game_code': game.game_code, 'player': player.to_dict(_caller_id())}), 201


@games.route('/<string:game_code>/players', methods=['POST'])
def add_local_player(game_code):
    data = request.get_json(silent=True) or {}
    game = _load_game(game_code, lock=True)
    player = lobby.add_local_player(game, _caller_id(), (data.get('display_name') or '').strip())
    _commit_and_broadcast(game.game_code)
    return jsonify(player.to_dict(_caller_id())), 201


@games.route('/<string:game_code>/players/<int:player_id>', methods=['DELETE'])
def remove_local_player(game_code, player_id):
    game = _load_game(game_code, lock=True)
    lobby.remove_local_player(game, _caller_id(), player_id)
    _commit_and_broadcast(game.game_code)
    return jsonify(_state(game))


@games.route('/<string:game_code>/leave', methods=['POST'])
def leave_game(game_code):
    game = _load_game(game_code, lock=True)
    lobby.leave_game(game, _caller_id())
    _commit_and_broadcast(game.game_code)
    return jsonify({'message': 'You have left the game.'})


@games.route('/<string:game_code>', methods=['DELETE'])
def delete_game(game_code):
    game = _load_game(game_code, lock=True)
    code = game.game_code
    lobby.delete_game(game, _caller_id())
    _commit_and_broadcast(code)
    return jsonify({'message': f'Game {code} deleted'})


@games.route('/<string:game_code>/start', methods=['POST'])
def start_game(game_code):
    game = _load_game(game_code, lock=True)
    lobby.start_game(game, _caller_id())
    _commit_and_broadcast(game.game_code)
    return jsonify(_state(game))


# ---- queries ----

@games.route('/<string:game_code>/state', methods=['GET'])
def get_game_state(game_code):
    caller = require_caller(_caller_id())
    game = _load_game(game_code)
    if not game.is_participant(caller):
        raise AuthorizationError('You are not a player in this game')
    return jsonify(_state(game))


@games.route('/<string:game_code>/timelines', methods=['GET'])
def get_timelines(game_code):
    caller = require_caller(_caller_id())
    game = _load_game(game_code)
    if not game.is_participant(caller):
        raise AuthorizationError('You are not a player in this game')
    return jsonify([p.timeline_dict(caller) for p in game.players])


@games.route('/active', methods=['GET'])
def get_my_games():
    """Games the current user hosts or holds a seat in, newest first."""
    caller = require_caller(_caller_id())
    hosted = Game.query.filter_by(host_user_id=caller).all()
    joined = (
        Game.query.join(Player, Player.game_id == Game.id)
        .filter(Player.kind == PlayerKind.USER, Player.user_id == caller, Game.host_user_id != caller)
        .all()
    )
    result = []
    for game, is_host in [(g, True) for g in hosted] + [(g, False) for g in joined]:
        result.append({
            'id': game.id,
            'game_code': game.game_code,
            'mode': game.mode,
            'phase': game.phase,
            'playlist_name': game.playlist.name if game.playlist else None,
            'player_count': len(game.players),
            'created_at': game.created_at,
            'is_host': is_host,
        })
    result.sort(key=lambda g: g['created_at'] or 0, reverse=True)
    return jsonify(result)


# ---- turn commands ----

@games.route('/<string:game_code>/round/start', methods=['POST'])
def start_round(game_code):
    data = request.get_json(silent=True) or {}
    game = _load_game(game_code, lock=True)
    rounds.start_round(game, _int_field(data, 'player_id'), _caller_id())
    _commit_and_broadcast(game.game_code)
    return jsonify(_state(game))


@games.route('/<string:game_code>/round/skip', methods=['POST'])
def skip_round(game_code):
    data = request.get_json(silent=True) or {}
    game = _load_game(game_code, lock=True)
    rounds.skip_round(game, _int_field(data, 'player_id'), _caller_id())
    _commit_and_broadcast(game.game_code)
    return jsonify(_state(game))


@games.route('/<string:game_code>/round/place', methods=['POST'])
def place_card(game_code):
    data = request.get_json(silent=True) or {}
    game = _load_game(game_code, lock=True)
    rounds.place_card(game, _int_field(data, 'player_id'), _caller_id(), _int_field(data, 'index'))
    _commit_and_broadcast(game.game_code)
    return jsonify(_state(game))


@games.route('/<string:game_code>/round/bet', methods=['POST'])
def place_bet(game_code):
    data = request.get_json(silent=True) or {}
    game = _load_game(game_code, lock=True)
    rounds.place_bet(game, _int_field(data, 'player_id'), _caller_id(), _int_field(data, 'slot_index'))
    _commit_and_broadcast(game.game_code)
    return jsonify(_state(game))


@games.route('/<string:game_code>/round/reveal', methods=['POST'])
def reveal_card(game_code):
    game = _load_game(game_code, lock=True)
    rounds.reveal_card(game, _caller_id())
    _commit_and_broadcast(game.game_code)
    return jsonify(_state(game))


@games.route('/<string:game_code>/round/claim-token', methods=['POST'])
def claim_token(game_code):
    data = request.get_json(silent=True) or {}
    game = _load_game(game_code, lock=True)
    rounds.claim_token(game, _int_field(data, 'player_id'), _caller_id())
    _commit_and_broadcast(game.game_code)
    return jsonify(_state(game))


@games.route('/<string:game_code>/round/resolve', methods=['POST'])
def resolve_round(game_code):
    game = _load_game(game_code, lock=True)
    result = rounds.resolve_round(game, _caller_id())
    _commit_and_broadcast(game.game_code)
    return jsonify({'result': result.to_dict(), 'game': _state(game)})


@games.route('/<string:game_code>/trade', methods=['POST'])
def trade_tokens(game_code):
    data = request.get_json(silent=True) or {}
    game = _load_game(game_code, lock=True)
    result = rounds.trade_tokens_for_card(game, _int_field(data, 'player_id'), _caller_id())
    _commit_and_broadcast(game.game_code)
    return jsonify({'result': result.to_dict(), 'game': _state(game)})
