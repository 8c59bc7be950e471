from yearline.models import PlayerKind
from yearline.services.games.errors import AuthorizationError, NotAuthenticated, NotFound


def require_caller(caller_user_id):
    if caller_user_id is None:
        raise NotAuthenticated()
    return caller_user_id


def require_host(game, caller_user_id, message='Only the host can do this'):
    require_caller(caller_user_id)
    if game.host_user_id != caller_user_id:
        raise AuthorizationError(message)


def verify_can_act_for(game, player, caller_user_id) -> None:
    """User seats act for themselves; local seats are driven by the host."""
    require_caller(caller_user_id)
    if player.kind == PlayerKind.USER:
        if player.user_id != caller_user_id:
            raise AuthorizationError('You cannot act for this player')
    elif game.host_user_id != caller_user_id:
        raise AuthorizationError('Only the host can act for local players')


def seat_of(game, player_id):
    player = game.player_by_id(player_id)
    if player is None:
        raise NotFound('Player not found')
    return player
