"""Round state machine: draw, place, bet, reveal, claim, resolve, skip, trade.

Each command validates phase, actor and resources first and only then
mutates the game, its seats, cards and timelines. Callers commit the
session once the command returns.
"""

import time
from dataclasses import asdict, dataclass
from typing import Iterable, Optional, Sequence

from flask import current_app

from yearline import db
from yearline.models import ActiveRound, Bet, Card, CardState, Phase, TimelineEntry
from yearline.services.games import deck
from yearline.services.games.access import require_caller, seat_of, verify_can_act_for
from yearline.services.games.errors import (
    AuthorizationError,
    InvariantViolation,
    PhaseError,
    ResourceError,
)
from yearline.services.games.ledger import TokenLedger
from yearline.services.games.placement import correct_insertion_index, valid_insertion_indices
from yearline.services.games.turns import finish_turn, open_win_check


class Outcome:
    ACTIVE_PLAYER = 'active_player'
    BETTOR = 'bettor'
    DISCARD = 'discard'


@dataclass(frozen=True)
class RoundOutcome:
    placement_correct: bool
    card_went_to: str
    winning_bettor_id: Optional[int] = None


@dataclass(frozen=True)
class RoundResult:
    outcome: RoundOutcome
    winner_id: Optional[int] = None

    def to_dict(self):
        return dict(asdict(self.outcome), winner_id=self.winner_id)


@dataclass(frozen=True)
class TradeResult:
    card_id: int
    inserted_at: int
    winner_id: Optional[int] = None

    def to_dict(self):
        return asdict(self)


def judge_round(
    timeline_years: Sequence[int],
    card_year: int,
    placement_index: int,
    bets: Iterable[Bet],
) -> RoundOutcome:
    """Decide where the round card goes.

    Both the placement and every bet index into the active player's timeline
    as it stood before this round. The earliest bet on a valid slot wins
    when the placement is wrong; bets recorded at the same instant keep their
    recording order.
    """
    valid = valid_insertion_indices(timeline_years, card_year)
    if placement_index in valid:
        return RoundOutcome(True, Outcome.ACTIVE_PLAYER)
    for bet in sorted(bets, key=lambda b: b.timestamp):
        if bet.slot_index in valid:
            return RoundOutcome(False, Outcome.BETTOR, bet.bettor_player_id)
    return RoundOutcome(False, Outcome.DISCARD)


def insert_into_timeline(game, player, card: Card, index: int) -> None:
    player.timeline.insert(index, TimelineEntry(game_id=game.id, card=card))
    deck.take(card, CardState.TIMELINE)
    card.owner_player_id = player.id


# ---- guards ----

def _require_phase(game, phases, message):
    if game.phase not in phases:
        raise PhaseError(message)


def _require_tokens(game):
    if not game.use_tokens:
        raise ResourceError('Tokens are not enabled for this game')


def _require_round(game) -> ActiveRound:
    rnd = game.round
    if rnd is None:
        raise InvariantViolation(f'game={game.id} in phase {game.phase} has no active round')
    return rnd


def _active_player(game):
    player = game.player_at_seat(game.current_turn_seat_index)
    if player is None:
        raise InvariantViolation(f'game={game.id} has no player at seat {game.current_turn_seat_index}')
    return player


def _round_player(game, rnd: ActiveRound):
    player = game.player_by_id(rnd.active_player_id)
    if player is None:
        raise InvariantViolation(f'game={game.id} round player {rnd.active_player_id} not seated')
    return player


def _round_card(rnd: ActiveRound) -> Card:
    card = db.session.get(Card, rnd.card_id)
    if card is None:
        raise InvariantViolation(f'round card {rnd.card_id} not found')
    return card


def _require_active_actor(game, rnd, acting_player_id, caller_user_id):
    player = seat_of(game, acting_player_id)
    if player.id != rnd.active_player_id:
        raise AuthorizationError('Not your turn')
    verify_can_act_for(game, player, caller_user_id)
    return player


def _require_host_or_active(game, rnd, caller_user_id):
    require_caller(caller_user_id)
    active = _round_player(game, rnd)
    if game.host_user_id != caller_user_id:
        verify_can_act_for(game, active, caller_user_id)
    return active


def _config(key, default):
    return current_app.config.get(key, default)


def _finish_exhausted(game) -> None:
    game.phase = Phase.FINISHED
    game.round = None
    game.finished_at = time.time()
    current_app.logger.info(f"[finish] game={game.id} deck exhausted, no winner")


def _deal_round(game, player) -> bool:
    card = deck.next_card(game)
    if card is None:
        _finish_exhausted(game)
        return False
    deck.take(card, CardState.IN_ROUND)
    game.round = ActiveRound(card_id=card.id, active_player_id=player.id)
    return True


# ---- commands ----

def start_round(game, acting_player_id, caller_user_id) -> None:
    """Draw the next card for the active seat; an empty deck ends the game."""
    _require_phase(game, (Phase.AWAITING_START,), 'Cannot start round in current phase')
    active = _active_player(game)
    if active.id != acting_player_id:
        raise AuthorizationError('Not your turn')
    verify_can_act_for(game, active, caller_user_id)

    if _deal_round(game, active):
        game.phase = Phase.AWAITING_PLACEMENT
        current_app.logger.info(f"[round] game={game.id} seat={game.current_turn_seat_index} card={game.round.card_id}")


def skip_round(game, acting_player_id, caller_user_id) -> None:
    """Pay to discard the round card and draw another; bets are dropped."""
    _require_tokens(game)
    _require_phase(game, (Phase.AWAITING_PLACEMENT,), 'Cannot skip in current phase')
    rnd = _require_round(game)
    player = _require_active_actor(game, rnd, acting_player_id, caller_user_id)
    cost = _config('SKIP_COST', 1)
    ledger = TokenLedger(player, game.max_tokens)
    if not ledger.balance_at_least(cost):
        raise ResourceError('Not enough tokens to skip')
    card = _round_card(rnd)

    ledger.spend(cost)
    deck.take(card, CardState.DISCARDED)
    current_app.logger.info(f"[skip] game={game.id} player={player.id} discarded card={card.id}")
    _deal_round(game, player)


def place_card(game, acting_player_id, caller_user_id, index) -> None:
    """Propose a slot; may be repeated to reposition until the reveal."""
    _require_phase(game, (Phase.AWAITING_PLACEMENT, Phase.AWAITING_REVEAL), 'Cannot place card in current phase')
    rnd = _require_round(game)
    player = _require_active_actor(game, rnd, acting_player_id, caller_user_id)
    if not isinstance(index, int) or index < 0 or index > len(player.timeline):
        raise ResourceError('Invalid insertion index')

    game.round = rnd.with_placement(index)
    game.phase = Phase.AWAITING_REVEAL
    current_app.logger.info(f"[place] game={game.id} player={player.id} index={index}")


def place_bet(game, acting_player_id, caller_user_id, slot_index, now: Optional[float] = None) -> None:
    _require_tokens(game)
    _require_phase(game, (Phase.AWAITING_PLACEMENT, Phase.AWAITING_REVEAL), 'Cannot bet in current phase')
    rnd = _require_round(game)
    bettor = seat_of(game, acting_player_id)
    verify_can_act_for(game, bettor, caller_user_id)
    if bettor.id == rnd.active_player_id:
        raise AuthorizationError('Cannot bet on your own turn')
    cost = _config('BET_COST', 1)
    ledger = TokenLedger(bettor, game.max_tokens)
    if not ledger.balance_at_least(cost):
        raise ResourceError('Not enough tokens to bet')
    if rnd.bet_by(bettor.id) is not None:
        raise ResourceError('You already placed a bet this round')
    active = _round_player(game, rnd)
    if not isinstance(slot_index, int) or slot_index < 0 or slot_index > len(active.timeline):
        raise ResourceError('Invalid slot index')
    if rnd.slot_taken(slot_index):
        raise ResourceError('Another player already bet on this slot')

    ledger.spend(cost)
    game.round = rnd.with_bet(Bet(bettor.id, slot_index, now if now is not None else time.time()))
    current_app.logger.info(f"[bet] game={game.id} player={bettor.id} slot={slot_index}")


def reveal_card(game, caller_user_id) -> None:
    """Show the round card to everyone. Active player or host."""
    _require_phase(game, (Phase.AWAITING_REVEAL,), 'Cannot reveal in current phase')
    rnd = _require_round(game)
    _require_host_or_active(game, rnd, caller_user_id)

    game.phase = Phase.REVEALED
    current_app.logger.info(f"[reveal] game={game.id} card={rnd.card_id}")


def claim_token(game, acting_player_id, caller_user_id) -> None:
    """Bonus token for naming the song, once per round and below the cap."""
    _require_tokens(game)
    _require_phase(game, (Phase.REVEALED,), 'Can only claim tokens during revealed phase')
    rnd = _require_round(game)
    player = seat_of(game, acting_player_id)
    verify_can_act_for(game, player, caller_user_id)
    if player.id in rnd.token_claimers:
        raise ResourceError('You already claimed a token this round')

    TokenLedger(player, game.max_tokens).earn(1)
    game.round = rnd.with_claimer(player.id)
    current_app.logger.info(f"[claim] game={game.id} player={player.id} balance={player.token_balance}")


def resolve_round(game, caller_user_id) -> RoundResult:
    _require_phase(game, (Phase.REVEALED,), 'Cannot resolve in current phase')
    rnd = _require_round(game)
    if rnd.placement_index is None:
        raise InvariantViolation(f'game={game.id} revealed without a placement')
    active = _require_host_or_active(game, rnd, caller_user_id)
    card = _round_card(rnd)

    outcome = judge_round(active.timeline_years(), card.release_year, rnd.placement_index, rnd.bets)
    if outcome.card_went_to == Outcome.ACTIVE_PLAYER:
        insert_into_timeline(game, active, card, rnd.placement_index)
    elif outcome.card_went_to == Outcome.BETTOR:
        bettor = game.player_by_id(outcome.winning_bettor_id)
        if bettor is None:
            raise InvariantViolation(f'winning bettor {outcome.winning_bettor_id} not seated')
        ledger = TokenLedger(bettor, game.max_tokens)
        if ledger.can_earn(1):
            ledger.earn(1)
        else:
            current_app.logger.info(f"[resolve] game={game.id} bettor={bettor.id} at token cap, no refund")
        # The bet indexed the active player's timeline; the card lands at its own slot
        insert_into_timeline(game, bettor, card, correct_insertion_index(bettor.timeline_years(), card.release_year))
    else:
        deck.take(card, CardState.DISCARDED)

    current_app.logger.info(
        f"[resolve] game={game.id} seat={game.current_turn_seat_index} outcome={outcome.card_went_to} "
        f"bettor={outcome.winning_bettor_id}"
    )
    decision = finish_turn(game)
    return RoundResult(outcome, winner_id=decision.winner_id)


def trade_tokens_for_card(game, acting_player_id, caller_user_id) -> TradeResult:
    """Spend tokens for a card placed correctly by the engine.

    Before the turn starts the next deck card is bought and the turn goes on.
    During placement the round card itself is placed, open bets are lost,
    and the turn ends.
    """
    _require_tokens(game)
    _require_phase(
        game,
        (Phase.AWAITING_START, Phase.AWAITING_PLACEMENT, Phase.AWAITING_REVEAL),
        'Cannot trade tokens in current phase',
    )
    active = _active_player(game)
    if active.id != acting_player_id:
        raise AuthorizationError('Not your turn')
    verify_can_act_for(game, active, caller_user_id)
    cost = _config('TRADE_COST', 3)
    ledger = TokenLedger(active, game.max_tokens)
    if not ledger.balance_at_least(cost):
        raise ResourceError(f'Need {cost} tokens to trade for a card')

    if game.phase == Phase.AWAITING_START:
        card = deck.next_card(game)
        if card is None:
            raise ResourceError('No cards remaining')
    else:
        rnd = _require_round(game)
        if rnd.active_player_id != active.id:
            raise InvariantViolation(f'game={game.id} round player does not hold seat {game.current_turn_seat_index}')
        card = _round_card(rnd)

    ledger.spend(cost)
    index = correct_insertion_index(active.timeline_years(), card.release_year)
    insert_into_timeline(game, active, card, index)
    current_app.logger.info(f"[trade] game={game.id} player={active.id} card={card.id} index={index}")

    if game.phase == Phase.AWAITING_START:
        open_win_check(game)
        return TradeResult(card_id=card.id, inserted_at=index)
    decision = finish_turn(game)
    return TradeResult(card_id=card.id, inserted_at=index, winner_id=decision.winner_id)
