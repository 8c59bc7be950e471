"""Seat rotation and win detection.

When someone first reaches the win condition a win-check lap opens: every
seat gets one more turn before the winner is decided. If the lap closes on a
tie at the top, only the tied players keep playing (a tiebreak) and a fresh
lap opens among them. This repeats until a single leader remains.
"""

import time
from dataclasses import dataclass
from typing import Collection, Optional, Sequence, Tuple

from flask import current_app

from yearline.models import Phase
from yearline.services.games.errors import InvariantViolation


@dataclass(frozen=True)
class Standing:
    player_id: int
    seat_index: int
    timeline_length: int


@dataclass(frozen=True)
class TurnDecision:
    next_seat_index: int
    phase: str
    win_check_start_seat_index: Optional[int]
    tiebreak_player_ids: Tuple[int, ...]
    winner_id: Optional[int] = None
    lap_closed: bool = False


def advance_seat(current_seat: int, standings: Sequence[Standing], tiebreak_ids: Collection[int] = ()) -> int:
    """Next seat after ``current_seat``, skipping seats outside an active tiebreak.

    Walks at most one full lap; a tiebreak set naming no seated player is a
    consistency bug, not something to spin on.
    """
    seat_count = len(standings)
    if seat_count == 0:
        raise InvariantViolation('Game has no seats')
    occupants = {s.seat_index: s.player_id for s in standings}
    seat = current_seat
    for _ in range(seat_count):
        seat = (seat + 1) % seat_count
        if not tiebreak_ids or occupants.get(seat) in tiebreak_ids:
            return seat
    raise InvariantViolation(f'No tiebreak player seated (tiebreak={sorted(tiebreak_ids)})')


def decide_next_turn(
    standings: Sequence[Standing],
    current_seat: int,
    win_condition: int,
    win_check_start: Optional[int] = None,
    tiebreak_ids: Collection[int] = (),
) -> TurnDecision:
    """Decide who plays next once the current seat's turn is over."""
    tiebreak = tuple(tiebreak_ids)
    next_seat = advance_seat(current_seat, standings, tiebreak)

    if win_check_start is None:
        # Open the lap at the seat about to play so every seat gets one more turn
        if any(s.timeline_length >= win_condition for s in standings):
            win_check_start = next_seat
        return TurnDecision(next_seat, Phase.AWAITING_START, win_check_start, tiebreak)

    if next_seat != win_check_start:
        return TurnDecision(next_seat, Phase.AWAITING_START, win_check_start, tiebreak)

    eligible = [s for s in standings if not tiebreak or s.player_id in tiebreak]
    best = max(s.timeline_length for s in eligible)
    leaders = sorted((s for s in eligible if s.timeline_length == best), key=lambda s: s.seat_index)

    if len(leaders) == 1:
        return TurnDecision(next_seat, Phase.FINISHED, None, (), winner_id=leaders[0].player_id, lap_closed=True)

    if best >= win_condition:
        # First tied seat at or after the pointer, wrapping to the lowest
        restart = next((s.seat_index for s in leaders if s.seat_index >= next_seat), leaders[0].seat_index)
        return TurnDecision(
            restart,
            Phase.AWAITING_START,
            restart,
            tuple(s.player_id for s in leaders),
            lap_closed=True,
        )

    return TurnDecision(next_seat, Phase.AWAITING_START, None, tiebreak, lap_closed=True)


def standings_for(game) -> list:
    return [Standing(p.id, p.seat_index, len(p.timeline)) for p in game.players]


def finish_turn(game) -> TurnDecision:
    """Apply the end of the active seat's turn to ``game``."""
    decision = decide_next_turn(
        standings_for(game),
        game.current_turn_seat_index,
        game.win_condition,
        game.win_check_start_seat_index,
        game.tiebreak_player_ids,
    )
    log = current_app.logger
    if game.win_check_start_seat_index is None and decision.win_check_start_seat_index is not None:
        log.info(f"[win-check] game={game.id} lap starts at seat {decision.win_check_start_seat_index}")

    game.round = None
    game.phase = decision.phase
    game.win_check_start_seat_index = decision.win_check_start_seat_index
    game.tiebreak_player_ids = decision.tiebreak_player_ids

    if decision.winner_id is not None:
        game.winner_id = decision.winner_id
        game.finished_at = time.time()
        log.info(f"[finish] game={game.id} winner={decision.winner_id}")
        return decision

    if decision.lap_closed and decision.tiebreak_player_ids:
        log.info(f"[tiebreak] game={game.id} contenders={list(decision.tiebreak_player_ids)} restart seat={decision.next_seat_index}")
    log.info(f"[turn] game={game.id} seat {game.current_turn_seat_index} -> {decision.next_seat_index}")
    game.current_turn_seat_index = decision.next_seat_index
    return decision


def open_win_check(game) -> None:
    """Open the lap at the current seat after a pre-turn card purchase."""
    if game.win_check_start_seat_index is not None:
        return
    if any(s.timeline_length >= game.win_condition for s in standings_for(game)):
        game.win_check_start_seat_index = game.current_turn_seat_index
        current_app.logger.info(f"[win-check] game={game.id} lap starts at seat {game.current_turn_seat_index}")
