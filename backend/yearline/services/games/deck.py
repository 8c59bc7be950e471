"""Deck handling: seeding a shuffled draw pile and drawing from it."""

import random
from typing import List, Optional

from yearline.models import Card, CardState


def shuffle_and_seed(game_id: int, tracks, rng: Optional[random.Random] = None) -> List[Card]:
    """Build deck cards for ``tracks`` in Fisher-Yates order.

    Only playable tracks (ready, with a release year) are used. Deck orders
    are dense, ``0..n-1``, in draw order.
    """
    rng = rng or random
    pool = [t for t in tracks if t.is_playable]
    for i in range(len(pool) - 1, 0, -1):
        j = rng.randint(0, i)
        pool[i], pool[j] = pool[j], pool[i]
    return [
        Card(game_id=game_id, track_id=t.id, release_year=t.release_year, state=CardState.DECK, deck_order=i)
        for i, t in enumerate(pool)
    ]


def next_card(game) -> Optional[Card]:
    """The undrawn card with the lowest deck order, or None when exhausted."""
    return (
        Card.query.filter_by(game_id=game.id, state=CardState.DECK)
        .order_by(Card.deck_order.asc(), Card.id.asc())
        .first()
    )


def take(card: Card, state: str) -> Card:
    """Move a card out of the deck; it is never drawn again."""
    card.state = state
    card.deck_order = None
    return card


def renumber(game) -> None:
    """Re-pack deck orders of undrawn cards densely from zero."""
    remaining = (
        Card.query.filter_by(game_id=game.id, state=CardState.DECK)
        .order_by(Card.deck_order.asc(), Card.id.asc())
        .all()
    )
    for i, card in enumerate(remaining):
        card.deck_order = i
