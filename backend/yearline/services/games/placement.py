"""Timeline placement rules.

A timeline is a sequence of release years sorted ascending. Inserting a
card at index ``i`` is valid when ``year[i-1] <= candidate <= year[i]``,
with missing neighbours treated as unbounded. Equal years make both sides
of the run acceptable.
"""

from bisect import bisect_right
from typing import List, Sequence


def valid_insertion_indices(timeline: Sequence[int], candidate_year: int) -> List[int]:
    """Return every index in ``[0, len(timeline)]`` where the card fits."""
    valid = []
    for i in range(len(timeline) + 1):
        before_ok = i == 0 or timeline[i - 1] <= candidate_year
        after_ok = i == len(timeline) or candidate_year <= timeline[i]
        if before_ok and after_ok:
            valid.append(i)
    return valid


def correct_insertion_index(timeline: Sequence[int], candidate_year: int) -> int:
    """Canonical slot for auto-placement: just past every year ``<= candidate_year``.

    This is the rightmost member of ``valid_insertion_indices``.
    """
    return bisect_right(timeline, candidate_year)


def is_placement_correct(timeline: Sequence[int], proposed_index: int, candidate_year: int) -> bool:
    return proposed_index in valid_insertion_indices(timeline, candidate_year)
