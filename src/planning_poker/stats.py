"""Vote statistics computed when a round is revealed."""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Sequence

from .decks import ORDINAL_RANKS
from .models import VoteStatistics


def numeric_rank(card_value: str) -> float | None:
    """Map a card value to a number, or None if it takes no part in aggregates.

    Finite numbers map to themselves and ordinal size labels map to their rank.
    Everything else (``?``, the coffee cup) is non-numeric.
    """
    try:
        number = float(card_value)
    except (TypeError, ValueError):
        return ORDINAL_RANKS.get(card_value)
    if not math.isfinite(number):
        return None
    return number


def _median(values: list[float]) -> float:
    ordered = sorted(values)
    middle = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[middle]
    return (ordered[middle - 1] + ordered[middle]) / 2


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def suggest_estimate(average: float, deck_values: Sequence[str]) -> str:
    """Pick the deck value whose rank is closest to the rounded average.

    Ties go to the earliest value in deck order. A deck without numeric values
    gets the rounded average itself.
    """
    target = _round_half_up(average)
    best_value: str | None = None
    best_distance = math.inf
    for value in deck_values:
        rank = numeric_rank(value)
        if rank is None:
            continue
        distance = abs(rank - target)
        if distance < best_distance:
            best_value, best_distance = value, distance
    if best_value is None:
        return str(target)
    return best_value


def compute_statistics(card_values: Sequence[str], deck_values: Sequence[str]) -> VoteStatistics:
    """Compute aggregates over the card values of one round.

    Args:
        card_values: Card value of each vote, in vote order
        deck_values: The room's ordered deck values

    Returns:
        Statistics; an empty input yields zeros and empty strings
    """
    if not card_values:
        return VoteStatistics()

    distribution = dict(Counter(card_values))
    ranked = [
        (value, rank) for value in card_values if (rank := numeric_rank(value)) is not None
    ]

    if not ranked:
        # No numeric votes: highest/lowest fall back to the first raw vote.
        first = card_values[0]
        return VoteStatistics(
            average=0.0,
            median=0.0,
            highest=first,
            lowest=first,
            suggested_estimate=suggest_estimate(0.0, deck_values),
            distribution=distribution,
        )

    ranks = [rank for _, rank in ranked]
    average = sum(ranks) / len(ranks)
    highest = max(ranked, key=lambda pair: pair[1])[0]
    lowest = min(ranked, key=lambda pair: pair[1])[0]

    return VoteStatistics(
        average=average,
        median=_median(ranks),
        highest=highest,
        lowest=lowest,
        suggested_estimate=suggest_estimate(average, deck_values),
        distribution=distribution,
    )
