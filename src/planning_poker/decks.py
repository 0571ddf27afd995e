"""Deck catalog: the card values a room may be created with."""

from __future__ import annotations

from pydantic import BaseModel, Field

from .exceptions import UnknownDeckError


class DeckDefinition(BaseModel):
    """A named, ordered set of card values."""

    deck_type: str = Field(..., description="Deck identifier")
    values: list[str] = Field(..., description="Ordered, distinct card values")
    descriptions: dict[str, str] = Field(
        default_factory=dict, description="Optional descriptive label per card value"
    )


FIBONACCI = DeckDefinition(
    deck_type="FIBONACCI",
    values=["0", "1", "2", "3", "5", "8", "13", "21", "?", "☕"],
    descriptions={"?": "Not sure", "☕": "Need a break"},
)

LINEAR = DeckDefinition(
    deck_type="LINEAR",
    values=[str(value) for value in range(11)],
)

TSHIRT = DeckDefinition(
    deck_type="TSHIRT",
    values=["XS", "S", "M", "L", "XL"],
    descriptions={
        "XS": "Extra small",
        "S": "Small",
        "M": "Medium",
        "L": "Large",
        "XL": "Extra large",
    },
)

DECKS: dict[str, DeckDefinition] = {
    deck.deck_type: deck for deck in (FIBONACCI, LINEAR, TSHIRT)
}

# Ranks used when ordinal card labels take part in numeric statistics.
ORDINAL_RANKS: dict[str, int] = {"XS": 1, "S": 2, "M": 3, "L": 4, "XL": 5}


def get_deck(deck_type: str) -> DeckDefinition:
    """Look up a deck definition.

    Raises:
        UnknownDeckError: If the deck type is not registered
    """
    deck = DECKS.get(deck_type)
    if deck is None:
        raise UnknownDeckError(
            f"Unknown deck type: {deck_type}",
            details={"deck_type": str(deck_type), "known": ", ".join(DECKS)},
        )
    return deck


def resolve(deck_type: str) -> list[str]:
    """Return a fresh copy of the ordered card values for a deck type."""
    return list(get_deck(deck_type).values)


def describe(deck_type: str) -> dict[str, str]:
    """Return a fresh copy of the per-value labels for a deck type."""
    return dict(get_deck(deck_type).descriptions)
