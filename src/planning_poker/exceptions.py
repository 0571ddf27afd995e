"""Custom exceptions for the Planning Poker server."""

from __future__ import annotations

from typing import ClassVar


class PlanningPokerError(Exception):
    """Base exception for all planning poker errors."""

    kind: ClassVar[str] = "Internal"
    status_code: ClassVar[int] = 500

    def __init__(self, message: str, details: dict[str, str] | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, object]:
        return {"error": self.message, "kind": self.kind, "details": self.details}


class InvalidInputError(PlanningPokerError):
    """Raised when a field is malformed or out of range."""

    kind = "InvalidInput"
    status_code = 400


class UnknownDeckError(InvalidInputError):
    """Raised when a deck type is not registered in the catalog."""

    kind = "UnknownDeck"


class RoomNotFoundError(PlanningPokerError):
    """Raised when a room id is unknown."""

    kind = "RoomNotFound"
    status_code = 404


class ParticipantNotFoundError(PlanningPokerError):
    """Raised when a participant is unknown, inactive or in another room."""

    kind = "ParticipantNotFound"
    status_code = 404


class ItemNotFoundError(PlanningPokerError):
    """Raised when an item is unknown or belongs to another room."""

    kind = "ItemNotFound"
    status_code = 404


class RoundNotFoundError(PlanningPokerError):
    """Raised when a round id is unknown."""

    kind = "RoundNotFound"
    status_code = 404


class RoomClosedError(PlanningPokerError):
    """Raised when an operation requires an open room."""

    kind = "RoomClosed"
    status_code = 403


class ForbiddenError(PlanningPokerError):
    """Raised when the caller lacks the role required for an operation."""

    kind = "Forbidden"
    status_code = 403


class InvalidStateError(PlanningPokerError):
    """Raised when an operation is not valid for the entity's lifecycle state."""

    kind = "InvalidState"
    status_code = 409


class NoActiveRoundError(InvalidStateError):
    """Raised when an item has no current round (it has been finalized)."""

    kind = "NoActiveRound"
