"""Data models for the Planning Poker server."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class RoomState(StrEnum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class ParticipantRole(StrEnum):
    FACILITATOR = "FACILITATOR"
    PARTICIPANT = "PARTICIPANT"
    OBSERVER = "OBSERVER"


class RoundState(StrEnum):
    VOTING = "VOTING"
    REVEALED = "REVEALED"
    FINALIZED = "FINALIZED"


class Room(BaseModel):
    """Represents a voting session container."""

    id: str = Field(..., description="Room ID")
    name: str = Field(..., description="Trimmed room name")
    deck_type: str = Field(..., description="Deck identifier the room was created with")
    deck_values: list[str] = Field(..., description="Card values copied from the catalog")
    deck_descriptions: dict[str, str] = Field(
        default_factory=dict, description="Descriptive label per card value"
    )
    state: RoomState = Field(default=RoomState.OPEN, description="Room state")
    facilitator_id: str = Field(..., description="Participant ID of the facilitator")
    created_at: int = Field(..., description="Creation timestamp (ms since epoch)")
    closed_at: int | None = Field(None, description="Close timestamp (ms since epoch)")


class Participant(BaseModel):
    """Represents one user's membership in one room."""

    id: str = Field(..., description="Participant ID")
    room_id: str = Field(..., description="Room ID")
    display_name: str = Field(..., description="Trimmed display name")
    role: ParticipantRole = Field(..., description="Participant role")
    joined_at: int = Field(..., description="Join timestamp (ms since epoch)")
    left_at: int | None = Field(None, description="Leave timestamp (ms since epoch)")
    is_active: bool = Field(default=True, description="Whether the participant is present")


class Session(BaseModel):
    """Denormalized summary of a room's lifetime."""

    id: str = Field(..., description="Session ID (equal to the room ID)")
    room_id: str = Field(..., description="Room ID")
    started_at: int = Field(..., description="Start timestamp (ms since epoch)")
    closed_at: int | None = Field(None, description="Close timestamp (ms since epoch)")
    facilitator_id: str = Field(..., description="Participant ID of the facilitator")
    facilitator_name: str = Field(..., description="Display name of the facilitator")
    total_items: int = Field(default=0, description="Items with a recorded final estimate")
    total_participants: int = Field(default=1, description="Participants that ever joined")


class Item(BaseModel):
    """Represents one estimable unit of work."""

    id: str = Field(..., description="Item ID")
    room_id: str = Field(..., description="Room ID")
    title: str = Field(..., description="Item title")
    description: str | None = Field(None, description="Optional item description")
    order: int = Field(..., description="Position of the item within its room")
    final_estimate: str | None = Field(None, description="Recorded final estimate")
    final_estimate_recorded_at: int | None = Field(
        None, description="When the final estimate was recorded (ms since epoch)"
    )
    created_at: int = Field(..., description="Creation timestamp (ms since epoch)")
    current_round_id: str | None = Field(None, description="Current round, null once finalized")


class Round(BaseModel):
    """Represents one voting attempt on one item."""

    id: str = Field(..., description="Round ID")
    item_id: str = Field(..., description="Item ID")
    round_number: int = Field(default=1, description="Attempt number, starting at 1")
    state: RoundState = Field(default=RoundState.VOTING, description="Round state")
    votes_revealed_at: int | None = Field(None, description="Reveal timestamp (ms since epoch)")
    created_at: int = Field(..., description="Creation timestamp (ms since epoch)")
    finalized_at: int | None = Field(None, description="Finalize timestamp (ms since epoch)")


class Vote(BaseModel):
    """Represents one participant's card selection within one round."""

    id: str = Field(..., description="Vote ID")
    round_id: str = Field(..., description="Round ID")
    participant_id: str = Field(..., description="Participant ID")
    card_value: str = Field(..., description="Selected card value")
    voted_at: int = Field(..., description="Vote timestamp (ms since epoch)")
    is_revealed: bool = Field(default=False, description="Whether the round has been revealed")


class VoteWithName(Vote):
    """A vote joined with its voter's display name."""

    participant_name: str = Field(..., description="Display name of the voter")


class VoteStatistics(BaseModel):
    """Aggregates computed over a revealed round."""

    average: float = Field(default=0.0, description="Mean of numeric votes")
    median: float = Field(default=0.0, description="Median of numeric votes")
    highest: str = Field(default="", description="Card value with the highest rank")
    lowest: str = Field(default="", description="Card value with the lowest rank")
    suggested_estimate: str = Field(default="", description="Deck value closest to the average")
    distribution: dict[str, int] = Field(
        default_factory=dict, description="Vote count per card value"
    )


class RoundSummary(BaseModel):
    """Current round state attached to an item listing."""

    id: str
    state: RoundState
    round_number: int
    voted_count: int


class ItemWithRound(Item):
    """An item together with a summary of its current round."""

    current_round: RoundSummary | None = None


class CreateRoomResult(BaseModel):
    """Result of creating a room."""

    room: Room
    participant: Participant
    session: Session
    shareable_link: str


class JoinRoomResult(BaseModel):
    """Result of joining a room."""

    participant: Participant
    room: Room


class RevealResult(BaseModel):
    """Result of revealing the votes of a round."""

    votes: list[VoteWithName]
    statistics: VoteStatistics


class RoundDetail(BaseModel):
    """A round and its votes, as returned to reconnecting clients."""

    round: Round
    votes: list[Vote]


class EventType(StrEnum):
    PARTICIPANT_JOINED = "participant_joined"
    PARTICIPANT_LEFT = "participant_left"
    ROOM_CLOSED = "room_closed"
    ITEM_ADDED = "item_added"
    ITEM_UPDATED = "item_updated"
    ITEM_REMOVED = "item_removed"
    VOTE_COUNT = "vote_count"
    VOTES_REVEALED = "votes_revealed"
    REVOTE_STARTED = "revote_started"
    FINAL_ESTIMATE_RECORDED = "final_estimate_recorded"


class RoomEvent(BaseModel):
    """A room-scoped notification delivered to subscribers."""

    type: EventType = Field(..., description="Event type")
    room_id: str = Field(..., description="Room the event belongs to")
    data: dict[str, Any] = Field(default_factory=dict, description="Event payload")
