"""Service layer: the room and estimation state machine."""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel

from . import decks
from .config import Config
from .exceptions import (
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    ItemNotFoundError,
    NoActiveRoundError,
    ParticipantNotFoundError,
    RoomClosedError,
    RoomNotFoundError,
    RoundNotFoundError,
)
from .interfaces import NotificationSink, StateStoreInterface
from .models import (
    CreateRoomResult,
    EventType,
    Item,
    ItemWithRound,
    JoinRoomResult,
    Participant,
    ParticipantRole,
    RevealResult,
    Room,
    RoomEvent,
    RoomState,
    Round,
    RoundDetail,
    RoundState,
    RoundSummary,
    Session,
    Vote,
    VoteWithName,
)
from .stats import compute_statistics

logger = structlog.get_logger(__name__)

ROOM_NAME_MAX_LENGTH = 200
DISPLAY_NAME_MAX_LENGTH = 100
ITEM_TITLE_MAX_LENGTH = 200
ITEM_DESCRIPTION_MAX_LENGTH = 2000

VOTING_ROLES = frozenset({ParticipantRole.FACILITATOR, ParticipantRole.PARTICIPANT})

ModelT = TypeVar("ModelT", bound=BaseModel)

_UNSET: Any = object()


def _snapshot(model: ModelT) -> ModelT:
    """Detach a stored entity from the store before it leaves the service."""
    return model.model_copy(deep=True)


def _clean_text(value: str | None, field: str, max_length: int) -> str:
    """Trim a required text field and check its length.

    Raises:
        InvalidInputError: If the value is missing, blank or too long
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(f"{field} is required", details={"field": field})
    cleaned = value.strip()
    if len(cleaned) > max_length:
        raise InvalidInputError(
            f"{field} must be at most {max_length} characters", details={"field": field}
        )
    return cleaned


def _clean_description(value: str | None) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidInputError("Description must be a string", details={"field": "description"})
    if len(value) > ITEM_DESCRIPTION_MAX_LENGTH:
        raise InvalidInputError(
            f"Description must be at most {ITEM_DESCRIPTION_MAX_LENGTH} characters",
            details={"field": "description"},
        )
    return value


class _BaseService:
    """Shared lookups and event publishing for the services."""

    def __init__(self, config: Config, store: StateStoreInterface, sink: NotificationSink) -> None:
        self.config = config
        self.store = store
        self.sink = sink

    def _publish(self, room_id: str, event_type: EventType, data: dict[str, Any]) -> None:
        """Hand an event to the sink; delivery problems never fail the operation."""
        event = RoomEvent(type=event_type, room_id=room_id, data=data)
        try:
            self.sink.publish(room_id, event)
        except Exception as e:
            logger.warning(
                "Failed to publish room event",
                room_id=room_id,
                event_type=event_type.value,
                error=str(e),
            )

    def _require_room(self, room_id: str) -> Room:
        room = self.store.get_room(room_id)
        if room is None:
            raise RoomNotFoundError("Room not found", details={"room_id": room_id})
        return room

    def _require_open_room(self, room_id: str) -> Room:
        room = self._require_room(room_id)
        if room.state == RoomState.CLOSED:
            raise RoomClosedError("Room is closed", details={"room_id": room_id})
        return room

    def _require_facilitator(self, room: Room, participant_id: str, action: str) -> None:
        if participant_id != room.facilitator_id:
            raise ForbiddenError(
                f"Only the facilitator can {action}",
                details={"participant_id": str(participant_id)},
            )

    def _require_item(self, room: Room, item_id: str) -> Item:
        item = self.store.get_item(item_id)
        if item is None or item.room_id != room.id:
            raise ItemNotFoundError("Item not found", details={"item_id": item_id})
        return item

    def _require_current_round(self, item: Item) -> Round:
        if item.current_round_id is None:
            raise NoActiveRoundError(
                "Item has no active round", details={"item_id": item.id}
            )
        round_ = self.store.get_round(item.current_round_id)
        if round_ is None:
            raise RoundNotFoundError(
                "Round not found", details={"round_id": item.current_round_id}
            )
        return round_

    def _require_card_value(self, room: Room, card_value: str) -> str:
        if card_value not in room.deck_values:
            raise InvalidInputError(
                f"Invalid card value: {card_value}",
                details={"card_value": str(card_value), "deck": ", ".join(room.deck_values)},
            )
        return card_value

    def _active_participants(self, room_id: str) -> list[Participant]:
        active = [p for p in self.store.get_room_participants(room_id) if p.is_active]
        return sorted(active, key=lambda p: p.joined_at)

    def _voting_participant_count(self, room_id: str) -> int:
        return sum(1 for p in self._active_participants(room_id) if p.role in VOTING_ROLES)

    def _vote_count(self, round_id: str) -> int:
        return len(self.store.get_round_votes(round_id))


class RoomService(_BaseService):
    """Service for room membership and lifecycle."""

    def create_room(
        self, name: str, deck_type: str | None = None, base_url: str | None = None
    ) -> CreateRoomResult:
        """Create an open room with its facilitator and session.

        Args:
            name: Room name, also used as the facilitator's display name
            deck_type: Deck identifier; the configured default when omitted
            base_url: Prefix for the shareable link; path-only when omitted

        Raises:
            InvalidInputError: If the name is blank or too long
            UnknownDeckError: If the deck type is not in the catalog
        """
        clean_name = _clean_text(name, "Room name", ROOM_NAME_MAX_LENGTH)
        if deck_type is None:
            deck_type = self.config.default_deck
        deck_values = decks.resolve(deck_type)
        deck_descriptions = decks.describe(deck_type)

        now = self.store.now()
        room_id = self.store.new_id()
        facilitator_id = self.store.new_id()

        room = Room(
            id=room_id,
            name=clean_name,
            deck_type=deck_type,
            deck_values=deck_values,
            deck_descriptions=deck_descriptions,
            state=RoomState.OPEN,
            facilitator_id=facilitator_id,
            created_at=now,
        )
        facilitator = Participant(
            id=facilitator_id,
            room_id=room_id,
            display_name=clean_name,
            role=ParticipantRole.FACILITATOR,
            joined_at=now,
        )
        session = Session(
            id=room_id,
            room_id=room_id,
            started_at=now,
            facilitator_id=facilitator_id,
            facilitator_name=clean_name,
            total_items=0,
            total_participants=1,
        )
        self.store.add_room(room, facilitator, session)

        path = f"/room/{room_id}"
        shareable_link = f"{base_url.rstrip('/')}{path}" if base_url else path

        logger.info(
            "Room created", room_id=room_id, deck_type=deck_type, facilitator_id=facilitator_id
        )

        return CreateRoomResult(
            room=_snapshot(room),
            participant=_snapshot(facilitator),
            session=_snapshot(session),
            shareable_link=shareable_link,
        )

    def join_room(
        self,
        room_id: str,
        display_name: str,
        role: ParticipantRole | str = ParticipantRole.PARTICIPANT,
    ) -> JoinRoomResult:
        """Add a participant or observer to an open room.

        Raises:
            RoomNotFoundError: If the room does not exist
            RoomClosedError: If the room has been closed
            InvalidInputError: If the display name or role is invalid
        """
        with self.store.room_lock(room_id):
            room = self._require_open_room(room_id)
            clean_name = _clean_text(display_name, "Display name", DISPLAY_NAME_MAX_LENGTH)
            try:
                participant_role = ParticipantRole(role)
            except ValueError:
                raise InvalidInputError(
                    f"Invalid role: {role}", details={"field": "role"}
                ) from None
            if participant_role == ParticipantRole.FACILITATOR:
                raise InvalidInputError(
                    "The facilitator role cannot be taken by joining",
                    details={"field": "role"},
                )

            participant = Participant(
                id=self.store.new_id(),
                room_id=room_id,
                display_name=clean_name,
                role=participant_role,
                joined_at=self.store.now(),
            )
            self.store.add_participant(participant)

            session = self.store.get_session(room_id)
            if session is not None:
                session.total_participants += 1

            logger.info(
                "Participant joined room",
                room_id=room_id,
                participant_id=participant.id,
                role=participant_role.value,
            )
            self._publish(
                room_id,
                EventType.PARTICIPANT_JOINED,
                {"participant": participant.model_dump(mode="json")},
            )
            return JoinRoomResult(participant=_snapshot(participant), room=_snapshot(room))

    def leave_room(self, room_id: str, participant_id: str) -> Participant:
        """Mark a participant as gone; leaving twice is a no-op.

        Raises:
            ParticipantNotFoundError: If the participant is not in this room
        """
        with self.store.room_lock(room_id):
            participant = self.store.get_participant(participant_id)
            if participant is None or participant.room_id != room_id:
                raise ParticipantNotFoundError(
                    "Participant not found", details={"participant_id": participant_id}
                )
            if not participant.is_active:
                return _snapshot(participant)

            participant.is_active = False
            participant.left_at = self.store.now()

            logger.info("Participant left room", room_id=room_id, participant_id=participant_id)
            self._publish(
                room_id,
                EventType.PARTICIPANT_LEFT,
                {"participant": participant.model_dump(mode="json")},
            )
            return _snapshot(participant)

    def close_room(self, room_id: str, participant_id: str) -> Room:
        """Close a room; closing twice is a no-op.

        Raises:
            RoomNotFoundError: If the room does not exist
            ForbiddenError: If the caller is not the facilitator
        """
        with self.store.room_lock(room_id):
            room = self._require_room(room_id)
            self._require_facilitator(room, participant_id, "close the room")
            if room.state == RoomState.CLOSED:
                return _snapshot(room)

            now = self.store.now()
            room.state = RoomState.CLOSED
            room.closed_at = now
            session = self.store.get_session(room_id)
            if session is not None:
                session.closed_at = now

            logger.info("Room closed", room_id=room_id, participant_id=participant_id)
            self._publish(
                room_id,
                EventType.ROOM_CLOSED,
                {"room_id": room_id, "state": RoomState.CLOSED.value},
            )
            return _snapshot(room)

    def get_room(self, room_id: str) -> Room:
        with self.store.room_lock(room_id):
            return _snapshot(self._require_room(room_id))

    def get_session(self, room_id: str) -> Session:
        with self.store.room_lock(room_id):
            self._require_room(room_id)
            session = self.store.get_session(room_id)
            if session is None:
                raise RoomNotFoundError("Session not found", details={"room_id": room_id})
            return _snapshot(session)

    def get_participant(self, room_id: str, participant_id: str) -> Participant:
        with self.store.room_lock(room_id):
            participant = self.store.get_participant(participant_id)
            if participant is None or participant.room_id != room_id:
                raise ParticipantNotFoundError(
                    "Participant not found", details={"participant_id": participant_id}
                )
            return _snapshot(participant)

    def get_active_participants(self, room_id: str) -> list[Participant]:
        """Active participants of a room, earliest joiner first."""
        with self.store.room_lock(room_id):
            self._require_room(room_id)
            return [_snapshot(p) for p in self._active_participants(room_id)]

    def get_voting_participant_count(self, room_id: str) -> int:
        """Count active participants allowed to vote (facilitator and participants)."""
        with self.store.room_lock(room_id):
            self._require_room(room_id)
            return self._voting_participant_count(room_id)


class EstimationService(_BaseService):
    """Service for items, voting rounds and final estimates."""

    def add_item(
        self, room_id: str, participant_id: str, title: str, description: str | None = None
    ) -> Item:
        """Append an item to an open room and open its first voting round.

        Raises:
            RoomNotFoundError: If the room does not exist
            RoomClosedError: If the room has been closed
            ForbiddenError: If the caller is not the facilitator
            InvalidInputError: If the title or description is invalid
        """
        with self.store.room_lock(room_id):
            room = self._require_open_room(room_id)
            self._require_facilitator(room, participant_id, "add items")
            clean_title = _clean_text(title, "Title", ITEM_TITLE_MAX_LENGTH)
            clean_description = _clean_description(description)

            now = self.store.now()
            item_id = self.store.new_id()
            round_ = Round(
                id=self.store.new_id(),
                item_id=item_id,
                round_number=1,
                state=RoundState.VOTING,
                created_at=now,
            )
            item = Item(
                id=item_id,
                room_id=room_id,
                title=clean_title,
                description=clean_description,
                order=self.store.next_item_order(room_id),
                created_at=now,
                current_round_id=round_.id,
            )
            self.store.add_round(round_)
            self.store.add_item(item)

            logger.info("Item added", room_id=room_id, item_id=item_id, order=item.order)
            self._publish(room_id, EventType.ITEM_ADDED, {"item": item.model_dump(mode="json")})
            return _snapshot(item)

    def update_item(
        self,
        room_id: str,
        item_id: str,
        participant_id: str,
        title: str | None = _UNSET,
        description: str | None = _UNSET,
    ) -> Item:
        """Edit an item's title and/or description before anyone has voted.

        Only the fields passed are changed. Passing ``description=None`` clears it.

        Raises:
            RoomNotFoundError: If the room does not exist
            ForbiddenError: If the caller is not the facilitator
            ItemNotFoundError: If the item is not in this room
            InvalidStateError: If the current round already has votes
            InvalidInputError: If a provided field is invalid
        """
        with self.store.room_lock(room_id):
            room = self._require_room(room_id)
            self._require_facilitator(room, participant_id, "edit items")
            item = self._require_item(room, item_id)
            if item.current_round_id is not None and self._vote_count(item.current_round_id) > 0:
                raise InvalidStateError(
                    "Cannot edit an item after voting has started", details={"item_id": item_id}
                )

            changes: dict[str, str | None] = {}
            if title is not _UNSET and title is not None:
                changes["title"] = _clean_text(title, "Title", ITEM_TITLE_MAX_LENGTH)
            if description is not _UNSET:
                changes["description"] = _clean_description(description)

            for field, value in changes.items():
                setattr(item, field, value)

            logger.info("Item updated", room_id=room_id, item_id=item_id, fields=sorted(changes))
            self._publish(room_id, EventType.ITEM_UPDATED, {"item": item.model_dump(mode="json")})
            return _snapshot(item)

    def remove_item(self, room_id: str, item_id: str, participant_id: str) -> None:
        """Delete an item with all of its rounds and votes.

        Raises:
            RoomNotFoundError: If the room does not exist
            ForbiddenError: If the caller is not the facilitator
            ItemNotFoundError: If the item is not in this room
        """
        with self.store.room_lock(room_id):
            room = self._require_room(room_id)
            self._require_facilitator(room, participant_id, "remove items")
            self._require_item(room, item_id)

            self.store.delete_item(item_id)
            self._refresh_session_totals(room_id)

            logger.info("Item removed", room_id=room_id, item_id=item_id)
            self._publish(room_id, EventType.ITEM_REMOVED, {"item_id": item_id})

    def cast_vote(self, room_id: str, item_id: str, participant_id: str, card_value: str) -> Vote:
        """Record or replace a participant's card in the item's current round.

        Raises:
            RoomNotFoundError: If the room does not exist
            RoomClosedError: If the room has been closed
            ParticipantNotFoundError: If the voter is unknown, inactive or elsewhere
            ForbiddenError: If the voter is an observer
            ItemNotFoundError: If the item is not in this room
            NoActiveRoundError: If the item has been finalized
            RoundNotFoundError: If the current round is missing
            InvalidStateError: If the round is no longer accepting votes
            InvalidInputError: If the card is not in the room's deck
        """
        with self.store.room_lock(room_id):
            room = self._require_open_room(room_id)
            participant = self.store.get_participant(participant_id)
            if participant is None or participant.room_id != room_id or not participant.is_active:
                raise ParticipantNotFoundError(
                    "Participant not found", details={"participant_id": participant_id}
                )
            if participant.role == ParticipantRole.OBSERVER:
                raise ForbiddenError(
                    "Observers cannot vote", details={"participant_id": participant_id}
                )
            item = self._require_item(room, item_id)
            round_ = self._require_current_round(item)
            if round_.state != RoundState.VOTING:
                raise InvalidStateError(
                    f"Round is not accepting votes (current: {round_.state.value})",
                    details={"round_id": round_.id},
                )
            self._require_card_value(room, card_value)

            now = self.store.now()
            vote = self.store.get_vote(round_.id, participant_id)
            if vote is not None:
                vote.card_value = card_value
                vote.voted_at = now
            else:
                vote = Vote(
                    id=self.store.new_id(),
                    round_id=round_.id,
                    participant_id=participant_id,
                    card_value=card_value,
                    voted_at=now,
                    is_revealed=False,
                )
                self.store.add_vote(vote)

            voted_count = self._vote_count(round_.id)
            total_count = self._voting_participant_count(room_id)

            logger.info(
                "Vote cast",
                room_id=room_id,
                item_id=item_id,
                round_id=round_.id,
                participant_id=participant_id,
                voted_count=voted_count,
            )
            self._publish(
                room_id,
                EventType.VOTE_COUNT,
                {"item_id": item_id, "voted_count": voted_count, "total_count": total_count},
            )
            return _snapshot(vote)

    def reveal_votes(self, room_id: str, item_id: str, participant_id: str) -> RevealResult:
        """Reveal the votes of the current round and compute statistics.

        Raises:
            RoomNotFoundError: If the room does not exist
            ForbiddenError: If the caller is not the facilitator
            ItemNotFoundError: If the item is not in this room
            NoActiveRoundError: If the item has been finalized
            RoundNotFoundError: If the current round is missing
            InvalidStateError: If the round is not in voting
        """
        with self.store.room_lock(room_id):
            room = self._require_room(room_id)
            self._require_facilitator(room, participant_id, "reveal votes")
            item = self._require_item(room, item_id)
            round_ = self._require_current_round(item)
            if round_.state != RoundState.VOTING:
                raise InvalidStateError(
                    f"Votes already revealed (current: {round_.state.value})",
                    details={"round_id": round_.id},
                )

            now = self.store.now()
            round_.state = RoundState.REVEALED
            round_.votes_revealed_at = now
            votes = self.store.get_round_votes(round_.id)
            for vote in votes:
                vote.is_revealed = True

            result = RevealResult(
                votes=[self._with_name(vote) for vote in votes],
                statistics=compute_statistics([v.card_value for v in votes], room.deck_values),
            )

            logger.info(
                "Votes revealed",
                room_id=room_id,
                item_id=item_id,
                round_id=round_.id,
                vote_count=len(votes),
            )
            self._publish(
                room_id,
                EventType.VOTES_REVEALED,
                {
                    "item_id": item_id,
                    **result.model_dump(mode="json"),
                    "deck_descriptions": dict(room.deck_descriptions) or None,
                },
            )
            return result

    def revote(self, room_id: str, item_id: str, participant_id: str) -> Round:
        """Open a fresh voting round on an item after a reveal.

        Raises:
            RoomNotFoundError: If the room does not exist
            ForbiddenError: If the caller is not the facilitator
            ItemNotFoundError: If the item is not in this room
            NoActiveRoundError: If the item has been finalized
            RoundNotFoundError: If the current round is missing
            InvalidStateError: If the current round has not been revealed
        """
        with self.store.room_lock(room_id):
            room = self._require_room(room_id)
            self._require_facilitator(room, participant_id, "start a re-vote")
            item = self._require_item(room, item_id)
            previous = self._require_current_round(item)
            if previous.state != RoundState.REVEALED:
                raise InvalidStateError(
                    f"Can only re-vote after votes are revealed (current: {previous.state.value})",
                    details={"round_id": previous.id},
                )

            round_ = Round(
                id=self.store.new_id(),
                item_id=item_id,
                round_number=previous.round_number + 1,
                state=RoundState.VOTING,
                created_at=self.store.now(),
            )
            self.store.add_round(round_)
            item.current_round_id = round_.id

            logger.info(
                "Re-vote started",
                room_id=room_id,
                item_id=item_id,
                round_id=round_.id,
                round_number=round_.round_number,
            )
            self._publish(room_id, EventType.REVOTE_STARTED, {"item_id": item_id})
            return _snapshot(round_)

    def record_final_estimate(
        self, room_id: str, item_id: str, participant_id: str, card_value: str
    ) -> Item:
        """Finalize an item with the facilitator's chosen card.

        Raises:
            RoomNotFoundError: If the room does not exist
            ForbiddenError: If the caller is not the facilitator
            ItemNotFoundError: If the item is not in this room
            InvalidInputError: If the card is not in the room's deck
            NoActiveRoundError: If the item has already been finalized
            RoundNotFoundError: If the current round is missing
            InvalidStateError: If the current round has not been revealed
        """
        with self.store.room_lock(room_id):
            room = self._require_room(room_id)
            self._require_facilitator(room, participant_id, "record final estimates")
            item = self._require_item(room, item_id)
            self._require_card_value(room, card_value)
            round_ = self._require_current_round(item)
            if round_.state != RoundState.REVEALED:
                raise InvalidStateError(
                    f"Votes must be revealed before finalizing (current: {round_.state.value})",
                    details={"round_id": round_.id},
                )

            now = self.store.now()
            item.final_estimate = card_value
            item.final_estimate_recorded_at = now
            item.current_round_id = None
            round_.state = RoundState.FINALIZED
            round_.finalized_at = now
            self._refresh_session_totals(room_id)

            logger.info(
                "Final estimate recorded",
                room_id=room_id,
                item_id=item_id,
                round_id=round_.id,
                final_estimate=card_value,
            )
            self._publish(
                room_id,
                EventType.FINAL_ESTIMATE_RECORDED,
                {"item": item.model_dump(mode="json"), "final_estimate": card_value},
            )
            return _snapshot(item)

    def get_items_by_room(self, room_id: str) -> list[Item]:
        """Items of a room in their order."""
        with self.store.room_lock(room_id):
            self._require_room(room_id)
            items = sorted(self.store.get_room_items(room_id), key=lambda item: item.order)
            return [_snapshot(item) for item in items]

    def get_items_with_rounds(self, room_id: str) -> list[ItemWithRound]:
        """Items of a room in order, each with a summary of its current round."""
        with self.store.room_lock(room_id):
            self._require_room(room_id)
            listing = []
            for item in sorted(self.store.get_room_items(room_id), key=lambda i: i.order):
                summary = None
                round_ = (
                    self.store.get_round(item.current_round_id) if item.current_round_id else None
                )
                if round_ is not None:
                    summary = RoundSummary(
                        id=round_.id,
                        state=round_.state,
                        round_number=round_.round_number,
                        voted_count=self._vote_count(round_.id),
                    )
                listing.append(ItemWithRound(**item.model_dump(), current_round=summary))
            return listing

    def get_round_by_id(self, round_id: str) -> Round:
        with self._round_lock(round_id):
            round_ = self.store.get_round(round_id)
            if round_ is None:
                raise RoundNotFoundError("Round not found", details={"round_id": round_id})
            return _snapshot(round_)

    def get_votes_by_round(self, round_id: str) -> list[Vote]:
        with self._round_lock(round_id):
            return [_snapshot(vote) for vote in self.store.get_round_votes(round_id)]

    def get_vote_count_for_round(self, round_id: str) -> int:
        with self._round_lock(round_id):
            return self._vote_count(round_id)

    def get_round_detail(self, room_id: str, round_id: str) -> RoundDetail:
        """A round of this room with its votes; card values stay hidden until reveal.

        Raises:
            RoomNotFoundError: If the room does not exist
            RoundNotFoundError: If the round does not belong to this room
        """
        with self.store.room_lock(room_id):
            room = self._require_room(room_id)
            round_ = self.store.get_round(round_id)
            item = self.store.get_item(round_.item_id) if round_ is not None else None
            if round_ is None or item is None or item.room_id != room.id:
                raise RoundNotFoundError("Round not found", details={"round_id": round_id})

            votes = []
            for vote in self.store.get_round_votes(round_id):
                snapshot = _snapshot(vote)
                if not snapshot.is_revealed:
                    snapshot.card_value = ""
                votes.append(snapshot)
            return RoundDetail(round=_snapshot(round_), votes=votes)

    def _round_lock(self, round_id: str) -> AbstractContextManager[object]:
        round_ = self.store.get_round(round_id)
        item = self.store.get_item(round_.item_id) if round_ is not None else None
        return self.store.room_lock(item.room_id if item is not None else "")

    def _with_name(self, vote: Vote) -> VoteWithName:
        participant = self.store.get_participant(vote.participant_id)
        name = participant.display_name if participant is not None else ""
        return VoteWithName(**vote.model_dump(), participant_name=name)

    def _refresh_session_totals(self, room_id: str) -> None:
        session = self.store.get_session(room_id)
        if session is None:
            return
        session.total_items = sum(
            1 for item in self.store.get_room_items(room_id) if item.final_estimate is not None
        )
