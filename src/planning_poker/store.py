"""In-memory state container for rooms and their estimation state."""

from __future__ import annotations

import threading
import time
import uuid
from collections.abc import Callable
from contextlib import AbstractContextManager

import structlog

from .interfaces import StateStoreInterface
from .models import Item, Participant, Room, Round, Session, Vote

logger = structlog.get_logger(__name__)


class InMemoryStore(StateStoreInterface):
    """Holds the six entity collections of one server instance.

    The store does no validation; the services check preconditions and hold
    ``room_lock`` around every read-modify-write on a room.
    """

    def __init__(
        self,
        clock: Callable[[], int] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        """Initialize an empty store.

        Args:
            clock: Returns wall-clock milliseconds; defaults to ``time.time``
            id_factory: Returns fresh opaque identifiers; defaults to UUID4
        """
        self._clock = clock or (lambda: int(time.time() * 1000))
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._last_timestamp = 0
        self._clock_lock = threading.Lock()

        self.rooms: dict[str, Room] = {}
        self.participants: dict[str, Participant] = {}
        self.sessions: dict[str, Session] = {}
        self.items: dict[str, Item] = {}
        self.rounds: dict[str, Round] = {}
        self.votes: dict[str, Vote] = {}

        self._vote_index: dict[tuple[str, str], str] = {}
        self._item_order: dict[str, int] = {}
        self._room_locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def now(self) -> int:
        """Return a timestamp that never goes backwards."""
        with self._clock_lock:
            self._last_timestamp = max(self._last_timestamp, self._clock())
            return self._last_timestamp

    def new_id(self) -> str:
        return self._id_factory()

    def room_lock(self, room_id: str) -> AbstractContextManager[object]:
        """Return the mutex serializing operations on one room.

        Unknown rooms get a throwaway lock so callers can take it before they
        discover the room does not exist.
        """
        with self._registry_lock:
            lock = self._room_locks.get(room_id)
        return lock if lock is not None else threading.RLock()

    def add_room(self, room: Room, facilitator: Participant, session: Session) -> None:
        with self._registry_lock:
            self._room_locks[room.id] = threading.RLock()
            self._item_order[room.id] = 0
            self.participants[facilitator.id] = facilitator
            self.sessions[room.id] = session
            self.rooms[room.id] = room
        logger.debug("Room stored", room_id=room.id)

    def get_room(self, room_id: str) -> Room | None:
        return self.rooms.get(room_id)

    def get_session(self, room_id: str) -> Session | None:
        return self.sessions.get(room_id)

    def add_participant(self, participant: Participant) -> None:
        self.participants[participant.id] = participant

    def get_participant(self, participant_id: str) -> Participant | None:
        return self.participants.get(participant_id)

    def get_room_participants(self, room_id: str) -> list[Participant]:
        return [p for p in list(self.participants.values()) if p.room_id == room_id]

    def next_item_order(self, room_id: str) -> int:
        """Reserve the next order value for a room.

        Order values come from a high-water mark, so removing the last item
        never frees its value for reuse.
        """
        self._item_order[room_id] = self._item_order.get(room_id, 0) + 1
        return self._item_order[room_id]

    def add_item(self, item: Item) -> None:
        self.items[item.id] = item

    def get_item(self, item_id: str) -> Item | None:
        return self.items.get(item_id)

    def get_room_items(self, room_id: str) -> list[Item]:
        return [item for item in list(self.items.values()) if item.room_id == room_id]

    def delete_item(self, item_id: str) -> None:
        """Delete an item together with all of its rounds and their votes."""
        for round_ in self.get_item_rounds(item_id):
            for vote in self.get_round_votes(round_.id):
                del self.votes[vote.id]
                self._vote_index.pop((vote.round_id, vote.participant_id), None)
            del self.rounds[round_.id]
        self.items.pop(item_id, None)

    def add_round(self, round_: Round) -> None:
        self.rounds[round_.id] = round_

    def get_round(self, round_id: str) -> Round | None:
        return self.rounds.get(round_id)

    def get_item_rounds(self, item_id: str) -> list[Round]:
        return [r for r in list(self.rounds.values()) if r.item_id == item_id]

    def get_vote(self, round_id: str, participant_id: str) -> Vote | None:
        vote_id = self._vote_index.get((round_id, participant_id))
        if vote_id is None:
            return None
        return self.votes.get(vote_id)

    def add_vote(self, vote: Vote) -> None:
        self.votes[vote.id] = vote
        self._vote_index[(vote.round_id, vote.participant_id)] = vote.id

    def get_round_votes(self, round_id: str) -> list[Vote]:
        return [v for v in list(self.votes.values()) if v.round_id == round_id]
