"""Abstract interfaces for the Planning Poker server."""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager

from .models import Item, Participant, Room, RoomEvent, Round, Session, Vote


class StateStoreInterface(ABC):
    """Interface for the state container owned by the services."""

    @abstractmethod
    def now(self) -> int: ...

    @abstractmethod
    def new_id(self) -> str: ...

    @abstractmethod
    def room_lock(self, room_id: str) -> AbstractContextManager[object]: ...

    @abstractmethod
    def add_room(self, room: Room, facilitator: Participant, session: Session) -> None: ...

    @abstractmethod
    def get_room(self, room_id: str) -> Room | None: ...

    @abstractmethod
    def get_session(self, room_id: str) -> Session | None: ...

    @abstractmethod
    def add_participant(self, participant: Participant) -> None: ...

    @abstractmethod
    def get_participant(self, participant_id: str) -> Participant | None: ...

    @abstractmethod
    def get_room_participants(self, room_id: str) -> list[Participant]: ...

    @abstractmethod
    def next_item_order(self, room_id: str) -> int: ...

    @abstractmethod
    def add_item(self, item: Item) -> None: ...

    @abstractmethod
    def get_item(self, item_id: str) -> Item | None: ...

    @abstractmethod
    def get_room_items(self, room_id: str) -> list[Item]: ...

    @abstractmethod
    def delete_item(self, item_id: str) -> None: ...

    @abstractmethod
    def add_round(self, round_: Round) -> None: ...

    @abstractmethod
    def get_round(self, round_id: str) -> Round | None: ...

    @abstractmethod
    def get_item_rounds(self, item_id: str) -> list[Round]: ...

    @abstractmethod
    def get_vote(self, round_id: str, participant_id: str) -> Vote | None: ...

    @abstractmethod
    def add_vote(self, vote: Vote) -> None: ...

    @abstractmethod
    def get_round_votes(self, round_id: str) -> list[Vote]: ...


class NotificationSink(ABC):
    """Port through which the services announce room events."""

    @abstractmethod
    def publish(self, room_id: str, event: RoomEvent) -> None: ...
