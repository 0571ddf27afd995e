"""Pytest configuration and fixtures."""

from __future__ import annotations

import itertools

import pytest

from planning_poker.config import Config
from planning_poker.interfaces import NotificationSink
from planning_poker.models import CreateRoomResult, EventType, Item, Participant, RoomEvent
from planning_poker.services import EstimationService, RoomService
from planning_poker.store import InMemoryStore


class RecordingSink(NotificationSink):
    """Sink that keeps every published event for assertions."""

    def __init__(self) -> None:
        self.events: list[RoomEvent] = []

    def publish(self, room_id: str, event: RoomEvent) -> None:
        self.events.append(event)

    def types(self) -> list[EventType]:
        return [event.type for event in self.events]

    def last(self, event_type: EventType) -> RoomEvent:
        return [event for event in self.events if event.type == event_type][-1]


@pytest.fixture
def test_config() -> Config:
    """Create a test configuration."""
    return Config(_env_file=None, public_base_url="https://poker.test")


@pytest.fixture
def store() -> InMemoryStore:
    """Create a store with a deterministic clock."""
    ticks = itertools.count(1_700_000_000_000)
    return InMemoryStore(clock=lambda: next(ticks))


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def room_service(test_config: Config, store: InMemoryStore, sink: RecordingSink) -> RoomService:
    return RoomService(config=test_config, store=store, sink=sink)


@pytest.fixture
def estimation_service(
    test_config: Config, store: InMemoryStore, sink: RecordingSink
) -> EstimationService:
    return EstimationService(config=test_config, store=store, sink=sink)


@pytest.fixture
def room(room_service: RoomService) -> CreateRoomResult:
    """Create an open Fibonacci room."""
    return room_service.create_room("Sprint 1", "FIBONACCI")


@pytest.fixture
def facilitator_id(room: CreateRoomResult) -> str:
    return room.participant.id


@pytest.fixture
def alice(room_service: RoomService, room: CreateRoomResult) -> Participant:
    return room_service.join_room(room.room.id, "Alice").participant


@pytest.fixture
def bob(room_service: RoomService, room: CreateRoomResult) -> Participant:
    return room_service.join_room(room.room.id, "Bob").participant


@pytest.fixture
def item(
    estimation_service: EstimationService, room: CreateRoomResult, facilitator_id: str
) -> Item:
    """Add an item in its first voting round."""
    return estimation_service.add_item(room.room.id, facilitator_id, "Login page")
