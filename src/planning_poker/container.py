"""Dependency injection container for the Planning Poker server."""

from __future__ import annotations

import socketio

from .config import Config
from .interfaces import NotificationSink, StateStoreInterface
from .notifications import SocketIONotificationSink
from .services import EstimationService, RoomService
from .store import InMemoryStore


class Container:
    """Simple dependency injection container."""

    def __init__(
        self,
        config: Config,
        store: StateStoreInterface | None = None,
        sink: NotificationSink | None = None,
    ) -> None:
        self.config = config
        self._instances: dict[type, object] = {}
        if store is not None:
            self._instances[StateStoreInterface] = store
        if sink is not None:
            self._instances[NotificationSink] = sink

    def get_store(self) -> StateStoreInterface:
        if StateStoreInterface not in self._instances:
            self._instances[StateStoreInterface] = InMemoryStore()
        return self._instances[StateStoreInterface]  # type: ignore[return-value]

    def get_socket_server(self) -> socketio.AsyncServer:
        if socketio.AsyncServer not in self._instances:
            origins = self.config.cors_origins
            self._instances[socketio.AsyncServer] = socketio.AsyncServer(
                async_mode="asgi",
                cors_allowed_origins="*" if "*" in origins else origins,
            )
        return self._instances[socketio.AsyncServer]  # type: ignore[return-value]

    def get_notification_sink(self) -> NotificationSink:
        if NotificationSink not in self._instances:
            self._instances[NotificationSink] = SocketIONotificationSink(
                self.get_socket_server()
            )
        return self._instances[NotificationSink]  # type: ignore[return-value]

    def get_room_service(self) -> RoomService:
        if RoomService not in self._instances:
            self._instances[RoomService] = RoomService(
                config=self.config,
                store=self.get_store(),
                sink=self.get_notification_sink(),
            )
        return self._instances[RoomService]  # type: ignore[return-value]

    def get_estimation_service(self) -> EstimationService:
        if EstimationService not in self._instances:
            self._instances[EstimationService] = EstimationService(
                config=self.config,
                store=self.get_store(),
                sink=self.get_notification_sink(),
            )
        return self._instances[EstimationService]  # type: ignore[return-value]

    def clear_cache(self) -> None:
        """Clear the instance cache for testing."""
        self._instances.clear()
