"""Room-scoped fan-out of events to connected Socket.IO clients."""

from __future__ import annotations

import asyncio
from concurrent.futures import Future

import socketio
import structlog

from .interfaces import NotificationSink
from .models import RoomEvent

logger = structlog.get_logger(__name__)


class NullNotificationSink(NotificationSink):
    """Sink that drops every event."""

    def publish(self, room_id: str, event: RoomEvent) -> None:
        logger.debug("Dropping room event", room_id=room_id, event_type=event.type.value)


class SocketIONotificationSink(NotificationSink):
    """Emits room events to the Socket.IO room named after the room id.

    Services publish from worker threads, so each emit is handed to the event
    loop that serves the sockets and ``publish`` returns without waiting for
    it. Delivery is best-effort and at-most-once; clients that miss events
    re-fetch state through the REST queries.
    """

    def __init__(self, server: socketio.AsyncServer) -> None:
        self.server = server
        self._loop: asyncio.AbstractEventLoop | None = None

    def attach(self, loop: asyncio.AbstractEventLoop) -> None:
        """Bind the sink to the event loop the Socket.IO server runs on."""
        self._loop = loop

    def publish(self, room_id: str, event: RoomEvent) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug(
                "No socket loop attached, dropping room event",
                room_id=room_id,
                event_type=event.type.value,
            )
            return

        future = asyncio.run_coroutine_threadsafe(
            self.server.emit(event.type.value, event.model_dump(mode="json"), room=room_id),
            loop,
        )
        future.add_done_callback(lambda done: _log_failed_emit(done, room_id, event))
        logger.debug("Room event dispatched", room_id=room_id, event_type=event.type.value)


def _log_failed_emit(future: Future[None], room_id: str, event: RoomEvent) -> None:
    if future.cancelled() or future.exception() is None:
        return
    logger.warning(
        "Failed to emit room event",
        room_id=room_id,
        event_type=event.type.value,
        error=str(future.exception()),
    )
