"""Socket.IO event handlers that subscribe clients to room events."""

from __future__ import annotations

import asyncio
from typing import Any

import socketio
import structlog
from starlette.concurrency import run_in_threadpool

from .container import Container
from .exceptions import InvalidInputError, ParticipantNotFoundError, PlanningPokerError
from .notifications import SocketIONotificationSink

logger = structlog.get_logger(__name__)


def register_socket_handlers(sio: socketio.AsyncServer, container: Container) -> None:
    """Register connection, subscription and disconnect handlers on ``sio``.

    Clients emit ``join_room`` with ``{"room_id": ..., "participant_id": ...}``.
    An active participant of that room is entered into the Socket.IO room named
    after the room id and gets a ``subscribed`` event back; anything else gets
    an ``error`` event carrying the error kind.
    """

    async def connect(sid: str, environ: dict[str, Any], auth: Any = None) -> None:
        sink = container.get_notification_sink()
        if isinstance(sink, SocketIONotificationSink):
            sink.attach(asyncio.get_running_loop())
        logger.debug("Socket connected", sid=sid)

    async def join_room(sid: str, data: Any = None) -> None:
        try:
            room_id, participant_id = await _admit(data)
        except PlanningPokerError as e:
            logger.warning("Socket subscription rejected", sid=sid, kind=e.kind, error=e.message)
            await sio.emit("error", e.to_dict(), to=sid)
            return

        session = await sio.get_session(sid)
        previous_room = session.get("room_id")
        if previous_room and previous_room != room_id:
            await sio.leave_room(sid, previous_room)
        await sio.enter_room(sid, room_id)
        await sio.save_session(sid, {"room_id": room_id, "participant_id": participant_id})

        logger.info(
            "Socket subscribed to room", sid=sid, room_id=room_id, participant_id=participant_id
        )
        await sio.emit(
            "subscribed", {"room_id": room_id, "participant_id": participant_id}, to=sid
        )

    async def disconnect(sid: str, reason: Any = None) -> None:
        session = await sio.get_session(sid)
        room_id = session.get("room_id")
        participant_id = session.get("participant_id")
        logger.debug("Socket disconnected", sid=sid, room_id=room_id)
        if not room_id:
            return

        await sio.leave_room(sid, room_id)
        if not container.config.leave_on_disconnect:
            return

        rooms = container.get_room_service()
        try:
            await run_in_threadpool(rooms.leave_room, room_id, participant_id)
        except PlanningPokerError as e:
            logger.warning(
                "Could not leave room after disconnect",
                room_id=room_id,
                participant_id=participant_id,
                error=e.message,
            )

    async def _admit(data: Any) -> tuple[str, str]:
        if not isinstance(data, dict):
            raise InvalidInputError("join_room expects an object with room_id and participant_id")
        room_id = data.get("room_id")
        participant_id = data.get("participant_id")
        if not isinstance(room_id, str) or not isinstance(participant_id, str):
            raise InvalidInputError(
                "room_id and participant_id are required",
                details={"fields": "room_id, participant_id"},
            )

        rooms = container.get_room_service()
        participant = await run_in_threadpool(rooms.get_participant, room_id, participant_id)
        if not participant.is_active:
            raise ParticipantNotFoundError(
                "Participant has left the room", details={"participant_id": participant_id}
            )
        return room_id, participant_id

    sio.on("connect", connect)
    sio.on("join_room", join_room)
    sio.on("disconnect", disconnect)
