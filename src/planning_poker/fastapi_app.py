"""FastAPI application exposing the Planning Poker REST API and room events."""

from __future__ import annotations

from typing import Any

import socketio
import structlog
from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import __version__
from .config import Config
from .container import Container
from .decks import DECKS
from .exceptions import PlanningPokerError
from .models import (
    CreateRoomResult,
    Item,
    JoinRoomResult,
    Participant,
    RevealResult,
    Room,
    RoundDetail,
    Session,
)
from .services import EstimationService, RoomService
from .socket_events import register_socket_handlers

logger = structlog.get_logger(__name__)


class CreateRoomRequest(BaseModel):
    name: str | None = None
    deck_type: str | None = None
    base_url: str | None = None


class JoinRoomRequest(BaseModel):
    display_name: str | None = None
    role: str | None = None


class ParticipantRequest(BaseModel):
    participant_id: str


class AddItemRequest(BaseModel):
    participant_id: str
    title: str | None = None
    description: str | None = None


class UpdateItemRequest(BaseModel):
    participant_id: str
    title: str | None = None
    description: str | None = None


class CardRequest(BaseModel):
    participant_id: str
    card_value: str


def get_container(request: Request) -> Container:
    return request.app.state.container  # type: ignore[no-any-return]


def get_room_service(container: Container = Depends(get_container)) -> RoomService:
    return container.get_room_service()


def get_estimation_service(container: Container = Depends(get_container)) -> EstimationService:
    return container.get_estimation_service()


def create_app(container: Container | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if container is None:
        container = Container(Config())

    app = FastAPI(
        title="Planning Poker",
        description="Real-time collaborative estimation server",
        version=__version__,
    )
    app.state.container = container
    app.add_middleware(
        CORSMiddleware,
        allow_origins=container.config.cors_origins,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(PlanningPokerError)
    async def planning_poker_error_handler(
        request: Request, exc: PlanningPokerError
    ) -> JSONResponse:
        logger.warning(
            "Request failed",
            path=request.url.path,
            kind=exc.kind,
            error=exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        fields = ", ".join(
            ".".join(str(part) for part in error["loc"] if part != "body")
            for error in exc.errors()
        )
        logger.warning("Malformed request", path=request.url.path, fields=fields)
        return JSONResponse(
            status_code=400,
            content={
                "error": "Malformed request",
                "kind": "InvalidInput",
                "details": {"fields": fields},
            },
        )

    @app.get("/health")
    def health_check() -> dict[str, str]:
        return {"status": "ok", "service": "planning-poker"}

    @app.get("/api/decks")
    def list_decks() -> dict[str, Any]:
        return {"decks": [deck.model_dump() for deck in DECKS.values()]}

    @app.post("/api/rooms", status_code=201)
    def create_room(
        body: CreateRoomRequest,
        request: Request,
        rooms: RoomService = Depends(get_room_service),
    ) -> CreateRoomResult:
        base_url = (
            body.base_url or request.headers.get("origin") or container.config.public_base_url
        )
        return rooms.create_room(body.name or "", body.deck_type, base_url)

    @app.get("/api/rooms/{room_id}")
    def get_room(room_id: str, rooms: RoomService = Depends(get_room_service)) -> Room:
        return rooms.get_room(room_id)

    @app.get("/api/rooms/{room_id}/session")
    def get_session(room_id: str, rooms: RoomService = Depends(get_room_service)) -> Session:
        return rooms.get_session(room_id)

    @app.post("/api/rooms/{room_id}/join", status_code=201)
    def join_room(
        room_id: str, body: JoinRoomRequest, rooms: RoomService = Depends(get_room_service)
    ) -> JoinRoomResult:
        return rooms.join_room(room_id, body.display_name or "", body.role or "PARTICIPANT")

    @app.post("/api/rooms/{room_id}/leave")
    def leave_room(
        room_id: str, body: ParticipantRequest, rooms: RoomService = Depends(get_room_service)
    ) -> dict[str, bool]:
        rooms.leave_room(room_id, body.participant_id)
        return {"success": True}

    @app.post("/api/rooms/{room_id}/close")
    def close_room(
        room_id: str, body: ParticipantRequest, rooms: RoomService = Depends(get_room_service)
    ) -> dict[str, bool]:
        rooms.close_room(room_id, body.participant_id)
        return {"success": True}

    @app.get("/api/rooms/{room_id}/participants")
    def list_participants(
        room_id: str, rooms: RoomService = Depends(get_room_service)
    ) -> dict[str, list[Participant]]:
        return {"participants": rooms.get_active_participants(room_id)}

    @app.get("/api/rooms/{room_id}/items")
    def list_items(
        room_id: str, estimation: EstimationService = Depends(get_estimation_service)
    ) -> dict[str, list[dict[str, Any]]]:
        items = estimation.get_items_with_rounds(room_id)
        return {"items": [item.model_dump(mode="json") for item in items]}

    @app.post("/api/rooms/{room_id}/items", status_code=201)
    def add_item(
        room_id: str,
        body: AddItemRequest,
        estimation: EstimationService = Depends(get_estimation_service),
    ) -> Item:
        return estimation.add_item(room_id, body.participant_id, body.title or "", body.description)

    @app.patch("/api/rooms/{room_id}/items/{item_id}")
    def update_item(
        room_id: str,
        item_id: str,
        body: UpdateItemRequest,
        estimation: EstimationService = Depends(get_estimation_service),
    ) -> Item:
        changes = {
            field: getattr(body, field)
            for field in ("title", "description")
            if field in body.model_fields_set
        }
        return estimation.update_item(room_id, item_id, body.participant_id, **changes)

    @app.delete("/api/rooms/{room_id}/items/{item_id}")
    def remove_item(
        room_id: str,
        item_id: str,
        participant_id: str = Query(...),
        estimation: EstimationService = Depends(get_estimation_service),
    ) -> dict[str, bool]:
        estimation.remove_item(room_id, item_id, participant_id)
        return {"success": True}

    @app.post("/api/rooms/{room_id}/items/{item_id}/vote")
    def cast_vote(
        room_id: str,
        item_id: str,
        body: CardRequest,
        estimation: EstimationService = Depends(get_estimation_service),
    ) -> dict[str, bool]:
        estimation.cast_vote(room_id, item_id, body.participant_id, body.card_value)
        return {"success": True}

    @app.post("/api/rooms/{room_id}/items/{item_id}/reveal")
    def reveal_votes(
        room_id: str,
        item_id: str,
        body: ParticipantRequest,
        estimation: EstimationService = Depends(get_estimation_service),
    ) -> RevealResult:
        return estimation.reveal_votes(room_id, item_id, body.participant_id)

    @app.post("/api/rooms/{room_id}/items/{item_id}/revote")
    def revote(
        room_id: str,
        item_id: str,
        body: ParticipantRequest,
        estimation: EstimationService = Depends(get_estimation_service),
    ) -> dict[str, Any]:
        round_ = estimation.revote(room_id, item_id, body.participant_id)
        return {"success": True, "round": round_.model_dump(mode="json")}

    @app.post("/api/rooms/{room_id}/items/{item_id}/finalize")
    def record_final_estimate(
        room_id: str,
        item_id: str,
        body: CardRequest,
        estimation: EstimationService = Depends(get_estimation_service),
    ) -> dict[str, Any]:
        item = estimation.record_final_estimate(
            room_id, item_id, body.participant_id, body.card_value
        )
        return {"item": item.model_dump(mode="json")}

    @app.get("/api/rooms/{room_id}/rounds/{round_id}")
    def get_round(
        room_id: str,
        round_id: str,
        estimation: EstimationService = Depends(get_estimation_service),
    ) -> RoundDetail:
        return estimation.get_round_detail(room_id, round_id)

    logger.info("FastAPI app created", deck_count=len(DECKS))
    return app


def create_asgi_app(container: Container | None = None) -> socketio.ASGIApp:
    """Create the ASGI application serving Socket.IO at ``/socket.io`` and the REST API.

    Suitable for ``uvicorn --factory planning_poker.fastapi_app:create_asgi_app``.
    """
    if container is None:
        container = Container(Config())

    sio = container.get_socket_server()
    register_socket_handlers(sio, container)
    return socketio.ASGIApp(sio, other_asgi_app=create_app(container))
