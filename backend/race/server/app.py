from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.routing import Route, WebSocketRoute

from race.messaging.router import MessageRouter
from race.server.settings import RaceServerSettings
from race.server.websocket import websocket_endpoint
from race.session.manager import SessionManager
from shared.build_info import APP_VERSION, GIT_COMMIT
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.websockets import WebSocket


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION, "commit": GIT_COMMIT})


async def status(request: Request) -> JSONResponse:
    session_manager: SessionManager = request.app.state.session_manager
    settings: RaceServerSettings = request.app.state.settings
    return JSONResponse(
        {
            "status": "ok",
            "version": APP_VERSION,
            "commit": GIT_COMMIT,
            "rooms": session_manager.room_count,
            "active_rounds": session_manager.active_room_count,
            "max_rooms": settings.max_rooms,
        },
    )


async def list_rooms(request: Request) -> JSONResponse:
    session_manager: SessionManager = request.app.state.session_manager
    return JSONResponse([info.model_dump() for info in session_manager.get_rooms_info()])


async def room_http(_request: Request) -> PlainTextResponse:
    """Plain HTTP on the room path: only websocket upgrades are served there."""
    return PlainTextResponse("WebSocket only", status_code=400)


def create_app(
    settings: RaceServerSettings | None = None,
    session_manager: SessionManager | None = None,
    message_router: MessageRouter | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = RaceServerSettings()

    if session_manager is None:
        session_manager = SessionManager(settings.race_settings(), max_rooms=settings.max_rooms)

    if message_router is None:
        message_router = MessageRouter(session_manager)

    roster_size = session_manager.settings.roster_size

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(websocket, message_router, roster_size)

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
        Route("/rooms", list_rooms, methods=["GET"]),
        WebSocketRoute("/room/{room_id}", ws_endpoint),
        Route("/room/{room_id}", room_http, methods=["GET", "POST"]),
    ]

    app = Starlette(routes=routes)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.session_manager = session_manager

    logger.info("race server ready", roster_size=roster_size, goal=session_manager.settings.goal)
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    _settings = RaceServerSettings()
    setup_logging(log_dir=_settings.log_dir)
    return create_app(settings=_settings)
