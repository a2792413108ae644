"""
Main entry point for the stackchat application.
This module builds the FastAPI application, wires the per-application
services into app.state and includes all routes.
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn
import asyncio
import os
from contextlib import asynccontextmanager
from typing import Optional

# Import the logging configuration
from stackchat.logging_config import configure_logging

# Configure logging for the application
app_logger = configure_logging()

from stackchat.database import CosmosDBConnection
from stackchat.eventgrid import EventGridPublisher
from stackchat.games.manager import GameManager
from stackchat.realtime import RoomManager

# Import route modules
from stackchat.routes.debug import router as debug_router
from stackchat.routes.chat import router as chat_router
from stackchat.routes.user import router as user_router
from stackchat.routes.games import router as games_router
from stackchat.routes.websocket import router as websocket_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Verify the store on startup; close sockets and the store on shutdown."""
    db: CosmosDBConnection = app.state.db
    app_logger.info("Starting application...")

    if not db.dev_mode:
        app_logger.info("Verifying database and containers...")
        for container_name in (db.user_container, db.chat_container, db.message_container):
            container = await db._get_container(container_name)
            if not container:
                app_logger.warning(f"Failed to get/create {container_name} container")
            else:
                app_logger.info(f"Successfully verified {container_name} container")
    else:
        app_logger.info("Running in development mode with in-memory data")

    yield

    app_logger.info("Shutting down application...")
    try:
        await app.state.rooms.close_all(timeout=0.5)
    except Exception as e:
        app_logger.error(f"Error closing WebSockets: {e}")

    try:
        await asyncio.wait_for(db.close(), 0.5)
    except asyncio.TimeoutError:
        app_logger.warning("Database connection close timed out")
    app_logger.info("Shutdown complete")


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Error reasons are sent as plain text
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code)


def invalid_body_reason(path: str) -> str:
    if path == "/user/updateBiography":
        return "Username and biography are required"
    if path.startswith("/user/"):
        return "Invalid user body"
    if path.startswith("/games/"):
        return "Invalid request"
    return "Invalid request body"


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    app_logger.debug(f"Rejected request body for {request.url.path}: {exc.errors()}")
    # Same reasons the routes give for missing fields
    return PlainTextResponse(invalid_body_reason(request.url.path), status_code=400)


def create_app(
    db: Optional[CosmosDBConnection] = None,
    rooms: Optional[RoomManager] = None,
    games: Optional[GameManager] = None,
    publisher: Optional[EventGridPublisher] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app_logger.info("Initializing FastAPI application")

    app = FastAPI(
        title="stackchat API",
        debug=False,
        lifespan=lifespan
    )

    app.state.db = db or CosmosDBConnection()
    app.state.rooms = rooms or RoomManager()
    app.state.games = games or GameManager()
    app.state.publisher = publisher or EventGridPublisher()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, restrict this to specific domains
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"]
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Include routers from modules
    app.include_router(debug_router)
    app.include_router(user_router)
    app.include_router(chat_router)
    app.include_router(games_router)
    app.include_router(websocket_router)

    return app


# Initialize application
app = create_app()

if __name__ == "__main__":
    app_logger.info("Running application directly with uvicorn")
    uvicorn.run(
        "stackchat.main:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", "8000")),
        timeout_keep_alive=5,
        timeout_graceful_shutdown=1,
        log_level=os.environ.get("LOG_LEVEL", "info").lower(),
        log_config=None  # Disable Uvicorn's default logging config to use ours
    )
