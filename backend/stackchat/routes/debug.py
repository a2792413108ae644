"""
Debug endpoints for the stackchat application.
This module contains endpoints useful for debugging and monitoring.
"""
from fastapi import APIRouter, Depends
import os
import logging

from stackchat.database import CosmosDBConnection
from stackchat.dependencies import get_db, get_game_manager, get_room_manager
from stackchat.games.manager import GameManager
from stackchat.models import utc_now
from stackchat.realtime import RoomManager

# Get logger for this module
logger = logging.getLogger("stackchat.debug")

# Create router for debug endpoints
router = APIRouter(tags=["debug"])

SENSITIVE_MARKERS = ("key", "password", "secret", "connection")


@router.get("/debug")
async def debug(db: CosmosDBConnection = Depends(get_db)):
    """Debug endpoint to view environment variables and store status."""
    environment = {}
    for key, value in os.environ.items():
        # Mask sensitive values
        if any(marker in key.lower() for marker in SENSITIVE_MARKERS):
            environment[key] = "***MASKED***"
        else:
            environment[key] = value

    cosmos_info = {
        "dev_mode": db.dev_mode,
        "cosmos_endpoint_set": bool(db.cosmos_endpoint),
        "cosmos_key_set": bool(db.cosmos_key),
        "database_name": db.database_name,
        "containers": [db.user_container, db.chat_container, db.message_container],
    }

    return {
        "status": "debugging",
        "environment": environment,
        "cosmos_info": cosmos_info,
        "timestamp": utc_now().isoformat()
    }


@router.get("/")
async def root():
    """Root endpoint returning a welcome message."""
    return {"message": "stackchat API"}


@router.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": utc_now().isoformat()}


@router.get("/api/version")
async def get_version():
    """Return build timestamp and version information."""
    return {
        "version": os.getenv("VERSION", "local"),
        "buildTimestamp": os.getenv("BUILD_TIMESTAMP", "development"),
        "commit": os.getenv("COMMIT", "none")
    }


@router.get("/api/debug/socket-status")
async def socket_status(
    rooms: RoomManager = Depends(get_room_manager),
    games: GameManager = Depends(get_game_manager),
):
    """Connection, room and game counts."""
    return {
        "active_connections": len(rooms.active_connections),
        "rooms": {room: len(members) for room, members in rooms.rooms.items()},
        "games": len(games.games),
        "shutting_down": rooms.is_shutting_down,
    }
