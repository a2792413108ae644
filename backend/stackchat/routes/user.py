"""
User endpoints for the stackchat application.
This module handles signup, login, profile updates, lookups and deletion.
All responses use the password-free SafeUser projection.
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
import logging
from typing import List, Optional

from stackchat import user_service
from stackchat.database import CosmosDBConnection
from stackchat.dependencies import get_db, get_room_manager
from stackchat.models import ErrorResponse, SafeUser, User, UserUpdate, utc_now
from stackchat.realtime import RoomManager

# Get logger for this module
logger = logging.getLogger("stackchat.user")

INVALID_USER_BODY = "Invalid user body"


class UserCredentials(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    biography: Optional[str] = None


class UpdateBiographyRequest(BaseModel):
    username: Optional[str] = None
    biography: Optional[str] = None


# Create router for user endpoints
router = APIRouter(prefix="/user", tags=["user"])


def is_user_body_valid(body: UserCredentials) -> bool:
    return bool(body.username) and bool(body.password)


async def emit_user_update(rooms: RoomManager, update_type: str, user: SafeUser):
    update = UserUpdate(type=update_type, user=user)
    await rooms.broadcast("userUpdate", update.model_dump(mode="json"))


@router.post("/signup", response_model=SafeUser, response_model_exclude_none=True)
async def signup(
    body: UserCredentials,
    db: CosmosDBConnection = Depends(get_db),
    rooms: RoomManager = Depends(get_room_manager),
):
    """Register a new user."""
    if not is_user_body_valid(body):
        raise HTTPException(status_code=400, detail=INVALID_USER_BODY)

    user = User(
        username=body.username,
        password=body.password,
        biography=body.biography,
        dateJoined=utc_now(),
    )
    result = await user_service.save_user(db, user)
    if isinstance(result, ErrorResponse):
        raise HTTPException(status_code=500, detail=f"Error when saving user: {result.error}")

    await emit_user_update(rooms, "created", result)
    logger.info(f"Registered user {result.username}")
    return result


@router.post("/login", response_model=SafeUser, response_model_exclude_none=True)
async def login(body: UserCredentials, db: CosmosDBConnection = Depends(get_db)):
    """Authenticate a user with username and password."""
    if not is_user_body_valid(body):
        raise HTTPException(status_code=400, detail=INVALID_USER_BODY)

    result = await user_service.login_user(db, body.username, body.password)
    if isinstance(result, ErrorResponse):
        raise HTTPException(status_code=500, detail=f"Error when logging in: {result.error}")
    return result


@router.patch("/resetPassword", response_model=SafeUser, response_model_exclude_none=True)
async def reset_password(
    body: UserCredentials,
    db: CosmosDBConnection = Depends(get_db),
    rooms: RoomManager = Depends(get_room_manager),
):
    """Replace a user's password."""
    if not is_user_body_valid(body):
        raise HTTPException(status_code=400, detail=INVALID_USER_BODY)

    result = await user_service.update_user(db, body.username, {"password": body.password})
    if isinstance(result, ErrorResponse):
        raise HTTPException(status_code=500, detail=f"Error when updating password: {result.error}")

    await emit_user_update(rooms, "updated", result)
    return result


@router.patch("/updateBiography", response_model=SafeUser, response_model_exclude_none=True)
async def update_biography(
    body: UpdateBiographyRequest,
    db: CosmosDBConnection = Depends(get_db),
    rooms: RoomManager = Depends(get_room_manager),
):
    """Replace a user's biography. An empty biography is allowed."""
    if not body.username or body.biography is None:
        raise HTTPException(status_code=400, detail="Username and biography are required")

    try:
        result = await user_service.update_user(db, body.username, {"biography": body.biography})
    except Exception as e:
        logger.error(f"Unexpected error updating biography for {body.username}: {e}")
        raise HTTPException(status_code=500, detail="An unknown error occurred while updating user biography.")

    if isinstance(result, ErrorResponse):
        raise HTTPException(status_code=500, detail=f"Error when updating user biography: {result.error}")

    await emit_user_update(rooms, "updated", result)
    return result


@router.get("/getUser/{username}", response_model=SafeUser, response_model_exclude_none=True)
async def get_user(username: str, db: CosmosDBConnection = Depends(get_db)):
    result = await user_service.get_user_by_username(db, username)
    if isinstance(result, ErrorResponse):
        raise HTTPException(status_code=500, detail=f"Error when getting user by username: {result.error}")
    return result


@router.get("/getUsers", response_model=List[SafeUser], response_model_exclude_none=True)
async def get_users(db: CosmosDBConnection = Depends(get_db)):
    try:
        result = await user_service.get_users_list(db)
    except Exception as e:
        logger.error(f"Unexpected error listing users: {e}")
        raise HTTPException(status_code=500, detail="An unknown error occurred when getting users.")

    if isinstance(result, ErrorResponse):
        raise HTTPException(status_code=500, detail=f"Error when getting users: {result.error}")
    return result


@router.delete("/deleteUser/{username}", response_model=SafeUser, response_model_exclude_none=True)
async def delete_user(
    username: str,
    db: CosmosDBConnection = Depends(get_db),
    rooms: RoomManager = Depends(get_room_manager),
):
    result = await user_service.delete_user_by_username(db, username)
    if isinstance(result, ErrorResponse):
        raise HTTPException(status_code=500, detail=f"Error when deleting user by username: {result.error}")

    await emit_user_update(rooms, "deleted", result)
    logger.info(f"Deleted user {username}")
    return result
