"""
User persistence for the stackchat application.
Results never include the stored password.
"""
import logging
import uuid
from typing import Any, Dict, List, Union

from stackchat.database import CosmosDBConnection
from stackchat.models import ErrorResponse, SafeUser, User

logger = logging.getLogger("stackchat.user_service")

UPDATABLE_FIELDS = {"password", "biography"}


def to_safe_user(user: User) -> SafeUser:
    return SafeUser(**user.model_dump(exclude={"password"}))


async def save_user(db: CosmosDBConnection, user: User) -> Union[SafeUser, ErrorResponse]:
    try:
        if not user.id:
            user = user.model_copy(update={"id": str(uuid.uuid4())})
        created = await db.create_user(user)
        if not created:
            return ErrorResponse(error="Username already exists")
        return to_safe_user(created)
    except Exception as e:
        return ErrorResponse(error=f"Error occurred when saving user: {e}")


async def get_user_by_username(db: CosmosDBConnection, username: str) -> Union[SafeUser, ErrorResponse]:
    try:
        user = await db.get_user_by_username(username)
        if not user:
            return ErrorResponse(error="User not found")
        return to_safe_user(user)
    except Exception as e:
        return ErrorResponse(error=f"Error occurred when finding user: {e}")


async def get_users_list(db: CosmosDBConnection) -> Union[List[SafeUser], ErrorResponse]:
    try:
        return [to_safe_user(user) for user in await db.get_users()]
    except Exception as e:
        return ErrorResponse(error=f"Error occurred when finding users: {e}")


async def login_user(db: CosmosDBConnection, username: str, password: str) -> Union[SafeUser, ErrorResponse]:
    try:
        user = await db.get_user_by_username(username)
        if not user or user.password != password:
            logger.info(f"Failed login attempt for {username}")
            return ErrorResponse(error="Authentication failed")
        logger.info(f"👤 USER LOGIN: {user.username} (ID: {user.id})")
        return to_safe_user(user)
    except Exception as e:
        return ErrorResponse(error=f"Error occurred when authenticating user: {e}")


async def update_user(db: CosmosDBConnection, username: str, updates: Dict[str, Any]) -> Union[SafeUser, ErrorResponse]:
    """Apply a field-level update (password reset or biography edit)."""
    invalid = set(updates) - UPDATABLE_FIELDS
    if invalid:
        return ErrorResponse(error=f"Cannot update fields: {', '.join(sorted(invalid))}")
    try:
        user = await db.update_user(username, updates)
        if not user:
            return ErrorResponse(error="Error updating user: user not found")
        return to_safe_user(user)
    except Exception as e:
        return ErrorResponse(error=f"Error occurred when updating user: {e}")


async def delete_user_by_username(db: CosmosDBConnection, username: str) -> Union[SafeUser, ErrorResponse]:
    try:
        user = await db.delete_user(username)
        if not user:
            return ErrorResponse(error="Error deleting user: user not found")
        return to_safe_user(user)
    except Exception as e:
        return ErrorResponse(error=f"Error occurred when deleting user: {e}")
