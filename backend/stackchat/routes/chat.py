"""
Chat endpoints for the stackchat application.
This module handles creating chats, adding messages and participants, and
fetching chats. Every mutation is followed by a re-fetch of the enriched chat,
which is also emitted to the chat's socket room.
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
import logging
from datetime import datetime
from typing import Iterable, List, Literal, Optional

from stackchat import chat_service
from stackchat.database import CosmosDBConnection
from stackchat.dependencies import get_db, get_publisher, get_room_manager
from stackchat.eventgrid import EventGridPublisher
from stackchat.models import (
    ChatUpdate,
    CreateChatPayload,
    EnrichedChat,
    ErrorResponse,
    Message,
    utc_now,
)
from stackchat.realtime import RoomManager, user_room

# Get logger for this module
logger = logging.getLogger("stackchat.chat")

INVALID_REQUEST_BODY = "Invalid request body"


class MessageBody(BaseModel):
    msg: Optional[str] = None
    msgFrom: Optional[str] = None
    msgDateTime: Optional[datetime] = None
    type: Literal["direct", "global"] = "direct"


class CreateChatRequest(BaseModel):
    participants: Optional[List[str]] = None
    messages: Optional[List[MessageBody]] = None


class AddParticipantRequest(BaseModel):
    userId: Optional[str] = None


# Create router for chat endpoints
router = APIRouter(prefix="/chat", tags=["chat"])


def is_message_body_valid(body: MessageBody) -> bool:
    return bool(body.msg) and bool(body.msgFrom)


def is_create_chat_request_valid(body: CreateChatRequest) -> bool:
    return (
        bool(body.participants)
        and body.messages is not None
        and all(is_message_body_valid(message) for message in body.messages)
    )


def to_message(body: MessageBody) -> Message:
    return Message(
        msg=body.msg,
        msgFrom=body.msgFrom,
        msgDateTime=body.msgDateTime or utc_now(),
        type=body.type,
    )


async def populate_or_fail(db: CosmosDBConnection, chat_id: str) -> EnrichedChat:
    populated = await chat_service.populate_chat(db, chat_id)
    if isinstance(populated, ErrorResponse):
        raise HTTPException(status_code=500, detail=populated.error)
    return populated


async def emit_chat_update(
    rooms: RoomManager,
    publisher: EventGridPublisher,
    update_type: str,
    chat: EnrichedChat,
    extra_rooms: Iterable[str] = (),
):
    update = ChatUpdate(type=update_type, chat=chat)
    sent = await rooms.emit([chat.id, *extra_rooms], "chatUpdate", update.model_dump(mode="json"))
    logger.debug(f"chatUpdate ({update_type}) for chat {chat.id} sent to {sent} connection(s)")
    await publisher.publish_chat_update(update)


@router.post("/createChat", response_model=EnrichedChat)
async def create_chat(
    body: CreateChatRequest,
    db: CosmosDBConnection = Depends(get_db),
    rooms: RoomManager = Depends(get_room_manager),
    publisher: EventGridPublisher = Depends(get_publisher),
):
    """Create a chat with its initial messages and notify every participant."""
    if not is_create_chat_request_valid(body):
        raise HTTPException(status_code=400, detail=INVALID_REQUEST_BODY)

    payload = CreateChatPayload(
        participants=body.participants,
        messages=[to_message(message) for message in body.messages],
    )
    saved = await chat_service.save_chat(db, payload)
    if isinstance(saved, ErrorResponse):
        raise HTTPException(status_code=500, detail=saved.error)

    populated = await populate_or_fail(db, saved.id)
    # Participants have not joined the chat room yet, so also use their personal rooms
    await emit_chat_update(
        rooms, publisher, "created", populated,
        extra_rooms=[user_room(p) for p in populated.participants],
    )
    logger.info(f"Created chat {populated.id} for {', '.join(populated.participants)}")
    return populated


@router.post("/{chat_id}/addMessage", response_model=EnrichedChat)
async def add_message_to_chat(
    chat_id: str,
    body: MessageBody,
    db: CosmosDBConnection = Depends(get_db),
    rooms: RoomManager = Depends(get_room_manager),
    publisher: EventGridPublisher = Depends(get_publisher),
):
    """Create a message, append it to the chat and notify the chat room."""
    if not is_message_body_valid(body):
        raise HTTPException(status_code=400, detail=INVALID_REQUEST_BODY)

    message = await chat_service.create_message(db, to_message(body))
    if isinstance(message, ErrorResponse):
        raise HTTPException(status_code=500, detail=message.error)

    chat = await chat_service.add_message_to_chat(db, chat_id, message.id)
    if isinstance(chat, ErrorResponse):
        raise HTTPException(status_code=500, detail=chat.error)

    populated = await populate_or_fail(db, chat.id)
    await emit_chat_update(rooms, publisher, "newMessage", populated)
    return populated


@router.get("/getChatsByUser/{username}", response_model=List[EnrichedChat])
async def get_chats_by_user(username: str, db: CosmosDBConnection = Depends(get_db)):
    """Get every chat the user participates in, enriched."""
    try:
        chats = await chat_service.get_chats_by_participants(db, [username])
        populated_chats = []
        for chat in chats:
            populated = await chat_service.populate_chat(db, chat.id)
            if isinstance(populated, ErrorResponse):
                logger.error(f"Failed populating chat {chat.id}: {populated.error}")
                raise HTTPException(status_code=500, detail="Error retrieving chat: Failed populating chats")
            populated_chats.append(populated)
        return populated_chats
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting chats for user {username}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{chat_id}", response_model=EnrichedChat)
async def get_chat(chat_id: str, db: CosmosDBConnection = Depends(get_db)):
    """Get a single chat by ID, enriched."""
    chat = await chat_service.get_chat(db, chat_id)
    if isinstance(chat, ErrorResponse):
        raise HTTPException(status_code=500, detail=chat.error)
    return await populate_or_fail(db, chat.id)


@router.post("/{chat_id}/addParticipant", response_model=EnrichedChat)
async def add_participant_to_chat(
    chat_id: str,
    body: AddParticipantRequest,
    db: CosmosDBConnection = Depends(get_db),
):
    """Add a user to a chat's participants (no-op if already present)."""
    if not body.userId:
        raise HTTPException(status_code=400, detail=INVALID_REQUEST_BODY)

    chat = await chat_service.add_participant_to_chat(db, chat_id, body.userId)
    if isinstance(chat, ErrorResponse):
        raise HTTPException(status_code=500, detail=chat.error)
    return await populate_or_fail(db, chat.id)
