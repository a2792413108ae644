"""
Chat persistence for the stackchat application.

Every function takes the database handle as its first argument and returns
either the requested entity or an ErrorResponse; expected failures are never
raised to the caller.
"""
import logging
import uuid
from typing import List, Union

from stackchat.database import CosmosDBConnection
from stackchat.models import (
    Chat,
    CreateChatPayload,
    EnrichedChat,
    ErrorResponse,
    Message,
    MessageInChat,
    UserProjection,
    utc_now,
)

logger = logging.getLogger("stackchat.chat_service")

CHAT_NOT_FOUND = "Chat not found"


async def create_message(db: CosmosDBConnection, data: Message) -> Union[Message, ErrorResponse]:
    """Insert a single message document."""
    try:
        message = data.model_copy(update={"id": str(uuid.uuid4())})
        return await db.create_message(message)
    except Exception as e:
        return ErrorResponse(error=f"Error creating message: {e}")


async def save_chat(db: CosmosDBConnection, payload: CreateChatPayload) -> Union[Chat, ErrorResponse]:
    """Insert the payload's messages one by one, then a chat referencing them.

    Messages written before a failure are left in place.
    """
    try:
        message_ids = []
        for message in payload.messages:
            saved = await db.create_message(message.model_copy(update={"id": str(uuid.uuid4())}))
            message_ids.append(saved.id)

        now = utc_now()
        chat = Chat(
            id=str(uuid.uuid4()),
            participants=list(dict.fromkeys(payload.participants)),
            messages=message_ids,
            createdAt=now,
            updatedAt=now,
        )
        return await db.create_chat(chat)
    except Exception as e:
        return ErrorResponse(error=f"Error creating chat: {e}")


async def add_message_to_chat(db: CosmosDBConnection, chat_id: str, message_id: str) -> Union[Chat, ErrorResponse]:
    try:
        chat = await db.push_message_to_chat(chat_id, message_id)
        if not chat:
            return ErrorResponse(error=CHAT_NOT_FOUND)
        return chat
    except Exception as e:
        return ErrorResponse(error=f"Error adding message to chat: {e}")


async def add_participant_to_chat(db: CosmosDBConnection, chat_id: str, username: str) -> Union[Chat, ErrorResponse]:
    """Add a participant; adding an existing participant leaves the chat unchanged."""
    try:
        chat = await db.add_participant_to_chat(chat_id, username)
        if not chat:
            return ErrorResponse(error=CHAT_NOT_FOUND)
        return chat
    except Exception as e:
        return ErrorResponse(error=f"Error adding participant to chat: {e}")


async def get_chat(db: CosmosDBConnection, chat_id: str) -> Union[Chat, ErrorResponse]:
    try:
        chat = await db.get_chat(chat_id)
        if not chat:
            return ErrorResponse(error=CHAT_NOT_FOUND)
        return chat
    except Exception as e:
        return ErrorResponse(error=f"Error getting chat: {e}")


async def get_chats_by_participants(db: CosmosDBConnection, participants: List[str]) -> List[Chat]:
    """Chats whose participants include every given username.

    A failed lookup is logged and reported as an empty list.
    """
    try:
        return await db.find_chats_by_participants(participants)
    except Exception as e:
        logger.error(f"Error getting chats by participants: {e}")
        return []


async def populate_chat(db: CosmosDBConnection, chat_id: str) -> Union[EnrichedChat, ErrorResponse]:
    """Re-fetch a chat and expand its message ids into messages with sender projections."""
    try:
        chat = await db.get_chat(chat_id)
        if not chat:
            return ErrorResponse(error=CHAT_NOT_FOUND)

        senders = {}
        messages = []
        for message_id in chat.messages:
            message = await db.get_message(message_id)
            if not message:
                logger.warning(f"Message {message_id} referenced by chat {chat_id} no longer exists")
                continue

            if message.msgFrom not in senders:
                user = await db.get_user_by_username(message.msgFrom)
                # Deleted senders keep their username but lose the id
                senders[message.msgFrom] = UserProjection(id=user.id if user else None, username=message.msgFrom)

            messages.append(MessageInChat(**message.model_dump(), user=senders[message.msgFrom]))

        return EnrichedChat(
            id=chat.id,
            participants=chat.participants,
            messages=messages,
            createdAt=chat.createdAt,
            updatedAt=chat.updatedAt,
        )
    except Exception as e:
        return ErrorResponse(error=f"Error when fetching and populating a document: {e}")
