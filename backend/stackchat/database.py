import os
import json
import logging
from typing import Any, Dict, List, Optional
from azure.cosmos import exceptions
from azure.cosmos.aio import CosmosClient as AsyncCosmosClient
from dotenv import load_dotenv

from stackchat.models import Chat, Message, User, utc_now

# Load environment variables
load_dotenv()

logger = logging.getLogger("stackchat.database")


class DatabaseError(Exception):
    """Raised when the document store cannot be reached or a container is unavailable."""


class CosmosDBConnection:
    """Data access for users, chats and messages.

    Not-found lookups return None. Every other store failure propagates to the
    caller so the service layer can report it.
    """

    def __init__(self, dev_mode: Optional[bool] = None):
        # Get connection info from environment variables
        self.cosmos_endpoint = os.getenv("COSMOS_ENDPOINT", "")
        self.cosmos_key = os.getenv("COSMOS_KEY", "")
        self.database_name = os.getenv("COSMOS_DATABASE", "StackChatDB")
        self.user_container = os.getenv("COSMOS_USERS_CONTAINER", "Users")
        self.chat_container = os.getenv("COSMOS_CHATS_CONTAINER", "Chats")
        self.message_container = os.getenv("COSMOS_MESSAGES_CONTAINER", "Messages")

        # In-memory storage, used when running in development mode
        self._mock_users: List[User] = []
        self._mock_chats: List[Chat] = []
        self._mock_messages: List[Message] = []

        if dev_mode is None:
            dev_mode = os.getenv("DEV_MODE", "false").lower() == "true"
        self.dev_mode = dev_mode

        # Store client instance to avoid creating multiple connections
        self._client = None

        if self.dev_mode:
            logger.warning("Running in development mode with in-memory data (DEV_MODE=true).")
        elif not (self.cosmos_endpoint and self.cosmos_key):
            logger.error("Missing COSMOS_ENDPOINT or COSMOS_KEY environment variables. Set DEV_MODE=true to run in development mode.")

    async def _get_client(self):
        """Get or create the AsyncCosmosClient."""
        if self.dev_mode:
            return None

        if self._client is None:
            try:
                self._client = AsyncCosmosClient(self.cosmos_endpoint, credential=self.cosmos_key)
                logger.info("Created new AsyncCosmosClient")
            except Exception as e:
                logger.error(f"Failed to create AsyncCosmosClient: {e}")
                return None

        return self._client

    async def _get_container(self, container_name):
        """Get a container from Cosmos DB, creating it (and the database) if needed."""
        if self.dev_mode:
            return None

        try:
            client = await self._get_client()
            if client is None:
                logger.error("Failed to get Cosmos DB client")
                return None

            try:
                database = client.get_database_client(self.database_name)
                await database.read()
            except exceptions.CosmosResourceNotFoundError:
                database = await client.create_database(self.database_name)
                logger.info(f"Created new database: {self.database_name}")

            container = database.get_container_client(container_name)
            try:
                await container.read()
                return container
            except exceptions.CosmosResourceNotFoundError:
                # Every container is partitioned by document id
                container = await database.create_container(
                    id=container_name,
                    partition_key={"paths": ["/id"], "kind": "Hash"}
                )
                logger.info(f"Created new container: {container_name}")
                return container
        except Exception as e:
            logger.error(f"Error connecting to Cosmos DB container {container_name}: {e}")
            return None

    async def _require_container(self, container_name):
        container = await self._get_container(container_name)
        if not container:
            raise DatabaseError(f"Failed to get {container_name} container")
        return container

    async def _query_one(self, container, query: str, parameters: List[Dict[str, Any]]) -> Optional[dict]:
        items = container.query_items(query=query, parameters=parameters)
        async for item in items:
            return item
        return None

    async def _read_item(self, container, item_id: str) -> Optional[dict]:
        try:
            return await container.read_item(item=item_id, partition_key=item_id)
        except exceptions.CosmosResourceNotFoundError:
            return None

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(self, user: User) -> Optional[User]:
        """Insert a user. Returns None when the username is already taken."""
        if self.dev_mode:
            if any(existing.username == user.username for existing in self._mock_users):
                logger.warning(f"Username {user.username} already exists")
                return None
            self._mock_users.append(user.model_copy(deep=True))
            return user

        container = await self._require_container(self.user_container)
        existing = await self._query_one(
            container,
            "SELECT * FROM c WHERE c.username = @username",
            [{"name": "@username", "value": user.username}],
        )
        if existing:
            logger.warning(f"Username {user.username} already exists")
            return None

        await container.create_item(body=user.model_dump(mode="json"))
        logger.info(f"Created new user: {user.id} - {user.username}")
        return user

    async def get_user_by_username(self, username: str) -> Optional[User]:
        if self.dev_mode:
            for user in self._mock_users:
                if user.username == username:
                    return user.model_copy(deep=True)
            return None

        container = await self._require_container(self.user_container)
        item = await self._query_one(
            container,
            "SELECT * FROM c WHERE c.username = @username",
            [{"name": "@username", "value": username}],
        )
        return User(**item) if item else None

    async def get_users(self) -> List[User]:
        if self.dev_mode:
            return [user.model_copy(deep=True) for user in self._mock_users]

        container = await self._require_container(self.user_container)
        users = []
        async for item in container.query_items(query="SELECT * FROM c"):
            users.append(User(**item))
        return users

    async def update_user(self, username: str, updates: Dict[str, Any]) -> Optional[User]:
        """Set the given fields on the user. Returns None if the user does not exist."""
        if self.dev_mode:
            for user in self._mock_users:
                if user.username == username:
                    for field, value in updates.items():
                        setattr(user, field, value)
                    return user.model_copy(deep=True)
            return None

        container = await self._require_container(self.user_container)
        item = await self._query_one(
            container,
            "SELECT * FROM c WHERE c.username = @username",
            [{"name": "@username", "value": username}],
        )
        if not item:
            logger.warning(f"User {username} not found for update")
            return None

        operations = [{"op": "set", "path": f"/{field}", "value": value} for field, value in updates.items()]
        updated = await container.patch_item(
            item=item["id"], partition_key=item["id"], patch_operations=operations
        )
        logger.info(f"Updated user {username}: {', '.join(updates)}")
        return User(**updated)

    async def delete_user(self, username: str) -> Optional[User]:
        """Delete the user and return the deleted document, or None if absent."""
        if self.dev_mode:
            for user in self._mock_users:
                if user.username == username:
                    self._mock_users.remove(user)
                    return user
            return None

        container = await self._require_container(self.user_container)
        item = await self._query_one(
            container,
            "SELECT * FROM c WHERE c.username = @username",
            [{"name": "@username", "value": username}],
        )
        if not item:
            logger.warning(f"User {username} not found for deletion")
            return None

        await container.delete_item(item=item["id"], partition_key=item["id"])
        logger.info(f"Deleted user: {username}")
        return User(**item)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def create_message(self, message: Message) -> Message:
        if self.dev_mode:
            self._mock_messages.append(message.model_copy(deep=True))
            return message

        container = await self._require_container(self.message_container)
        await container.create_item(body=message.model_dump(mode="json"))
        return message

    async def get_message(self, message_id: str) -> Optional[Message]:
        if self.dev_mode:
            for message in self._mock_messages:
                if message.id == message_id:
                    return message.model_copy(deep=True)
            return None

        container = await self._require_container(self.message_container)
        item = await self._read_item(container, message_id)
        return Message(**item) if item else None

    # ------------------------------------------------------------------
    # Chats
    # ------------------------------------------------------------------

    async def create_chat(self, chat: Chat) -> Chat:
        if self.dev_mode:
            self._mock_chats.append(chat.model_copy(deep=True))
            return chat

        container = await self._require_container(self.chat_container)
        await container.create_item(body=chat.model_dump(mode="json"))
        logger.info(f"Created new chat: {chat.id} ({', '.join(chat.participants)})")
        return chat

    async def get_chat(self, chat_id: str) -> Optional[Chat]:
        if self.dev_mode:
            chat = self._find_mock_chat(chat_id)
            return chat.model_copy(deep=True) if chat else None

        container = await self._require_container(self.chat_container)
        item = await self._read_item(container, chat_id)
        return Chat(**item) if item else None

    async def push_message_to_chat(self, chat_id: str, message_id: str) -> Optional[Chat]:
        """Append a message id to the chat in a single patch. None if the chat is missing."""
        if self.dev_mode:
            chat = self._find_mock_chat(chat_id)
            if not chat:
                return None
            chat.messages.append(message_id)
            chat.updatedAt = utc_now()
            return chat.model_copy(deep=True)

        container = await self._require_container(self.chat_container)
        try:
            item = await container.patch_item(
                item=chat_id,
                partition_key=chat_id,
                patch_operations=[
                    {"op": "add", "path": "/messages/-", "value": message_id},
                    {"op": "set", "path": "/updatedAt", "value": utc_now().isoformat()},
                ],
            )
        except exceptions.CosmosResourceNotFoundError:
            return None
        return Chat(**item)

    async def add_participant_to_chat(self, chat_id: str, username: str) -> Optional[Chat]:
        """Add a participant unless already present. None if the chat is missing."""
        if self.dev_mode:
            chat = self._find_mock_chat(chat_id)
            if not chat:
                return None
            if username not in chat.participants:
                chat.participants.append(username)
                chat.updatedAt = utc_now()
            return chat.model_copy(deep=True)

        container = await self._require_container(self.chat_container)
        try:
            item = await container.patch_item(
                item=chat_id,
                partition_key=chat_id,
                patch_operations=[
                    {"op": "add", "path": "/participants/-", "value": username},
                    {"op": "set", "path": "/updatedAt", "value": utc_now().isoformat()},
                ],
                filter_predicate=f"FROM c WHERE NOT ARRAY_CONTAINS(c.participants, {json.dumps(username)})",
            )
        except exceptions.CosmosResourceNotFoundError:
            return None
        except exceptions.CosmosAccessConditionFailedError:
            # Already a participant
            item = await self._read_item(container, chat_id)
            if not item:
                return None
        return Chat(**item)

    async def find_chats_by_participants(self, participants: List[str]) -> List[Chat]:
        """Chats whose participant list contains every given username."""
        if self.dev_mode:
            return [
                chat.model_copy(deep=True)
                for chat in self._mock_chats
                if all(p in chat.participants for p in participants)
            ]

        container = await self._require_container(self.chat_container)
        query = "SELECT * FROM c"
        parameters = [{"name": f"@p{i}", "value": p} for i, p in enumerate(participants)]
        if parameters:
            conditions = [f"ARRAY_CONTAINS(c.participants, {param['name']})" for param in parameters]
            query += " WHERE " + " AND ".join(conditions)

        chats = []
        async for item in container.query_items(query=query, parameters=parameters):
            chats.append(Chat(**item))
        return chats

    def _find_mock_chat(self, chat_id: str) -> Optional[Chat]:
        for chat in self._mock_chats:
            if chat.id == chat_id:
                return chat
        return None

    async def close(self):
        """Close the AsyncCosmosClient instance to release resources."""
        if not self.dev_mode and self._client is not None:
            try:
                await self._client.close()
                logger.info("AsyncCosmosClient closed successfully.")
            except Exception as e:
                logger.error(f"Error closing AsyncCosmosClient: {e}")
            finally:
                self._client = None
