"""
Event Grid module for the stackchat backend.

Chat updates that are fanned out to socket rooms are also published to an
Azure Event Grid topic when one is configured.
"""

import os
import uuid
import logging
from typing import Any, Dict, Optional
import aiohttp

from stackchat.models import ChatUpdate, utc_now

logger = logging.getLogger("stackchat.eventgrid")

EVENT_TYPES = {
    "created": "Chat.Created",
    "newMessage": "Chat.NewMessage",
}


class EventGridPublisher:
    """Client for publishing events to Azure Event Grid."""

    def __init__(self, endpoint: Optional[str] = None, key: Optional[str] = None):
        self.endpoint = endpoint or os.getenv("EVENTGRID_TOPIC_ENDPOINT")
        self.key = key or os.getenv("EVENTGRID_TOPIC_KEY")

        if not self.endpoint or not self.key:
            logger.warning("Event Grid configuration missing. Events will not be published.")
            self.enabled = False
        else:
            self.enabled = True
            logger.info(f"Event Grid publisher initialized with endpoint: {self.endpoint}")

    def build_event(self, event_type: str, subject: str, data: Dict[str, Any], data_version: str = "1.0") -> Dict[str, Any]:
        return {
            "id": str(uuid.uuid4()),
            "eventType": event_type,
            "subject": subject,
            "dataVersion": data_version,
            "eventTime": utc_now().isoformat(),
            "data": data
        }

    async def publish_event(self,
                            event_type: str,
                            subject: str,
                            data: Dict[str, Any],
                            data_version: str = "1.0") -> bool:
        """
        Publish an event to Azure Event Grid.

        Args:
            event_type: Type of the event (e.g., 'Chat.NewMessage')
            subject: Subject of the event (e.g., '/chats/123')
            data: Event data payload
            data_version: Version of the event data schema

        Returns:
            bool: True if the event was published successfully, False otherwise
        """
        if not self.enabled:
            logger.debug(f"Event Grid not configured. Skipping event: {event_type}")
            return False

        try:
            headers = {
                "Content-Type": "application/json",
                "aeg-sas-key": self.key
            }
            event = [self.build_event(event_type, subject, data, data_version)]

            async with aiohttp.ClientSession() as session:
                async with session.post(self.endpoint, headers=headers, json=event) as response:
                    if response.status == 200:
                        logger.info(f"Event published successfully: {event_type}")
                        return True
                    response_text = await response.text()
                    logger.error(f"Failed to publish event: {response.status} - {response_text}")
                    return False

        except Exception as e:
            logger.exception(f"Error publishing event to Event Grid: {e}")
            return False

    async def publish_chat_update(self, update: ChatUpdate) -> bool:
        """Publish a chatUpdate (created or newMessage) for the chat it carries."""
        return await self.publish_event(
            event_type=EVENT_TYPES[update.type],
            subject=f"/chats/{update.chat.id}",
            data=update.model_dump(mode="json")
        )
