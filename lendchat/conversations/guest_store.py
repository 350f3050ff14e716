"""
In-memory conversation buffer for guests (unknown phone numbers).

A prospective customer can exchange many turns with the onboarding agent
before any member record exists, so there is nothing durable to attach
those messages to yet. They are held here, keyed by canonical phone,
until the guest registers and the history is migrated to the database.
"""

import logging
import threading
from collections import OrderedDict
from typing import Optional

from lendchat.config import settings
from lendchat.schemas.message_schema import Message
from lendchat.utils import mask_phone

logger = logging.getLogger(__name__)


class GuestConversationStore:
    """Append-only message history per guest phone.

    All mutations happen under one lock, so concurrent appends for the
    same phone never lose a message.
    """

    def __init__(self, max_conversations: Optional[int] = None) -> None:
        if max_conversations is None:
            max_conversations = settings.guests.max_conversations
        self._max_conversations = max_conversations
        self._conversations: OrderedDict[str, list[Message]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, phone: str) -> list[Message]:
        """Return a copy of the guest's history (empty if none)."""
        with self._lock:
            messages = list(self._conversations.get(phone, ()))
        logger.debug("Guest conversation for %s has %d messages", mask_phone(phone), len(messages))
        return messages

    def append(self, phone: str, message: Message) -> None:
        with self._lock:
            messages = self._conversations.get(phone)
            if messages is None:
                messages = []
                self._conversations[phone] = messages
            messages.append(message)
            self._conversations.move_to_end(phone)
            count = len(messages)
            evicted = self._evict_overflow()
        logger.debug(
            "Guest message added for %s (role=%s, count=%d)",
            mask_phone(phone), message.role.value, count,
        )
        for evicted_phone in evicted:
            logger.warning(
                "Guest buffer full, dropped conversation for %s", mask_phone(evicted_phone)
            )

    def clear(self, phone: str) -> None:
        """Remove the guest's history. Clearing an absent phone is a no-op."""
        with self._lock:
            self._conversations.pop(phone, None)
        logger.debug("Guest conversation cleared for %s", mask_phone(phone))

    def trim(self, phone: str, count: int) -> int:
        """Drop the oldest ``count`` messages and return how many remain.

        The phone is forgotten once its history is empty.
        """
        with self._lock:
            messages = self._conversations.get(phone)
            if messages is None:
                return 0
            del messages[:count]
            if not messages:
                del self._conversations[phone]
            return len(messages)

    def has(self, phone: str) -> bool:
        with self._lock:
            return phone in self._conversations

    def list_active_phones(self) -> list[str]:
        with self._lock:
            return list(self._conversations.keys())

    def count(self) -> int:
        with self._lock:
            return len(self._conversations)

    def _evict_overflow(self) -> list[str]:
        evicted: list[str] = []
        while len(self._conversations) > self._max_conversations:
            phone, _ = self._conversations.popitem(last=False)
            evicted.append(phone)
        return evicted
