"""Migrate a guest's buffered conversation to durable storage after registration."""

import logging
from typing import Any, Awaitable, Callable, Union

from lendchat.conversations.guest_store import GuestConversationStore
from lendchat.schemas.message_schema import (
    Attachment,
    AttachmentType,
    ChatMessageCreate,
    ContentPart,
    MessageRole,
    PersistedRole,
)
from lendchat.utils import mask_phone

logger = logging.getLogger(__name__)

IMAGE_PLACEHOLDER = "[Imagen]"

# System and tool turns carry orchestration bookkeeping, not conversation.
_SKIPPED_ROLES = frozenset({MessageRole.SYSTEM, MessageRole.TOOL})

AddMessage = Callable[[ChatMessageCreate], Awaitable[Any]]


def _convert_role(role: MessageRole) -> PersistedRole:
    return PersistedRole.AI if role == MessageRole.ASSISTANT else PersistedRole.HUMAN


def _extract_text(content: Union[str, list[ContentPart]]) -> str:
    if isinstance(content, str):
        return content
    return "\n".join(part.text or "" for part in content if part.type == "text")


def _extract_images(content: Union[str, list[ContentPart]]) -> list[Attachment]:
    if isinstance(content, str):
        return []
    return [
        Attachment(type=AttachmentType.IMAGE, url=part.image_url.url)
        for part in content
        if part.type == "image_url" and part.image_url and part.image_url.url
    ]


async def migrate_guest_to_database(
    store: GuestConversationStore,
    phone: str,
    member_id: str,
    add_message: AddMessage,
) -> int:
    """Persist the guest's buffered history for a newly registered member.

    Messages are written one at a time in their original order. A failure
    on one message is logged and the rest are still attempted. Messages
    appended to the buffer during migration are migrated too. The buffer
    is cleared on every exit path once migration starts.

    Args:
        store: The guest conversation buffer.
        phone: Canonical phone the history is keyed by.
        member_id: Id of the member the history now belongs to.
        add_message: Persists one message and returns its record.

    Returns:
        Number of messages persisted successfully.
    """
    messages = store.get(phone)
    if not messages:
        logger.debug("No guest messages to migrate for %s", mask_phone(phone))
        return 0

    logger.info(
        "Migrating %d guest messages for %s to member %s",
        len(messages), mask_phone(phone), member_id,
    )

    persisted = 0
    failed = 0
    try:
        # Messages appended while a batch is being written form the next batch.
        while messages:
            for message in messages:
                if message.role in _SKIPPED_ROLES:
                    continue

                text = _extract_text(message.content)
                attachments = _extract_images(message.content)
                if not text and not attachments:
                    continue

                role = _convert_role(message.role)
                payload = ChatMessageCreate(
                    member_id=member_id,
                    role=role,
                    content=text or IMAGE_PLACEHOLDER,
                    attachments=attachments or None,
                )
                try:
                    await add_message(payload)
                    persisted += 1
                except Exception as e:
                    failed += 1
                    logger.error(
                        "Failed to migrate %s message for member %s: %s",
                        role.value, member_id, e,
                    )
            if store.trim(phone, len(messages)):
                messages = store.get(phone)
            else:
                messages = []
    finally:
        store.clear(phone)

    logger.info(
        "Guest conversation migrated for member %s (persisted=%d, failed=%d)",
        member_id, persisted, failed,
    )
    return persisted
