"""Conversation message models shared by the guest buffer, migrator, and engine."""

from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class PersistedRole(str, Enum):
    """Role stored with a durable chat message."""

    AI = "AI"
    HUMAN = "HUMAN"


class AttachmentType(str, Enum):
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    AUDIO = "AUDIO"
    DOCUMENT = "DOCUMENT"


class ImageUrl(BaseModel):
    url: str


class ContentPart(BaseModel):
    """One item of multimodal message content."""

    type: Literal["text", "image_url"]
    text: Optional[str] = None
    image_url: Optional[ImageUrl] = None


class ToolCall(BaseModel):
    """Tool call requested by the model in an assistant turn."""

    id: str
    type: Literal["function"] = "function"
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class Message(BaseModel):
    """A single turn in the conversation history.

    Content is either plain text or a list of parts for messages that
    carry images alongside text.
    """

    role: MessageRole
    content: Union[str, list[ContentPart]] = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    name: Optional[str] = None
    tool_call_id: Optional[str] = None


class Attachment(BaseModel):
    type: AttachmentType
    url: str
    name: Optional[str] = None
    mime_type: Optional[str] = None


class ChatMessageCreate(BaseModel):
    """Payload handed to the persistence adapter for one durable message."""

    member_id: str
    role: PersistedRole
    content: str
    attachments: Optional[list[Attachment]] = None
