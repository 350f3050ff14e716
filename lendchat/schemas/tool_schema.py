"""Tool execution context and result models."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from lendchat.schemas.lending_schema import StaffRole


class ToolContext(BaseModel):
    """Trust context for a tool call.

    Built by the router/processor from the sender's resolved identity.
    Handlers read "who is asking" from here and never from tool arguments.
    """

    model_config = ConfigDict(frozen=True)

    phone: str
    user_id: Optional[str] = None
    role: Optional[StaffRole] = None

    @property
    def is_admin(self) -> bool:
        return self.role == StaffRole.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.user_id is not None and self.role is not None


class ToolResult(BaseModel):
    """Uniform tool outcome. ``message`` is user-facing Spanish text."""

    success: bool
    message: str
    data: Optional[Any] = None
