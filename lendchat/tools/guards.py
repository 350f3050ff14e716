"""Context checks shared by tool handlers.

Each guard returns a failed ToolResult when the trust context does not
allow the call, or None when the handler may proceed.
"""

from typing import Optional

from lendchat.prompts import replies
from lendchat.schemas.tool_schema import ToolContext, ToolResult


def _fail(message: str) -> ToolResult:
    return ToolResult(success=False, message=message)


def require_user_id(context: Optional[ToolContext]) -> Optional[ToolResult]:
    if context is None or not context.user_id:
        return _fail(replies.MISSING_USER_ID)
    return None


def require_phone(context: Optional[ToolContext]) -> Optional[ToolResult]:
    if context is None or not context.phone:
        return _fail(replies.MISSING_PHONE)
    return None


def require_staff(context: Optional[ToolContext]) -> Optional[ToolResult]:
    if context is None or not context.is_staff:
        return _fail(replies.STAFF_ONLY)
    return None


def require_admin(context: Optional[ToolContext]) -> Optional[ToolResult]:
    if context is None or not context.is_admin or not context.user_id:
        return _fail(replies.ADMIN_ONLY)
    return None
