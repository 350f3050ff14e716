"""Routing outcomes produced by the identity router."""

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict

from lendchat.schemas.lending_schema import StaffRole

MEMBER_REASON = "phone belongs to a member"
DISABLED_REASON = "user is disabled"


class _Route(BaseModel):
    model_config = ConfigDict(frozen=True)

    phone: str

    @property
    def is_ignored(self) -> bool:
        return False


class GuestRoute(_Route):
    """Unknown phone: no member or staff record."""
    kind: Literal["guest"] = "guest"


class StaffRoute(_Route):
    """Enabled staff member, resolved to the role that decides its handling."""
    kind: Literal["staff"] = "staff"
    user_id: str
    role: StaffRole


class MemberRoute(_Route):
    """Registered customer. Never handled by an agent, but kept distinct for auditing."""
    kind: Literal["member"] = "member"
    member_id: str
    reason: str = MEMBER_REASON

    @property
    def is_ignored(self) -> bool:
        return True


class IgnoredRoute(_Route):
    kind: Literal["ignored"] = "ignored"
    reason: str

    @property
    def is_ignored(self) -> bool:
        return True


RouteOutcome = Union[GuestRoute, StaffRoute, MemberRoute, IgnoredRoute]
