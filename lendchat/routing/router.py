"""
Identity router — decides who should handle an inbound message.

Routing rules, in order:
1. Member phone      -> MemberRoute (customers never talk to agents)
2. Disabled staff    -> IgnoredRoute
3. Enabled staff     -> StaffRoute, role by precedence ADMIN > COLLECTOR > REFERRER
4. Unknown phone     -> GuestRoute (onboarding)

Lookup failures propagate unchanged. Falling back to GuestRoute on an
error could hand a staff or disabled number to the onboarding agent.
"""

import logging
from typing import Awaitable, Callable, Iterable, Optional

from lendchat.schemas.lending_schema import MemberRecord, StaffRecord, StaffRole
from lendchat.schemas.route_schema import (
    DISABLED_REASON,
    GuestRoute,
    IgnoredRoute,
    MemberRoute,
    RouteOutcome,
    StaffRoute,
)
from lendchat.utils import mask_phone, to_canonical_phone

logger = logging.getLogger(__name__)

MemberLookup = Callable[[str], Awaitable[Optional[MemberRecord]]]
StaffLookup = Callable[[str], Awaitable[Optional[StaffRecord]]]

# Referrers have no dedicated agent and are handled as collectors.
_ROLE_PRECEDENCE: tuple[tuple[StaffRole, StaffRole], ...] = (
    (StaffRole.ADMIN, StaffRole.ADMIN),
    (StaffRole.COLLECTOR, StaffRole.COLLECTOR),
    (StaffRole.REFERRER, StaffRole.COLLECTOR),
)


def resolve_primary_role(roles: Iterable[StaffRole]) -> StaffRole:
    """Pick the role that decides how a staff member is handled."""
    held = set(roles)
    for role, handled_as in _ROLE_PRECEDENCE:
        if role in held:
            return handled_as
    return StaffRole.COLLECTOR


class MessageRouter:
    """Resolves a sender phone to exactly one RouteOutcome."""

    def __init__(
        self,
        get_member_by_phone: MemberLookup,
        get_user_by_phone: StaffLookup,
    ) -> None:
        self._get_member_by_phone = get_member_by_phone
        self._get_user_by_phone = get_user_by_phone

    async def route(self, phone: str) -> RouteOutcome:
        """Route a message by its sender's phone number.

        Raises:
            InvalidPhoneError: If the phone cannot be canonicalized.
            Exception: Any error raised by the lookups, unchanged.
        """
        canonical = to_canonical_phone(phone)
        masked = mask_phone(canonical)

        member = await self._get_member_by_phone(canonical)
        if member is not None:
            logger.info("Phone %s belongs to member %s, ignoring", masked, member.id)
            return MemberRoute(phone=canonical, member_id=member.id)

        user = await self._get_user_by_phone(canonical)
        if user is not None:
            if not user.enabled:
                logger.info("Phone %s belongs to disabled user %s, ignoring", masked, user.id)
                return IgnoredRoute(phone=canonical, reason=DISABLED_REASON)

            role = resolve_primary_role(user.roles)
            logger.info("Phone %s belongs to user %s (role=%s)", masked, user.id, role.value)
            return StaffRoute(phone=canonical, user_id=user.id, role=role)

        logger.info("Phone %s is unknown, routing as guest", masked)
        return GuestRoute(phone=canonical)
