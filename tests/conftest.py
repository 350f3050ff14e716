"""Shared test fixtures and helpers."""

from typing import Optional

import pytest

from lendchat.backends.in_memory import InMemoryLendingBackend
from lendchat.schemas.lending_schema import StaffRole
from lendchat.schemas.message_schema import ContentPart, ImageUrl, Message, MessageRole
from lendchat.schemas.tool_schema import ToolContext

GUEST_PHONE = "+18295550101"
COLLECTOR_PHONE = "+18095550202"
OTHER_COLLECTOR_PHONE = "+18095550505"
ADMIN_PHONE = "+18495550303"
REFERRER_PHONE = "+18095550404"
MEMBER_PHONE = "+18095551111"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SeededBackend:
    """An in-memory backend plus the ids of its seeded records."""

    def __init__(self) -> None:
        self.backend = InMemoryLendingBackend()
        b = self.backend
        self.admin = b.add_staff("Laura Admin", ADMIN_PHONE, [StaffRole.ADMIN])
        self.collector = b.add_staff("Juan Cobrador", COLLECTOR_PHONE, [StaffRole.COLLECTOR])
        self.other_collector = b.add_staff(
            "Luis Cobrador", OTHER_COLLECTOR_PHONE, [StaffRole.COLLECTOR]
        )
        self.referrer = b.add_staff("Pedro Gómez", REFERRER_PHONE, [StaffRole.REFERRER])
        self.member = b.add_member(
            "María Rodríguez", MEMBER_PHONE, assigned_collector_id=self.collector.id
        )
        self.loan = b.add_loan(self.member.id, principal=10000, payment_amount=1500)
        self.orphan_member = b.add_member("Rosa Sin Cobrador", "+18095552222")
        self.orphan_loan = b.add_loan(self.orphan_member.id, principal=3000, payment_amount=500)


@pytest.fixture
def seeded():
    return SeededBackend()


@pytest.fixture
def fake_clock():
    return FakeClock()


def guest_context(phone: str = GUEST_PHONE) -> ToolContext:
    return ToolContext(phone=phone)


def staff_context(user_id: str, role: StaffRole, phone: str = COLLECTOR_PHONE) -> ToolContext:
    return ToolContext(phone=phone, user_id=user_id, role=role)


def make_message(
    role: MessageRole,
    text: Optional[str] = None,
    image_urls: Optional[list[str]] = None,
) -> Message:
    """Build a text message, or a multimodal one when image URLs are given."""
    if not image_urls:
        return Message(role=role, content=text or "")
    parts = []
    if text is not None:
        parts.append(ContentPart(type="text", text=text))
    for url in image_urls:
        parts.append(ContentPart(type="image_url", image_url=ImageUrl(url=url)))
    return Message(role=role, content=parts)
