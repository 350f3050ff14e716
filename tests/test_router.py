"""Tests for identity routing."""

from typing import Optional

import pytest

from lendchat.routing.router import MessageRouter, resolve_primary_role
from lendchat.schemas.lending_schema import MemberRecord, StaffRecord, StaffRole
from lendchat.schemas.route_schema import (
    DISABLED_REASON,
    GuestRoute,
    IgnoredRoute,
    MemberRoute,
    StaffRoute,
)
from lendchat.utils import InvalidPhoneError

PHONE = "+18095550101"


class StubLookups:
    """Records the phones each lookup received."""

    def __init__(
        self,
        member: Optional[MemberRecord] = None,
        user: Optional[StaffRecord] = None,
        member_error: Optional[Exception] = None,
    ):
        self.member = member
        self.user = user
        self.member_error = member_error
        self.member_calls: list[str] = []
        self.user_calls: list[str] = []

    async def get_member_by_phone(self, phone: str) -> Optional[MemberRecord]:
        self.member_calls.append(phone)
        if self.member_error:
            raise self.member_error
        return self.member

    async def get_user_by_phone(self, phone: str) -> Optional[StaffRecord]:
        self.user_calls.append(phone)
        return self.user

    def router(self) -> MessageRouter:
        return MessageRouter(self.get_member_by_phone, self.get_user_by_phone)


def _user(roles: list[StaffRole], enabled: bool = True) -> StaffRecord:
    return StaffRecord(id="user-1", name="Juan", phone=PHONE, enabled=enabled, roles=roles)


class TestResolvePrimaryRole:
    def test_admin_wins(self):
        assert resolve_primary_role([StaffRole.COLLECTOR, StaffRole.ADMIN]) == StaffRole.ADMIN

    def test_collector_over_referrer(self):
        roles = [StaffRole.REFERRER, StaffRole.COLLECTOR]
        assert resolve_primary_role(roles) == StaffRole.COLLECTOR

    def test_referrer_handled_as_collector(self):
        assert resolve_primary_role([StaffRole.REFERRER]) == StaffRole.COLLECTOR


class TestMessageRouter:
    @pytest.mark.asyncio
    async def test_unknown_phone_is_guest(self):
        stubs = StubLookups()
        route = await stubs.router().route(PHONE)
        assert isinstance(route, GuestRoute)
        assert route.phone == PHONE
        assert route.is_ignored is False

    @pytest.mark.asyncio
    async def test_member_is_ignored(self):
        stubs = StubLookups(member=MemberRecord(id="m-1", name="María", phone=PHONE))
        route = await stubs.router().route(PHONE)
        assert isinstance(route, MemberRoute)
        assert route.member_id == "m-1"
        assert route.is_ignored is True
        assert stubs.user_calls == []

    @pytest.mark.asyncio
    async def test_member_wins_over_staff(self):
        stubs = StubLookups(
            member=MemberRecord(id="m-1", name="María", phone=PHONE),
            user=_user([StaffRole.ADMIN]),
        )
        route = await stubs.router().route(PHONE)
        assert isinstance(route, MemberRoute)

    @pytest.mark.asyncio
    async def test_disabled_user_is_ignored(self):
        stubs = StubLookups(user=_user([StaffRole.ADMIN], enabled=False))
        route = await stubs.router().route(PHONE)
        assert isinstance(route, IgnoredRoute)
        assert route.reason == DISABLED_REASON

    @pytest.mark.asyncio
    @pytest.mark.parametrize("roles,expected", [
        ([StaffRole.ADMIN], StaffRole.ADMIN),
        ([StaffRole.ADMIN, StaffRole.COLLECTOR], StaffRole.ADMIN),
        ([StaffRole.COLLECTOR], StaffRole.COLLECTOR),
        ([StaffRole.REFERRER], StaffRole.COLLECTOR),
        ([StaffRole.COLLECTOR, StaffRole.REFERRER], StaffRole.COLLECTOR),
    ])
    async def test_staff_role_precedence(self, roles, expected):
        stubs = StubLookups(user=_user(roles))
        route = await stubs.router().route(PHONE)
        assert isinstance(route, StaffRoute)
        assert route.user_id == "user-1"
        assert route.role == expected

    @pytest.mark.asyncio
    async def test_equivalent_phone_forms_route_identically(self):
        stubs = StubLookups(user=_user([StaffRole.COLLECTOR]))
        router = stubs.router()
        first = await router.route("809-555-0101")
        second = await router.route("+1 (809) 555-0101")
        assert first == second
        assert stubs.user_calls == [PHONE, PHONE]

    @pytest.mark.asyncio
    async def test_lookup_failure_propagates(self):
        stubs = StubLookups(member_error=ConnectionError("db down"))
        with pytest.raises(ConnectionError, match="db down"):
            await stubs.router().route(PHONE)
        assert stubs.user_calls == []

    @pytest.mark.asyncio
    async def test_invalid_phone_raises_before_lookup(self):
        stubs = StubLookups()
        with pytest.raises(InvalidPhoneError):
            await stubs.router().route("12345")
        assert stubs.member_calls == []
