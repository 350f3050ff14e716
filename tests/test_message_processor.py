"""End-to-end tests for the per-message pipeline over the in-memory backend."""

from typing import Any, Optional

import pytest

from lendchat.conversation.message_processor import (
    AgentRequest,
    InboundMessage,
    InboundType,
    ScopedToolExecutor,
)
from lendchat.agents.registry import ONBOARDING, get_agent
from lendchat.conversations.guest_store import GuestConversationStore
from lendchat.logging_context import get_message_id
from lendchat.prompts import replies
from lendchat.schemas.message_schema import MessageRole, PersistedRole
from lendchat.sessions.session_store import SessionStore
from lendchat.tools.dispatcher import ToolDispatcher
from lendchat.utils import InvalidPhoneError
from main import build_processor
from tests.conftest import (
    COLLECTOR_PHONE,
    GUEST_PHONE,
    MEMBER_PHONE,
    FakeClock,
    guest_context,
)


class FakeEngine:
    """Records each request and runs the tool calls queued for the next turn."""

    def __init__(self) -> None:
        self.requests: list[AgentRequest] = []
        self.queued: list[tuple[str, dict[str, Any]]] = []
        self.reply = "respuesta"
        self.results = []

    def queue(self, tool_name: str, args: dict[str, Any]) -> None:
        self.queued.append((tool_name, args))

    async def __call__(self, request: AgentRequest) -> str:
        self.requests.append(request)
        while self.queued:
            name, args = self.queued.pop(0)
            self.results.append(await request.execute_tool(name, args))
        return self.reply


def inbound(phone: str, text: Optional[str] = "hola", type=InboundType.TEXT, n: int = 1, **kw):
    return InboundMessage(phone=phone, message_id=f"wamid.test{n}", type=type, text=text, **kw)


@pytest.fixture
def pipeline(seeded):
    seeded.engine = FakeEngine()
    seeded.clock = FakeClock()
    seeded.sessions = SessionStore(clock=seeded.clock, timeout_provider=lambda: 1800)
    seeded.guests = GuestConversationStore(max_conversations=100)
    seeded.processor = build_processor(
        seeded.backend, seeded.engine, sessions=seeded.sessions, guests=seeded.guests
    )
    return seeded


class TestRoutingOutcomes:
    @pytest.mark.asyncio
    async def test_member_gets_no_reply(self, pipeline):
        result = await pipeline.processor.process(inbound(MEMBER_PHONE))
        assert result.handled is False
        assert result.route.kind == "member"
        assert pipeline.engine.requests == []
        assert pipeline.backend.outbox == []

    @pytest.mark.asyncio
    async def test_disabled_staff_gets_no_reply(self, pipeline):
        from lendchat.schemas.lending_schema import StaffRole

        pipeline.backend.add_staff("Ex Cobrador", "+18095553333", [StaffRole.COLLECTOR], enabled=False)
        result = await pipeline.processor.process(inbound("809-555-3333"))
        assert result.handled is False
        assert result.route.kind == "ignored"
        assert pipeline.backend.outbox == []

    @pytest.mark.asyncio
    async def test_invalid_sender_phone_propagates(self, pipeline):
        with pytest.raises(InvalidPhoneError):
            await pipeline.processor.process(inbound("12345"))

    @pytest.mark.asyncio
    async def test_correlation_id_set_from_message(self, pipeline):
        await pipeline.processor.process(inbound(GUEST_PHONE, n=42))
        assert get_message_id() == "wamid.test42"


class TestVoiceNotes:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", [InboundType.AUDIO, InboundType.VOICE])
    async def test_voice_never_reaches_engine(self, pipeline, kind):
        result = await pipeline.processor.process(inbound(GUEST_PHONE, text=None, type=kind))
        assert result.reply == replies.VOICE_NOT_SUPPORTED
        assert pipeline.engine.requests == []
        assert pipeline.backend.outbox == [
            {"phone": GUEST_PHONE, "message": replies.VOICE_NOT_SUPPORTED}
        ]


class TestGuestConversation:
    @pytest.mark.asyncio
    async def test_guest_history_buffered(self, pipeline):
        await pipeline.processor.process(inbound("829-555-0101", "hola", n=1))
        await pipeline.processor.process(inbound(GUEST_PHONE, "quiero un préstamo", n=2))

        history = pipeline.guests.get(GUEST_PHONE)
        assert [(m.role, m.content) for m in history] == [
            (MessageRole.USER, "hola"),
            (MessageRole.ASSISTANT, "respuesta"),
            (MessageRole.USER, "quiero un préstamo"),
            (MessageRole.ASSISTANT, "respuesta"),
        ]
        second = pipeline.engine.requests[1]
        assert len(second.history) == 3
        assert second.agent.name == ONBOARDING

    @pytest.mark.asyncio
    async def test_session_flag_keyed_by_phone(self, pipeline):
        first = await pipeline.processor.process(inbound(GUEST_PHONE, n=1))
        second = await pipeline.processor.process(inbound(GUEST_PHONE, n=2))
        assert first.is_new_session is True
        assert second.is_new_session is False
        assert GUEST_PHONE in pipeline.sessions

        pipeline.clock.advance(1801)
        third = await pipeline.processor.process(inbound(GUEST_PHONE, n=3))
        assert third.is_new_session is True

    @pytest.mark.asyncio
    async def test_only_onboarding_tools_offered(self, pipeline):
        await pipeline.processor.process(inbound(GUEST_PHONE))
        offered = {t["function"]["name"] for t in pipeline.engine.requests[0].tools}
        assert offered == {"create_member", "list_users"}

    @pytest.mark.asyncio
    async def test_registration_migrates_history(self, pipeline):
        await pipeline.processor.process(inbound(GUEST_PHONE, "hola", n=1))
        pipeline.engine.queue("create_member", {
            "name": "Ana Pérez",
            "id_number": "001-1234567-8",
            "collection_point": "Mercado Central",
            "home_address": "Calle 5 #12",
            "referred_by_id": pipeline.referrer.id,
        })
        result = await pipeline.processor.process(inbound(GUEST_PHONE, "me refirió Pedro", n=2))

        assert result.registered_member_id is not None
        assert result.migrated == 4
        assert pipeline.guests.has(GUEST_PHONE) is False
        saved = pipeline.backend.member_messages
        assert [m.role for m in saved] == [
            PersistedRole.HUMAN, PersistedRole.AI, PersistedRole.HUMAN, PersistedRole.AI,
        ]
        assert all(m.member_id == result.registered_member_id for m in saved)
        assert pipeline.backend.outbox[-1]["message"] == "respuesta"

    @pytest.mark.asyncio
    async def test_example_guest_registers_and_is_drained(self, pipeline):
        phone = "+18091234567"
        first = await pipeline.processor.process(inbound(phone, "hola", n=1))
        assert first.route.kind == "guest"
        assert first.is_new_session is True
        assert pipeline.guests.has(phone) is True

        pipeline.engine.queue("create_member", {
            "name": "Carlos Peña",
            "id_number": "002-7654321-0",
            "collection_point": "Colmado La Esquina",
            "home_address": "Av. Duarte 45",
            "referred_by_id": pipeline.referrer.id,
        })
        second = await pipeline.processor.process(inbound(phone, "listo", n=2))
        assert second.migrated == 4
        assert pipeline.guests.has(phone) is False

    @pytest.mark.asyncio
    async def test_engine_failure_after_registration_still_migrates(self, pipeline):
        engine = pipeline.engine
        engine.queue("create_member", {
            "name": "Ana Pérez",
            "id_number": "001-1234567-8",
            "collection_point": "Mercado Central",
            "home_address": "Calle 5 #12",
            "referred_by_id": pipeline.referrer.id,
        })

        async def failing_engine(request):
            await engine(request)
            raise RuntimeError("model timeout")

        pipeline.processor.deps.invoke_agent = failing_engine
        with pytest.raises(RuntimeError, match="model timeout"):
            await pipeline.processor.process(inbound(GUEST_PHONE, "me llamo Ana"))

        assert engine.results[0].success is True
        assert pipeline.guests.has(GUEST_PHONE) is False
        assert [m.content for m in pipeline.backend.member_messages] == ["me llamo Ana"]
        assert pipeline.backend.outbox == []
        assert GUEST_PHONE not in pipeline.sessions

        after = await pipeline.processor.process(inbound(GUEST_PHONE, "hola", n=2))
        assert after.route.kind == "member"

    @pytest.mark.asyncio
    async def test_registered_guest_then_ignored(self, pipeline):
        pipeline.engine.queue("create_member", {
            "name": "Ana Pérez",
            "id_number": "001-1234567-8",
            "collection_point": "Mercado Central",
            "home_address": "Calle 5 #12",
            "referred_by_id": pipeline.referrer.id,
        })
        await pipeline.processor.process(inbound(GUEST_PHONE, n=1))
        result = await pipeline.processor.process(inbound(GUEST_PHONE, n=2))
        assert result.route.kind == "member"
        assert result.handled is False

    @pytest.mark.asyncio
    async def test_failed_registration_keeps_buffer(self, pipeline):
        pipeline.engine.queue("create_member", {
            "name": "Ana Pérez",
            "id_number": "001-1234567-8",
            "collection_point": "Mercado Central",
            "home_address": "Calle 5 #12",
        })
        result = await pipeline.processor.process(inbound(GUEST_PHONE))
        assert result.registered_member_id is None
        assert pipeline.guests.has(GUEST_PHONE) is True
        assert pipeline.backend.member_messages == []

    @pytest.mark.asyncio
    async def test_disallowed_tool_refused(self, pipeline):
        pipeline.engine.queue("create_loan", {
            "member_id": pipeline.member.id, "principal": 1, "term_length": 1,
            "payment_amount": 1, "payment_frequency": "DAILY",
        })
        result = await pipeline.processor.process(inbound(GUEST_PHONE))
        assert pipeline.engine.results[0].success is False
        assert pipeline.engine.results[0].message == replies.TOOL_NOT_ALLOWED.format(
            tool="create_loan"
        )
        assert result.tool_calls == [("create_loan", False)]

    @pytest.mark.asyncio
    async def test_image_message_reaches_engine_as_parts(self, pipeline):
        message = inbound(
            GUEST_PHONE, text=None, type=InboundType.IMAGE,
            image_url="https://img.example/cedula.jpg", caption="mi cédula",
        )
        await pipeline.processor.process(message)
        content = pipeline.engine.requests[0].history[-1].content
        assert [part.type for part in content] == ["text", "image_url"]

    @pytest.mark.asyncio
    async def test_unsupported_media_skipped(self, pipeline):
        result = await pipeline.processor.process(
            inbound(GUEST_PHONE, text=None, type=InboundType.STICKER)
        )
        assert result.handled is False
        assert pipeline.engine.requests == []
        assert GUEST_PHONE not in pipeline.sessions


class TestStaffConversation:
    @pytest.mark.asyncio
    async def test_staff_history_and_session_keyed_by_user_id(self, pipeline):
        await pipeline.processor.process(inbound(COLLECTOR_PHONE, "buenos días", n=1))
        result = await pipeline.processor.process(inbound(COLLECTOR_PHONE, "¿mis préstamos?", n=2))

        user_id = pipeline.collector.id
        assert user_id in pipeline.sessions
        assert COLLECTOR_PHONE not in pipeline.sessions
        assert result.is_new_session is False
        assert len(pipeline.backend.user_history[user_id]) == 4
        assert pipeline.guests.count() == 0

    @pytest.mark.asyncio
    async def test_staff_tools_run_with_staff_context(self, pipeline):
        pipeline.engine.queue("create_payment", {"loan_id": "10000", "amount": "1,500"})
        result = await pipeline.processor.process(inbound(COLLECTOR_PHONE, "pago 1500"))

        assert result.agent == "collections"
        assert pipeline.engine.results[0].success is True
        payment = next(iter(pipeline.backend.payments.values()))
        assert payment["collected_by_id"] == pipeline.collector.id
        assert pipeline.engine.requests[0].context.user_id == pipeline.collector.id


class TestScopedToolExecutor:
    @pytest.mark.asyncio
    async def test_staff_created_member_not_treated_as_registration(self, seeded):
        from lendchat.schemas.lending_schema import StaffRole
        from tests.conftest import staff_context

        dispatcher = ToolDispatcher(seeded.backend.tool_dependencies())
        executor = ScopedToolExecutor(
            dispatcher, get_agent("administration"),
            staff_context(seeded.admin.id, StaffRole.ADMIN),
        )
        result = await executor("create_member", {
            "name": "Luis", "id_number": "1", "collection_point": "x", "home_address": "y",
            "referred_by_id": seeded.referrer.id, "phone": "8295558888",
        })
        assert result.success is True
        assert executor.registered_member_id is None

    @pytest.mark.asyncio
    async def test_guest_registration_recorded(self, seeded):
        dispatcher = ToolDispatcher(seeded.backend.tool_dependencies())
        executor = ScopedToolExecutor(dispatcher, get_agent(ONBOARDING), guest_context())
        result = await executor("create_member", {
            "name": "Luis", "id_number": "1", "collection_point": "x", "home_address": "y",
            "referred_by_id": seeded.referrer.id,
        })
        assert executor.registered_member_id == result.data["member_id"]
