"""
Per-message pipeline: route the sender, run their agent, reply, and keep state.

For each inbound WhatsApp message:
  1. Tag logs with the message id and route the sender.
  2. Ignored senders and members get no reply.
  3. Voice notes get a fixed reply and never reach the agent.
  4. Load history (guest buffer or staff history) and the session flag.
  5. Invoke the agent with tools scoped to its profile.
  6. Store the reply, migrate a guest that just registered, send the
     reply, and touch the session.

Routing failures and engine failures propagate to the caller.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel

from lendchat.agents.registry import AgentProfile, agent_for_route
from lendchat.conversations.guest_store import GuestConversationStore
from lendchat.conversations.migration import AddMessage, migrate_guest_to_database
from lendchat.logging_context import get_message_logger, set_message_id
from lendchat.prompts import replies
from lendchat.routing.router import MessageRouter
from lendchat.schemas.message_schema import ContentPart, ImageUrl, Message, MessageRole
from lendchat.schemas.route_schema import GuestRoute, RouteOutcome, StaffRoute
from lendchat.schemas.tool_schema import ToolContext, ToolResult
from lendchat.sessions.session_store import SessionStore
from lendchat.tools.dispatcher import ToolDispatcher, ToolName
from lendchat.utils import mask_phone

logger = get_message_logger(__name__)


class InboundType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    VOICE = "voice"
    VIDEO = "video"
    DOCUMENT = "document"
    STICKER = "sticker"


class InboundMessage(BaseModel):
    """One message received from the messaging channel."""

    phone: str
    message_id: str
    type: InboundType = InboundType.TEXT
    text: Optional[str] = None
    image_url: Optional[str] = None
    caption: Optional[str] = None

    @property
    def is_voice(self) -> bool:
        return self.type in (InboundType.AUDIO, InboundType.VOICE)

    def to_history_message(self) -> Optional[Message]:
        """Convert to a user turn, or None when there is nothing the agent can read."""
        if self.type == InboundType.TEXT:
            text = (self.text or "").strip()
            return Message(role=MessageRole.USER, content=text) if text else None
        if self.type == InboundType.IMAGE and self.image_url:
            parts = []
            if self.caption:
                parts.append(ContentPart(type="text", text=self.caption))
            parts.append(ContentPart(type="image_url", image_url=ImageUrl(url=self.image_url)))
            return Message(role=MessageRole.USER, content=parts)
        return None


ExecuteTool = Callable[[str, Optional[dict[str, Any]]], Awaitable[ToolResult]]


@dataclass
class AgentRequest:
    """Everything the conversational engine needs for one turn."""

    agent: AgentProfile
    history: list[Message]
    is_new_session: bool
    tools: list[dict[str, Any]]
    execute_tool: ExecuteTool
    context: ToolContext


class ScopedToolExecutor:
    """Executes tool calls for one agent turn.

    Tools outside the agent's profile are refused without reaching the
    dispatcher, and every call carries the sender's ToolContext.
    """

    def __init__(self, dispatcher: ToolDispatcher, agent: AgentProfile, context: ToolContext):
        self.dispatcher = dispatcher
        self.agent = agent
        self.context = context
        self.registered_member_id: Optional[str] = None
        self.calls: list[tuple[str, bool]] = []

    async def __call__(self, tool_name: str, args: Optional[dict[str, Any]] = None) -> ToolResult:
        if not self.agent.allows(tool_name):
            logger.warning("Agent %s tried disallowed tool %s", self.agent.name, tool_name)
            self.calls.append((tool_name, False))
            return ToolResult(
                success=False, message=replies.TOOL_NOT_ALLOWED.format(tool=tool_name)
            )

        result = await self.dispatcher.execute(tool_name, args, self.context)
        self.calls.append((tool_name, result.success))

        if (
            tool_name == ToolName.CREATE_MEMBER.value
            and result.success
            and not self.context.is_staff
            and isinstance(result.data, dict)
        ):
            self.registered_member_id = result.data.get("member_id")
        return result


@dataclass
class ProcessorDependencies:
    """Collaborators supplied by the hosting service.

    invoke_agent(AgentRequest) -> str           reply text for this turn
    send_message(phone=, message=) -> Any       deliver a text reply
    get_user_history(user_id) -> list[Message]  staff conversation history
    add_user_message(user_id, Message) -> Any   append to staff history
    add_member_message(ChatMessageCreate)       persist a migrated guest message
    """

    invoke_agent: Callable[[AgentRequest], Awaitable[str]]
    send_message: Callable[..., Awaitable[Any]]
    get_user_history: Callable[[str], Awaitable[list[Message]]]
    add_user_message: Callable[[str, Message], Awaitable[Any]]
    add_member_message: AddMessage


@dataclass
class ProcessResult:
    route: RouteOutcome
    handled: bool = False
    agent: Optional[str] = None
    reply: Optional[str] = None
    is_new_session: bool = False
    registered_member_id: Optional[str] = None
    migrated: int = 0
    tool_calls: list[tuple[str, bool]] = field(default_factory=list)


class MessageProcessor:
    """Wires routing, sessions, guest buffering, tools, and migration together."""

    def __init__(
        self,
        router: MessageRouter,
        dispatcher: ToolDispatcher,
        deps: ProcessorDependencies,
        sessions: Optional[SessionStore] = None,
        guests: Optional[GuestConversationStore] = None,
    ):
        self.router = router
        self.dispatcher = dispatcher
        self.deps = deps
        self.sessions = sessions if sessions is not None else SessionStore()
        self.guests = guests if guests is not None else GuestConversationStore()

    async def process(self, inbound: InboundMessage) -> ProcessResult:
        set_message_id(inbound.message_id)

        route = await self.router.route(inbound.phone)
        agent = agent_for_route(route)
        if agent is None:
            logger.info(
                "No reply for %s (%s)", mask_phone(route.phone), getattr(route, "reason", route.kind)
            )
            return ProcessResult(route=route)

        phone = route.phone

        if inbound.is_voice:
            logger.info("Voice note from %s answered with fixed reply", mask_phone(phone))
            await self.deps.send_message(phone=phone, message=replies.VOICE_NOT_SUPPORTED)
            return ProcessResult(
                route=route, handled=True, agent=agent.name, reply=replies.VOICE_NOT_SUPPORTED
            )

        user_message = inbound.to_history_message()
        if user_message is None:
            logger.info("Unsupported %s message from %s skipped", inbound.type.value, mask_phone(phone))
            return ProcessResult(route=route, agent=agent.name)

        session_key = _session_key(route)
        is_new = self.sessions.is_new_session(session_key)
        history = await self._record_user_turn(route, user_message)

        context = _tool_context(route)
        executor = ScopedToolExecutor(self.dispatcher, agent, context)
        request = AgentRequest(
            agent=agent,
            history=history,
            is_new_session=is_new,
            tools=self.dispatcher.tool_schemas(agent.tool_names),
            execute_tool=executor,
            context=context,
        )
        logger.info(
            "Invoking agent %s for %s (new_session=%s, history=%d)",
            agent.name, mask_phone(phone), is_new, len(history),
        )
        migrated = 0
        try:
            reply = await self.deps.invoke_agent(request)
            await self._record_reply(route, reply)
        finally:
            # Drained even when the engine fails after create_member succeeded.
            if isinstance(route, GuestRoute) and executor.registered_member_id:
                migrated = await migrate_guest_to_database(
                    self.guests, phone, executor.registered_member_id, self.deps.add_member_message
                )

        if reply:
            await self.deps.send_message(phone=phone, message=reply)
        self.sessions.touch(session_key)

        return ProcessResult(
            route=route,
            handled=True,
            agent=agent.name,
            reply=reply,
            is_new_session=is_new,
            registered_member_id=executor.registered_member_id,
            migrated=migrated,
            tool_calls=executor.calls,
        )

    async def _record_user_turn(
        self, route: Union[GuestRoute, StaffRoute], message: Message
    ) -> list[Message]:
        if isinstance(route, StaffRoute):
            history = list(await self.deps.get_user_history(route.user_id))
            await self.deps.add_user_message(route.user_id, message)
            history.append(message)
            return history
        self.guests.append(route.phone, message)
        return self.guests.get(route.phone)

    async def _record_reply(self, route: Union[GuestRoute, StaffRoute], reply: str) -> None:
        if not reply:
            return
        message = Message(role=MessageRole.ASSISTANT, content=reply)
        if isinstance(route, StaffRoute):
            await self.deps.add_user_message(route.user_id, message)
        else:
            self.guests.append(route.phone, message)


def _session_key(route: Union[GuestRoute, StaffRoute]) -> str:
    return route.user_id if isinstance(route, StaffRoute) else route.phone


def _tool_context(route: Union[GuestRoute, StaffRoute]) -> ToolContext:
    if isinstance(route, StaffRoute):
        return ToolContext(phone=route.phone, user_id=route.user_id, role=route.role)
    return ToolContext(phone=route.phone)
