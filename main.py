"""
Lending agents entry point.

Wires the identity router, session tracker, guest buffer, tool dispatcher
and message processor over a lending backend. The hosting service provides
the conversational engine (``invoke_agent``) and the WhatsApp client; the
console mode runs everything offline against the in-memory backend.

Usage:
    Console mode:   python main.py console
    Scripted demo:  python main.py console --scenario onboarding
"""

import logging
import sys
from typing import Awaitable, Callable, Optional

from lendchat.backends.in_memory import InMemoryLendingBackend
from lendchat.config import settings
from lendchat.conversation.message_processor import (
    AgentRequest,
    MessageProcessor,
    ProcessorDependencies,
)
from lendchat.conversations.guest_store import GuestConversationStore
from lendchat.routing.router import MessageRouter
from lendchat.sessions.session_store import SessionStore
from lendchat.tools.dispatcher import ToolDispatcher

logger = logging.getLogger(__name__)


def build_processor(
    backend: InMemoryLendingBackend,
    invoke_agent: Callable[[AgentRequest], Awaitable[str]],
    sessions: Optional[SessionStore] = None,
    guests: Optional[GuestConversationStore] = None,
) -> MessageProcessor:
    """Build a MessageProcessor whose collaborators all come from ``backend``."""
    router = MessageRouter(
        get_member_by_phone=backend.get_member_by_phone,
        get_user_by_phone=backend.get_user_by_phone,
    )
    dispatcher = ToolDispatcher(backend.tool_dependencies())
    deps = ProcessorDependencies(
        invoke_agent=invoke_agent,
        send_message=backend.send_message,
        get_user_history=backend.get_user_history,
        add_user_message=backend.add_user_message,
        add_member_message=backend.add_member_message,
    )
    logger.info(
        "Message processor ready for '%s' (%d tool capabilities)",
        settings.service_name, len(dispatcher.deps.available()),
    )
    return MessageProcessor(router, dispatcher, deps, sessions=sessions, guests=guests)


def _run_console_mode(argv: list[str]) -> None:
    """Start the offline console demo (no external services required)."""
    from console_demo import main as console_main

    console_main(argv)


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "console":
        _run_console_mode(sys.argv[2:])
    else:
        print(__doc__)
        sys.exit(2)
