from lendchat.conversation.message_processor import (
    AgentRequest,
    InboundMessage,
    InboundType,
    MessageProcessor,
    ProcessorDependencies,
    ProcessResult,
    ScopedToolExecutor,
)

__all__ = [
    "MessageProcessor",
    "ProcessorDependencies",
    "ProcessResult",
    "InboundMessage",
    "InboundType",
    "AgentRequest",
    "ScopedToolExecutor",
]
