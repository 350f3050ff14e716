from lendchat.agents.registry import (
    AgentProfile,
    agent_for_route,
    get_agent,
    get_registered_agents,
    register_agent,
)

__all__ = [
    "AgentProfile", "agent_for_route",
    "get_agent", "get_registered_agents", "register_agent",
]
