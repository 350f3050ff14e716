"""
Agent registry — which agent answers which sender, and with which tools.

Each profile names the tools its agent may call. The message processor
looks the profile up from the routing outcome and refuses any tool call
outside the profile before it reaches the dispatcher.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from lendchat.schemas.lending_schema import StaffRole
from lendchat.schemas.route_schema import GuestRoute, RouteOutcome, StaffRoute
from lendchat.tools.dispatcher import ToolName

logger = logging.getLogger(__name__)

ONBOARDING = "onboarding"
COLLECTIONS = "collections"
ADMINISTRATION = "administration"


@dataclass(frozen=True)
class AgentProfile:
    name: str
    allowed_tools: frozenset[ToolName]
    description: str = ""

    def allows(self, tool_name: str) -> bool:
        return any(tool.value == tool_name for tool in self.allowed_tools)

    @property
    def tool_names(self) -> list[str]:
        return sorted(tool.value for tool in self.allowed_tools)


_AGENT_REGISTRY: dict[str, AgentProfile] = {}

_ROLE_AGENTS: dict[StaffRole, str] = {
    StaffRole.ADMIN: ADMINISTRATION,
    StaffRole.COLLECTOR: COLLECTIONS,
    StaffRole.REFERRER: COLLECTIONS,
}


def register_agent(profile: AgentProfile) -> None:
    """Register an agent profile by name, replacing any previous one."""
    _AGENT_REGISTRY[profile.name] = profile
    logger.debug("Agent registered: %s (%d tools)", profile.name, len(profile.allowed_tools))


def get_agent(name: str) -> AgentProfile:
    """Return a registered profile.

    Raises:
        KeyError: If the agent name is not registered.
    """
    if name not in _AGENT_REGISTRY:
        registered = list(_AGENT_REGISTRY.keys())
        raise KeyError(f"Agent '{name}' not registered. Available: {registered}")
    return _AGENT_REGISTRY[name]


def get_registered_agents() -> list[str]:
    """Return names of all registered agents."""
    return list(_AGENT_REGISTRY.keys())


def agent_for_route(route: RouteOutcome) -> Optional[AgentProfile]:
    """Pick the agent for a routing outcome. Ignored senders get none."""
    if route.is_ignored:
        return None
    if isinstance(route, GuestRoute):
        return get_agent(ONBOARDING)
    if isinstance(route, StaffRoute):
        return get_agent(_ROLE_AGENTS[route.role])
    return None


_LOOKUP_TOOLS = frozenset({
    ToolName.GET_MEMBER,
    ToolName.GET_MEMBER_BY_PHONE,
    ToolName.GET_LOAN_BY_LOAN_ID,
    ToolName.LIST_LOANS_BY_MEMBER,
    ToolName.LIST_MEMBER_LOANS_BY_PHONE,
    ToolName.LIST_PAYMENTS_BY_LOAN_ID,
})


def _auto_register() -> None:
    """Register the built-in agents. Called once at import time."""
    register_agent(AgentProfile(
        name=ONBOARDING,
        allowed_tools=frozenset({ToolName.CREATE_MEMBER, ToolName.LIST_USERS}),
        description="Registra a personas nuevas que escriben por primera vez.",
    ))
    register_agent(AgentProfile(
        name=COLLECTIONS,
        allowed_tools=_LOOKUP_TOOLS | {
            ToolName.CREATE_PAYMENT,
            ToolName.SEND_RECEIPT,
            ToolName.LIST_LOANS_BY_COLLECTOR,
        },
        description="Asiste a los cobradores con pagos, recibos y consultas de préstamos.",
    ))
    register_agent(AgentProfile(
        name=ADMINISTRATION,
        allowed_tools=_LOOKUP_TOOLS | {
            ToolName.CREATE_MEMBER,
            ToolName.CREATE_LOAN,
            ToolName.UPDATE_LOAN_STATUS,
            ToolName.LIST_USERS,
        },
        description="Asiste a los administradores con miembros y préstamos.",
    ))


_auto_register()
