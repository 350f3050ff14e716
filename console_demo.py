"""
Offline console demo — runs WhatsApp conversations without any API keys.

Uses the real router, session tracker, guest buffer, tool dispatcher,
migrator and message processor over the in-memory lending backend. The
language model is replaced by ScriptedAgent, which replays tool calls
planned by the scenario (or typed as ``/tool name {json}``).

Usage:
    python console_demo.py
    python console_demo.py --scenario onboarding
    python console_demo.py --scenario collections
    python console_demo.py --scenario voice
"""

import argparse
import asyncio
import json
from typing import Any, Callable, Optional, Union

from lendchat.backends.in_memory import InMemoryLendingBackend
from lendchat.conversation.message_processor import (
    AgentRequest,
    InboundMessage,
    InboundType,
    ProcessResult,
)
from lendchat.schemas.lending_schema import PaymentFrequency, StaffRole
from lendchat.schemas.message_schema import MessageRole
from lendchat.schemas.tool_schema import ToolResult
from main import build_processor

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

GREETINGS = {
    "onboarding": "¡Hola! Bienvenido. Te ayudo a registrarte para solicitar tu préstamo.",
    "collections": "¡Hola! ¿Qué cobro quieres registrar hoy?",
    "administration": "¡Hola! ¿Qué necesitas gestionar hoy?",
}

GUEST_PHONE = "829-555-0101"
COLLECTOR_PHONE = "809-555-0202"
ADMIN_PHONE = "849-555-0303"

PlannedArgs = Union[dict[str, Any], Callable[[Optional[ToolResult]], dict[str, Any]]]


class ScriptedAgent:
    """Stands in for the language model by replaying planned tool calls."""

    def __init__(self) -> None:
        self._planned: list[tuple[str, PlannedArgs]] = []
        self.last_result: Optional[ToolResult] = None

    def plan(self, tool_name: str, args: PlannedArgs) -> None:
        self._planned.append((tool_name, args))

    async def __call__(self, request: AgentRequest) -> str:
        parts: list[str] = []
        if request.is_new_session:
            parts.append(GREETINGS.get(request.agent.name, "¡Hola!"))

        last = request.history[-1] if request.history else None
        if last is not None and last.role == MessageRole.USER and isinstance(last.content, str):
            typed = _parse_tool_command(last.content)
            if typed:
                self._planned.append(typed)

        while self._planned:
            tool_name, args = self._planned.pop(0)
            resolved = args(self.last_result) if callable(args) else args
            result = await request.execute_tool(tool_name, resolved)
            self.last_result = result
            parts.append(result.message)

        if not parts:
            parts.append("Entendido. ¿En qué más puedo ayudarte?")
        return "\n".join(parts)


def _parse_tool_command(text: str) -> Optional[tuple[str, dict[str, Any]]]:
    if not text.startswith("/tool "):
        return None
    _, _, rest = text.partition(" ")
    name, _, raw_args = rest.strip().partition(" ")
    try:
        args = json.loads(raw_args) if raw_args.strip() else {}
    except json.JSONDecodeError:
        args = {"raw": raw_args}
    return name, args


def seed_backend() -> tuple[InMemoryLendingBackend, dict[str, str]]:
    """Demo data: one admin, one collector, one referrer, and a member with a loan."""
    backend = InMemoryLendingBackend()
    admin = backend.add_staff("Laura Admin", "+18495550303", [StaffRole.ADMIN])
    collector = backend.add_staff("Juan Cobrador", "+18095550202", [StaffRole.COLLECTOR])
    referrer = backend.add_staff("Pedro Gómez", "+18095550404", [StaffRole.REFERRER])
    member = backend.add_member("María Rodríguez", "+18095551111", assigned_collector_id=collector.id)
    loan = backend.add_loan(
        member.id, principal=10000, payment_amount=1500,
        payment_frequency=PaymentFrequency.WEEKLY,
    )
    ids = {
        "admin": admin.id,
        "collector": collector.id,
        "referrer": referrer.id,
        "member": member.id,
        "loan": str(loan.loan_id),
    }
    return backend, ids


class ConsoleSession:
    """Drives the message processor from the terminal."""

    def __init__(self) -> None:
        self.backend, self.ids = seed_backend()
        self.agent = ScriptedAgent()
        self.processor = build_processor(self.backend, self.agent)
        self._message_count = 0

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def send(
        self,
        phone: str,
        text: Optional[str] = None,
        type: InboundType = InboundType.TEXT,
    ) -> ProcessResult:
        self._message_count += 1
        print(f"\n{BLUE}[{phone}] {RESET}{text if text is not None else '<' + type.value + '>'}")
        inbound = InboundMessage(
            phone=phone,
            message_id=f"wamid.demo{self._message_count:04d}",
            type=type,
            text=text,
        )
        result = asyncio.run(self.processor.process(inbound))
        self._show(result)
        return result

    def _show(self, result: ProcessResult) -> None:
        if not result.handled:
            reason = getattr(result.route, "reason", result.route.kind)
            self.system_log(f"Route: {result.route.kind} (no reply: {reason})")
            return
        print(f"{GREEN}{BOLD}[{result.agent}]{RESET} {GREEN}{result.reply}{RESET}")
        calls = ", ".join(f"{name}={'ok' if ok else 'failed'}" for name, ok in result.tool_calls)
        self.system_log(
            f"Route: {result.route.kind} | new session: {result.is_new_session}"
            + (f" | tools: {calls}" if calls else "")
        )
        if result.registered_member_id:
            self.system_log(
                f"Registered member {result.registered_member_id}, "
                f"migrated {result.migrated} messages"
            )

    # -- scenarios ----------------------------------------------------------

    def _scenario_onboarding(self) -> None:
        self.send(GUEST_PHONE, "Hola, quiero información sobre los préstamos")
        self.agent.plan("list_users", {"role": "REFERRER"})
        self.send(GUEST_PHONE, "Me llamo Ana Pérez, me refirió Pedro")
        self.agent.plan("create_member", {
            "name": "Ana Pérez",
            "id_number": "001-1234567-8",
            "collection_point": "Mercado Central",
            "home_address": "Calle 5 #12, Santiago",
            "referred_by_id": self.ids["referrer"],
        })
        self.send(GUEST_PHONE, "Sí, Pedro Gómez. Mi cédula es 001-1234567-8")
        self.send(GUEST_PHONE, "¿Cuándo me llaman?")

    def _scenario_collections(self) -> None:
        self.agent.plan("list_loans_by_collector", {})
        self.send(COLLECTOR_PHONE, "Buenos días")
        self.agent.plan("create_payment", {"loan_id": self.ids["loan"], "amount": "1,500"})
        self.send(COLLECTOR_PHONE, f"María pagó 1,500 del préstamo {self.ids['loan']}")
        self.agent.plan(
            "send_receipt",
            lambda last: {"payment_id": (last.data or {}).get("payment_id", "") if last else ""},
        )
        self.send(COLLECTOR_PHONE, "Envíame el recibo")
        self.agent.plan("create_loan", {
            "member_id": self.ids["member"], "principal": 5000,
            "term_length": 8, "payment_amount": 750, "payment_frequency": "WEEKLY",
        })
        self.send(COLLECTOR_PHONE, "Crea un préstamo nuevo para María")

    def _scenario_voice(self) -> None:
        self.send(GUEST_PHONE, type=InboundType.VOICE)
        self.send("+18095551111", "Hola, soy María")

    SCENARIOS = {
        "onboarding": _scenario_onboarding,
        "collections": _scenario_collections,
        "voice": _scenario_voice,
    }

    def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        play = self.SCENARIOS.get(scenario)
        if play is None:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  LENDCHAT AGENTS - Scenario: {scenario}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        play(self)
        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        print(f"{DIM}  Persisted member messages: {len(self.backend.member_messages)}{RESET}")
        print(f"{DIM}  Outbound WhatsApp messages: {len(self.backend.outbox)}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    def run(self) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  LENDCHAT AGENTS - Console Demo{RESET}")
        print(f"{BOLD}  Format: <phone>: <message>   e.g. {GUEST_PHONE}: hola{RESET}")
        print(f"{BOLD}  Tools:  <phone>: /tool <name> {{json args}}{RESET}")
        print(f"{BOLD}  Staff:  collector {COLLECTOR_PHONE}, admin {ADMIN_PHONE}{RESET}")
        print(f"{BOLD}  Type 'quit' to exit{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

        while True:
            line = input(f"\n{BLUE}> {RESET}").strip()
            if not line:
                continue
            if line.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Session ended.{RESET}")
                return
            phone, sep, text = line.partition(":")
            if not sep or not text.strip():
                print(f"{YELLOW}Use <phone>: <message>{RESET}")
                continue
            try:
                self.send(phone.strip(), text.strip())
            except ValueError as e:
                print(f"{RED}{e}{RESET}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args(argv)

    session = ConsoleSession()
    if args.scenario:
        session.run_scenario(args.scenario)
    else:
        session.run()


if __name__ == "__main__":
    main()
