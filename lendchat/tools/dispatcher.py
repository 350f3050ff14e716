"""
Tool dispatcher — the single boundary between the model and the business tools.

Tool names form a closed set. Each entry pairs a pydantic argument model
with an async handler; arguments are validated before the handler runs
and identity always comes from the ToolContext, never from the arguments.
``execute`` never raises: every failure becomes a ``ToolResult`` with
``success=False`` and a Spanish message.
"""

import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from pydantic import BaseModel, ValidationError

from lendchat.prompts import replies
from lendchat.schemas.tool_schema import ToolContext, ToolResult
from lendchat.tools import loans, members, payments
from lendchat.tools.arguments import (
    CreateLoanArgs,
    CreateMemberArgs,
    CreatePaymentArgs,
    GetMemberArgs,
    ListLoansByCollectorArgs,
    ListLoansByMemberArgs,
    ListPaymentsArgs,
    ListUsersArgs,
    LoanNumberArgs,
    MemberLoansByPhoneArgs,
    MemberPhoneArgs,
    SendReceiptArgs,
    UpdateLoanStatusArgs,
)
from lendchat.tools.dependencies import ToolDependencies

logger = logging.getLogger(__name__)

ToolHandler = Callable[
    [ToolDependencies, BaseModel, Optional[ToolContext]], Awaitable[ToolResult]
]


class ToolName(str, Enum):
    CREATE_MEMBER = "create_member"
    LIST_USERS = "list_users"
    GET_MEMBER = "get_member"
    GET_MEMBER_BY_PHONE = "get_member_by_phone"
    CREATE_LOAN = "create_loan"
    GET_LOAN_BY_LOAN_ID = "get_loan_by_loan_id"
    LIST_LOANS_BY_COLLECTOR = "list_loans_by_collector"
    LIST_LOANS_BY_MEMBER = "list_loans_by_member"
    LIST_MEMBER_LOANS_BY_PHONE = "list_member_loans_by_phone"
    UPDATE_LOAN_STATUS = "update_loan_status"
    CREATE_PAYMENT = "create_payment"
    LIST_PAYMENTS_BY_LOAN_ID = "list_payments_by_loan_id"
    SEND_RECEIPT = "send_receipt"


_REGISTRY: dict[ToolName, tuple[ToolHandler, type[BaseModel]]] = {
    ToolName.CREATE_MEMBER: (members.create_member, CreateMemberArgs),
    ToolName.LIST_USERS: (members.list_users, ListUsersArgs),
    ToolName.GET_MEMBER: (members.get_member, GetMemberArgs),
    ToolName.GET_MEMBER_BY_PHONE: (members.get_member_by_phone, MemberPhoneArgs),
    ToolName.CREATE_LOAN: (loans.create_loan, CreateLoanArgs),
    ToolName.GET_LOAN_BY_LOAN_ID: (loans.get_loan_by_loan_id, LoanNumberArgs),
    ToolName.LIST_LOANS_BY_COLLECTOR: (loans.list_loans_by_collector, ListLoansByCollectorArgs),
    ToolName.LIST_LOANS_BY_MEMBER: (loans.list_loans_by_member, ListLoansByMemberArgs),
    ToolName.LIST_MEMBER_LOANS_BY_PHONE: (
        loans.list_member_loans_by_phone,
        MemberLoansByPhoneArgs,
    ),
    ToolName.UPDATE_LOAN_STATUS: (loans.update_loan_status, UpdateLoanStatusArgs),
    ToolName.CREATE_PAYMENT: (payments.create_payment, CreatePaymentArgs),
    ToolName.LIST_PAYMENTS_BY_LOAN_ID: (payments.list_payments_by_loan_id, ListPaymentsArgs),
    ToolName.SEND_RECEIPT: (payments.send_receipt, SendReceiptArgs),
}


def resolve_tool_name(name: Union[str, ToolName]) -> Optional[ToolName]:
    """Map a raw tool name to the closed set, or None when it is unknown."""
    if isinstance(name, ToolName):
        return name
    try:
        return ToolName(name)
    except ValueError:
        return None


def _coerce_args(args: Any) -> dict[str, Any]:
    if args is None:
        return {}
    if isinstance(args, str):
        args = json.loads(args) if args.strip() else {}
    if not isinstance(args, dict):
        raise TypeError(f"Tool arguments must be an object, got {type(args).__name__}")
    return args


def _coerce_context(context: Any) -> Optional[ToolContext]:
    if context is None or isinstance(context, ToolContext):
        return context
    return ToolContext.model_validate(context)


def _validation_errors(exc: ValidationError) -> list[tuple[str, str]]:
    return [
        (
            ".".join(str(part) for part in error["loc"]) or "args",
            replies.describe_validation_error(error["type"]),
        )
        for error in exc.errors()
    ]


def build_tool_schema(name: ToolName) -> dict[str, Any]:
    """Function-calling schema for one tool, derived from its argument model."""
    _, model = _REGISTRY[name]
    parameters = model.model_json_schema()
    parameters.pop("title", None)
    return {
        "type": "function",
        "function": {
            "name": name.value,
            "description": (model.__doc__ or name.value).strip(),
            "parameters": parameters,
        },
    }


class ToolDispatcher:
    """Validates and executes tool calls against injected business capabilities."""

    def __init__(self, deps: ToolDependencies) -> None:
        self.deps = deps

    @property
    def tool_names(self) -> list[ToolName]:
        return list(_REGISTRY.keys())

    def tool_schemas(self, names: Optional[Iterable[Union[str, ToolName]]] = None) -> list[dict[str, Any]]:
        """Schemas for ``names`` (all tools when None). Unknown names are skipped."""
        if names is None:
            selected = self.tool_names
        else:
            selected = [n for n in (resolve_tool_name(raw) for raw in names) if n is not None]
        return [build_tool_schema(name) for name in selected]

    async def execute(
        self,
        tool_name: Union[str, ToolName],
        args: Any = None,
        context: Any = None,
    ) -> ToolResult:
        name = resolve_tool_name(tool_name)
        if name is None:
            logger.warning("Unknown tool requested: %s", tool_name)
            return ToolResult(success=False, message=replies.UNKNOWN_TOOL.format(tool=tool_name))

        handler, model = _REGISTRY[name]

        try:
            tool_context = _coerce_context(context)
        except ValidationError:
            logger.warning("Invalid tool context for %s", name.value)
            return ToolResult(success=False, message=replies.INVALID_CONTEXT)

        try:
            parsed = model.model_validate(_coerce_args(args))
        except ValidationError as e:
            logger.info("Invalid arguments for %s: %d error(s)", name.value, e.error_count())
            return ToolResult(
                success=False,
                message=replies.build_invalid_arguments(name.value, _validation_errors(e)),
            )
        except (TypeError, ValueError) as e:
            logger.info("Malformed arguments for %s: %s", name.value, e)
            return ToolResult(success=False, message=replies.build_malformed_arguments(name.value))

        try:
            result = await handler(self.deps, parsed, tool_context)
        except Exception as e:
            logger.error("Tool %s failed: %s", name.value, e, exc_info=True)
            return ToolResult(success=False, message=replies.TOOL_FAILED.format(tool=name.value))

        logger.debug("Tool %s finished (success=%s)", name.value, result.success)
        return result
