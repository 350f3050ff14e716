"""Loan tools: creation, lookup by loan number, listings, and status updates."""

import logging
from typing import Optional

from lendchat.prompts import replies
from lendchat.schemas.tool_schema import ToolContext, ToolResult
from lendchat.tools.arguments import (
    CreateLoanArgs,
    ListLoansByCollectorArgs,
    ListLoansByMemberArgs,
    LoanNumberArgs,
    MemberLoansByPhoneArgs,
    UpdateLoanStatusArgs,
    parse_loan_number,
)
from lendchat.tools.dependencies import ToolDependencies
from lendchat.tools.guards import require_admin, require_staff, require_user_id
from lendchat.utils import InvalidPhoneError, to_canonical_phone

logger = logging.getLogger(__name__)


def _invalid_loan_number(raw: object) -> ToolResult:
    return ToolResult(success=False, message=replies.INVALID_LOAN_NUMBER.format(raw=raw))


async def create_loan(
    deps: ToolDependencies, args: CreateLoanArgs, context: Optional[ToolContext]
) -> ToolResult:
    denied = require_admin(context)
    if denied:
        return denied

    loan = await deps.require("create_loan")(
        member_id=args.member_id,
        principal=args.principal,
        term_length=args.term_length,
        payment_amount=args.payment_amount,
        payment_frequency=args.payment_frequency,
    )
    logger.info("Loan %d created via tool for member %s", loan.loan_id, args.member_id)
    return ToolResult(
        success=True,
        message=f"Préstamo creado con número {loan.loan_id}.",
        data={"loan_id": loan.loan_id, "id": loan.id},
    )


async def get_loan_by_loan_id(
    deps: ToolDependencies, args: LoanNumberArgs, context: Optional[ToolContext]
) -> ToolResult:
    denied = require_staff(context)
    if denied:
        return denied

    loan_number = parse_loan_number(args.loan_id)
    if loan_number is None:
        return _invalid_loan_number(args.loan_id)

    loan = await deps.require("get_loan_by_loan_id")(loan_id=loan_number)
    if loan is None:
        return ToolResult(
            success=False, message=replies.LOAN_NOT_FOUND.format(loan_id=loan_number)
        )

    logger.debug("Loan %d retrieved via tool (member=%s)", loan.loan_id, loan.member.id)
    return ToolResult(
        success=True,
        message=replies.LOAN_FOUND,
        data={
            "loan": loan.model_dump(mode="json", exclude={"member"}),
            "member": loan.member.model_dump(mode="json"),
        },
    )


async def list_loans_by_collector(
    deps: ToolDependencies, args: ListLoansByCollectorArgs, context: Optional[ToolContext]
) -> ToolResult:
    denied = require_user_id(context)
    if denied:
        return denied

    loans = await deps.require("list_loans_by_collector")(
        assigned_collector_id=context.user_id,
        show_all=args.show_all,
    )
    logger.debug("Loans listed via tool for collector %s: %d", context.user_id, len(loans))
    return ToolResult(
        success=True,
        message=replies.build_loans_found(len(loans)),
        data={"loans": [loan.model_dump(mode="json") for loan in loans]},
    )


async def list_loans_by_member(
    deps: ToolDependencies, args: ListLoansByMemberArgs, context: Optional[ToolContext]
) -> ToolResult:
    denied = require_staff(context)
    if denied:
        return denied

    loans = await deps.require("list_loans_by_member")(
        member_id=args.member_id,
        show_all=args.show_all,
    )
    return ToolResult(
        success=True,
        message=replies.build_loans_found(len(loans), "el miembro"),
        data={"loans": [loan.model_dump(mode="json") for loan in loans]},
    )


async def list_member_loans_by_phone(
    deps: ToolDependencies, args: MemberLoansByPhoneArgs, context: Optional[ToolContext]
) -> ToolResult:
    denied = require_staff(context)
    if denied:
        return denied

    try:
        phone = to_canonical_phone(args.phone)
    except InvalidPhoneError:
        return ToolResult(success=False, message=replies.INVALID_PHONE.format(phone=args.phone))

    member = await deps.require("get_member_by_phone")(phone=phone)
    if member is None:
        return ToolResult(
            success=False, message=replies.MEMBER_NOT_FOUND_BY_PHONE.format(phone=args.phone)
        )

    loans = await deps.require("list_loans_by_member")(
        member_id=member.id,
        show_all=args.show_all,
    )
    return ToolResult(
        success=True,
        message=replies.build_loans_found(len(loans), member.name),
        data={
            "member": member.model_dump(mode="json"),
            "loans": [loan.model_dump(mode="json") for loan in loans],
        },
    )


async def update_loan_status(
    deps: ToolDependencies, args: UpdateLoanStatusArgs, context: Optional[ToolContext]
) -> ToolResult:
    denied = require_admin(context)
    if denied:
        return denied

    loan_number = parse_loan_number(args.loan_id)
    if loan_number is None:
        return _invalid_loan_number(args.loan_id)

    result = await deps.require("update_loan_status")(loan_id=loan_number, status=args.status)
    logger.info("Loan %d status updated via tool to %s", result.loan_id, result.status.value)
    return ToolResult(
        success=True,
        message=(
            f"Estado del préstamo #{result.loan_id} actualizado a {result.status.value}."
        ),
        data={"id": result.id, "loan_id": result.loan_id, "status": result.status.value},
    )
