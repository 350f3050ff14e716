"""Payment tools: registering collections, payment history, and receipts."""

import logging
from typing import Optional

from lendchat.prompts import replies
from lendchat.schemas.lending_schema import LoanStatus
from lendchat.schemas.tool_schema import ToolContext, ToolResult
from lendchat.tools.arguments import (
    DEFAULT_PAYMENTS_LIMIT,
    MAX_PAYMENTS_LIMIT,
    CreatePaymentArgs,
    ListPaymentsArgs,
    SendReceiptArgs,
    parse_loan_number,
    parse_positive_amount,
)
from lendchat.tools.dependencies import ToolDependencies
from lendchat.tools.guards import require_phone, require_staff, require_user_id
from lendchat.utils import is_uuid

logger = logging.getLogger(__name__)


def _parse_limit(raw: object) -> Optional[int]:
    if raw is None:
        return DEFAULT_PAYMENTS_LIMIT
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str) and raw.strip().isdigit():
        value = int(raw.strip())
    else:
        return None
    if value < 1 or value > MAX_PAYMENTS_LIMIT:
        return None
    return value


async def create_payment(
    deps: ToolDependencies, args: CreatePaymentArgs, context: Optional[ToolContext]
) -> ToolResult:
    """Register a payment against an active loan.

    Only the collector assigned to the loan may register it, unless the
    requester is an admin. The payment is kept even when the receipt
    cannot be generated; the result then reports the receipt as pending.
    """
    denied = require_user_id(context)
    if denied:
        return denied

    loan_number = parse_loan_number(args.loan_id)
    if loan_number is None:
        return ToolResult(
            success=False, message=replies.INVALID_LOAN_NUMBER.format(raw=args.loan_id)
        )

    loan = await deps.require("get_loan_by_loan_id")(loan_id=loan_number)
    if loan is None:
        return ToolResult(
            success=False, message=replies.LOAN_NOT_FOUND.format(loan_id=loan_number)
        )

    if loan.status != LoanStatus.ACTIVE:
        return ToolResult(
            success=False,
            message=replies.LOAN_NOT_ACTIVE.format(
                loan_id=loan_number, status=loan.status.value
            ),
        )

    if not context.is_admin:
        collector_id = loan.member.assigned_collector_id
        if not collector_id:
            return ToolResult(success=False, message=replies.LOAN_WITHOUT_COLLECTOR)
        if collector_id != context.user_id:
            logger.warning(
                "Collector %s tried to register a payment on loan %d owned by %s",
                context.user_id, loan_number, collector_id,
            )
            return ToolResult(success=False, message=replies.LOAN_NOT_OWNED)

    amount = parse_positive_amount(args.amount)
    if amount is None:
        return ToolResult(success=False, message=replies.INVALID_AMOUNT.format(raw=args.amount))

    payment = await deps.require("create_payment")(
        loan_id=loan_number,
        amount=amount,
        collected_by_id=context.user_id,
        notes=args.notes,
    )
    logger.info(
        "Payment %s registered on loan %d by %s", payment.id, loan_number, context.user_id
    )

    try:
        receipt = await deps.require("generate_receipt")(payment_id=payment.id)
    except Exception:
        logger.exception("Receipt generation failed for payment %s", payment.id)
        return ToolResult(
            success=True,
            message=replies.PAYMENT_RECEIPT_PENDING.format(payment_id=payment.id),
            data={"payment_id": payment.id, "receipt_pending": True},
        )

    return ToolResult(
        success=True,
        message=replies.PAYMENT_OK,
        data={
            "payment_id": payment.id,
            "amount": payment.amount,
            "loan_id": loan_number,
            "member": loan.member.model_dump(mode="json"),
            "receipt": receipt.model_dump(mode="json"),
        },
    )


async def list_payments_by_loan_id(
    deps: ToolDependencies, args: ListPaymentsArgs, context: Optional[ToolContext]
) -> ToolResult:
    denied = require_staff(context)
    if denied:
        return denied

    loan_number = parse_loan_number(args.loan_id)
    if loan_number is None:
        return ToolResult(
            success=False, message=replies.INVALID_LOAN_NUMBER.format(raw=args.loan_id)
        )

    limit = _parse_limit(args.limit)
    if limit is None:
        return ToolResult(
            success=False,
            message=replies.INVALID_LIMIT.format(raw=args.limit, maximum=MAX_PAYMENTS_LIMIT),
        )

    payments = await deps.require("list_payments_by_loan_id")(loan_id=loan_number, limit=limit)
    payments = sorted(payments, key=lambda p: p.paid_at, reverse=True)[:limit]
    lines = [
        replies.build_payment_line(payment, is_last=(i == 0))
        for i, payment in enumerate(payments)
    ]
    return ToolResult(
        success=True,
        message=replies.build_payments_summary(loan_number, payments),
        data={
            "loan_id": loan_number,
            "payments": [p.model_dump(mode="json") for p in payments],
            "lines": lines,
        },
    )


async def send_receipt(
    deps: ToolDependencies, args: SendReceiptArgs, context: Optional[ToolContext]
) -> ToolResult:
    if not is_uuid(args.payment_id):
        return ToolResult(
            success=False, message=replies.INVALID_PAYMENT_ID.format(raw=args.payment_id)
        )

    denied = require_phone(context)
    if denied:
        return denied

    delivery = await deps.require("send_receipt_via_whatsapp")(
        payment_id=args.payment_id, phone=context.phone
    )
    if not delivery.success:
        logger.warning("Receipt %s was not delivered: %s", args.payment_id, delivery.error)
        return ToolResult(
            success=False,
            message=replies.RECEIPT_FAILED.format(error=delivery.error or "desconocido"),
        )

    return ToolResult(
        success=True,
        message=replies.RECEIPT_SENT,
        data={"message_id": delivery.message_id, "image_url": delivery.image_url},
    )
