"""
Business capabilities injected into the tool dispatcher.

Each capability is an async callable provided by the persistence / API
layer (outside this package). The dispatcher treats them as opaque and
calls them with keyword arguments.
"""

from dataclasses import dataclass, fields
from typing import Any, Awaitable, Callable, Optional

AsyncCapability = Callable[..., Awaitable[Any]]


class MissingDependencyError(RuntimeError):
    """Raised when a tool needs a capability that was not provided."""


@dataclass
class ToolDependencies:
    """Async capabilities available to tool handlers.

    Signatures (all keyword arguments):
        create_member(name, phone, id_number, collection_point, home_address,
                      referred_by_id, assigned_collector_id, job_position,
                      income, is_business_owner) -> MemberRecord
        list_users(role) -> list[StaffRecord]
        get_member(member_id) -> MemberRecord | None
        get_member_by_phone(phone) -> MemberRecord | None
        create_loan(member_id, principal, term_length, payment_amount,
                    payment_frequency) -> CreatedLoan
        get_loan_by_loan_id(loan_id) -> LoanDetail | None
        list_loans_by_collector(assigned_collector_id, show_all) -> list[LoanSummary]
        list_loans_by_member(member_id, show_all) -> list[LoanSummary]
        update_loan_status(loan_id, status) -> UpdatedLoan
        create_payment(loan_id, amount, collected_by_id, notes) -> CreatedPayment
        generate_receipt(payment_id) -> Receipt
        list_payments_by_loan_id(loan_id, limit) -> list[PaymentRecord]
        send_receipt_via_whatsapp(payment_id, phone) -> ReceiptDelivery
    """

    create_member: Optional[AsyncCapability] = None
    list_users: Optional[AsyncCapability] = None
    get_member: Optional[AsyncCapability] = None
    get_member_by_phone: Optional[AsyncCapability] = None
    create_loan: Optional[AsyncCapability] = None
    get_loan_by_loan_id: Optional[AsyncCapability] = None
    list_loans_by_collector: Optional[AsyncCapability] = None
    list_loans_by_member: Optional[AsyncCapability] = None
    update_loan_status: Optional[AsyncCapability] = None
    create_payment: Optional[AsyncCapability] = None
    generate_receipt: Optional[AsyncCapability] = None
    list_payments_by_loan_id: Optional[AsyncCapability] = None
    send_receipt_via_whatsapp: Optional[AsyncCapability] = None

    def require(self, name: str) -> AsyncCapability:
        """Return the named capability or raise MissingDependencyError."""
        capability = getattr(self, name, None)
        if capability is None:
            raise MissingDependencyError(f"Tool dependency '{name}' is not configured")
        return capability

    def available(self) -> list[str]:
        """Names of the capabilities that were provided."""
        return [f.name for f in fields(self) if getattr(self, f.name) is not None]
