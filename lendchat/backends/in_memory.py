"""
In-memory lending backend.

Stands in for the persistence and messaging services that the router,
the tool dispatcher, and the message processor depend on. Everything is
process-local and lost on restart; it backs the console demo and tests.
In production these capabilities come from the platform's database and
WhatsApp client.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from lendchat.schemas.lending_schema import (
    CreatedLoan,
    CreatedPayment,
    LoanDetail,
    LoanMember,
    LoanStatus,
    LoanSummary,
    MemberRecord,
    PaymentFrequency,
    PaymentRecord,
    Receipt,
    ReceiptDelivery,
    StaffRecord,
    StaffRole,
    UpdatedLoan,
)
from lendchat.schemas.message_schema import ChatMessageCreate, Message
from lendchat.tools.dependencies import ToolDependencies
from lendchat.utils import mask_phone

logger = logging.getLogger(__name__)

FIRST_LOAN_NUMBER = 10000


class ReceiptGenerationError(RuntimeError):
    """Raised when a receipt image cannot be produced."""


def _new_id() -> str:
    return str(uuid.uuid4())


class InMemoryLendingBackend:
    """Members, staff, loans, payments, and chat history held in dicts."""

    def __init__(self) -> None:
        self.members: dict[str, dict[str, Any]] = {}
        self.staff: dict[str, StaffRecord] = {}
        self.loans: dict[int, dict[str, Any]] = {}
        self.payments: dict[str, dict[str, Any]] = {}
        self.user_history: dict[str, list[Message]] = {}
        self.member_messages: list[ChatMessageCreate] = []
        self.outbox: list[dict[str, Any]] = []
        self.fail_receipts = False
        self._next_loan_number = FIRST_LOAN_NUMBER

    # -- seeding ------------------------------------------------------------

    def add_staff(
        self, name: str, phone: str, roles: list[StaffRole], enabled: bool = True
    ) -> StaffRecord:
        user = StaffRecord(id=_new_id(), name=name, phone=phone, enabled=enabled, roles=roles)
        self.staff[user.id] = user
        return user

    def add_member(
        self, name: str, phone: str, assigned_collector_id: Optional[str] = None, **extra: Any
    ) -> MemberRecord:
        member_id = _new_id()
        self.members[member_id] = {
            "id": member_id,
            "name": name,
            "phone": phone,
            "assigned_collector_id": assigned_collector_id,
            **extra,
        }
        return self._member_record(member_id)

    def add_loan(
        self,
        member_id: str,
        principal: float,
        payment_amount: float,
        term_length: int = 10,
        payment_frequency: PaymentFrequency = PaymentFrequency.WEEKLY,
        status: LoanStatus = LoanStatus.ACTIVE,
    ) -> CreatedLoan:
        if member_id not in self.members:
            raise LookupError(f"Member not found: {member_id}")
        loan_number = self._next_loan_number
        self._next_loan_number += 1
        loan = {
            "id": _new_id(),
            "loan_id": loan_number,
            "member_id": member_id,
            "principal": principal,
            "term_length": term_length,
            "payment_amount": payment_amount,
            "payment_frequency": PaymentFrequency(payment_frequency),
            "status": LoanStatus(status),
        }
        self.loans[loan_number] = loan
        return CreatedLoan(id=loan["id"], loan_id=loan_number)

    # -- router lookups -----------------------------------------------------

    async def get_member_by_phone(self, phone: str) -> Optional[MemberRecord]:
        for member_id, member in self.members.items():
            if member["phone"] == phone:
                return self._member_record(member_id)
        return None

    async def get_user_by_phone(self, phone: str) -> Optional[StaffRecord]:
        return next((u for u in self.staff.values() if u.phone == phone), None)

    # -- tool capabilities --------------------------------------------------

    async def create_member(self, name: str, phone: str, **fields: Any) -> MemberRecord:
        if await self.get_member_by_phone(phone) is not None:
            raise ValueError(f"A member with phone {mask_phone(phone)} already exists")
        member = self.add_member(name, phone, **fields)
        logger.info("Member created: %s (%s)", member.id, mask_phone(phone))
        return member

    async def list_users(self, role: Optional[StaffRole] = None) -> list[StaffRecord]:
        users = [u for u in self.staff.values() if u.enabled]
        if role is not None:
            users = [u for u in users if role in u.roles]
        return sorted(users, key=lambda u: u.name)

    async def get_member(self, member_id: str) -> Optional[MemberRecord]:
        if member_id not in self.members:
            return None
        return self._member_record(member_id)

    async def create_loan(
        self,
        member_id: str,
        principal: float,
        term_length: int,
        payment_amount: float,
        payment_frequency: PaymentFrequency,
    ) -> CreatedLoan:
        loan = self.add_loan(
            member_id,
            principal=principal,
            payment_amount=payment_amount,
            term_length=term_length,
            payment_frequency=payment_frequency,
        )
        logger.info("Loan %d created for member %s", loan.loan_id, member_id)
        return loan

    async def get_loan_by_loan_id(self, loan_id: int) -> Optional[LoanDetail]:
        loan = self.loans.get(loan_id)
        if loan is None:
            return None
        member = self.members[loan["member_id"]]
        return LoanDetail(
            id=loan["id"],
            loan_id=loan["loan_id"],
            principal=loan["principal"],
            term_length=loan["term_length"],
            payment_amount=loan["payment_amount"],
            payment_frequency=loan["payment_frequency"],
            status=loan["status"],
            member=LoanMember(
                id=member["id"],
                name=member["name"],
                phone=member["phone"],
                assigned_collector_id=member.get("assigned_collector_id"),
            ),
        )

    async def list_loans_by_collector(
        self, assigned_collector_id: str, show_all: bool = False
    ) -> list[LoanSummary]:
        return self._loan_summaries(
            lambda loan: self.members[loan["member_id"]].get("assigned_collector_id")
            == assigned_collector_id,
            show_all,
        )

    async def list_loans_by_member(self, member_id: str, show_all: bool = False) -> list[LoanSummary]:
        return self._loan_summaries(lambda loan: loan["member_id"] == member_id, show_all)

    async def update_loan_status(self, loan_id: int, status: str) -> UpdatedLoan:
        loan = self.loans.get(loan_id)
        if loan is None:
            raise LookupError(f"Loan not found: {loan_id}")
        loan["status"] = LoanStatus(status)
        return UpdatedLoan(id=loan["id"], loan_id=loan_id, status=loan["status"])

    async def create_payment(
        self,
        loan_id: int,
        amount: float,
        collected_by_id: str,
        notes: Optional[str] = None,
    ) -> CreatedPayment:
        if loan_id not in self.loans:
            raise LookupError(f"Loan not found: {loan_id}")
        payment_id = _new_id()
        self.payments[payment_id] = {
            "id": payment_id,
            "loan_id": loan_id,
            "amount": amount,
            "collected_by_id": collected_by_id,
            "notes": notes,
            "paid_at": datetime.now(timezone.utc),
            "status": "COMPLETED",
            "method": "CASH",
        }
        logger.info("Payment %s recorded on loan %d", payment_id, loan_id)
        return CreatedPayment(id=payment_id, amount=amount)

    async def generate_receipt(self, payment_id: str) -> Receipt:
        if self.fail_receipts:
            raise ReceiptGenerationError(f"Receipt service unavailable for {payment_id}")
        if payment_id not in self.payments:
            raise LookupError(f"Payment not found: {payment_id}")
        return Receipt(image=f"memory://receipts/{payment_id}.png", token=uuid.uuid4().hex)

    async def list_payments_by_loan_id(self, loan_id: int, limit: int = 10) -> list[PaymentRecord]:
        records = [
            PaymentRecord(
                id=p["id"], amount=p["amount"], paid_at=p["paid_at"],
                status=p["status"], method=p["method"],
            )
            for p in self.payments.values()
            if p["loan_id"] == loan_id
        ]
        records.sort(key=lambda p: p.paid_at, reverse=True)
        return records[:limit]

    async def send_receipt_via_whatsapp(self, payment_id: str, phone: str) -> ReceiptDelivery:
        if payment_id not in self.payments:
            return ReceiptDelivery(success=False, error=f"Pago no encontrado: {payment_id}")
        try:
            receipt = await self.generate_receipt(payment_id)
        except ReceiptGenerationError as e:
            return ReceiptDelivery(success=False, error=str(e))
        message_id = f"wamid.{uuid.uuid4().hex[:16]}"
        self.outbox.append({"phone": phone, "image_url": receipt.image, "message_id": message_id})
        return ReceiptDelivery(
            success=True, message="Recibo enviado", message_id=message_id, image_url=receipt.image
        )

    # -- conversation collaborators -----------------------------------------

    async def send_message(self, phone: str, message: str) -> None:
        self.outbox.append({"phone": phone, "message": message})

    async def get_user_history(self, user_id: str) -> list[Message]:
        return list(self.user_history.get(user_id, []))

    async def add_user_message(self, user_id: str, message: Message) -> None:
        self.user_history.setdefault(user_id, []).append(message)

    async def add_member_message(self, payload: ChatMessageCreate) -> ChatMessageCreate:
        self.member_messages.append(payload)
        return payload

    def tool_dependencies(self) -> ToolDependencies:
        return ToolDependencies(
            create_member=self.create_member,
            list_users=self.list_users,
            get_member=self.get_member,
            get_member_by_phone=self.get_member_by_phone,
            create_loan=self.create_loan,
            get_loan_by_loan_id=self.get_loan_by_loan_id,
            list_loans_by_collector=self.list_loans_by_collector,
            list_loans_by_member=self.list_loans_by_member,
            update_loan_status=self.update_loan_status,
            create_payment=self.create_payment,
            generate_receipt=self.generate_receipt,
            list_payments_by_loan_id=self.list_payments_by_loan_id,
            send_receipt_via_whatsapp=self.send_receipt_via_whatsapp,
        )

    # -- helpers ------------------------------------------------------------

    def _member_record(self, member_id: str) -> MemberRecord:
        member = self.members[member_id]
        return MemberRecord(id=member["id"], name=member["name"], phone=member["phone"])

    def _loan_summaries(self, predicate, show_all: bool) -> list[LoanSummary]:
        return [
            LoanSummary(
                id=loan["id"], loan_id=loan["loan_id"],
                principal=loan["principal"], status=loan["status"],
            )
            for loan in sorted(self.loans.values(), key=lambda item: item["loan_id"])
            if predicate(loan) and (show_all or loan["status"] == LoanStatus.ACTIVE)
        ]
