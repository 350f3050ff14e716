"""Records returned by the lending backend (members, staff, loans, payments)."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class StaffRole(str, Enum):
    ADMIN = "ADMIN"
    COLLECTOR = "COLLECTOR"
    REFERRER = "REFERRER"


class LoanStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    DEFAULTED = "DEFAULTED"
    CANCELLED = "CANCELLED"


class PaymentFrequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"


class MemberRecord(BaseModel):
    """A registered customer."""
    id: str
    name: str
    phone: str
    is_active: bool = True


class StaffRecord(BaseModel):
    """An operator account with one or more roles."""
    id: str
    name: str
    phone: str
    enabled: bool = True
    roles: list[StaffRole] = Field(default_factory=list)


class LoanSummary(BaseModel):
    id: str
    loan_id: int
    principal: float
    status: LoanStatus


class LoanMember(BaseModel):
    id: str
    name: str
    phone: str
    assigned_collector_id: Optional[str] = None


class LoanDetail(BaseModel):
    """A loan with the member it belongs to.

    ``id`` is the internal storage identifier; ``loan_id`` is the
    human-facing loan number (10000, 10001, ...).
    """
    id: str
    loan_id: int
    principal: float
    term_length: int
    payment_amount: float
    payment_frequency: PaymentFrequency
    status: LoanStatus
    member: LoanMember


class CreatedLoan(BaseModel):
    id: str
    loan_id: int


class UpdatedLoan(BaseModel):
    id: str
    loan_id: int
    status: LoanStatus


class CreatedPayment(BaseModel):
    id: str
    amount: float


class PaymentRecord(BaseModel):
    id: str
    amount: float
    paid_at: datetime
    status: str
    method: str


class Receipt(BaseModel):
    image: str
    token: str


class ReceiptDelivery(BaseModel):
    """Outcome of sending a receipt image over WhatsApp."""
    success: bool
    message: str = ""
    message_id: Optional[str] = None
    image_url: Optional[str] = None
    error: Optional[str] = None
