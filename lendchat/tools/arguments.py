"""
Per-tool argument models, validated at the dispatch boundary.

Arguments come from model-interpreted natural language, so nothing here
asserts identity: who is asking always comes from the ToolContext. Loan
numbers and amounts are kept raw and parsed by the handlers, which report
a specific message when they are malformed.
"""

import math
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from lendchat.schemas.lending_schema import PaymentFrequency, StaffRole

LoanNumberInput = Union[int, str]

MAX_PAYMENTS_LIMIT = 100
DEFAULT_PAYMENTS_LIMIT = 10


def parse_loan_number(raw: object) -> Optional[int]:
    """Parse a human-facing loan number ("10000", 10000, "#10000").

    Returns None unless the value is a positive integer.
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw > 0 else None
    if isinstance(raw, str):
        text = raw.strip().lstrip("#").strip()
        if text.isascii() and text.isdigit():
            number = int(text)
            return number if number > 0 else None
    return None


def parse_positive_amount(raw: object) -> Optional[float]:
    """Parse a payment amount, accepting thousands separators ("1,500")."""
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip().replace(",", ""))
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value


class CreateMemberArgs(BaseModel):
    """Register a new member (customer)."""
    name: str = Field(min_length=1, description="Full name of the member")
    id_number: str = Field(min_length=1, description="National ID (cédula)")
    collection_point: str = Field(min_length=1, description="Where payments are collected")
    home_address: str = Field(min_length=1, description="Home address")
    referred_by_id: Optional[str] = Field(
        default=None, description="ID of the referrer, obtained with list_users(role=REFERRER)"
    )
    phone: Optional[str] = Field(
        default=None, description="Member phone. Only used when staff registers someone else"
    )
    assigned_collector_id: Optional[str] = None
    job_position: Optional[str] = None
    income: Optional[float] = Field(default=None, ge=0)
    is_business_owner: bool = False


class ListUsersArgs(BaseModel):
    """List staff users, optionally filtered by role."""
    role: Optional[StaffRole] = None


class GetMemberArgs(BaseModel):
    """Get a member by internal ID."""
    member_id: str = Field(min_length=1)


class MemberPhoneArgs(BaseModel):
    """Look up a member by phone number."""
    phone: str = Field(min_length=1)


class MemberLoansByPhoneArgs(BaseModel):
    """List the loans of the member with this phone number."""
    phone: str = Field(min_length=1)
    show_all: bool = False


class CreateLoanArgs(BaseModel):
    """Create a loan for a member."""
    member_id: str = Field(min_length=1)
    principal: float = Field(gt=0)
    term_length: int = Field(gt=0)
    payment_amount: float = Field(gt=0)
    payment_frequency: PaymentFrequency


class LoanNumberArgs(BaseModel):
    """Get a loan by its loan number."""
    loan_id: LoanNumberInput = Field(description="Loan number, e.g. 10000")


class ListLoansByCollectorArgs(BaseModel):
    """List the loans assigned to the requesting collector."""
    show_all: bool = Field(default=False, description="Include loans that are not active")


class ListLoansByMemberArgs(BaseModel):
    """List the loans of a member."""
    member_id: str = Field(min_length=1)
    show_all: bool = False


class UpdateLoanStatusArgs(BaseModel):
    """Close a loan as completed, defaulted, or cancelled."""
    loan_id: LoanNumberInput
    status: Literal["COMPLETED", "DEFAULTED", "CANCELLED"]


class CreatePaymentArgs(BaseModel):
    """Register a payment on a loan and generate its receipt."""
    loan_id: LoanNumberInput = Field(description="Loan number, e.g. 10000")
    amount: Union[float, str] = Field(description="Amount paid")
    notes: Optional[str] = None


class ListPaymentsArgs(BaseModel):
    """List the most recent payments of a loan."""
    loan_id: LoanNumberInput
    limit: Optional[Union[int, str]] = None


class SendReceiptArgs(BaseModel):
    """Send the receipt of a payment to the requester over WhatsApp."""
    payment_id: str = Field(description="Payment UUID (not the loan number)")
