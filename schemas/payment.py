from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import Field, field_validator, model_validator

from schemas.base import CamelModel


class PaymentStatus(str, Enum):
    PENDING = "Pending"
    SUBMITTED = "Submitted"
    CONFIRMED = "Confirmed"
    SKIPPED = "Skipped"


def _canonical_status(v: Any) -> Any:
    if isinstance(v, str):
        return next((s.value for s in PaymentStatus if s.value.lower() == v.strip().lower()), v)
    return v


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank-transfer"
    CREDIT_CARD = "credit-card"
    PAYPAL = "paypal"

    @property
    def enabled(self) -> bool:
        return self is PaymentMethod.BANK_TRANSFER


class Payment(CamelModel):
    id: int
    application_type: str
    application_id: int
    first_name: str = ""
    last_name: str = ""
    phone_number: str = ""
    base_amount: float = 0
    lanyard_amount: float = 0
    total_amount: float = 0
    include_lanyard: bool = False
    payment_method: str = PaymentMethod.BANK_TRANSFER.value
    payment_status: PaymentStatus = PaymentStatus.PENDING
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    transaction_reference: Optional[str] = None
    bank_name: Optional[str] = None
    transfer_date: Optional[str] = None
    admin_notes: Optional[str] = None
    applicant_name: Optional[str] = None
    applicant_email: Optional[str] = None
    application_status: Optional[str] = None

    @field_validator("payment_status", mode="before")
    @classmethod
    def _status_case_insensitive(cls, v: Any) -> Any:
        return _canonical_status(v)


class CreatePaymentInput(CamelModel):
    application_type: str
    application_id: int
    first_name: str
    last_name: str
    phone_number: str
    base_amount: float = Field(..., ge=0)
    lanyard_amount: float = Field(..., ge=0)
    total_amount: float = Field(..., ge=0)
    include_lanyard: bool
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    payment_status: PaymentStatus = PaymentStatus.PENDING

    @model_validator(mode="after")
    def _total_matches_parts(self) -> "CreatePaymentInput":
        if not self.include_lanyard and self.lanyard_amount:
            raise ValueError("lanyardAmount must be 0 when includeLanyard is false")
        if self.total_amount != self.base_amount + self.lanyard_amount:
            raise ValueError("totalAmount must equal baseAmount + lanyardAmount")
        return self


class ConfirmBankTransferInput(CamelModel):
    first_name: str
    last_name: str
    phone_number: str
    transaction_reference: Optional[str] = None
    bank_name: Optional[str] = None
    transfer_date: Optional[str] = None


class UpdatePaymentStatusInput(CamelModel):
    payment_status: PaymentStatus
    transaction_reference: Optional[str] = None
    bank_name: Optional[str] = None
    transfer_date: Optional[str] = None
    admin_notes: Optional[str] = None

    @field_validator("payment_status", mode="before")
    @classmethod
    def _status_case_insensitive(cls, v: Any) -> Any:
        return _canonical_status(v)


class Pagination(CamelModel):
    current_page: int = 1
    page_size: int = 10
    total_items: int = 0
    total_pages: int = 1
    has_next_page: bool = False
    has_previous_page: bool = False


class PaymentPage(CamelModel):
    payments: list[Payment] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)
