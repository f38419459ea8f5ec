"""
Payment finalization stage shown after an application is committed.

Amounts are derived on every access from the lanyard flag; nothing is cached.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from config import settings
from schemas.payment import ConfirmBankTransferInput, CreatePaymentInput, PaymentMethod


def compute_total(base: float, include_lanyard: bool, lanyard_surcharge: float) -> float:
    return base + (lanyard_surcharge if include_lanyard else 0)


class PaymentStage(BaseModel):
    base_amount: float = Field(default_factory=lambda: settings.base_amount)
    lanyard_surcharge: float = Field(default_factory=lambda: settings.lanyard_amount)
    include_lanyard: bool = False
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    first_name: str = ""
    last_name: str = ""
    phone_number: str = ""
    transaction_reference: Optional[str] = None
    bank_name: Optional[str] = None
    transfer_date: Optional[str] = None

    @property
    def lanyard_charge(self) -> float:
        return self.lanyard_surcharge if self.include_lanyard else 0

    @property
    def total(self) -> float:
        return compute_total(self.base_amount, self.include_lanyard, self.lanyard_surcharge)

    @property
    def has_transfer_details(self) -> bool:
        return any((self.transaction_reference, self.bank_name, self.transfer_date))

    def missing_fields(self, skipping: bool = False) -> list[str]:
        if skipping or self.method is not PaymentMethod.BANK_TRANSFER:
            return []
        return [
            name
            for name in ("first_name", "last_name", "phone_number")
            if not (getattr(self, name) or "").strip()
        ]

    def validate_stage(self, skipping: bool = False) -> bool:
        """Payer name and phone are required for bank transfer; skipping requires nothing."""
        if skipping:
            return True
        return self.method.enabled and not self.missing_fields()

    def apply(self, changes: dict[str, Any]) -> "PaymentStage":
        merged = {**self.model_dump(), **changes}
        return PaymentStage.model_validate(merged)

    def create_payload(self, application_type: str, application_id: int) -> CreatePaymentInput:
        return CreatePaymentInput(
            application_type=application_type,
            application_id=application_id,
            first_name=self.first_name,
            last_name=self.last_name,
            phone_number=self.phone_number,
            base_amount=self.base_amount,
            lanyard_amount=self.lanyard_charge,
            total_amount=self.total,
            include_lanyard=self.include_lanyard,
            payment_method=self.method,
        )

    def transfer_details(self) -> ConfirmBankTransferInput:
        return ConfirmBankTransferInput(
            first_name=self.first_name,
            last_name=self.last_name,
            phone_number=self.phone_number,
            transaction_reference=self.transaction_reference,
            bank_name=self.bank_name,
            transfer_date=self.transfer_date,
        )

    def summary(self, application_type: str, application_id: Optional[int]) -> dict[str, Any]:
        return {
            "currency": settings.currency,
            "baseAmount": self.base_amount,
            "lanyardAmount": self.lanyard_charge,
            "totalAmount": self.total,
            "includeLanyard": self.include_lanyard,
            "paymentMethod": self.method.value,
            "methods": selectable_methods(),
            "payer": {
                "firstName": self.first_name,
                "lastName": self.last_name,
                "phoneNumber": self.phone_number,
            },
            "instructions": bank_transfer_instructions(application_type, application_id, self.total),
        }


def selectable_methods() -> list[dict[str, Any]]:
    return [{"value": m.value, "enabled": m.enabled} for m in PaymentMethod]


def bank_transfer_instructions(application_type: str, application_id: Optional[int], amount: float) -> dict[str, Any]:
    return {
        "bank": settings.bank_name,
        "accountNumber": settings.bank_account_number,
        "iban": settings.bank_iban,
        "amount": amount,
        "currency": settings.currency,
        "reference": f"{application_type}-{application_id}" if application_id is not None else None,
    }
