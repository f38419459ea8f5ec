"""In-memory search and filtering for the back office tables, plus payment transition rules."""
from __future__ import annotations

from typing import Iterable, Optional, Union

from schemas.application import SubmittedApplication
from schemas.payment import Payment, PaymentStatus
from services.errors import ValidationError

ALL = "all"

# Admin can settle a payment that is still open; settled payments are final.
_ADMIN_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.CONFIRMED, PaymentStatus.SKIPPED},
    PaymentStatus.SUBMITTED: {PaymentStatus.CONFIRMED, PaymentStatus.SKIPPED},
}


def filter_applications(
    applications: Iterable[SubmittedApplication],
    search: str = "",
    status: Optional[str] = ALL,
) -> list[SubmittedApplication]:
    term = (search or "").strip().lower()
    wanted = (status or ALL).strip().lower()
    out = []
    for app in applications:
        if wanted != ALL and app.application_status.value != wanted:
            continue
        if term and not (
            term in app.full_name.lower()
            or term in (app.email or "").lower()
            or term in (app.phone_number or "")
        ):
            continue
        out.append(app)
    return out


def filter_payments(
    payments: Iterable[Payment],
    search: str = "",
    application_type: Optional[str] = ALL,
) -> list[Payment]:
    term = (search or "").strip().lower()
    out = []
    for p in payments:
        if application_type and application_type != ALL and p.application_type != application_type:
            continue
        if term and not (
            term in (p.first_name or "").lower()
            or term in (p.last_name or "").lower()
            or term in (p.phone_number or "")
            or term in str(p.id)
            or term in (p.transaction_reference or "").lower()
        ):
            continue
        out.append(p)
    return out


def check_payment_transition(payment: Payment, target: Union[PaymentStatus, str]) -> PaymentStatus:
    target = PaymentStatus(target)
    allowed = _ADMIN_TRANSITIONS.get(payment.payment_status, set())
    if target not in allowed:
        raise ValidationError(
            f"Payment #{payment.id} is {payment.payment_status.value} and cannot be marked {target.value}."
        )
    return target


def status_update_message(target: PaymentStatus) -> str:
    if target is PaymentStatus.CONFIRMED:
        return "Payment confirmed successfully! Email notification sent to the customer."
    return f"Payment status updated to {target.value} successfully"
