"""
Card issuance for approved applications.

The number pre-check is advisory only: another admin can take the same number
between the check and the create call, so the create call's own rejection is
authoritative and is reported as the same duplicate-number error.
"""
from __future__ import annotations

import logging
import re
from datetime import date, timedelta
from typing import Any, Optional

from config import settings
from schemas.application import ApplicationKind, ApplicationStatus, SubmittedApplication
from schemas.card import Card, CardCreate, CardIssueRequest, CardStatus, CardUpdate
from services.errors import DuplicateCardNumberError, ValidationError
from services.remote_client import RemoteServiceClient

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"[^0-9]")


def card_number(digits: str, prefix: Optional[str] = None) -> str:
    """Full card number from the typed digits; anything but 0-9 is dropped."""
    return f"{prefix if prefix is not None else settings.card_number_prefix}{_NON_DIGITS.sub('', digits)}"


class CardIssuer:
    def __init__(self, client: RemoteServiceClient, prefix: Optional[str] = None):
        self.client = client
        self.prefix = prefix if prefix is not None else settings.card_number_prefix

    async def prepare(self, application: SubmittedApplication, kind: ApplicationKind) -> dict[str, Any]:
        """Edit form for an existing card, or a new-card template pre-filled from the application."""
        existing = await self.client.get_card_by_application(application.id, kind)
        if existing is not None:
            return {"mode": "edit", "card": existing.to_wire()}
        issued = date.today()
        template = {
            "cardNumber": self.prefix,
            "cardholderName": application.full_name,
            "cardType": kind.card_label,
            "issuedDate": issued.isoformat(),
            "expiryDate": (issued + timedelta(days=settings.card_validity_days)).isoformat(),
            "status": CardStatus.ACTIVE.value,
            "notes": "",
        }
        return {"mode": "create", "card": template, "numberPrefix": self.prefix}

    async def check_number(self, digits: str) -> dict[str, Any]:
        number = card_number(digits, self.prefix)
        if number == self.prefix:
            return {"cardNumber": number, "exists": False}
        return {"cardNumber": number, "exists": await self.client.check_card_number_exists(number)}

    async def issue(
        self, application: SubmittedApplication, kind: ApplicationKind, request: CardIssueRequest
    ) -> Card:
        if application.application_status is not ApplicationStatus.APPROVED:
            raise ValidationError("Cards can only be issued for approved applications.")
        number = card_number(request.number_digits, self.prefix)
        if number == self.prefix:
            raise ValidationError("Enter the card number digits.", ["cardNumber"])

        existing = await self.client.get_card_by_application(application.id, kind)
        if existing is not None:
            raise ValidationError(
                f"Application #{application.id} already has card {existing.card_number}; edit it instead."
            )

        if await self.client.check_card_number_exists(number):
            raise DuplicateCardNumberError(number)

        issued = request.issued_date or date.today()
        card = await self.client.create_card(
            CardCreate(
                card_number=number,
                cardholder_name=application.full_name,
                card_type=kind.card_label,
                issued_date=issued,
                expiry_date=request.expiry_date or issued + timedelta(days=settings.card_validity_days),
                status=request.status,
                notes=request.notes,
                original_application_id=application.id,
                original_application_type=kind.value,
            )
        )
        logger.info("Issued card %s for %s application %s", card.card_number, kind.value, application.id)
        return card

    async def update(self, card_id: int, changes: CardUpdate) -> Card:
        """Status, expiry and notes only; number and cardholder never change."""
        return await self.client.update_card(card_id, changes)
