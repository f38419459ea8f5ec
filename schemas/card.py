from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import BeforeValidator

from schemas.base import CamelModel


class CardStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


def _date_part(v: Any) -> Any:
    # remote sends "2025-01-31T00:00:00"
    if isinstance(v, str) and "T" in v:
        return v.split("T", 1)[0]
    if isinstance(v, datetime):
        return v.date()
    return v


RemoteDate = Annotated[date, BeforeValidator(_date_part)]


class Card(CamelModel):
    id: int
    card_number: str
    cardholder_name: str
    card_type: str
    issued_date: RemoteDate
    expiry_date: RemoteDate
    status: CardStatus = CardStatus.ACTIVE
    notes: Optional[str] = None
    original_application_id: Optional[int] = None
    original_application_type: Optional[str] = None


class CardCreate(CamelModel):
    card_number: str
    cardholder_name: str
    card_type: str
    issued_date: date
    expiry_date: date
    status: CardStatus = CardStatus.ACTIVE
    notes: str = ""
    original_application_id: int
    original_application_type: str


class CardUpdate(CamelModel):
    """Only these fields may change once a card exists."""

    status: Optional[CardStatus] = None
    expiry_date: Optional[RemoteDate] = None
    notes: Optional[str] = None


class CardIssueRequest(CamelModel):
    number_digits: str
    issued_date: Optional[date] = None
    expiry_date: Optional[date] = None
    status: CardStatus = CardStatus.ACTIVE
    notes: str = ""
