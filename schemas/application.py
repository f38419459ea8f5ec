from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import Field, field_validator

from schemas.base import CamelModel
from utils.case import dict_keys_to_snake, unknown_keys


class ApplicationKind(str, Enum):
    DISABILITY = "disability"
    CARER = "carer"
    CUSTOMER_SUPPORT = "customer_support"

    @property
    def endpoint(self) -> str:
        """Remote resource prefix, e.g. ``CarersApplication``."""
        return _ENDPOINTS[self]

    @property
    def payment_type(self) -> str:
        return _PAYMENT_TYPES[self]

    @property
    def status_slug(self) -> str:
        return _STATUS_SLUGS[self]

    @property
    def card_label(self) -> str:
        return _CARD_LABELS[self]

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def uploads_documents_before_create(self) -> bool:
        # the create call embeds the stored document names
        return self is ApplicationKind.CARER

    @property
    def uploads_documents_after_create(self) -> bool:
        return self is ApplicationKind.DISABILITY

    @property
    def accepts_documents(self) -> bool:
        return self.uploads_documents_before_create or self.uploads_documents_after_create


_ENDPOINTS = {
    ApplicationKind.DISABILITY: "DisabilityApplication",
    ApplicationKind.CARER: "CarersApplication",
    ApplicationKind.CUSTOMER_SUPPORT: "CustomerSupportApplication",
}
_PAYMENT_TYPES = {
    ApplicationKind.DISABILITY: "Disability",
    ApplicationKind.CARER: "Carers",
    ApplicationKind.CUSTOMER_SUPPORT: "CustomerSupport",
}
_STATUS_SLUGS = {
    ApplicationKind.DISABILITY: "disability",
    ApplicationKind.CARER: "carers",
    ApplicationKind.CUSTOMER_SUPPORT: "customer-support",
}
_CARD_LABELS = {
    ApplicationKind.DISABILITY: "National Disability Card",
    ApplicationKind.CARER: "National Carers Card",
    ApplicationKind.CUSTOMER_SUPPORT: "National Support Card",
}
_DISPLAY_NAMES = {
    ApplicationKind.DISABILITY: "Disability Card",
    ApplicationKind.CARER: "Carers Card",
    ApplicationKind.CUSTOMER_SUPPORT: "Customer Support Card",
}


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DisabilityDetails(CamelModel):
    kind: Literal["disability"] = "disability"
    disability_type: str = ""
    disability_description: str = ""


class CarerDetails(CamelModel):
    kind: Literal["carer"] = "carer"
    care_recipient_name: str = ""
    relationship_to_recipient: str = ""
    caregiving_experience: str = ""


class CustomerSupportDetails(CamelModel):
    kind: Literal["customer_support"] = "customer_support"
    support_type: str = ""
    support_description: str = ""
    special_requirements: str = ""


ApplicationDetails = Annotated[
    Union[DisabilityDetails, CarerDetails, CustomerSupportDetails],
    Field(discriminator="kind"),
]

DETAILS_BY_KIND: dict[ApplicationKind, type[CamelModel]] = {
    ApplicationKind.DISABILITY: DisabilityDetails,
    ApplicationKind.CARER: CarerDetails,
    ApplicationKind.CUSTOMER_SUPPORT: CustomerSupportDetails,
}


class ApplicationDraft(CamelModel):
    """In-progress form values. Attachments are kept beside the draft, not in it."""

    first_name: str = ""
    last_name: str = ""
    date_of_birth: str = ""
    gender: str = ""
    nationality: str = ""
    emirates_id: str = ""
    phone_number: str = ""
    email: str = ""
    address: str = ""
    city: str = ""
    emirate: str = ""
    emergency_contact_name: str = ""
    emergency_contact_phone: str = ""
    include_lanyard: bool = False
    details: ApplicationDetails

    @classmethod
    def empty(cls, kind: ApplicationKind) -> "ApplicationDraft":
        return cls(details=DETAILS_BY_KIND[kind]())

    @property
    def kind(self) -> ApplicationKind:
        return ApplicationKind(self.details.kind)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def value_of(self, field: str) -> Any:
        if field in type(self).model_fields and field != "details":
            return getattr(self, field)
        return getattr(self.details, field)

    def with_updates(self, updates: dict[str, Any]) -> "ApplicationDraft":
        """
        Return a new draft with flat field updates applied.
        Keys may be camelCase or snake_case; category fields are routed into ``details``.
        Raises ValueError on fields that do not belong to this kind of application.
        """
        updates = dict_keys_to_snake(updates)
        top_fields = set(type(self).model_fields) - {"details"}
        detail_fields = set(type(self.details).model_fields) - {"kind"}
        unknown = unknown_keys(updates, top_fields | detail_fields)
        if unknown:
            raise ValueError(f"Unknown fields for {self.kind.value} application: {', '.join(unknown)}")

        data = self.model_dump(exclude={"details"})
        details = self.details.model_dump()
        for key, value in updates.items():
            if key in detail_fields:
                details[key] = value
            else:
                data[key] = value
        return ApplicationDraft.model_validate({**data, "details": details})

    def to_remote_payload(self) -> dict[str, Any]:
        """Flat camelCase body for ``POST /{Kind}Application`` (no files)."""
        payload = self.to_wire(exclude={"details"})
        payload.update(self.details.to_wire(exclude={"kind"}))
        return payload


class Attachment(CamelModel):
    filename: str
    content_type: str = "application/octet-stream"
    content: bytes = Field(repr=False)

    def as_file_part(self) -> tuple[str, bytes, str]:
        return (self.filename, self.content, self.content_type)


class MedicalDocument(CamelModel):
    id: Optional[int] = None
    file_name: str = ""
    file_path: str = ""
    file_type: str = ""
    file_size: int = 0


class SubmittedApplication(CamelModel):
    """Remote record as echoed back after creation or on admin reads."""

    id: int
    application_status: ApplicationStatus = ApplicationStatus.PENDING
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    first_name: str = ""
    last_name: str = ""
    date_of_birth: str = ""
    gender: str = ""
    nationality: str = ""
    emirates_id: str = ""
    phone_number: str = ""
    email: str = ""
    address: str = ""
    city: str = ""
    emirate: str = ""
    emergency_contact_name: str = ""
    emergency_contact_phone: str = ""
    include_lanyard: bool = False

    disability_type: Optional[str] = None
    disability_description: Optional[str] = None
    care_recipient_name: Optional[str] = None
    relationship_to_recipient: Optional[str] = None
    caregiving_experience: Optional[str] = None
    support_type: Optional[str] = None
    support_description: Optional[str] = None
    special_requirements: Optional[str] = None

    profile_picture: Optional[str] = None
    supporting_documents: list[str] = Field(default_factory=list)
    medical_documents: list[MedicalDocument] = Field(default_factory=list)

    @field_validator("application_status", mode="before")
    @classmethod
    def _status_case_insensitive(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("supporting_documents", "medical_documents", mode="before")
    @classmethod
    def _null_list(cls, v: Any) -> Any:
        return v if v is not None else []

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class ApplicationStatusUpdate(CamelModel):
    status: Literal["approved", "rejected"]
