"""
Multi-step application form.

Steps: 1 identity, 2 category details, 3 contact + emergency contact,
4 attachments, 5 review. The payment stage that follows a successful
submission is driven by the submission orchestrator, not by ``next()``.
"""
from __future__ import annotations

from typing import Any

from schemas.application import ApplicationDraft, ApplicationKind
from services.errors import ValidationError

FIRST_STEP = 1
ATTACHMENTS_STEP = 4
REVIEW_STEP = 5

STEP_TITLES = {
    1: "Personal Information",
    2: "Application Details",
    3: "Contact & Address",
    4: "Documents & Photo",
    5: "Review & Submit",
}

IDENTITY_FIELDS = ("first_name", "last_name", "date_of_birth", "gender", "nationality", "emirates_id")
CONTACT_FIELDS = (
    "phone_number",
    "email",
    "address",
    "city",
    "emirate",
    "emergency_contact_name",
    "emergency_contact_phone",
)
CATEGORY_FIELDS: dict[ApplicationKind, tuple[str, ...]] = {
    ApplicationKind.DISABILITY: ("disability_type", "disability_description"),
    ApplicationKind.CARER: ("care_recipient_name", "relationship_to_recipient"),
    ApplicationKind.CUSTOMER_SUPPORT: ("support_type", "support_description"),
}


def required_fields(kind: ApplicationKind, step: int) -> tuple[str, ...]:
    """Fields that must be non-empty to leave ``step``. Attachments and review add none."""
    if step == 1:
        return IDENTITY_FIELDS
    if step == 2:
        return CATEGORY_FIELDS[kind]
    if step == 3:
        return CONTACT_FIELDS
    return ()


def _is_filled(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def missing_fields(draft: ApplicationDraft, up_to_step: int = REVIEW_STEP) -> list[str]:
    missing: list[str] = []
    for step in range(FIRST_STEP, up_to_step + 1):
        missing.extend(f for f in required_fields(draft.kind, step) if not _is_filled(draft.value_of(f)))
    return missing


def validate_step(draft: ApplicationDraft, step: int) -> bool:
    """True iff every field required for steps 1..step is filled."""
    return not missing_fields(draft, step)


def validate_all(draft: ApplicationDraft) -> None:
    missing = missing_fields(draft, REVIEW_STEP)
    if missing:
        raise ValidationError("Please fill in all required fields before submitting.", missing)


class FormController:
    def __init__(self, draft: ApplicationDraft, step: int = FIRST_STEP):
        if not FIRST_STEP <= step <= REVIEW_STEP:
            raise ValueError(f"step must be between {FIRST_STEP} and {REVIEW_STEP}")
        self.draft = draft
        self.step = step

    @property
    def kind(self) -> ApplicationKind:
        return self.draft.kind

    @property
    def at_review(self) -> bool:
        return self.step == REVIEW_STEP

    def update(self, changes: dict[str, Any]) -> ApplicationDraft:
        """Apply field changes; raises ValueError for fields foreign to this kind."""
        self.draft = self.draft.with_updates(changes)
        return self.draft

    def validate_step(self, step: int | None = None) -> bool:
        return validate_step(self.draft, self.step if step is None else step)

    def next(self) -> int:
        if self.at_review:
            raise ValidationError("The review step is completed by submitting the application.")
        missing = missing_fields(self.draft, self.step)
        if missing:
            raise ValidationError("Please fill in all required fields before proceeding to the next step.", missing)
        self.step += 1
        return self.step

    def previous(self) -> int:
        if self.step > FIRST_STEP:
            self.step -= 1
        return self.step

    def restart(self) -> int:
        """Back to the first step, keeping every entered value (the "modify" action on review)."""
        self.step = FIRST_STEP
        return self.step

    def summary(self) -> dict[str, Any]:
        return {
            "step": self.step,
            "title": STEP_TITLES[self.step],
            "canAdvance": not self.at_review and self.validate_step(),
            "missing": missing_fields(self.draft, self.step),
        }
