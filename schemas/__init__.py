from schemas.application import (
    ApplicationDetails,
    ApplicationDraft,
    ApplicationKind,
    ApplicationStatus,
    ApplicationStatusUpdate,
    Attachment,
    CarerDetails,
    CustomerSupportDetails,
    DisabilityDetails,
    MedicalDocument,
    SubmittedApplication,
)
from schemas.card import Card, CardCreate, CardIssueRequest, CardStatus, CardUpdate
from schemas.payment import (
    ConfirmBankTransferInput,
    CreatePaymentInput,
    Pagination,
    Payment,
    PaymentMethod,
    PaymentPage,
    PaymentStatus,
    UpdatePaymentStatusInput,
)

__all__ = [
    "ApplicationDetails",
    "ApplicationDraft",
    "ApplicationKind",
    "ApplicationStatus",
    "ApplicationStatusUpdate",
    "Attachment",
    "CarerDetails",
    "CustomerSupportDetails",
    "DisabilityDetails",
    "MedicalDocument",
    "SubmittedApplication",
    "Card",
    "CardCreate",
    "CardIssueRequest",
    "CardStatus",
    "CardUpdate",
    "ConfirmBankTransferInput",
    "CreatePaymentInput",
    "Pagination",
    "Payment",
    "PaymentMethod",
    "PaymentPage",
    "PaymentStatus",
    "UpdatePaymentStatusInput",
]
