"""
Turns a validated draft into a submitted application, then a payment.

Order matters: documents that the create call embeds are uploaded first,
the create call is the single commit point, and everything uploaded after
it is best-effort.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel, Field

from schemas.application import ApplicationDraft, Attachment, SubmittedApplication
from schemas.payment import Payment, PaymentStatus
from services.errors import AttachmentUploadError, RequestError, ValidationError
from services.form_controller import validate_all
from services.payment_stage import PaymentStage
from services.remote_client import MEDICAL_DOCUMENTS, PROFILE_PICTURE, RemoteServiceClient

logger = logging.getLogger(__name__)


class DraftAttachments(BaseModel):
    profile_picture: Optional[Attachment] = None
    documents: list[Attachment] = Field(default_factory=list)


class SubmissionResult(BaseModel):
    application: SubmittedApplication
    payment_stage: PaymentStage
    attachment_failures: list[str] = Field(default_factory=list)

    @property
    def application_id(self) -> int:
        return self.application.id


class SubmissionOrchestrator:
    def __init__(self, client: RemoteServiceClient):
        self.client = client

    async def submit(self, draft: ApplicationDraft, attachments: Optional[DraftAttachments] = None) -> SubmissionResult:
        attachments = attachments or DraftAttachments()
        kind = draft.kind

        validate_all(draft)

        payload = draft.to_remote_payload()
        if kind.uploads_documents_before_create:
            stored: list[str] = []
            if attachments.documents:
                # fatal on failure: no application is created without its documents
                stored = await self.client.upload_many_attachments(attachments.documents)
            payload["supportingDocuments"] = stored

        application = await self.client.submit_application(kind, payload)
        logger.info("Created %s application %s", kind.value, application.id)

        failures = await self._upload_post_commit(application.id, draft, attachments)

        stage = PaymentStage(
            include_lanyard=draft.include_lanyard,
            first_name=draft.first_name,
            last_name=draft.last_name,
            phone_number=draft.phone_number,
        )
        return SubmissionResult(application=application, payment_stage=stage, attachment_failures=failures)

    async def _upload_post_commit(
        self, application_id: int, draft: ApplicationDraft, attachments: DraftAttachments
    ) -> list[str]:
        kind = draft.kind
        uploads: list[tuple[Attachment, str]] = []
        if kind.uploads_documents_after_create:
            uploads.extend((doc, MEDICAL_DOCUMENTS) for doc in attachments.documents)
        if attachments.profile_picture is not None:
            uploads.append((attachments.profile_picture, PROFILE_PICTURE))
        if not uploads:
            return []

        results = await asyncio.gather(
            *(self.client.upload_attachment(application_id, kind, f, target) for f, target in uploads),
            return_exceptions=True,
        )
        failures: list[str] = []
        for (f, target), outcome in zip(uploads, results):
            if isinstance(outcome, AttachmentUploadError):
                logger.warning(
                    "Optional %s upload %r for application %s failed: %s",
                    target,
                    f.filename,
                    application_id,
                    outcome.message,
                )
                failures.append(f.filename)
            elif isinstance(outcome, BaseException):
                raise outcome
        return failures

    async def create_payment(
        self, application_type: str, application_id: int, stage: PaymentStage
    ) -> Payment:
        """Create the payment record; always ``Pending`` until a confirm step."""
        if not stage.method.enabled:
            raise ValidationError(f"Payment method {stage.method.value} is not available yet. Please use Bank Transfer.")
        if not stage.validate_stage():
            raise ValidationError("Please fill in all required fields", stage.missing_fields())
        payment = await self.client.create_payment(stage.create_payload(application_type, application_id))
        logger.info("Created payment %s for %s-%s", payment.id, application_type, application_id)
        return payment

    async def confirm_transfer(self, payment_id: int, stage: PaymentStage) -> Payment:
        if not stage.validate_stage():
            raise ValidationError("Please fill in all required fields", stage.missing_fields())
        return await self.client.confirm_bank_transfer(payment_id, stage.transfer_details())

    async def pay_by_bank_transfer(
        self,
        application_type: str,
        application_id: int,
        stage: PaymentStage,
        payment_id: Optional[int] = None,
        on_created: Optional[Callable[[Payment], Awaitable[None]]] = None,
    ) -> Payment:
        """Create the payment (unless one exists) and confirm it when transfer details were given.

        ``on_created`` runs as soon as a new payment exists so the caller can record
        its id before the confirm call, which may still fail.
        """
        if payment_id is None:
            payment = await self.create_payment(application_type, application_id, stage)
            if on_created is not None:
                await on_created(payment)
        else:
            # a previous attempt created the payment but failed to confirm it
            payment = await self.client.get_payment(payment_id)
            if payment is None:
                raise RequestError("Payment lookup failed: payment not found", 404)
        if stage.has_transfer_details:
            payment = await self.confirm_transfer(payment.id, stage)
        return payment

    async def skip(
        self,
        application_type: str,
        application_id: int,
        stage: PaymentStage,
        payment_id: Optional[int] = None,
    ) -> Payment:
        """Pay later: the payment record exists (Pending) and is then marked Skipped."""
        if payment_id is None:
            existing = await self.client.get_payment_by_application(application_type, application_id)
            if existing is not None:
                payment_id = existing.id
                if existing.payment_status is PaymentStatus.SKIPPED:
                    return existing
        if payment_id is None:
            created = await self.client.create_payment(stage.create_payload(application_type, application_id))
            payment_id = created.id
        return await self.client.skip_payment(payment_id)
