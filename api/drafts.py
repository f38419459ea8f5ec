from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, File, HTTPException, UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from api.deps import get_remote_client
from api.errors import failing_action
from config import settings
from database import get_db
from models import DraftAttachment, DraftSession
from schemas.application import ApplicationDraft, ApplicationKind, Attachment
from schemas.payment import Payment, PaymentStatus
from services.form_controller import REVIEW_STEP, FormController
from services.payment_stage import PaymentStage, compute_total
from services.remote_client import RemoteServiceClient
from services.submission import DraftAttachments, SubmissionOrchestrator
from utils.case import dict_keys_to_snake, unknown_keys

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/drafts", tags=["drafts"])

STAGE_FORM = "form"
STAGE_SUBMITTING = "submitting"
STAGE_PAYMENT = "payment"
STAGE_COMPLETED = "completed"

ROLE_PROFILE_PICTURE = "profile_picture"
ROLE_DOCUMENT = "document"

MSG_DRAFT_NOT_FOUND = "Draft not found"
PAYMENT_FORM_FIELDS = {
    "method",
    "first_name",
    "last_name",
    "phone_number",
    "transaction_reference",
    "bank_name",
    "transfer_date",
}


async def _load(db: AsyncSession, draft_id: str) -> Optional[DraftSession]:
    result = await db.execute(
        select(DraftSession)
        .options(selectinload(DraftSession.attachments))
        .where(DraftSession.id == draft_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def submit_is_stale(row: DraftSession, now: Optional[datetime] = None) -> bool:
    if row.stage != STAGE_SUBMITTING or row.submitted_at is None:
        return False
    started = row.submitted_at
    if started.tzinfo is None:
        # sqlite hands back naive values
        started = started.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return now - started > timedelta(seconds=settings.submit_stale_seconds)


async def _get_draft(db: AsyncSession, draft_id: str) -> DraftSession:
    row = await _load(db, draft_id)
    if not row:
        raise HTTPException(status_code=404, detail=MSG_DRAFT_NOT_FOUND)
    if submit_is_stale(row):
        logger.warning("Draft %s was stuck submitting since %s; returning it to the form", row.id, row.submitted_at)
        row.stage = STAGE_FORM
        row.submitted_at = None
    return row


def _require_stage(row: DraftSession, *stages: str) -> None:
    if row.stage not in stages:
        raise HTTPException(
            status_code=409,
            detail=f"Draft is in the {row.stage} stage; this action needs {' or '.join(stages)}",
        )


def _controller(row: DraftSession) -> FormController:
    return FormController(ApplicationDraft.model_validate(row.fields), step=row.step)


def _payment_stage(row: DraftSession) -> PaymentStage:
    return PaymentStage.model_validate(row.payment_form or {})


def _attachment_meta(a: DraftAttachment) -> dict[str, Any]:
    return {
        "id": a.id,
        "role": a.role,
        "filename": a.filename,
        "contentType": a.content_type,
        "sizeBytes": a.size_bytes,
    }


def _draft_to_response(row: DraftSession) -> dict[str, Any]:
    controller = _controller(row)
    draft = controller.draft
    kind = draft.kind
    prices = _payment_stage(row)
    return {
        "id": row.id,
        "kind": kind.value,
        "stage": row.stage,
        "progress": controller.summary(),
        "fields": draft.to_remote_payload(),
        "attachments": [_attachment_meta(a) for a in row.attachments],
        "acceptsDocuments": kind.accepts_documents,
        # recomputed on every read; the lanyard flag may change at any time before submission
        "pricing": {
            "baseAmount": prices.base_amount,
            "totalAmount": compute_total(prices.base_amount, draft.include_lanyard, prices.lanyard_surcharge),
            "includeLanyard": draft.include_lanyard,
        },
        "applicationId": row.application_id,
        "paymentId": row.payment_id,
        "paymentStatus": row.payment_status,
        "createdAt": row.created_at.isoformat() if row.created_at else None,
        "updatedAt": row.updated_at.isoformat() if row.updated_at else None,
    }


def _payment_to_response(row: DraftSession, payment: Optional[Payment] = None) -> dict[str, Any]:
    kind = ApplicationKind(row.kind)
    out = _payment_stage(row).summary(kind.payment_type, row.application_id)
    out.update(
        {
            "draftId": row.id,
            "stage": row.stage,
            "applicationId": row.application_id,
            "applicationType": kind.payment_type,
            "cardType": kind.display_name,
            "paymentId": row.payment_id,
            "paymentStatus": row.payment_status,
        }
    )
    if payment is not None:
        out["payment"] = payment.to_wire()
    return out


@router.post("", status_code=201)
async def create_draft(kind: ApplicationKind = Body(..., embed=True), db: AsyncSession = Depends(get_db)):
    row = DraftSession(
        id=f"draft-{uuid.uuid4().hex[:12]}",
        kind=kind.value,
        step=1,
        stage=STAGE_FORM,
        fields=ApplicationDraft.empty(kind).model_dump(mode="json"),
        payment_form=PaymentStage().model_dump(mode="json"),
    )
    db.add(row)
    await db.flush()
    row = await _get_draft(db, row.id)
    return _draft_to_response(row)


@router.get("/{draft_id}")
async def get_draft(draft_id: str, db: AsyncSession = Depends(get_db)):
    return _draft_to_response(await _get_draft(db, draft_id))


@router.patch("/{draft_id}")
async def update_draft(draft_id: str, changes: dict[str, Any] = Body(...), db: AsyncSession = Depends(get_db)):
    row = await _get_draft(db, draft_id)
    _require_stage(row, STAGE_FORM)
    controller = _controller(row)
    try:
        draft = controller.update(changes)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    row.fields = draft.model_dump(mode="json")
    await db.flush()
    return _draft_to_response(row)


@router.post("/{draft_id}/next")
async def next_step(draft_id: str, db: AsyncSession = Depends(get_db)):
    row = await _get_draft(db, draft_id)
    _require_stage(row, STAGE_FORM)
    controller = _controller(row)
    row.step = controller.next()
    await db.flush()
    return _draft_to_response(row)


@router.post("/{draft_id}/previous")
async def previous_step(draft_id: str, db: AsyncSession = Depends(get_db)):
    row = await _get_draft(db, draft_id)
    _require_stage(row, STAGE_FORM)
    row.step = _controller(row).previous()
    await db.flush()
    return _draft_to_response(row)


@router.post("/{draft_id}/modify")
async def modify_from_review(draft_id: str, db: AsyncSession = Depends(get_db)):
    row = await _get_draft(db, draft_id)
    _require_stage(row, STAGE_FORM)
    row.step = _controller(row).restart()
    await db.flush()
    return _draft_to_response(row)


async def _read_upload(file: UploadFile, role: str, draft_id: str) -> DraftAttachment:
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail=f"{file.filename or 'File'} is empty.")
    return DraftAttachment(
        id=f"att-{uuid.uuid4().hex[:12]}",
        draft_id=draft_id,
        role=role,
        filename=(file.filename or "upload").split("/")[-1],
        content_type=file.content_type or "application/octet-stream",
        size_bytes=len(content),
        content=content,
    )


@router.put("/{draft_id}/profile-picture")
async def set_profile_picture(draft_id: str, file: UploadFile = File(...), db: AsyncSession = Depends(get_db)):
    row = await _get_draft(db, draft_id)
    _require_stage(row, STAGE_FORM)
    for existing in [a for a in row.attachments if a.role == ROLE_PROFILE_PICTURE]:
        row.attachments.remove(existing)
    row.attachments.append(await _read_upload(file, ROLE_PROFILE_PICTURE, row.id))
    await db.flush()
    return _draft_to_response(row)


@router.post("/{draft_id}/documents")
async def add_documents(draft_id: str, files: list[UploadFile] = File(...), db: AsyncSession = Depends(get_db)):
    row = await _get_draft(db, draft_id)
    _require_stage(row, STAGE_FORM)
    if not ApplicationKind(row.kind).accepts_documents:
        raise HTTPException(status_code=400, detail="This application type does not take supporting documents.")
    for f in files:
        row.attachments.append(await _read_upload(f, ROLE_DOCUMENT, row.id))
    await db.flush()
    return _draft_to_response(row)


@router.delete("/{draft_id}/attachments/{attachment_id}")
async def remove_attachment(draft_id: str, attachment_id: str, db: AsyncSession = Depends(get_db)):
    row = await _get_draft(db, draft_id)
    _require_stage(row, STAGE_FORM)
    match = next((a for a in row.attachments if a.id == attachment_id), None)
    if not match:
        raise HTTPException(status_code=404, detail="Attachment not found")
    row.attachments.remove(match)
    await db.flush()
    return _draft_to_response(row)


def _attachments_of(row: DraftSession) -> DraftAttachments:
    def to_attachment(a: DraftAttachment) -> Attachment:
        return Attachment(filename=a.filename, content_type=a.content_type, content=a.content)

    pictures = [a for a in row.attachments if a.role == ROLE_PROFILE_PICTURE]
    return DraftAttachments(
        profile_picture=to_attachment(pictures[-1]) if pictures else None,
        documents=[to_attachment(a) for a in row.attachments if a.role == ROLE_DOCUMENT],
    )


@router.post("/{draft_id}/submit")
async def submit_draft(
    draft_id: str,
    db: AsyncSession = Depends(get_db),
    client: RemoteServiceClient = Depends(get_remote_client),
):
    row = await _get_draft(db, draft_id)
    _require_stage(row, STAGE_FORM)
    if row.step != REVIEW_STEP:
        raise HTTPException(status_code=409, detail="Review your application before submitting.")
    draft = _controller(row).draft
    attachments = _attachments_of(row)

    # guards against a second submit while the first is in flight
    row.stage = STAGE_SUBMITTING
    row.submitted_at = datetime.now(timezone.utc)
    await db.commit()

    orchestrator = SubmissionOrchestrator(client)
    try:
        with failing_action("Submitting the application"):
            result = await orchestrator.submit(draft, attachments)
    except Exception:
        current = await _load(db, draft_id)
        if current is not None:
            current.stage = STAGE_FORM
            current.submitted_at = None
            await db.commit()
        raise

    current = await _load(db, draft_id)
    if current is None:
        logger.info(
            "Draft %s was discarded while application %s was being created; dropping result",
            draft_id,
            result.application_id,
        )
        return {"draftId": draft_id, "applicationId": result.application_id, "draftDiscarded": True}

    current.stage = STAGE_PAYMENT
    current.submitted_at = None
    current.application_id = result.application_id
    current.payment_form = result.payment_stage.model_dump(mode="json")
    # attachments are on the remote side now (or were optional and failed)
    current.attachments.clear()
    await db.flush()

    return {
        "message": "Application submitted successfully! Now complete your payment to finalize the process.",
        "draftId": draft_id,
        "applicationId": result.application_id,
        "applicationStatus": result.application.application_status.value,
        "attachmentFailures": result.attachment_failures,
        "payment": _payment_to_response(current),
    }


@router.get("/{draft_id}/payment")
async def get_payment_stage(draft_id: str, db: AsyncSession = Depends(get_db)):
    row = await _get_draft(db, draft_id)
    _require_stage(row, STAGE_PAYMENT, STAGE_COMPLETED)
    return _payment_to_response(row)


def _apply_payment_changes(row: DraftSession, changes: Optional[dict[str, Any]]) -> PaymentStage:
    stage = _payment_stage(row)
    if changes:
        changes = dict_keys_to_snake(changes)
        if "payment_type" in changes:
            changes["method"] = changes.pop("payment_type")
        unknown = unknown_keys(changes, PAYMENT_FORM_FIELDS)
        if unknown:
            raise HTTPException(status_code=400, detail=f"Unknown payment fields: {', '.join(unknown)}")
        try:
            stage = stage.apply(changes)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        row.payment_form = stage.model_dump(mode="json")
    return stage


@router.patch("/{draft_id}/payment")
async def update_payment_stage(draft_id: str, changes: dict[str, Any] = Body(...), db: AsyncSession = Depends(get_db)):
    row = await _get_draft(db, draft_id)
    _require_stage(row, STAGE_PAYMENT)
    _apply_payment_changes(row, changes)
    await db.flush()
    return _payment_to_response(row)


@router.post("/{draft_id}/payment/confirm")
async def confirm_payment(
    draft_id: str,
    changes: Optional[dict[str, Any]] = Body(None),
    db: AsyncSession = Depends(get_db),
    client: RemoteServiceClient = Depends(get_remote_client),
):
    row = await _get_draft(db, draft_id)
    _require_stage(row, STAGE_PAYMENT)
    stage = _apply_payment_changes(row, changes)
    kind = ApplicationKind(row.kind)

    async def remember(payment: Payment) -> None:
        # keep the id even if the confirm call that follows fails
        row.payment_id = payment.id
        row.payment_status = payment.payment_status.value
        await db.commit()

    orchestrator = SubmissionOrchestrator(client)
    with failing_action("Payment submission"):
        payment = await orchestrator.pay_by_bank_transfer(
            kind.payment_type, row.application_id, stage, payment_id=row.payment_id, on_created=remember
        )

    row.payment_id = payment.id
    row.payment_status = payment.payment_status.value
    row.stage = STAGE_COMPLETED
    await db.flush()
    out = _payment_to_response(row, payment)
    out["message"] = (
        f"Payment Confirmed! Your {kind.display_name.lower()} application and payment have been submitted "
        "successfully. We will process your application within 48 hours."
    )
    return out


@router.post("/{draft_id}/payment/skip")
async def skip_payment(
    draft_id: str,
    db: AsyncSession = Depends(get_db),
    client: RemoteServiceClient = Depends(get_remote_client),
):
    row = await _get_draft(db, draft_id)
    _require_stage(row, STAGE_PAYMENT, STAGE_COMPLETED)
    if row.stage == STAGE_COMPLETED and row.payment_status != PaymentStatus.SKIPPED.value:
        raise HTTPException(status_code=409, detail=f"Payment is already {row.payment_status}")
    kind = ApplicationKind(row.kind)
    orchestrator = SubmissionOrchestrator(client)
    with failing_action("Skipping payment"):
        payment = await orchestrator.skip(
            kind.payment_type, row.application_id, _payment_stage(row), payment_id=row.payment_id
        )
    row.payment_id = payment.id
    row.payment_status = payment.payment_status.value
    row.stage = STAGE_COMPLETED
    await db.flush()
    out = _payment_to_response(row, payment)
    out["message"] = "Application submitted. You can complete the payment later."
    return out


@router.delete("/{draft_id}", status_code=204)
async def discard_draft(draft_id: str, db: AsyncSession = Depends(get_db)):
    row = await _get_draft(db, draft_id)
    await db.delete(row)
    await db.flush()
    return None
