import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse, Response

from api.deps import get_admin_client
from api.errors import failing_action
from schemas.application import ApplicationKind, ApplicationStatusUpdate, SubmittedApplication
from schemas.card import CardIssueRequest, CardUpdate
from schemas.payment import PaymentStatus, UpdatePaymentStatusInput
from services.admin_review import ALL, check_payment_transition, filter_applications, filter_payments, status_update_message
from services.assets import content_disposition, download_filename, is_asset_host, resolve_asset_url
from services.card_issuer import CardIssuer
from services.errors import RequestError
from services.remote_client import RemoteServiceClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])

MSG_APPLICATION_NOT_FOUND = "Application not found"
MSG_PAYMENT_NOT_FOUND = "Payment not found"


async def _get_application(
    client: RemoteServiceClient, kind: ApplicationKind, application_id: int
) -> SubmittedApplication:
    with failing_action("Loading the application"):
        application = await client.get_application(kind, application_id)
    if not application:
        raise HTTPException(status_code=404, detail=MSG_APPLICATION_NOT_FOUND)
    return application


@router.get("/applications/{kind}")
async def list_applications(
    kind: ApplicationKind,
    search: str = "",
    status: str = ALL,
    client: RemoteServiceClient = Depends(get_admin_client),
):
    with failing_action("Loading applications"):
        applications = await client.list_applications(kind)
    matches = filter_applications(applications, search, status)
    return {
        "kind": kind.value,
        "total": len(applications),
        "applications": [a.to_wire() for a in matches],
    }


@router.get("/applications/{kind}/{application_id}")
async def get_application(
    kind: ApplicationKind,
    application_id: int,
    client: RemoteServiceClient = Depends(get_admin_client),
):
    application = await _get_application(client, kind, application_id)
    out = application.to_wire()
    out["profilePictureUrl"] = resolve_asset_url(application.profile_picture) if application.profile_picture else None
    return out


@router.put("/applications/{kind}/{application_id}/status")
async def update_application_status(
    kind: ApplicationKind,
    application_id: int,
    body: ApplicationStatusUpdate,
    client: RemoteServiceClient = Depends(get_admin_client),
):
    with failing_action("Status update"):
        await client.update_application_status(kind, application_id, body.status)
    logger.info("%s application %s marked %s", kind.value, application_id, body.status)
    application = await _get_application(client, kind, application_id)
    return {
        "message": f"Application {body.status} successfully",
        "application": application.to_wire(),
    }


@router.get("/payments")
async def list_payments(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100, alias="pageSize"),
    status: Optional[str] = None,
    application_type: Optional[str] = Query(None, alias="applicationType"),
    search: str = "",
    client: RemoteServiceClient = Depends(get_admin_client),
):
    if status and status.lower() == ALL:
        status = None
    status_filter = None
    if status:
        status_filter = next((s for s in PaymentStatus if s.value.lower() == status.lower()), None)
        if status_filter is None:
            raise HTTPException(status_code=400, detail=f"Unknown payment status: {status}")
    with failing_action("Loading payments"):
        result = await client.list_payments(page=page, page_size=page_size, status=status_filter)
    result.payments = filter_payments(result.payments, search, application_type)
    return result.to_wire()


@router.put("/payments/{payment_id}/status")
async def update_payment_status(
    payment_id: int,
    body: UpdatePaymentStatusInput,
    client: RemoteServiceClient = Depends(get_admin_client),
):
    with failing_action("Payment status update"):
        current = await client.get_payment(payment_id)
        if not current:
            raise HTTPException(status_code=404, detail=MSG_PAYMENT_NOT_FOUND)
        target = check_payment_transition(current, body.payment_status)
        payment = await client.update_payment_status(
            payment_id,
            target,
            notes=body.admin_notes,
            transaction_reference=body.transaction_reference,
            bank_name=body.bank_name,
            transfer_date=body.transfer_date,
        )
    logger.info("Payment %s moved %s -> %s", payment_id, current.payment_status.value, target.value)
    return {"message": status_update_message(target), "payment": payment.to_wire()}


@router.get("/cards/check")
async def check_card_number(
    number: str = Query(..., min_length=1),
    client: RemoteServiceClient = Depends(get_admin_client),
):
    with failing_action("Card number check"):
        return await CardIssuer(client).check_number(number)


@router.get("/applications/{kind}/{application_id}/card")
async def get_card_form(
    kind: ApplicationKind,
    application_id: int,
    client: RemoteServiceClient = Depends(get_admin_client),
):
    application = await _get_application(client, kind, application_id)
    with failing_action("Card lookup"):
        return await CardIssuer(client).prepare(application, kind)


@router.post("/applications/{kind}/{application_id}/card", status_code=201)
async def issue_card(
    kind: ApplicationKind,
    application_id: int,
    body: CardIssueRequest,
    client: RemoteServiceClient = Depends(get_admin_client),
):
    application = await _get_application(client, kind, application_id)
    with failing_action("Card creation"):
        card = await CardIssuer(client).issue(application, kind, body)
    return {"message": "Card created successfully!", "card": card.to_wire()}


@router.put("/cards/{card_id}")
async def update_card(
    card_id: int,
    body: CardUpdate,
    client: RemoteServiceClient = Depends(get_admin_client),
):
    with failing_action("Card update"):
        card = await CardIssuer(client).update(card_id, body)
    return {"message": "Card updated successfully!", "card": card.to_wire()}


@router.get("/assets")
async def download_asset(
    path: str = Query(..., min_length=1),
    filename: Optional[str] = None,
    client: RemoteServiceClient = Depends(get_admin_client),
):
    url = resolve_asset_url(path)
    if not is_asset_host(url):
        raise HTTPException(status_code=400, detail="Assets can only be downloaded from the asset host")
    try:
        content, content_type = await client.fetch_asset(url)
    except RequestError as e:
        # let the browser try the asset host directly
        logger.warning("Asset download via proxy failed for %s: %s", url, e.message)
        return RedirectResponse(url, status_code=307)
    return Response(
        content=content,
        media_type=content_type,
        headers={"Content-Disposition": content_disposition(filename or download_filename(url))},
    )
