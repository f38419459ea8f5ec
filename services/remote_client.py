"""
Async client for the remote application / payment / card service (system of record).

One instance per caller identity: applicant flows build it without a token,
admin flows pass the admin's bearer token explicitly. No retries happen here;
a failed call surfaces to its caller immediately.
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Union

import httpx

from config import settings
from schemas.application import ApplicationKind, Attachment, SubmittedApplication
from schemas.card import Card, CardCreate, CardUpdate
from schemas.payment import (
    ConfirmBankTransferInput,
    CreatePaymentInput,
    Payment,
    PaymentPage,
    PaymentStatus,
    UpdatePaymentStatusInput,
)
from services.errors import (
    AttachmentUploadError,
    DuplicateCardNumberError,
    RequestError,
    RequestTimeoutError,
)

logger = logging.getLogger(__name__)

PROFILE_PICTURE = "profile-picture"
MEDICAL_DOCUMENTS = "medical-documents"


def _looks_like_duplicate(message: str) -> bool:
    text = message.lower()
    return "already exists" in text or "duplicate" in text


class RemoteServiceClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.base_url = (base_url or settings.remote_api_url).rstrip("/")
        self.authenticated = bool(token)
        self._timeout = timeout if timeout is not None else settings.remote_timeout_seconds
        self._transport = transport
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self._timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "RemoteServiceClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        action: str,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
        files: Any = None,
        absent_on_404: bool = False,
        error_cls: type[RequestError] = RequestError,
    ) -> Any:
        logger.debug("REMOTE %s %s", method, path)
        try:
            response = await self._http.request(method, path, json=json, params=params, files=files)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"{action} timed out; please try again") from e
        except httpx.HTTPError as e:
            raise error_cls(f"{action} failed: {e}") from e

        if response.status_code == 404 and absent_on_404:
            return None
        if response.is_error:
            message = response.text.strip() or f"{action} failed"
            logger.warning("REMOTE %s %s -> %s: %s", method, path, response.status_code, message)
            raise error_cls(message, response.status_code)
        if not response.content:
            return None
        return response.json()

    # -- applications -------------------------------------------------------

    async def submit_application(self, kind: ApplicationKind, fields: dict[str, Any]) -> SubmittedApplication:
        data = await self._request("POST", f"/{kind.endpoint}", json=fields, action="Application submission")
        return SubmittedApplication.model_validate(data)

    async def upload_attachment(
        self,
        application_id: int,
        kind: ApplicationKind,
        file: Attachment,
        target: str = PROFILE_PICTURE,
    ) -> None:
        try:
            await self._request(
                "POST",
                f"/{kind.endpoint}/{application_id}/{target}",
                files=[("file", file.as_file_part())],
                action=f"Upload of {file.filename}",
                error_cls=AttachmentUploadError,
            )
        except RequestTimeoutError as e:
            raise AttachmentUploadError(e.message) from e

    async def upload_many_attachments(self, files: list[Attachment]) -> list[str]:
        """Store carer supporting documents; returns the stored names the create call embeds."""
        data = await self._request(
            "POST",
            f"/{ApplicationKind.CARER.endpoint}/upload-documents",
            files=[("files", f.as_file_part()) for f in files],
            action="Supporting document upload",
        )
        return [str(name) for name in (data or [])]

    async def get_application(self, kind: ApplicationKind, application_id: int) -> Optional[SubmittedApplication]:
        data = await self._request(
            "GET", f"/{kind.endpoint}/{application_id}", action="Application lookup", absent_on_404=True
        )
        return SubmittedApplication.model_validate(data) if data is not None else None

    async def list_applications(self, kind: ApplicationKind) -> list[SubmittedApplication]:
        data = await self._request("GET", f"/{kind.endpoint}", action="Application listing", absent_on_404=True)
        if isinstance(data, dict):
            data = data.get("applications")
        return [SubmittedApplication.model_validate(a) for a in (data or [])]

    async def update_application_status(self, kind: ApplicationKind, application_id: int, status: str) -> None:
        await self._request(
            "PUT",
            f"/ApplicationStatus/{kind.status_slug}/{application_id}",
            json={"status": status},
            action="Application status update",
        )

    # -- payments -----------------------------------------------------------

    async def create_payment(self, payment: CreatePaymentInput) -> Payment:
        data = await self._request("POST", "/Payment", json=payment.to_wire(), action="Payment creation")
        return Payment.model_validate(data)

    async def get_payment(self, payment_id: int) -> Optional[Payment]:
        data = await self._request("GET", f"/Payment/{payment_id}", action="Payment lookup", absent_on_404=True)
        return Payment.model_validate(data) if data is not None else None

    async def get_payment_by_application(self, application_type: str, application_id: int) -> Optional[Payment]:
        data = await self._request(
            "GET",
            f"/Payment/application/{application_type}/{application_id}",
            action="Payment lookup",
            absent_on_404=True,
        )
        return Payment.model_validate(data) if data is not None else None

    async def confirm_bank_transfer(self, payment_id: int, details: ConfirmBankTransferInput) -> Payment:
        data = await self._request(
            "POST",
            f"/Payment/{payment_id}/confirm-transfer",
            json=details.to_wire(exclude_none=True),
            action="Bank transfer confirmation",
        )
        return Payment.model_validate(data)

    async def skip_payment(self, payment_id: int) -> Payment:
        """
        Mark a payment as skipped ("pay later").
        A repeated skip may be rejected by the server; if the payment is already
        Skipped that is treated as success.
        """
        try:
            data = await self._request("POST", f"/Payment/{payment_id}/skip", action="Skipping payment")
        except RequestError as e:
            if e.status_code is None or e.status_code >= 500:
                raise
            current = await self.get_payment(payment_id)
            if current is not None and current.payment_status is PaymentStatus.SKIPPED:
                logger.info("Payment %s was already skipped", payment_id)
                return current
            raise
        if data is None:
            current = await self.get_payment(payment_id)
            if current is None:
                raise RequestError("Skipping payment failed: payment not found", 404)
            return current
        return Payment.model_validate(data)

    async def update_payment_status(
        self,
        payment_id: int,
        status: Union[PaymentStatus, str],
        notes: Optional[str] = None,
        **transfer_details: Optional[str],
    ) -> Payment:
        body = UpdatePaymentStatusInput(payment_status=status, admin_notes=notes, **transfer_details)
        data = await self._request(
            "PUT",
            f"/Payment/{payment_id}/status",
            json=body.to_wire(exclude_none=True),
            action="Payment status update",
        )
        return Payment.model_validate(data)

    async def list_payments(
        self, page: int = 1, page_size: int = 10, status: Optional[Union[PaymentStatus, str]] = None
    ) -> PaymentPage:
        params: dict[str, Any] = {"page": page, "pageSize": page_size}
        status_value = PaymentStatus(status).value if status else None
        if status_value:
            params["status"] = status_value
        data = await self._request("GET", "/Payment", params=params, action="Payment listing")
        if not isinstance(data, dict):
            return PaymentPage.model_validate({"pagination": {"currentPage": page, "pageSize": page_size}})
        page_data = PaymentPage.model_validate(
            {
                "payments": data.get("payments") if isinstance(data.get("payments"), list) else [],
                "pagination": data.get("pagination") or {"currentPage": page, "pageSize": page_size},
            }
        )
        if status_value:
            page_data.payments = [p for p in page_data.payments if p.payment_status.value == status_value]
        return page_data

    # -- cards --------------------------------------------------------------

    async def check_card_number_exists(self, card_number: str) -> bool:
        data = await self._request(
            "GET", f"/Card/check-number/{card_number}", action="Card number check", absent_on_404=True
        )
        if isinstance(data, dict):
            return bool(data.get("exists"))
        return bool(data)

    async def create_card(self, card: CardCreate) -> Card:
        try:
            data = await self._request("POST", "/Card", json=card.to_wire(), action="Card creation")
        except RequestError as e:
            if e.status_code == 409 or (e.status_code == 400 and _looks_like_duplicate(e.message)):
                raise DuplicateCardNumberError(card.card_number, e.status_code) from e
            raise
        return Card.model_validate(data)

    async def update_card(self, card_id: int, changes: CardUpdate) -> Card:
        data = await self._request(
            "PUT", f"/Card/{card_id}", json=changes.to_wire(exclude_none=True), action="Card update"
        )
        return Card.model_validate(data)

    async def get_card_by_application(self, application_id: int, kind: ApplicationKind) -> Optional[Card]:
        data = await self._request(
            "GET", f"/Card/application/{kind.value}/{application_id}", action="Card lookup", absent_on_404=True
        )
        return Card.model_validate(data) if data else None

    # -- assets -------------------------------------------------------------

    async def fetch_asset(self, url: str) -> tuple[bytes, str]:
        # assets are public; the bearer token stays on the API client
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as http:
                response = await http.get(url, follow_redirects=True)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError("Download timed out; please try again") from e
        except httpx.HTTPError as e:
            raise RequestError(f"Download failed: {e}") from e
        if response.is_error:
            raise RequestError(f"Download failed: HTTP {response.status_code}", response.status_code)
        return response.content, response.headers.get("content-type", "application/octet-stream")
