"""
Remote client against an httpx.MockTransport: routing, auth header, error mapping.
Run: python -m pytest tests/test_remote_client.py -v
"""
import unittest

import httpx

from schemas.application import ApplicationKind, Attachment
from schemas.card import CardCreate, CardStatus
from schemas.payment import PaymentStatus
from services.errors import (
    AttachmentUploadError,
    DuplicateCardNumberError,
    RequestError,
    RequestTimeoutError,
)
from services.payment_stage import PaymentStage
from services.remote_client import MEDICAL_DOCUMENTS, RemoteServiceClient
from tests.helpers import BASE_URL, FakeRemote, application_json, error, payment_json


def _card_create() -> CardCreate:
    return CardCreate(
        card_number="NDAid-1001",
        cardholder_name="Amal Haddad",
        card_type="National Disability Card",
        issued_date="2025-01-31",
        expiry_date="2027-01-31",
        original_application_id=7,
        original_application_type="disability",
    )


class TestApplications(unittest.IsolatedAsyncioTestCase):
    async def test_submit_posts_to_kind_endpoint(self):
        remote = FakeRemote({("POST", "/CarersApplication"): application_json(9)})
        async with remote.client() as client:
            app = await client.submit_application(ApplicationKind.CARER, {"firstName": "Amal"})
        self.assertEqual(app.id, 9)
        self.assertEqual(remote.json_body("POST", "/CarersApplication"), {"firstName": "Amal"})

    async def test_status_is_read_case_insensitively(self):
        remote = FakeRemote({("GET", "/DisabilityApplication/7"): application_json(7, "Approved")})
        async with remote.client() as client:
            app = await client.get_application(ApplicationKind.DISABILITY, 7)
        self.assertEqual(app.application_status.value, "approved")

    async def test_missing_application_is_none(self):
        async with FakeRemote().client() as client:
            self.assertIsNone(await client.get_application(ApplicationKind.DISABILITY, 404))

    async def test_list_accepts_wrapped_and_bare_lists(self):
        remote = FakeRemote(
            {
                ("GET", "/DisabilityApplication"): [application_json(1)],
                ("GET", "/CarersApplication"): {"applications": [application_json(2), application_json(3)]},
            }
        )
        async with remote.client() as client:
            self.assertEqual([a.id for a in await client.list_applications(ApplicationKind.DISABILITY)], [1])
            self.assertEqual([a.id for a in await client.list_applications(ApplicationKind.CARER)], [2, 3])

    async def test_status_update_uses_slug(self):
        remote = FakeRemote({("PUT", "/ApplicationStatus/customer-support/5"): httpx.Response(204)})
        async with remote.client(token="adm") as client:
            await client.update_application_status(ApplicationKind.CUSTOMER_SUPPORT, 5, "approved")
        self.assertEqual(remote.json_body("PUT", "/ApplicationStatus/customer-support/5"), {"status": "approved"})

    async def test_upload_failure_is_attachment_error(self):
        remote = FakeRemote({("POST", "/DisabilityApplication/7/medical-documents"): error(500, "disk full")})
        doc = Attachment(filename="report.pdf", content_type="application/pdf", content=b"%PDF")
        async with remote.client() as client:
            with self.assertRaises(AttachmentUploadError) as ctx:
                await client.upload_attachment(7, ApplicationKind.DISABILITY, doc, MEDICAL_DOCUMENTS)
        self.assertEqual(ctx.exception.message, "disk full")

    async def test_bulk_upload_returns_stored_names(self):
        remote = FakeRemote({("POST", "/CarersApplication/upload-documents"): ["a_1.pdf", "b_2.pdf"]})
        files = [Attachment(filename=n, content=b"x") for n in ("a.pdf", "b.pdf")]
        async with remote.client() as client:
            self.assertEqual(await client.upload_many_attachments(files), ["a_1.pdf", "b_2.pdf"])


class TestErrorMapping(unittest.IsolatedAsyncioTestCase):
    async def test_error_message_is_verbatim_response_text(self):
        remote = FakeRemote({("POST", "/DisabilityApplication"): error(400, "Emirates ID already registered")})
        async with remote.client() as client:
            with self.assertRaises(RequestError) as ctx:
                await client.submit_application(ApplicationKind.DISABILITY, {})
        self.assertEqual(ctx.exception.message, "Emirates ID already registered")
        self.assertEqual(ctx.exception.status_code, 400)

    async def test_empty_error_body_gets_action_fallback(self):
        remote = FakeRemote({("POST", "/Payment"): error(500, "")})
        async with remote.client() as client:
            with self.assertRaises(RequestError) as ctx:
                await client.create_payment(_payment_input())
        self.assertEqual(ctx.exception.message, "Payment creation failed")

    async def test_timeout(self):
        def hang(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = RemoteServiceClient(base_url=BASE_URL, transport=httpx.MockTransport(hang))
        async with client:
            with self.assertRaises(RequestTimeoutError) as ctx:
                await client.get_payment(1)
        self.assertTrue(ctx.exception.retryable)

    async def test_upload_timeout_is_attachment_error(self):
        def hang(request):
            raise httpx.WriteTimeout("timed out", request=request)

        doc = Attachment(filename="me.jpg", content_type="image/jpeg", content=b"img")
        async with RemoteServiceClient(base_url=BASE_URL, transport=httpx.MockTransport(hang)) as client:
            with self.assertRaises(AttachmentUploadError):
                await client.upload_attachment(7, ApplicationKind.DISABILITY, doc)

    async def test_transport_failure(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with RemoteServiceClient(base_url=BASE_URL, transport=httpx.MockTransport(refuse)) as client:
            with self.assertRaises(RequestError) as ctx:
                await client.get_payment(1)
        self.assertIsNone(ctx.exception.status_code)


class TestAuth(unittest.IsolatedAsyncioTestCase):
    async def test_admin_token_sent_as_bearer(self):
        remote = FakeRemote({("GET", "/Payment/1"): payment_json(1)})
        async with remote.client(token="secret") as client:
            await client.get_payment(1)
        self.assertEqual(remote.calls[0].headers["Authorization"], "Bearer secret")

    async def test_anonymous_client_sends_no_authorization(self):
        remote = FakeRemote({("GET", "/Payment/1"): payment_json(1)})
        async with remote.client() as client:
            await client.get_payment(1)
        self.assertNotIn("Authorization", remote.calls[0].headers)


def _payment_input():
    return PaymentStage(first_name="Amal", last_name="Haddad", phone_number="1").create_payload("Disability", 7)


class TestPayments(unittest.IsolatedAsyncioTestCase):
    async def test_lookup_by_application(self):
        remote = FakeRemote({("GET", "/Payment/application/Disability/7"): payment_json(11)})
        async with remote.client() as client:
            payment = await client.get_payment_by_application("Disability", 7)
            self.assertEqual(payment.id, 11)
            self.assertIsNone(await client.get_payment_by_application("Carers", 7))

    async def test_skip_twice_is_idempotent(self):
        remote = FakeRemote(
            {
                ("POST", "/Payment/11/skip"): (payment_json(11, "Skipped"), error(400, "Payment already skipped")),
                ("GET", "/Payment/11"): payment_json(11, "Skipped"),
            }
        )
        async with remote.client() as client:
            first = await client.skip_payment(11)
            second = await client.skip_payment(11)
        self.assertIs(first.payment_status, PaymentStatus.SKIPPED)
        self.assertIs(second.payment_status, PaymentStatus.SKIPPED)

    async def test_skip_rejected_for_other_reason_propagates(self):
        remote = FakeRemote(
            {
                ("POST", "/Payment/11/skip"): error(400, "Payment is confirmed"),
                ("GET", "/Payment/11"): payment_json(11, "Confirmed"),
            }
        )
        async with remote.client() as client:
            with self.assertRaises(RequestError) as ctx:
                await client.skip_payment(11)
        self.assertEqual(ctx.exception.message, "Payment is confirmed")

    async def test_confirm_transfer_omits_empty_details(self):
        remote = FakeRemote({("POST", "/Payment/11/confirm-transfer"): payment_json(11, "Submitted")})
        stage = PaymentStage(first_name="Amal", last_name="Haddad", phone_number="1", bank_name="ADCB")
        async with remote.client() as client:
            payment = await client.confirm_bank_transfer(11, stage.transfer_details())
        self.assertIs(payment.payment_status, PaymentStatus.SUBMITTED)
        body = remote.json_body("POST", "/Payment/11/confirm-transfer")
        self.assertEqual(body["bankName"], "ADCB")
        self.assertNotIn("transactionReference", body)

    async def test_status_filter_applies_to_any_page_size(self):
        mixed = [payment_json(1, "Pending"), payment_json(2, "Confirmed"), payment_json(3, "Pending")]
        remote = FakeRemote({("GET", "/Payment"): {"payments": mixed, "pagination": {"currentPage": 1}}})
        async with remote.client(token="adm") as client:
            for size in (1, 10, 100):
                page = await client.list_payments(page_size=size, status="Pending")
                self.assertEqual([p.id for p in page.payments], [1, 3])
                self.assertTrue(all(p.payment_status is PaymentStatus.PENDING for p in page.payments))
        self.assertEqual(remote.calls[0].url.params["status"], "Pending")

    async def test_lowercase_remote_status_is_normalized(self):
        remote = FakeRemote({("GET", "/Payment"): {"payments": [payment_json(1, "pending"), payment_json(2, "SKIPPED")]}})
        async with remote.client(token="adm") as client:
            page = await client.list_payments()
            filtered = await client.list_payments(status=PaymentStatus.PENDING)
        self.assertEqual([p.payment_status for p in page.payments], [PaymentStatus.PENDING, PaymentStatus.SKIPPED])
        self.assertEqual([p.id for p in filtered.payments], [1])

    async def test_list_tolerates_unexpected_shape(self):
        remote = FakeRemote({("GET", "/Payment"): ["not", "a", "page"]})
        async with remote.client(token="adm") as client:
            page = await client.list_payments(page=2, page_size=5)
        self.assertEqual(page.payments, [])
        self.assertEqual(page.pagination.current_page, 2)

    async def test_admin_status_update_sends_notes(self):
        remote = FakeRemote({("PUT", "/Payment/11/status"): payment_json(11, "Confirmed")})
        async with remote.client(token="adm") as client:
            payment = await client.update_payment_status(11, PaymentStatus.CONFIRMED, notes="Checked statement")
        self.assertIs(payment.payment_status, PaymentStatus.CONFIRMED)
        self.assertEqual(
            remote.json_body("PUT", "/Payment/11/status"),
            {"paymentStatus": "Confirmed", "adminNotes": "Checked statement"},
        )


class TestCards(unittest.IsolatedAsyncioTestCase):
    async def test_check_number(self):
        remote = FakeRemote({("GET", "/Card/check-number/NDAid-1001"): {"exists": True}})
        async with remote.client(token="adm") as client:
            self.assertTrue(await client.check_card_number_exists("NDAid-1001"))
            self.assertFalse(await client.check_card_number_exists("NDAid-2002"))

    async def test_create_conflict_is_duplicate_error(self):
        remote = FakeRemote({("POST", "/Card"): error(409, "Conflict")})
        async with remote.client(token="adm") as client:
            with self.assertRaises(DuplicateCardNumberError) as ctx:
                await client.create_card(_card_create())
        self.assertEqual(ctx.exception.card_number, "NDAid-1001")
        self.assertFalse(ctx.exception.retryable)

    async def test_create_bad_request_mentioning_duplicate(self):
        remote = FakeRemote({("POST", "/Card"): error(400, "Card number already exists")})
        async with remote.client(token="adm") as client:
            with self.assertRaises(DuplicateCardNumberError):
                await client.create_card(_card_create())

    async def test_create_other_failure_stays_request_error(self):
        remote = FakeRemote({("POST", "/Card"): error(400, "Expiry date must be after issued date")})
        async with remote.client(token="adm") as client:
            with self.assertRaises(RequestError) as ctx:
                await client.create_card(_card_create())
        self.assertNotIsInstance(ctx.exception, DuplicateCardNumberError)

    async def test_card_dates_strip_time_part(self):
        card = {
            "id": 3,
            "cardNumber": "NDAid-1001",
            "cardholderName": "Amal Haddad",
            "cardType": "National Disability Card",
            "issuedDate": "2025-01-31T00:00:00",
            "expiryDate": "2027-01-31T00:00:00",
            "status": "Inactive",
        }
        remote = FakeRemote({("GET", "/Card/application/disability/7"): card})
        async with remote.client(token="adm") as client:
            found = await client.get_card_by_application(7, ApplicationKind.DISABILITY)
        self.assertEqual(found.issued_date.isoformat(), "2025-01-31")
        self.assertIs(found.status, CardStatus.INACTIVE)


class TestAssets(unittest.IsolatedAsyncioTestCase):
    async def test_fetch_asset_returns_bytes_and_type(self):
        def serve(request):
            return httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"})

        async with RemoteServiceClient(base_url=BASE_URL, transport=httpx.MockTransport(serve)) as client:
            content, content_type = await client.fetch_asset("https://remote.test/uploads/p.png")
        self.assertEqual(content, b"\x89PNG")
        self.assertEqual(content_type, "image/png")

    async def test_fetch_asset_never_sends_admin_token(self):
        seen = []

        def serve(request):
            seen.append((request.url.host, request.headers.get("Authorization")))
            return httpx.Response(200, content=b"ok")

        transport = httpx.MockTransport(serve)
        async with RemoteServiceClient(base_url=BASE_URL, token="admin-secret", transport=transport) as client:
            await client.fetch_asset("https://remote.test/uploads/p.png")
            await client.fetch_asset("https://attacker.example/steal.png")
        self.assertEqual(seen, [("remote.test", None), ("attacker.example", None)])

    async def test_fetch_asset_failure(self):
        async with FakeRemote().client() as client:
            with self.assertRaises(RequestError):
                await client.fetch_asset("https://remote.test/uploads/missing.png")


if __name__ == "__main__":
    unittest.main()
