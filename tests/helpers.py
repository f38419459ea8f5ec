"""Shared fixtures: filled drafts and a recording fake of the remote service."""
import json
from typing import Any, Optional

import httpx

from schemas.application import ApplicationDraft, ApplicationKind
from services.remote_client import RemoteServiceClient

BASE_URL = "https://remote.test/api"


def filled_draft(kind: ApplicationKind = ApplicationKind.DISABILITY, **overrides: Any) -> ApplicationDraft:
    values = {
        "firstName": "Amal",
        "lastName": "Haddad",
        "dateOfBirth": "1990-04-02",
        "gender": "female",
        "nationality": "UAE",
        "emiratesId": "784-1990-1234567-1",
        "phoneNumber": "+971500000001",
        "email": "amal@example.com",
        "address": "12 Corniche Rd",
        "city": "Abu Dhabi",
        "emirate": "Abu Dhabi",
        "emergencyContactName": "Omar Haddad",
        "emergencyContactPhone": "+971500000002",
    }
    if kind is ApplicationKind.DISABILITY:
        values.update(disabilityType="Visual", disabilityDescription="Low vision")
    elif kind is ApplicationKind.CARER:
        values.update(careRecipientName="Sara Haddad", relationshipToRecipient="Mother")
    else:
        values.update(supportType="Mobility", supportDescription="Wheelchair access")
    values.update(overrides)
    return ApplicationDraft.empty(kind).with_updates(values)


def application_json(application_id: int = 7, status: str = "Pending", **extra: Any) -> dict[str, Any]:
    body = {
        "id": application_id,
        "applicationStatus": status,
        "firstName": "Amal",
        "lastName": "Haddad",
        "email": "amal@example.com",
        "phoneNumber": "+971500000001",
        "createdAt": "2025-01-31T10:00:00",
    }
    body.update(extra)
    return body


def payment_json(payment_id: int = 11, status: str = "Pending", **extra: Any) -> dict[str, Any]:
    body = {
        "id": payment_id,
        "applicationType": "Disability",
        "applicationId": 7,
        "firstName": "Amal",
        "lastName": "Haddad",
        "phoneNumber": "+971500000001",
        "baseAmount": 100,
        "lanyardAmount": 0,
        "totalAmount": 100,
        "includeLanyard": False,
        "paymentMethod": "bank-transfer",
        "paymentStatus": status,
    }
    body.update(extra)
    return body


class FakeRemote:
    """
    Route table keyed by (method, path suffix after the API base).
    Values are a response, a callable taking the request, or a tuple of those consumed in order (the last one repeats). Lists are JSON bodies.
    Every request is recorded in ``calls``.
    """

    def __init__(self, routes: Optional[dict[tuple[str, str], Any]] = None):
        self.routes = dict(routes or {})
        self.calls: list[httpx.Request] = []

    def paths(self, method: Optional[str] = None) -> list[str]:
        return [self._path(r) for r in self.calls if method is None or r.method == method]

    def json_body(self, method: str, path: str) -> Any:
        for r in self.calls:
            if r.method == method and self._path(r) == path:
                return json.loads(r.content)
        raise AssertionError(f"no {method} {path} call")

    @staticmethod
    def _path(request: httpx.Request) -> str:
        return request.url.path.removeprefix("/api")

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        key = (request.method, self._path(request))
        if key not in self.routes:
            return httpx.Response(404, text="Not Found")
        route = self.routes[key]
        if isinstance(route, tuple):
            if len(route) > 1:
                self.routes[key] = route[1:]
            route = route[0]
        if callable(route):
            route = route(request)
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)

    def client(self, token: Optional[str] = None) -> RemoteServiceClient:
        return RemoteServiceClient(base_url=BASE_URL, token=token, transport=httpx.MockTransport(self.handler))


def error(status: int, text: str) -> httpx.Response:
    return httpx.Response(status, text=text)
