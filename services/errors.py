"""Error taxonomy shared by the form, the orchestrator and the remote client."""
from __future__ import annotations

from typing import Optional


class PortalError(Exception):
    """Base class for errors the portal reports to the caller."""


class ValidationError(PortalError):
    """Local, pre-network validation failure; no remote call was made."""

    def __init__(self, message: str, missing: Optional[list[str]] = None):
        super().__init__(message)
        self.message = message
        self.missing = list(missing or [])


class RequestError(PortalError):
    """Non-2xx response (or transport failure) from the remote service."""

    retryable = True
    # user-facing action name, set by the HTTP layer
    action: Optional[str] = None

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RequestTimeoutError(RequestError):
    pass


class AttachmentUploadError(RequestError):
    """Raised by optional attachment uploads; callers log it and carry on."""


class DuplicateCardNumberError(RequestError):
    retryable = False

    def __init__(self, card_number: str, status_code: Optional[int] = None):
        super().__init__("This card number already exists. Please use a different one.", status_code)
        self.card_number = card_number
