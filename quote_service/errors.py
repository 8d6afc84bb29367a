"""Exception types raised by the quote service."""

from __future__ import annotations


class QuoteServiceError(Exception):
    """Base class for every error surfaced to the caller of an action."""


class InvalidRequestError(QuoteServiceError):
    """Required input is missing or malformed; raised before any network call."""


class EmailDeliveryError(QuoteServiceError):
    def __init__(self, message: str, status_code: int | None = None, details: dict | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details or {}


class JobManagementError(QuoteServiceError):
    def __init__(self, message: str, status: str | int | None = None):
        super().__init__(message)
        self.status = status


class AIServiceError(QuoteServiceError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
