"""Error taxonomy for ingestion and reconciliation."""
from typing import Optional


class SyncError(Exception):
    """Base class for errors raised by the sync components."""


class ValidationError(SyncError):
    """Inbound event or queue row is missing required data."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class MappingError(SyncError):
    """Queue row cannot be turned into a lead update."""


class UnsupportedPaymentType(MappingError):
    """payment_type is neither 'prepayment' nor 'full'."""

    def __init__(self, payment_type: str):
        super().__init__(f"Unsupported payment type: {payment_type!r}")
        self.payment_type = payment_type


class TransientError(SyncError):
    """Network, timeout or 5xx failure talking to the CRM or the sheet."""


class CrmError(SyncError):
    """CRM rejected a request (4xx other than rate limiting)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
