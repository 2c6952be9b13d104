# referral_tracker/record_store/exceptions.py

from typing import Optional


class RecordStoreError(Exception):
    """Base error for any failed call to the hosted record store."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class FetchError(RecordStoreError):
    """A read query could not be completed."""


class MutationError(RecordStoreError):
    """An update, insert, delete or RPC call was rejected or failed in transit."""


class RecordStoreNotConfigured(RecordStoreError):
    """No record store URL is configured; the dashboard runs read-only."""


class RegressionReasonRequired(ValueError):
    """A backward stage change was attempted without a reason."""
