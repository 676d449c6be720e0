"""Error taxonomy shared by the admission, allocation, and storage layers."""

from __future__ import annotations


class AdmissionError(ValueError):
    """Raised when a bid is rejected by the admission gate."""

    code = "admission_error"


class InvalidInput(AdmissionError):
    code = "invalid_input"


class BidTooLow(AdmissionError):
    code = "bid_too_low"


class InvalidHours(AdmissionError):
    code = "invalid_hours"


class DayClosed(AdmissionError):
    code = "day_closed"


class DuplicateBid(AdmissionError):
    code = "duplicate_bid"


class AllocationError(ValueError):
    """Raised when an allocation cannot be computed for a day."""

    code = "allocation_error"


class NoBidsForDay(AllocationError):
    code = "no_bids_for_day"


class StorageError(RuntimeError):
    """Raised when a storage backend is unreachable or fails mid-operation."""

    code = "storage_error"
