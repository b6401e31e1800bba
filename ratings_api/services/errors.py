"""Error taxonomy for rating resolution, updates and fetching.

Read path:   StoreUnavailable is swallowed and degrades to the fallback table.
Write path:  StoreUnavailable propagates to the caller.
Batch path:  ExternalFetchFailed degrades to a fallback record.
"""


class RatingError(RuntimeError):
    """Base class for all rating subsystem errors."""


class InvalidProviderKey(RatingError, ValueError):
    """Provider name normalizes to an empty key."""

    def __init__(self, raw: object):
        self.raw = raw
        super().__init__(f"Invalid provider name: {raw!r}")


class InvalidRatingValue(RatingError, ValueError):
    """Rating outside the 0-5 range."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Rating must be between 0 and 5, got {value!r}")


class StoreUnavailable(RatingError):
    """Rating store read or write failed."""


class ExternalFetchFailed(RatingError):
    """External rating lookup failed or returned nothing usable."""
