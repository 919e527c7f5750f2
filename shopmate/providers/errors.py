# shopmate/providers/errors.py

"""Exceptions raised by external model providers."""


class ProviderError(Exception):
    """Base class for any failure talking to an external provider."""


class ProviderNotConfiguredError(ProviderError):
    """No usable credential was configured for the provider."""


class ProviderHTTPError(ProviderError):
    """The provider answered with a non-200 status."""

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP {status_code}: {body[:200]}")


class MalformedResponseError(ProviderError):
    """The provider answered, but not in the expected shape."""
