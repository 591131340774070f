"""Typed exception hierarchy for price source errors.

Lets callers tell a timed-out or unreachable upstream apart from a bad
HTTP response or an unparseable payload. The price cache treats all of
them the same way (every requested id is missing for this fetch), but
the distinction is kept for logging and for the scheduler's cycle report.
"""


class ProviderError(Exception):
    """Base exception for all price source errors.

    Carries the provider name so callers can identify which source failed.
    """

    def __init__(self, message: str, provider_name: str = ""):
        self.provider_name = provider_name
        super().__init__(message)


class ProviderConnectionError(ProviderError):
    """Network failures: timeouts, DNS resolution, connection refused."""

    def __init__(
        self,
        message: str,
        provider_name: str = "",
        timed_out: bool = False,
    ):
        self.timed_out = timed_out
        super().__init__(message, provider_name)


class ProviderAPIError(ProviderError):
    """HTTP 4xx/5xx responses from the provider API."""

    def __init__(
        self,
        message: str,
        provider_name: str = "",
        status_code: int | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, provider_name)

    @property
    def rate_limited(self) -> bool:
        return self.status_code == 429


class ProviderDataError(ProviderError):
    """Malformed or unparseable response from the provider."""

    pass
