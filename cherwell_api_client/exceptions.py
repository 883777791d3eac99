"""
Custom exception types for the Cherwell API client.

These exceptions allow callers to distinguish between failures
occurring during authentication and those arising from API requests.
They are only seen outside the client when it is created with
``raise_errors=True``; otherwise failures are logged and the public
methods return ``None``.
"""

from typing import Optional


class CherwellError(Exception):
    """Base exception for all Cherwell client errors."""


class CherwellAuthError(CherwellError):
    """Raised when login or a token exchange fails."""


class CherwellAPIError(CherwellError):
    """Raised when an API call fails or its response cannot be decoded.

    ``method`` and ``url`` identify the failed call; ``status_code`` is
    set when a response was received.
    """

    def __init__(
        self,
        message: str,
        *,
        method: Optional[str] = None,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.method = method
        self.url = url
        self.status_code = status_code
