"""Exceptions raised by the fal.ai, Notion and payment collaborators.

The tool layer catches LioraError and reports str(err) to the calling agent,
so every message starts with the error class in brackets.
"""

from __future__ import annotations

from typing import Iterable


class LioraError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"[{type(self).__name__}] {self.message}"


class ConfigurationError(LioraError):
    """Required settings are missing from the environment, or set to unusable values."""

    def __init__(self, missing: Iterable[str] = (), invalid: Iterable[str] = ()):
        self.missing = list(missing)
        self.invalid = list(invalid)
        parts = []
        if self.missing:
            parts.append("Missing config: " + ", ".join(self.missing))
        if self.invalid:
            parts.append("Invalid config: " + ", ".join(self.invalid))
        super().__init__("; ".join(parts))


class UpstreamRequestError(LioraError):
    """A hosted service could not be reached or rejected the request."""


class FalRequestError(UpstreamRequestError):
    pass


class NotionQueryError(UpstreamRequestError):
    pass


class PaymentRequestError(UpstreamRequestError):
    pass


class ResponseShapeError(LioraError):
    """A hosted service answered with a payload we cannot interpret."""


class PaymentClaimError(ResponseShapeError):
    """The payment API refused the claim or answered with a malformed body."""
