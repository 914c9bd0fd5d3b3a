"""
Error taxonomy for the chat pipeline.

Collaborator failures are raised as one of these and caught by the caller
that owns the matching fallback; only the HTTP layer turns them into status
codes.
"""
from typing import Any


class CoinMindError(Exception):
    """Base class for every error raised by this package."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(CoinMindError):
    """Raised when required configuration (e.g. the LLM API key) is missing."""


class InvalidFormatError(CoinMindError):
    """Raised when an import message does not carry the expected marker."""


class LLMError(CoinMindError):
    """Raised when the completion service fails or returns nothing usable."""


class LedgerError(CoinMindError):
    """Raised when the transaction or profile store fails."""


class ConversionError(CoinMindError):
    """Raised when the exchange-rate service cannot convert an amount."""


class ImportRowError(CoinMindError):
    """Raised for a single spreadsheet row that cannot be imported."""


class ImportFailedError(CoinMindError):
    """Raised when an import phase cannot complete at all."""
