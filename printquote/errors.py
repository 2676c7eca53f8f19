"""
Error taxonomy shared by the domain, storage and HTTP layers.

Routers never build these by hand; main.py maps each class to a status code.
"""


class QuoteError(RuntimeError):
    """Base class for every error the quoting core reports."""


class ValidationError(QuoteError, ValueError):
    """Missing required field or value outside an enumerated set."""


class NotFoundError(QuoteError):
    """Referenced quote, material, sector, etc. does not exist."""


class ConflictError(QuoteError):
    """Duplicate quote code. The caller may regenerate the code and retry."""


class TransientStorageError(QuoteError):
    """Storage failed and rolled back; nothing was committed."""


class RenderingError(QuoteError):
    """Document rendering failed. Recoverable: the artifact is left stale."""
