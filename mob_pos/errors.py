"""
Error types raised by the point-of-sale core.

Every error carries a message that can be shown to the operator as is. Domain
errors (everything except StorageError) are raised before any state changes.
"""


class PosError(Exception):
    """Base class for all point-of-sale errors."""
    pass


class ValidationError(PosError):
    """Raised on bad operator input: empty name, non-numeric or non-positive price or quantity."""
    pass


class NotFoundError(PosError):
    """Raised when a barcode or bill id is not present."""
    pass


class OutOfStockError(PosError):
    """Raised when a scanned item has no stock left."""
    pass


class InsufficientStockError(PosError):
    """Raised when a bill line would exceed the available stock."""
    pass


class EmptyBillError(PosError):
    """Raised on checkout of a session without lines."""
    pass


class StorageError(PosError):
    """Raised when the blob store cannot be read or written."""
    pass
