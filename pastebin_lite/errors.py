from __future__ import annotations


class PasteError(Exception):
    """Base class for paste-related errors."""


class PasteValidationError(PasteError):
    """Raised when creating a paste with invalid parameters."""


class IdentifierCollision(PasteError):
    """Raised by the store when a paste id is already taken."""

    def __init__(self, paste_id: str) -> None:
        super().__init__(f"Paste id {paste_id!r} already exists.")
        self.paste_id = paste_id


class ResourceExhausted(PasteError):
    """Raised when no free paste id could be allocated within the retry budget."""


class StoreError(PasteError):
    """Base class for infrastructure failures of the paste store."""


class StoreUnavailable(StoreError):
    """The store could not be reached or rejected the operation."""


class StoreTimeout(StoreError):
    """A store call did not complete within its timeout."""
