"""Error taxonomy shared by the mood and chat services.

Absence of data is never an error here: empty windows, unknown days and
users without a summary come back as ``[]``, ``{}`` or ``None``.
"""

import sqlite3


class MoodCoreError(Exception):
    """Base error for the mood journal core."""


class ValidationError(MoodCoreError):
    """Rejected input (unknown mood, missing field, bad date). Raised before any write."""


class StoreError(MoodCoreError):
    """Storage failure wrapped into a stable message."""


class DuplicateError(StoreError):
    """A unique constraint rejected the write."""


class UpstreamGenerationError(MoodCoreError):
    """The text generator was unreachable or returned unusable output."""


def wrap_store_error(exc):
    """Translate a sqlite3 error into the matching StoreError subclass."""
    if isinstance(exc, sqlite3.IntegrityError):
        if "UNIQUE" in str(exc).upper():
            return DuplicateError("Duplicate entry. This record already exists.")
        if "FOREIGN KEY" in str(exc).upper():
            return StoreError(
                "This operation affects related records that cannot be modified."
            )
    return StoreError(f"A database error occurred: {exc}")
