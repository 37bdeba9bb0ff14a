"""Exception types raised by clinrev services."""


class ClinrevError(Exception):
    """Base class for all clinrev errors."""


class SnapshotValidationError(ClinrevError, ValueError):
    """An imported state snapshot is not a valid JSON object or fails schema checks."""


class UnknownRatingError(ClinrevError, ValueError):
    """A review rating outside again/hard/good/easy was supplied."""

    def __init__(self, value: object):
        super().__init__(f"Unknown rating {value!r}; expected one of again, hard, good, easy")
        self.value = value


class DuplicateSessionError(ClinrevError, ValueError):
    """A session with the same id is already in the history."""


class StorageError(ClinrevError):
    """The persistence backend could not be read or written."""
