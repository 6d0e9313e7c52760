"""
Exception types raised by the scheduling services.

Business-rule violations are not exceptions: they are returned as
``ValidationError`` lists (see ``storeshift.services.validation_service``).
The classes here cover structural problems and store failures.
"""


class SchedulingError(Exception):
    """Base class for errors raised by the scheduling services."""


class StructuralError(SchedulingError):
    """Required context (e.g. the current location) is missing; the operation aborts."""


class TransientStoreError(SchedulingError):
    """A read or write against the backing store failed; safe to retry later."""


class ShiftNotFoundError(SchedulingError):
    pass


class TemplateNotFoundError(SchedulingError):
    pass


class ShiftOverlapError(SchedulingError):
    """Raised inside the write transaction when a concurrent writer got there first."""

    def __init__(self, message: str, conflicting_id=None):
        super().__init__(message)
        self.conflicting_id = conflicting_id


class StaleShiftError(SchedulingError):
    """The shift was changed by someone else since the caller read it."""

    def __init__(self, shift_id, expected_version: int | None, actual_version: int | None):
        super().__init__(
            f"Shift {shift_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )
        self.shift_id = shift_id
        self.expected_version = expected_version
        self.actual_version = actual_version
