"""
Error taxonomy for the memo store.

Lookups that find nothing are not errors: they return ``None`` or an empty
list. Everything below is raised and propagated to the caller unchanged.
"""


class StoreError(Exception):
    """Base class for all memo store failures."""


class InvalidArgument(StoreError, ValueError):
    """A caller-supplied value was rejected before any storage access."""


class FilterSyntaxError(InvalidArgument):
    """A free-form filter expression could not be parsed."""

    def __init__(self, expression: str, reason: str):
        super().__init__(f"invalid filter {expression!r}: {reason}")
        self.expression = expression
        self.reason = reason


class DriverError(StoreError):
    """The storage driver failed (I/O, constraint violation, ...)."""


class ShortIDConflict(DriverError):
    """The storage layer rejected a short ID that is already taken."""

    def __init__(self, short_id: str):
        super().__init__(f"short id {short_id!r} already exists")
        self.short_id = short_id


class Cancelled(StoreError):
    """The request context was cancelled."""


class DeadlineExceeded(Cancelled):
    """The request context passed its deadline."""


class ShortIDExhausted(StoreError):
    """No free short ID was found within the configured attempt budget."""

    def __init__(self, attempts: int):
        super().__init__(f"no unique short id found after {attempts} attempts")
        self.attempts = attempts
