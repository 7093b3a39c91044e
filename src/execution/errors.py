"""
Exceptions raised by the paper broker.

Batch-level problems (a malformed instruction list or an out-of-order event)
raise a ValidationError subclass from `PaperBroker.place()` before the ledger
is touched. Problems with an individual, well-formed order do not raise: that
order is REJECTED and the rest of the batch proceeds.
"""


class BrokerError(Exception):
    """Base class for all paper broker errors."""
    pass


class ValidationError(BrokerError):
    """A `place()` call was refused as a whole; no state was changed."""
    pass


class UnsupportedOrderError(ValidationError):
    """An instruction is not one of the supported order kinds."""
    pass


class DuplicateOrderError(ValidationError):
    """An order object that already has an id was placed again."""
    pass


class UnknownOrderError(ValidationError):
    """A CancelOrder references an id the broker has never seen."""
    pass


class EventOrderingError(ValidationError):
    """An event is older than the last event the broker processed."""
    pass


class StaleEventError(ValidationError):
    """In a live context, an event is older than the configured maximum age."""
    pass


class UnsupportedCurrencyError(ValidationError):
    """An order's asset currency cannot be converted to the account's base currency."""
    pass
