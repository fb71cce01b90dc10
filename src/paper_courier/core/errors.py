"""Error taxonomy for the delivery engine."""


class PaperCourierError(Exception):
    """Base class for all paper-courier errors."""


class InvalidConfig(PaperCourierError):
    """Configuration cannot be used. Fatal at startup."""


class FetchError(PaperCourierError):
    """Content source failed. Transient, retried."""


class SendError(PaperCourierError):
    """Mail delivery failed. Transient, retried."""


class StoreError(PaperCourierError):
    """Delivery record store could not be read or written."""


class DeliveryCancelled(PaperCourierError):
    """Stop was requested while an operation was being retried."""
