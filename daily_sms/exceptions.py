class DailySMSError(Exception):
    """Base class for all errors raised by the dispatcher core"""


class ValidationError(DailySMSError):
    """Bad input to a management call; no state was changed"""


class ConfigError(DailySMSError):
    """Malformed schedule configuration (e.g. a send time that is not HH:MM)"""


class PersistenceError(DailySMSError):
    """The durable store could not be read or written"""


class DeliveryError(DailySMSError):
    """A delivery backend failed to hand the message to its transport"""

    def __init__(self, message: str, backend: str = None):
        super().__init__(message)
        self.backend = backend
