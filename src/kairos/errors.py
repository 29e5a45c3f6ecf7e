"""
Error taxonomy for kairos.

Normalization errors are raised synchronously while a Scheduler is being
constructed. Subscriber failures never surface here: the event bus logs
them and carries on.
"""


class KairosError(Exception):
    """Base class for all kairos errors."""


class ParseError(KairosError, ValueError):
    """A duration string does not match the duration grammar."""

    def __init__(self, text, message: str = None):
        self.text = text
        super().__init__(message or f"Invalid duration: {text!r}")


class DuplicateNameError(KairosError):
    """Two frames in one scheduler share the same non-empty name."""

    def __init__(self, names):
        self.names = sorted(names)
        super().__init__(f"Duplicate frame names: {', '.join(self.names)}")


class MissingParameterError(KairosError, KeyError):
    """A required lookup key (e.g. a frame name) was not supplied."""

    def __str__(self):
        return str(self.args[0]) if self.args else "Missing parameter"


class AccessDeniedError(KairosError):
    """Attempt to modify state that is read-only after normalization."""
