"""Exception hierarchy."""


class FieldGuardError(Exception):
    """Base class for errors raised by fieldguard."""


class PatternError(FieldGuardError):
    """A custom pattern could not be compiled."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"{name}: {reason}")
        self.name = name
        self.reason = reason


class ClassifierError(FieldGuardError):
    """The remote classifier failed or returned an unusable response."""


class QuotaExceededError(ClassifierError):
    """The remote classifier refused the call for subscription or rate-limit reasons."""
