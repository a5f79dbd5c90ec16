"""
Error taxonomy.

Two classes of failure exist:

* ``ConfigurationError`` - raised while algorithms are being set up
  (a missing sub-algorithm, an unknown model name, an unsupported
  phase-space convention). It is fatal and never caught by the driver.
* ``EventGenerationError`` - raised by a pipeline stage while an event is
  being built. It carries a human-readable reason and a ``FailureKind``
  classification. With ``fast_forward`` set (the default) the event attempt
  is abandoned and the driver starts a fresh one.
"""

from enum import Enum


class ConfigurationError(Exception):
    """Fatal setup error: bad or missing configuration."""


class FailureKind(str, Enum):
    NO_AVAILABLE_PHASE_SPACE = "no-available-phase-space"
    CASCADE_EXHAUSTED = "cascade-exhausted"
    HADRONIZATION_FAILED = "hadronization-failed"
    DECAY_FAILED = "decay-failed"
    NUMERICAL = "numerical"


class EventGenerationError(Exception):
    kind = FailureKind.NUMERICAL

    def __init__(self, reason: str, fast_forward: bool = True, attempts: int = 0):
        super().__init__(reason)
        self.reason = reason
        self.fast_forward = fast_forward
        self.attempts = attempts

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value}, reason={self.reason!r})"


class KinematicsExhausted(EventGenerationError):
    kind = FailureKind.NO_AVAILABLE_PHASE_SPACE


class CascadeExhausted(EventGenerationError):
    kind = FailureKind.CASCADE_EXHAUSTED


class HadronizationFailure(EventGenerationError):
    kind = FailureKind.HADRONIZATION_FAILED


class DecayFailure(EventGenerationError):
    kind = FailureKind.DECAY_FAILED
