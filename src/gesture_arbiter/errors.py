"""Error kinds surfaced through engine events, and input exceptions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(Enum):
    RECOGNIZER_FAILURE = "recognizer_failure"
    TOO_FEW_SAMPLES = "too_few_samples"
    INCONSISTENT_SIGNATURE = "inconsistent_signature"
    TRAINING_ABORTED = "training_aborted"
    NO_TARGETS_CONFIGURED = "no_targets_configured"


# Codes reported alongside engine-classified errors.
SIGN_TOO_FEW_WORD = -204


@dataclass(frozen=True)
class EngineError:
    """An error attached to a completion event."""
    kind: ErrorKind
    code: int = 0
    message: str = ""

    @classmethod
    def recognizer(cls, code: int, message: str = "") -> EngineError:
        return cls(ErrorKind.RECOGNIZER_FAILURE, code, message)

    @classmethod
    def no_targets(cls, message: str) -> EngineError:
        return cls(ErrorKind.NO_TARGETS_CONFIGURED, 0, message)


class InvalidSampleError(ValueError):
    """Raised when raw motion data cannot form fixed-width records."""


class ConfigError(ValueError):
    """Raised for unreadable or mistyped engine configuration."""
