"""Dynamic-threshold secret sharing over a prime field."""

from dtss.core.engine import DynamicThresholdEngine, security_upper_bound
from dtss.core.errors import (
    DivisionByZero,
    InsufficientParticipants,
    InvalidParticipant,
    InvalidThreshold,
    InvariantViolation,
    NotInitialized,
    SecretSharingError,
)

__version__ = "0.1.0"
__all__ = [
    "DynamicThresholdEngine",
    "security_upper_bound",
    "SecretSharingError",
    "InvalidThreshold",
    "InsufficientParticipants",
    "InvalidParticipant",
    "DivisionByZero",
    "InvariantViolation",
    "NotInitialized",
]
