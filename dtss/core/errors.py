"""Error taxonomy for the dynamic-threshold engine.

Every error derives from SecretSharingError and also from the closest
builtin, so callers that only know about ValueError / ZeroDivisionError
keep working.
"""

from __future__ import annotations


class SecretSharingError(Exception):
    """Base class for all engine failures."""

    reason = "error"


class InvalidThreshold(SecretSharingError, ValueError):
    """Requested threshold is out of order with the current one, or out of [1, n]."""

    reason = "invalid_threshold"


class InsufficientParticipants(SecretSharingError, ValueError):
    """Fewer participants than the active threshold were supplied to recovery."""

    reason = "insufficient_participants"


class InvalidParticipant(SecretSharingError, IndexError):
    """A participant index is outside [0, n) or appears more than once."""

    reason = "invalid_participant"


class DivisionByZero(SecretSharingError, ZeroDivisionError):
    """Inverse of zero requested, e.g. two participants share an identifier."""

    reason = "division_by_zero"


class InvariantViolation(SecretSharingError, RuntimeError):
    """A post-condition on polynomial or share state failed. Always fatal."""

    reason = "invariant_violation"


class NotInitialized(SecretSharingError, RuntimeError):
    """An operation ran before initialize()."""

    reason = "not_initialized"
