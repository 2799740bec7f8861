"""Engine configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from dtss.core.seed_chain import DEFAULT_INITIAL_SEED
from dtss.utils.crypto import DEFAULT_PRIME

load_dotenv()


def _int_env(key: str, default: str) -> int:
    val = os.getenv(key, default)
    try:
        # base 0 accepts decimal and 0x-prefixed hex
        return int(val, 0)
    except (ValueError, TypeError, OverflowError):
        raise ValueError(f"Invalid integer for {key}: {val!r}")


@dataclass(frozen=True)
class Config:
    # Participants and initial threshold
    participants: int = _int_env("DTSS_PARTICIPANTS", "10")
    threshold: int = _int_env("DTSS_THRESHOLD", "4")

    # Field modulus; must be prime (not checked here)
    prime: int = _int_env("DTSS_PRIME", str(DEFAULT_PRIME))

    # Public starting value of the refresh seed chain
    initial_seed: int = _int_env("DTSS_INITIAL_SEED", str(DEFAULT_INITIAL_SEED))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv("LOG_FORMAT", "console")

    min_prime_bits: int = 128

    def validate(self, *, strict: bool = False) -> list[str]:
        """Validate config. Returns list of warnings (empty = all good).

        Args:
            strict: If True, raise ValueError on any warning.
        """
        warnings = []
        if self.participants < 1:
            raise ValueError(f"DTSS_PARTICIPANTS must be >= 1, got {self.participants}")
        if not (1 <= self.threshold <= self.participants):
            raise ValueError(
                f"DTSS_THRESHOLD must be in [1, {self.participants}], got {self.threshold}"
            )
        if self.prime <= self.participants:
            raise ValueError(
                f"DTSS_PRIME must exceed DTSS_PARTICIPANTS ({self.participants}) "
                "so participant identifiers are distinct and nonzero"
            )
        if self.prime.bit_length() < self.min_prime_bits:
            warnings.append(
                f"DTSS_PRIME is only {self.prime.bit_length()} bits, "
                f"below the {self.min_prime_bits}-bit floor for meaningful secrecy"
            )
        if self.prime % 2 == 0:
            raise ValueError("DTSS_PRIME must be an odd prime")
        if self.threshold == 1:
            warnings.append("DTSS_THRESHOLD=1: every single share reveals the secret")
        if self.log_format.lower() not in ("console", "json"):
            warnings.append(f"LOG_FORMAT={self.log_format!r} is not recognized (console, json)")
        if strict and warnings:
            raise ValueError("Config validation failed in strict mode:\n" + "\n".join(f"  - {w}" for w in warnings))
        return warnings
