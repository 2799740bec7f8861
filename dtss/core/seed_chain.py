"""Public seed chain for proactive share refresh.

Each refresh round consumes a new seed

    seed' = SHA-256(str(seed) || context || str(round)) mod p

and the chain state advances to seed'. The seed is public: every
participant can recompute it, and from it the same zero-constant update
polynomial, so refresh needs no dealer.
"""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import Iterator

import structlog

from dtss.core.polynomial import BivariatePolynomial

log = structlog.get_logger()

DEFAULT_INITIAL_SEED = 10101010

# Extra output bits over the modulus keep the mod-p reduction bias negligible.
_EXPANSION_DIGEST = hashlib.sha512


class SeedChain:
    """Rolling hash chain owned by a single engine instance."""

    def __init__(self, prime: int, initial: int = DEFAULT_INITIAL_SEED) -> None:
        self._prime = prime
        self._state = initial % prime
        self._rounds = 0

    @property
    def state(self) -> int:
        return self._state

    @property
    def rounds(self) -> int:
        """Number of seeds drawn so far."""
        return self._rounds

    def next_seed(self, context: str, update_round: int) -> int:
        """Derive the next seed and advance the chain.

        Deterministic in (current state, context, round); calling twice with
        the same arguments gives different results because the state moves.
        """
        material = f"{self._state}{context}{update_round}".encode()
        digest = hashlib.sha256(material).digest()
        self._state = int.from_bytes(digest, "big") % self._prime
        self._rounds += 1
        log.debug("seed_advanced", context=context, round=update_round, chain_rounds=self._rounds)
        return self._state


def derive_field_elements(seed: int, prime: int) -> Iterator[int]:
    """Endless deterministic stream of field elements keyed by ``seed``.

    HMAC-SHA-512 in counter mode; block k is HMAC(seed, k) reduced mod p.
    """
    key = seed.to_bytes(max(1, (seed.bit_length() + 7) // 8), "big")
    counter = 0
    while True:
        block = hmac.new(key, counter.to_bytes(8, "big"), _EXPANSION_DIGEST).digest()
        yield int.from_bytes(block, "big") % prime
        counter += 1


def update_polynomial(seed: int, threshold: int, prime: int) -> BivariatePolynomial:
    """Zero-constant symmetric update polynomial derived from a public seed."""
    return BivariatePolynomial.from_stream(threshold, prime, 0, derive_field_elements(seed, prime))
