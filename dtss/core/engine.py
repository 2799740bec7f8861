"""Dynamic-threshold secret-sharing engine.

One engine instance simulates all n participants of a session. The dealer
embeds the secret as f(0, 0) of a symmetric bivariate polynomial f and hands
participant i (identifier ID_i = i + 1):

- a master share  S_i(y) = f(ID_i, y)   (univariate, supports resharing)
- a working share T_i    = S_i(0)       (single value, supports recovery)

Any two participants i, k share the pairing key K(ID_i, ID_k) = S_i(ID_k) =
S_k(ID_i) = f(ID_i, ID_k), which both can compute locally. The resharing
and recovery protocols use it to mask the values they broadcast: the mask
one side adds is exactly the mask the other side removes, so the masks
cancel in aggregate and no raw share is ever published.

Operations:

1. initialize(s)        build f, derive every master and working share
2. increase(t')         expand f to degree t'-1, re-derive all shares
3. decrease(t')         masked resharing of working shares to degree t'-1
4. adjust_up(t')        raise the working threshold without touching f
5. refresh_working/main proactive zero-constant refresh from the seed chain
6. recover(indices)     masked published-value reconstruction

The engine is not thread-safe. Run independent engines for parallelism.
"""

from __future__ import annotations

import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog

from dtss.core.errors import (
    InsufficientParticipants,
    InvalidParticipant,
    InvalidThreshold,
    InvariantViolation,
    NotInitialized,
    SecretSharingError,
)
from dtss.core.polynomial import BivariatePolynomial, RandomSource, UnivariatePolynomial
from dtss.core.seed_chain import DEFAULT_INITIAL_SEED, SeedChain, update_polynomial
from dtss.metrics import ERRORS, OPERATION_DURATION, OPERATIONS, SEEDS_DRAWN
from dtss.utils.crypto import DEFAULT_PRIME, lagrange_coefficients

if TYPE_CHECKING:
    from dtss.config import Config

log = structlog.get_logger()


def security_upper_bound(threshold: int) -> int:
    """Largest-exclusive threshold reachable by adjust_up from a degree threshold-1 polynomial.

    A symmetric polynomial with t×t coefficients has t(t+1)/2 independent
    coefficients; t' participants colluding past that count could solve for f.
    """
    return 1 + threshold * (threshold + 1) // 2


class DynamicThresholdEngine:
    """Stateful orchestrator for one secret shared among n participants."""

    def __init__(
        self,
        n: int,
        threshold: int,
        prime: int = DEFAULT_PRIME,
        rng: RandomSource | None = None,
        initial_seed: int = DEFAULT_INITIAL_SEED,
    ) -> None:
        if n < 1:
            raise ValueError(f"Participant count must be >= 1, got {n}")
        if not 1 <= threshold <= n:
            raise InvalidThreshold(f"Threshold must be in [1, {n}], got {threshold}")
        if prime <= n:
            raise ValueError(f"Prime must exceed participant count {n} so identifiers are distinct")

        self._n = n
        self._prime = prime
        self._rng = rng
        self._ids: tuple[int, ...] = tuple(range(1, n + 1))
        self._initial_threshold = threshold
        self._working_threshold = threshold
        self._main_threshold = threshold
        self._seed_chain = SeedChain(prime, initial_seed)

        self._secret: int | None = None
        self._polynomial: BivariatePolynomial | None = None
        self._master_shares: list[UnivariatePolynomial] = []
        self._working_shares: list[int] = []

    @classmethod
    def from_config(cls, config: Config, rng: RandomSource | None = None) -> DynamicThresholdEngine:
        config.validate()
        return cls(
            n=config.participants,
            threshold=config.threshold,
            prime=config.prime,
            rng=rng,
            initial_seed=config.initial_seed,
        )

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def n(self) -> int:
        return self._n

    @property
    def prime(self) -> int:
        return self._prime

    @property
    def participant_ids(self) -> tuple[int, ...]:
        return self._ids

    @property
    def working_threshold(self) -> int:
        return self._working_threshold

    @property
    def main_threshold(self) -> int:
        return self._main_threshold

    @property
    def secret(self) -> int | None:
        """The secret passed to initialize(), for verification only."""
        return self._secret

    @property
    def initialized(self) -> bool:
        return self._polynomial is not None

    @property
    def seed_chain(self) -> SeedChain:
        return self._seed_chain

    @property
    def polynomial(self) -> BivariatePolynomial:
        return self._require_polynomial()

    @property
    def working_shares(self) -> list[int]:
        return list(self._working_shares)

    @property
    def master_shares(self) -> list[UnivariatePolynomial]:
        return list(self._master_shares)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextmanager
    def _operation(self, name: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        except InvariantViolation as e:
            ERRORS.labels(reason=e.reason).inc()
            log.error("engine_invariant_violation", operation=name, error=str(e))
            raise
        except SecretSharingError as e:
            ERRORS.labels(reason=e.reason).inc()
            log.warning("engine_operation_rejected", operation=name, reason=e.reason, error=str(e))
            raise
        elapsed = time.perf_counter() - start
        OPERATIONS.labels(operation=name).inc()
        OPERATION_DURATION.labels(operation=name).observe(elapsed)

    def _require_polynomial(self) -> BivariatePolynomial:
        if self._polynomial is None:
            raise NotInitialized("Engine has not been initialized with a secret")
        return self._polynomial

    def _pairing_key(self, i: int, k: int) -> int:
        """K(ID_i, ID_k) as participant i computes it from its master share."""
        return self._master_shares[i].evaluate(self._ids[k])

    def _derive_shares(
        self, poly: BivariatePolynomial,
    ) -> tuple[list[UnivariatePolynomial], list[int]]:
        masters = [poly.evaluate_at_x(pid) for pid in self._ids]
        workings = [m.evaluate(0) for m in masters]
        return masters, workings

    def _check_indices(self, indices: Sequence[int]) -> list[int]:
        checked = []
        seen = set()
        for idx in indices:
            if not isinstance(idx, int) or not 0 <= idx < self._n:
                raise InvalidParticipant(f"Participant index {idx!r} outside [0, {self._n})")
            if idx in seen:
                raise InvalidParticipant(f"Participant index {idx} listed more than once")
            seen.add(idx)
            checked.append(idx)
        return checked

    def verify(self) -> None:
        """Check polynomial and master-share invariants.

        Raises:
            InvariantViolation: If f is asymmetric, f(0, 0) differs from the
                secret, or a master share no longer equals f(ID_i, y).
        """
        poly = self._require_polynomial()
        if not poly.is_symmetric():
            raise InvariantViolation("Bivariate polynomial is not symmetric")
        if poly.evaluate(0, 0) != self._secret:
            raise InvariantViolation("Polynomial constant term no longer equals the secret")
        for pid, master in zip(self._ids, self._master_shares):
            if master != poly.evaluate_at_x(pid):
                raise InvariantViolation(f"Master share of participant {pid} diverged from f(ID, y)")

    # ------------------------------------------------------------------
    # Protocols
    # ------------------------------------------------------------------

    def initialize(self, secret: int) -> None:
        """Deal the secret: build f and every participant's shares."""
        with self._operation("initialize"):
            s = secret % self._prime
            poly = BivariatePolynomial.random(self._initial_threshold, self._prime, s, self._rng)
            masters, workings = self._derive_shares(poly)

            self._secret = s
            self._polynomial = poly
            self._master_shares = masters
            self._working_threshold = self._initial_threshold
            self._main_threshold = self._initial_threshold
            self._working_shares = workings
            self.verify()
            log.info("engine_initialized", participants=self._n, threshold=self._initial_threshold,
                     prime_bits=self._prime.bit_length())

    def increase(self, new_threshold: int) -> None:
        """Raise both thresholds by expanding f; every share is re-derived.

        The low-order block of f up to the current working threshold is kept
        verbatim and only the new rows/columns are random.

        Raises:
            InvalidThreshold: Unless working_threshold < new_threshold <= n.
        """
        with self._operation("increase"):
            poly = self._require_polynomial()
            if new_threshold <= self._working_threshold:
                raise InvalidThreshold(
                    f"New threshold must be greater than current threshold "
                    f"{self._working_threshold}, got {new_threshold}"
                )
            if new_threshold > self._n:
                raise InvalidThreshold(f"Threshold cannot exceed participant count {self._n}")

            preserve = min(self._working_threshold, poly.threshold)
            expanded = poly.expand(new_threshold, self._rng, preserve=preserve)
            masters, workings = self._derive_shares(expanded)

            old = self._working_threshold
            self._polynomial = expanded
            self._master_shares = masters
            self._working_shares = workings
            self._working_threshold = new_threshold
            self._main_threshold = new_threshold
            self.verify()
            log.info("threshold_increased", old_threshold=old, new_threshold=new_threshold,
                     preserved_block=preserve)

    def decrease(self, new_threshold: int) -> None:
        """Secure threshold decrease by masked resharing of working shares.

        The resharing basis is the first max(working, main) participants:
        enough master-share evaluations S_i(0) to interpolate f(x, 0).

        1. Each basis participant i computes c_i = S_i(0) * L_i.
        2. It picks a private resharing polynomial h_i of degree t'-1 with
           h_i(0, 0) = c_i.
        3. For every participant k it broadcasts C_ik = h_i(ID_k, 0) + K(ID_i, ID_k).
        4. Participant k sets T_k = Σ_i (C_ik - K(ID_k, ID_i)) = Σ_i h_i(ID_k, 0).

        Σ_i h_i(x, 0) has constant term Σ_i c_i = s, so the new working shares
        are a degree t'-1 sharing of the same secret. Master shares and f are
        unchanged.

        Raises:
            InvalidThreshold: Unless 1 <= new_threshold < working_threshold.
        """
        with self._operation("decrease"):
            self._require_polynomial()
            if new_threshold >= self._working_threshold:
                raise InvalidThreshold(
                    f"New threshold must be smaller than current threshold "
                    f"{self._working_threshold}, got {new_threshold}"
                )
            if new_threshold < 1:
                raise InvalidThreshold(f"Threshold must be >= 1, got {new_threshold}")

            basis = list(range(max(self._working_threshold, self._main_threshold)))
            basis_ids = [self._ids[i] for i in basis]
            lagrange = lagrange_coefficients(basis_ids, self._prime)
            p = self._prime

            # Step 1-2: Lagrange components and private resharing polynomials
            components = [
                (self._master_shares[i].evaluate(0) * lagrange[self._ids[i]]) % p
                for i in basis
            ]
            reshare = [
                BivariatePolynomial.random(new_threshold, p, c, self._rng)
                for c in components
            ]

            # Step 3: masked broadcast C_ik
            masked = [
                [
                    (h.evaluate(self._ids[k], 0) + self._pairing_key(i, k)) % p
                    for k in range(self._n)
                ]
                for i, h in zip(basis, reshare)
            ]

            # Step 4: each receiver strips its own view of the pairing key
            new_working = []
            for k in range(self._n):
                total = 0
                for row, i in zip(masked, basis):
                    total = (total + row[k] - self._pairing_key(k, i)) % p
                new_working.append(total)

            old = self._working_threshold
            self._working_shares = new_working
            self._working_threshold = new_threshold
            self.verify()
            log.info("threshold_decreased", old_threshold=old, new_threshold=new_threshold,
                     resharing_participants=len(basis))

    def adjust_up(self, new_threshold: int) -> None:
        """Raise the working threshold by policy, keeping f and every share.

        Allowed while new_threshold stays below security_upper_bound of the
        polynomial's threshold. Before committing, the first new_threshold
        participants must reconstruct the secret from their working shares.

        Raises:
            InvalidThreshold: If the new threshold is not above the current one,
                exceeds n, or reaches the security upper bound.
            InvariantViolation: If the verification recovery does not return the secret.
        """
        with self._operation("adjust_up"):
            poly = self._require_polynomial()
            if new_threshold <= self._working_threshold:
                raise InvalidThreshold(
                    f"New threshold must be greater than current threshold "
                    f"{self._working_threshold}, got {new_threshold}"
                )
            if new_threshold > self._n:
                raise InvalidThreshold(f"Threshold cannot exceed participant count {self._n}")
            bound = security_upper_bound(poly.threshold)
            if new_threshold >= bound:
                raise InvalidThreshold(
                    f"Threshold {new_threshold} reaches security upper bound {bound}; use increase()"
                )

            recovered = self._reconstruct(list(range(new_threshold)), use_working=True)
            if recovered != self._secret:
                raise InvariantViolation("Secret recovery failed; threshold adjustment aborted")

            old = self._working_threshold
            self._working_threshold = new_threshold
            log.info("threshold_adjusted_up", old_threshold=old, new_threshold=new_threshold)

    def refresh_working(self, context: str, update_round: int) -> None:
        """Proactively refresh every working share; the secret is unchanged.

        All participants derive the same zero-constant update polynomial u of
        degree working_threshold-1 from the next public seed, and add
        u(ID_k, 0) to their working share.
        """
        with self._operation("refresh_working"):
            self._require_polynomial()
            seed = self._seed_chain.next_seed(context, update_round)
            SEEDS_DRAWN.inc()
            update = update_polynomial(seed, self._working_threshold, self._prime)
            p = self._prime
            self._working_shares = [
                (share + update.evaluate(pid, 0)) % p
                for pid, share in zip(self._ids, self._working_shares)
            ]
            log.info("shares_refreshed", kind="working", context=context, round=update_round,
                     threshold=self._working_threshold)

    def refresh_main(self, context: str, update_round: int) -> None:
        """Proactively refresh every master share; the secret is unchanged.

        The update polynomial u has degree main_threshold-1 and zero constant.
        Each participant adds u(ID_k, y) to its master share, and f absorbs u
        so pairing keys and later expansions stay consistent with the shares.
        """
        with self._operation("refresh_main"):
            poly = self._require_polynomial()
            seed = self._seed_chain.next_seed(context, update_round)
            SEEDS_DRAWN.inc()
            update = update_polynomial(seed, self._main_threshold, self._prime)
            if update.constant_term != 0:
                raise InvariantViolation("Refresh polynomial must have zero constant term")

            self._master_shares = [
                master + update.evaluate_at_x(pid)
                for pid, master in zip(self._ids, self._master_shares)
            ]
            poly.absorb(update)
            self.verify()
            log.info("shares_refreshed", kind="main", context=context, round=update_round,
                     threshold=self._main_threshold)

    def published_values(self, participant_indices: Sequence[int], use_working: bool = True) -> list[int]:
        """Masked values v_i each recovering participant broadcasts.

        v_i = c_i + Σ_{j≠i} ±K(ID_i, ID_j), minus when ID_i > ID_j, else plus.
        Every pairing key enters once with each sign, so Σ v_i = Σ c_i = s.
        """
        self._require_polynomial()
        indices = self._check_indices(participant_indices)
        return self._published_values(indices, use_working)

    def _published_values(self, indices: list[int], use_working: bool) -> list[int]:
        p = self._prime
        ids = [self._ids[i] for i in indices]
        lagrange = lagrange_coefficients(ids, p)

        pairing_keys: dict[tuple[int, int], int] = {}
        for a in range(len(indices)):
            for b in range(a + 1, len(indices)):
                key = self._pairing_key(indices[a], indices[b])
                pairing_keys[(a, b)] = key
                pairing_keys[(b, a)] = key

        published = []
        for a, idx in enumerate(indices):
            share = self._working_shares[idx] if use_working else self._master_shares[idx].evaluate(0)
            value = (share * lagrange[ids[a]]) % p
            for b in range(len(indices)):
                if a == b:
                    continue
                if ids[a] > ids[b]:
                    value = (value - pairing_keys[(a, b)]) % p
                else:
                    value = (value + pairing_keys[(a, b)]) % p
            published.append(value)
        return published

    def _reconstruct(self, indices: list[int], use_working: bool) -> int:
        required = self._working_threshold if use_working else self._main_threshold
        if len(indices) < required:
            raise InsufficientParticipants(
                f"Insufficient participants: need at least {required}, got {len(indices)}"
            )
        return sum(self._published_values(indices, use_working)) % self._prime

    def recover(self, participant_indices: Sequence[int], use_working: bool = True) -> int:
        """Reconstruct the secret from the given participants' masked values.

        Args:
            participant_indices: Zero-based participant indices, pairwise distinct.
            use_working: Recover from working shares (working_threshold applies)
                or from master shares evaluated at 0 (main_threshold applies).

        Raises:
            InvalidParticipant: If an index is out of range or repeated.
            InsufficientParticipants: If fewer than the relevant threshold are given.
        """
        with self._operation("recover"):
            self._require_polynomial()
            indices = self._check_indices(participant_indices)
            secret = self._reconstruct(indices, use_working)
            log.debug("secret_recovered", participants=len(indices),
                      share_kind="working" if use_working else "main")
            return secret
