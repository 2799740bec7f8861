"""Symmetric bivariate and univariate polynomials over GF(p).

The bivariate polynomial f(x, y) = Σ a_ij x^i y^j holds the secret as
a_00 and satisfies a_ij = a_ji, so f(a, b) = f(b, a). Restricting it to
x = ID_i yields participant i's master share S_i(y) = f(ID_i, y).
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass

import structlog

from dtss.core.errors import InvalidThreshold, InvariantViolation
from dtss.utils.crypto import random_field_element

log = structlog.get_logger()

# Draws one uniform field element for the given modulus.
RandomSource = Callable[[int], int]


@dataclass(frozen=True)
class UnivariatePolynomial:
    """A master share S(y) = c_0 + c_1 y + ... + c_d y^d mod p."""

    coefficients: tuple[int, ...]
    prime: int

    @property
    def degree(self) -> int:
        return len(self.coefficients) - 1

    def evaluate(self, y: int) -> int:
        # Horner
        result = 0
        for c in reversed(self.coefficients):
            result = (result * y + c) % self.prime
        return result

    def add(self, other: UnivariatePolynomial) -> UnivariatePolynomial:
        """Coefficient-wise sum; the shorter operand is zero-padded at high degree."""
        if other.prime != self.prime:
            raise ValueError("Cannot add polynomials over different fields")
        length = max(len(self.coefficients), len(other.coefficients))
        a = self.coefficients + (0,) * (length - len(self.coefficients))
        b = other.coefficients + (0,) * (length - len(other.coefficients))
        return UnivariatePolynomial(
            coefficients=tuple((x + y) % self.prime for x, y in zip(a, b)),
            prime=self.prime,
        )

    def __add__(self, other: UnivariatePolynomial) -> UnivariatePolynomial:
        return self.add(other)


class BivariatePolynomial:
    """Symmetric bivariate polynomial of degree threshold-1 in each variable.

    The coefficient matrix is private. Writes go through set_coefficient,
    which always updates the mirrored entry, so symmetry cannot be broken
    from outside.
    """

    def __init__(self, threshold: int, prime: int) -> None:
        if threshold < 1:
            raise InvalidThreshold(f"Threshold must be >= 1, got {threshold}")
        self._threshold = threshold
        self._prime = prime
        self._coeffs = [[0] * threshold for _ in range(threshold)]

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_stream(
        cls,
        threshold: int,
        prime: int,
        constant: int,
        values: Iterator[int],
    ) -> BivariatePolynomial:
        """Fill the upper triangle (diagonal included) from ``values`` and mirror it.

        a_00 is set to ``constant`` and consumes nothing from the stream.
        """
        poly = cls(threshold, prime)
        poly._coeffs[0][0] = constant % prime
        for i in range(threshold):
            for j in range(i, threshold):
                if i == 0 and j == 0:
                    continue
                poly.set_coefficient(i, j, next(values))
        return poly

    @classmethod
    def random(
        cls,
        threshold: int,
        prime: int,
        constant: int,
        rng: RandomSource | None = None,
    ) -> BivariatePolynomial:
        """Random symmetric polynomial with f(0, 0) = constant."""
        draw = rng or random_field_element

        def _values() -> Iterator[int]:
            while True:
                yield draw(prime)

        return cls.from_stream(threshold, prime, constant, _values())

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def threshold(self) -> int:
        return self._threshold

    @property
    def degree(self) -> int:
        return self._threshold - 1

    @property
    def prime(self) -> int:
        return self._prime

    @property
    def constant_term(self) -> int:
        return self._coeffs[0][0]

    def coefficient(self, i: int, j: int) -> int:
        return self._coeffs[i][j]

    def rows(self) -> tuple[tuple[int, ...], ...]:
        """Immutable snapshot of the coefficient matrix."""
        return tuple(tuple(row) for row in self._coeffs)

    def set_coefficient(self, i: int, j: int, value: int) -> None:
        """Set a_ij and a_ji to ``value`` mod p."""
        v = value % self._prime
        self._coeffs[i][j] = v
        self._coeffs[j][i] = v

    def is_symmetric(self) -> bool:
        t = self._threshold
        return all(
            self._coeffs[i][j] == self._coeffs[j][i]
            for i in range(t)
            for j in range(i + 1, t)
        )

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def evaluate(self, x: int, y: int) -> int:
        """f(x, y) by direct double summation."""
        p = self._prime
        t = self._threshold
        x_pows = [pow(x, i, p) for i in range(t)]
        y_pows = [pow(y, j, p) for j in range(t)]
        result = 0
        for i in range(t):
            row = self._coeffs[i]
            for j in range(t):
                result = (result + row[j] * x_pows[i] * y_pows[j]) % p
        return result

    def evaluate_at_x(self, x: int) -> UnivariatePolynomial:
        """Restrict to x: returns the univariate polynomial f(x, y) in y."""
        p = self._prime
        t = self._threshold
        x_pows = [pow(x, i, p) for i in range(t)]
        coeffs = []
        for j in range(t):
            c = 0
            for i in range(t):
                c = (c + self._coeffs[i][j] * x_pows[i]) % p
            coeffs.append(c)
        return UnivariatePolynomial(coefficients=tuple(coeffs), prime=p)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def absorb(self, update: BivariatePolynomial) -> None:
        """Add ``update`` coefficient-wise into this polynomial in place.

        ``update`` may be smaller; its missing rows/columns count as zero.
        """
        if update.prime != self._prime:
            raise ValueError("Cannot combine polynomials over different fields")
        if update.threshold > self._threshold:
            raise InvalidThreshold(
                f"Update threshold {update.threshold} exceeds polynomial threshold {self._threshold}"
            )
        for i in range(update.threshold):
            for j in range(i, update.threshold):
                self.set_coefficient(i, j, self._coeffs[i][j] + update.coefficient(i, j))

    def expand(
        self,
        new_threshold: int,
        rng: RandomSource | None = None,
        preserve: int | None = None,
    ) -> BivariatePolynomial:
        """Build a larger polynomial that keeps the low-order block.

        The ``[0, preserve)`` × ``[0, preserve)`` block is copied verbatim,
        rows/columns ``[preserve, new_threshold)`` get fresh symmetric random
        coefficients (upper triangle of that square, mirrored), and every
        other cross term is zero. ``preserve`` defaults to the current
        threshold.

        Raises:
            InvalidThreshold: If new_threshold <= preserve or preserve exceeds
                the current threshold.
            InvariantViolation: If the result fails a post-condition.
        """
        keep = self._threshold if preserve is None else preserve
        if keep < 1 or keep > self._threshold:
            raise InvalidThreshold(f"Cannot preserve {keep} rows of a threshold-{self._threshold} polynomial")
        if new_threshold <= keep:
            raise InvalidThreshold(f"Expanded threshold must exceed {keep}, got {new_threshold}")

        draw = rng or random_field_element
        expanded = BivariatePolynomial(new_threshold, self._prime)
        for i in range(keep):
            for j in range(i, keep):
                expanded.set_coefficient(i, j, self._coeffs[i][j])
        for i in range(keep, new_threshold):
            for j in range(i, new_threshold):
                expanded.set_coefficient(i, j, draw(self._prime))

        self._check_expansion(expanded, keep)
        log.debug("polynomial_expanded", old_threshold=self._threshold,
                  new_threshold=new_threshold, preserved=keep)
        return expanded

    def _check_expansion(self, expanded: BivariatePolynomial, keep: int) -> None:
        if expanded.evaluate(0, 0) != self.constant_term:
            raise InvariantViolation("Secret changed during polynomial expansion")
        if not expanded.is_symmetric():
            raise InvariantViolation("Expanded polynomial symmetry broken")
        for i in range(keep):
            for j in range(keep):
                if expanded.coefficient(i, j) != self._coeffs[i][j]:
                    raise InvariantViolation(
                        f"Low-order coefficient a[{i}][{j}] modified during expansion"
                    )

    def __repr__(self) -> str:
        return f"BivariatePolynomial(threshold={self._threshold}, prime_bits={self._prime.bit_length()})"
