"""Prime-field arithmetic and Lagrange interpolation primitives."""

from __future__ import annotations

import secrets
from collections.abc import Sequence

from dtss.core.errors import DivisionByZero

# secp256k1 base field prime, 2^256 - 2^32 - 977
DEFAULT_PRIME = 115792089237316195423570985008687907853269984665640564039457584007908834671663


def mod_add(a: int, b: int, p: int) -> int:
    return (a + b) % p


def mod_sub(a: int, b: int, p: int) -> int:
    return (a - b) % p


def mod_mul(a: int, b: int, p: int) -> int:
    return (a * b) % p


def _extended_gcd(a: int, b: int) -> tuple[int, int, int]:
    # Iterative: recursion depth would scale with the bit length of p.
    old_r, r = a, b
    old_s, s = 1, 0
    old_t, t = 0, 1
    while r != 0:
        q = old_r // r
        old_r, r = r, old_r - q * r
        old_s, s = s, old_s - q * s
        old_t, t = t, old_t - q * t
    return old_r, old_s, old_t


def mod_inv(a: int, p: int) -> int:
    """Modular multiplicative inverse using extended Euclidean algorithm.

    Raises:
        DivisionByZero: If a is congruent to 0 mod p.
    """
    a = a % p
    if a == 0:
        raise DivisionByZero("Modular inverse of 0 does not exist")
    g, x, _ = _extended_gcd(a, p)
    if g != 1:
        raise DivisionByZero(f"Modular inverse does not exist (gcd={g})")
    return x % p


def random_field_element(p: int) -> int:
    """Uniform element of [0, p) from the OS CSPRNG."""
    return secrets.randbelow(p)


def _require_distinct(all_x: Sequence[int], p: int) -> None:
    if len({x % p for x in all_x}) != len(all_x):
        raise DivisionByZero("Participant identifiers must be pairwise distinct")


def lagrange_coefficient(share_x: int, all_x: Sequence[int], p: int) -> int:
    """Compute Lagrange basis polynomial L_i evaluated at 0.

    L_i(0) = ∏_{j≠i} (0 - x_j) / (x_i - x_j)

    Raises:
        DivisionByZero: If two identifiers in all_x coincide mod p.
    """
    _require_distinct(all_x, p)
    numerator = 1
    denominator = 1
    for xj in all_x:
        if xj == share_x:
            continue
        numerator = (numerator * (0 - xj)) % p
        denominator = (denominator * (share_x - xj)) % p
    return (numerator * mod_inv(denominator, p)) % p


def lagrange_coefficients(all_x: Sequence[int], p: int) -> dict[int, int]:
    """Lagrange coefficients at 0 for every identifier in ``all_x``."""
    _require_distinct(all_x, p)
    return {xi: lagrange_coefficient(xi, all_x, p) for xi in all_x}
