"""
Group arithmetic and domain-separated key derivation over edwards25519.

Provides:
- Point encode/decode for 32-byte RFC 8032 encodings, with subgroup checks
- Point helpers (add / sub / neg / scalar multiplication / identity test)
- Scalar encode/decode and secure random sampling
- derive_scalar: hash a (label, seed) pair into [1, n-1]
- derive_generator: try-and-increment hash-to-curve for independent generators

Group:
    The prime-order subgroup of edwards25519 (order n = 2^252 + 2774231777...).
    The curve has cofactor 8, so every decoded point is checked to lie in
    the prime-order subgroup; small-order components would otherwise leak
    bits of any scalar multiplied into them.

Hashing:
    All derivations use Blake2b with a fixed domain-separation label
    prepended to the input. Labels live in DomainLabels; no label is a
    prefix of another, so label ‖ seed never collides across roles.

References:
    [RFC8032] Edwards-Curve Digital Signature Algorithm, §5.1.2-5.1.3 (encoding).
    [H2C]     IETF draft-irtf-cfrg-hash-to-curve, §5 (try-and-increment method).
"""

from __future__ import annotations

import hashlib
import secrets

import ecdsa
import ecdsa.ellipticcurve as ec
from ecdsa.errors import MalformedPointError

from ledger_privacy.errors import InvalidKeyMaterial

# ==============================================================================
# edwards25519 constants
# ==============================================================================

_CURVE = ecdsa.Ed25519.curve
_GENERATOR = ecdsa.Ed25519.generator

FIELD_PRIME = _CURVE.p()
"""Field prime p = 2^255 - 19."""

CURVE_ORDER = ecdsa.Ed25519.order
"""Prime order n of the subgroup generated by G."""

COFACTOR = 8

POINT_SIZE = 32
"""Bytes in an encoded point."""

SCALAR_SIZE = 32
"""Bytes in an encoded scalar (little endian)."""

IDENTITY_BYTES = b"\x01" + b"\x00" * 31
"""RFC 8032 encoding of the neutral element (x=0, y=1)."""

BASE_POINT = _GENERATOR
"""The standard base point G."""

_MAX_HASH_TO_CURVE_ATTEMPTS = 1000


class DomainLabels:
    """Fixed domain-separation labels, one per protocol role."""

    ELGAMAL_KEYPAIR = b"ledger-privacy/elgamal/keypair/v1"
    PEDERSEN_H = b"ledger-privacy/pedersen/amount-generator/v1"
    PEDERSEN_G2 = b"ledger-privacy/pedersen/blinding-generator/v1"
    STEALTH_SHARED_SECRET = b"ledger-privacy/stealth/shared-secret/v1"
    STEALTH_OFFSET = b"ledger-privacy/stealth/offset/v1"
    STEALTH_SECRET_DIGEST = b"ledger-privacy/stealth/secret-digest/v1"
    EPHEMERAL_SEAL = b"ledger-privacy/stealth/ephemeral-seal/v1"
    ACCOUNT_MASK = b"ledger-privacy/viewing-key/account-mask/v1"
    AUDITOR_SEAL = b"ledger-privacy/viewing-key/auditor-seal/v1"
    RANGE_PROOF_PLACEHOLDER = b"ledger-privacy/proof/range-placeholder/v1"


# ==============================================================================
# Point utilities
# ==============================================================================


def is_identity(point: ec.AbstractPoint) -> bool:
    """True for the neutral element (exact for prime-order-subgroup points)."""
    return point == ec.INFINITY


def encode_point(point: ec.AbstractPoint) -> bytes:
    """
    Encode a group element as 32 bytes (RFC 8032).

    The identity encodes to IDENTITY_BYTES.
    """
    if is_identity(point):
        return IDENTITY_BYTES
    return bytes(point.to_bytes())


def decode_point(
    data: bytes,
    *,
    allow_identity: bool = False,
    field: str = "point",
) -> ec.AbstractPoint:
    """
    Decode a 32-byte encoding into a prime-order-subgroup element.

    Args:
        data: 32-byte RFC 8032 point encoding.
        allow_identity: Accept the neutral element (e.g. for a ciphertext C2).
        field: Name reported in the error when decoding fails.

    Returns:
        The decoded point (ec.INFINITY for an accepted identity).

    Raises:
        InvalidKeyMaterial: wrong type/length, non-canonical encoding, not on
            the curve, outside the prime-order subgroup, or a rejected identity.
    """
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise InvalidKeyMaterial(f"{field}: expected bytes, got {type(data).__name__}", field=field)
    data = bytes(data)
    if len(data) != POINT_SIZE:
        raise InvalidKeyMaterial(f"{field}: expected {POINT_SIZE} bytes, got {len(data)}", field=field)

    if data == IDENTITY_BYTES:
        if allow_identity:
            return ec.INFINITY
        raise InvalidKeyMaterial(f"{field}: identity element is not allowed here", field=field)

    try:
        point = ec.PointEdwards.from_bytes(_CURVE, data)
    except MalformedPointError as e:
        raise InvalidKeyMaterial(f"{field}: not a curve point ({e})", field=field) from None

    if not _is_canonical(data, point):
        raise InvalidKeyMaterial(f"{field}: non-canonical point encoding", field=field)

    # ecdsa compares any point with x == 0 or y == 0 equal to INFINITY; besides
    # the identity (handled above) those are the order-2 and order-4 points.
    if is_identity(point) or not _in_prime_subgroup(point):
        raise InvalidKeyMaterial(f"{field}: point has a small-order component", field=field)

    return point


def _is_canonical(data: bytes, point: ec.AbstractPoint) -> bool:
    # ecdsa keeps y unreduced, so y >= p has to be caught on the raw bytes.
    # Re-encoding catches x = 0 with the sign bit set.
    y = int.from_bytes(data, "little") & ((1 << 255) - 1)
    return y < FIELD_PRIME and bytes(point.to_bytes()) == data


def _in_prime_subgroup(point: ec.AbstractPoint) -> bool:
    # (n-1)·P == -P  iff  n·P == O, without relying on an INFINITY comparison.
    return (CURVE_ORDER - 1) * point == point_neg(point)


def point_neg(point: ec.AbstractPoint) -> ec.AbstractPoint:
    """Return -P."""
    if is_identity(point):
        return ec.INFINITY
    x, y = point.x(), point.y()
    neg_x = (-x) % FIELD_PRIME
    return ec.PointEdwards(_CURVE, neg_x, y, 1, (neg_x * y) % FIELD_PRIME, point.order())


def point_add(a: ec.AbstractPoint, b: ec.AbstractPoint) -> ec.AbstractPoint:
    """Return A + B."""
    if is_identity(a):
        return b
    if is_identity(b):
        return a
    return a + b


def point_sub(a: ec.AbstractPoint, b: ec.AbstractPoint) -> ec.AbstractPoint:
    """Return A - B."""
    return point_add(a, point_neg(b))


def scalar_mult(scalar: int, point: ec.AbstractPoint) -> ec.AbstractPoint:
    """Return k·P with k reduced mod n."""
    k = scalar % CURVE_ORDER
    if k == 0 or is_identity(point):
        return ec.INFINITY
    return k * point


def base_mult(scalar: int) -> ec.AbstractPoint:
    """Return k·G (uses the generator's precomputed table)."""
    return scalar_mult(scalar, _GENERATOR)


def points_equal(a: ec.AbstractPoint, b: ec.AbstractPoint) -> bool:
    """Group-element equality, identity-aware."""
    if is_identity(a) or is_identity(b):
        return is_identity(a) and is_identity(b)
    return encode_point(a) == encode_point(b)


# ==============================================================================
# Scalars
# ==============================================================================


def random_scalar() -> int:
    """Uniform scalar in [1, n-1] from the OS CSPRNG."""
    return secrets.randbelow(CURVE_ORDER - 1) + 1


def encode_scalar(scalar: int) -> bytes:
    """Encode a scalar as 32 little-endian bytes."""
    return (scalar % CURVE_ORDER).to_bytes(SCALAR_SIZE, "little")


def decode_scalar(data: bytes, field: str = "scalar") -> int:
    """
    Decode a 32-byte little-endian scalar.

    Raises:
        InvalidKeyMaterial: wrong length, or value outside [1, n-1].
    """
    if not isinstance(data, (bytes, bytearray, memoryview)) or len(data) != SCALAR_SIZE:
        raise InvalidKeyMaterial(f"{field}: expected {SCALAR_SIZE} bytes", field=field)
    value = int.from_bytes(bytes(data), "little")
    if not 1 <= value < CURVE_ORDER:
        raise InvalidKeyMaterial(f"{field}: scalar out of range [1, n-1]", field=field)
    return value


def check_scalar(scalar: int, field: str = "scalar") -> int:
    """Validate an integer scalar is in [1, n-1] and return it."""
    if isinstance(scalar, bool) or not isinstance(scalar, int):
        raise InvalidKeyMaterial(f"{field}: expected int, got {type(scalar).__name__}", field=field)
    if not 1 <= scalar < CURVE_ORDER:
        raise InvalidKeyMaterial(f"{field}: scalar out of range [1, n-1]", field=field)
    return scalar


# ==============================================================================
# Domain-separated derivation
# ==============================================================================


def hash_bytes(data: bytes, domain_label: bytes, size: int = 32) -> bytes:
    """Blake2b(label ‖ data) truncated to `size` bytes (1..64)."""
    return hashlib.blake2b(domain_label + data, digest_size=size).digest()


def derive_scalar(seed: bytes, domain_label: bytes) -> int:
    """
    Hash (label ‖ seed) into a scalar in [1, n-1].

    Uses a 512-bit Blake2b digest reduced mod n (negligible bias). A zero
    outcome is re-hashed with an appended counter. Deterministic across
    processes.
    """
    message = domain_label + seed
    counter = 0
    while True:
        data = message if counter == 0 else message + counter.to_bytes(4, "little")
        digest = hashlib.blake2b(data, digest_size=64).digest()
        scalar = int.from_bytes(digest, "little") % CURVE_ORDER
        if scalar:
            return scalar
        counter += 1


def derive_generator(domain_label: bytes) -> ec.PointEdwards:
    """
    Derive an independent generator via try-and-increment hash-to-curve.

    Algorithm:
        1. candidate = Blake2b256(label ‖ counter_le32)
        2. If candidate is a canonical curve encoding, P = 8·decode(candidate)
        3. Skip the identity; otherwise return P
    The discrete log of the result w.r.t. G is unknown.

    Returns:
        A prime-order point flagged as a generator (precomputed multiples).
    """
    for counter in range(_MAX_HASH_TO_CURVE_ATTEMPTS):
        candidate = hashlib.blake2b(
            domain_label + counter.to_bytes(4, "little"), digest_size=32
        ).digest()
        try:
            point = ec.PointEdwards.from_bytes(_CURVE, candidate)
        except MalformedPointError:
            continue
        if not _is_canonical(candidate, point):
            continue
        cleared = COFACTOR * point
        if is_identity(cleared):
            continue
        x, y = cleared.x(), cleared.y()
        return ec.PointEdwards(
            _CURVE, x, y, 1, (x * y) % FIELD_PRIME, CURVE_ORDER, generator=True
        )

    raise RuntimeError(
        f"derive_generator: no valid point in {_MAX_HASH_TO_CURVE_ATTEMPTS} iterations"
    )
