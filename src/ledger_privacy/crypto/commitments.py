"""
Pedersen commitments over the edwards25519 prime-order subgroup.

Provides:
- PedersenCommitment: commit / verify / add / subtract / sum
- BalanceProof: value conservation across input and output commitments

Mathematical foundation:
    C = v·H + r·G2
    where H and G2 are independent generators from derive_generator(), each
    with unknown discrete log w.r.t. G and w.r.t. each other.

    Hiding:      reveals nothing about v without r
    Binding:     cannot open to a different (v', r')
    Homomorphic: C(a, r1) + C(b, r2) == C(a+b, r1+r2)

    Conservation: if Σ v_in == Σ v_out then
        D = Σ C_in - Σ C_out = (Σ r_in - Σ r_out)·G2
    i.e. the H components cancel and D is a pure G2-multiple.

References:
    [Ped91] T.P. Pedersen, "Non-Interactive and Information-Theoretic Secure
            Verifiable Secret Sharing", CRYPTO '91, §3.
    [Max15] G. Maxwell, "Confidential Transactions", 2015.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import ecdsa.ellipticcurve as ec

from ledger_privacy.cache import DerivationCache
from ledger_privacy.crypto.curve import (
    CURVE_ORDER,
    DomainLabels,
    decode_point,
    derive_generator,
    encode_point,
    point_add,
    point_sub,
    scalar_mult,
)
from ledger_privacy.errors import AmountOutOfRange, CiphertextMalformed, InvalidKeyMaterial


def _decode_commitment(data: bytes, field: str) -> ec.AbstractPoint:
    try:
        return decode_point(data, allow_identity=True, field=field)
    except InvalidKeyMaterial as e:
        raise CiphertextMalformed(str(e), field=field) from None


class PedersenCommitment:
    """
    Pedersen commitment scheme C = v·H + r·G2.

    Generators are derived once per instance and memoized in the cache when
    one is supplied, so several engines sharing a cache share the tables.

    Args:
        cache: Optional DerivationCache for the derived generators.
    """

    def __init__(self, cache: DerivationCache | None = None) -> None:
        if cache is None:
            self.H = derive_generator(DomainLabels.PEDERSEN_H)
            self.G2 = derive_generator(DomainLabels.PEDERSEN_G2)
        else:
            self.H = cache.get_or_compute(
                "generator", DomainLabels.PEDERSEN_H,
                lambda: derive_generator(DomainLabels.PEDERSEN_H),
            )
            self.G2 = cache.get_or_compute(
                "generator", DomainLabels.PEDERSEN_G2,
                lambda: derive_generator(DomainLabels.PEDERSEN_G2),
            )

    def _point(self, amount: int, blinding: int) -> ec.AbstractPoint:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise AmountOutOfRange(f"amount must be a non-negative int, got {amount!r}", field="amount")
        if isinstance(blinding, bool) or not isinstance(blinding, int):
            raise InvalidKeyMaterial(f"blinding must be an int, got {type(blinding).__name__}", field="blinding")
        # C = v·H + r·G2
        return point_add(scalar_mult(amount, self.H), scalar_mult(blinding % CURVE_ORDER, self.G2))

    def commit(self, amount: int, blinding: int) -> bytes:
        """
        Create C = amount·H + blinding·G2.

        Args:
            amount:   Committed value (non-negative).
            blinding: Blinding scalar; reduced mod n.

        Returns:
            32-byte encoded commitment.
        """
        return encode_point(self._point(amount, blinding))

    def verify(self, commitment: bytes, amount: int, blinding: int) -> bool:
        """Check that `commitment` opens to (amount, blinding)."""
        try:
            C = _decode_commitment(commitment, "commitment")
            expected = self._point(amount, blinding)
        except (CiphertextMalformed, AmountOutOfRange, InvalidKeyMaterial):
            return False
        return encode_point(C) == encode_point(expected)

    def add(self, c1: bytes, c2: bytes) -> bytes:
        """C1 + C2 (commits to the summed amount under the summed blinding)."""
        return encode_point(point_add(_decode_commitment(c1, "c1"), _decode_commitment(c2, "c2")))

    def subtract(self, c1: bytes, c2: bytes) -> bytes:
        """C1 - C2."""
        return encode_point(point_sub(_decode_commitment(c1, "c1"), _decode_commitment(c2, "c2")))

    def sum(self, commitments: Iterable[bytes]) -> bytes:
        """Σ C_i (the identity for an empty input)."""
        total = ec.INFINITY
        for i, c in enumerate(commitments):
            total = point_add(total, _decode_commitment(c, f"commitments[{i}]"))
        return encode_point(total)

    def blinding_point(self, blinding: int) -> bytes:
        """r·G2, the residual a balanced set of commitments reduces to."""
        return encode_point(scalar_mult(blinding % CURVE_ORDER, self.G2))


# ==============================================================================
# Balance Proof (Value Conservation)
# ==============================================================================


@dataclass(frozen=True)
class BalanceProof:
    """
    Value-conservation proof: Σ input values == Σ output values.

    Checks the algebraic balance equation only. It says nothing about the
    individual values being in range; that needs a real range proof.

    Attributes:
        input_commitments:  Encoded input commitments.
        output_commitments: Encoded output commitments.
        residual:           D = Σ C_in - Σ C_out (32 bytes).
        delta_r:            Σ r_in - Σ r_out mod n, disclosed so D = Δr·G2 is checkable.
    """
    input_commitments: tuple[bytes, ...]
    output_commitments: tuple[bytes, ...]
    residual: bytes
    delta_r: int


def prove_balance(
    inputs: Sequence[tuple[int, int]],
    outputs: Sequence[tuple[int, int]],
    scheme: PedersenCommitment | None = None,
) -> BalanceProof:
    """
    Prove that the (amount, blinding) inputs and outputs carry equal value.

    Args:
        inputs:  (amount, blinding) pairs being spent.
        outputs: (amount, blinding) pairs being created.
        scheme:  Commitment scheme (a fresh one if omitted).

    Raises:
        ValueError: if Σ input amounts != Σ output amounts.
    """
    in_total = sum(v for v, _ in inputs)
    out_total = sum(v for v, _ in outputs)
    if in_total != out_total:
        raise ValueError(f"Values don't balance: {in_total} != {out_total}")

    scheme = scheme or PedersenCommitment()
    input_cs = tuple(scheme.commit(v, r) for v, r in inputs)
    output_cs = tuple(scheme.commit(v, r) for v, r in outputs)

    residual = scheme.subtract(scheme.sum(input_cs), scheme.sum(output_cs))
    delta_r = (sum(r for _, r in inputs) - sum(r for _, r in outputs)) % CURVE_ORDER

    return BalanceProof(
        input_commitments=input_cs,
        output_commitments=output_cs,
        residual=residual,
        delta_r=delta_r,
    )


def verify_balance(proof: BalanceProof, scheme: PedersenCommitment | None = None) -> bool:
    """
    Verify a balance proof.

    Recomputes D from the listed commitments and checks D == Δr·G2, which
    holds only if the H components cancelled.
    """
    scheme = scheme or PedersenCommitment()
    try:
        residual = scheme.subtract(
            scheme.sum(proof.input_commitments), scheme.sum(proof.output_commitments)
        )
    except CiphertextMalformed:
        return False
    if residual != proof.residual:
        return False
    return residual == scheme.blinding_point(proof.delta_r)
