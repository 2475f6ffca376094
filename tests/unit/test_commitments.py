"""
Unit tests for ledger_privacy.crypto.commitments — Pedersen commitments and
value-conservation proofs.

All tests are pure math — no I/O, no mocks.
"""

import pytest

from ledger_privacy.cache import DerivationCache
from ledger_privacy.crypto.commitments import (
    BalanceProof,
    PedersenCommitment,
    prove_balance,
    verify_balance,
)
from ledger_privacy.crypto.curve import (
    BASE_POINT,
    CURVE_ORDER,
    IDENTITY_BYTES,
    encode_point,
    random_scalar,
)
from ledger_privacy.errors import AmountOutOfRange, CiphertextMalformed

SCHEME = PedersenCommitment()


def _random_r() -> int:
    return random_scalar()


# ==============================================================================
# PedersenCommitment
# ==============================================================================


class TestPedersenCommitment:
    """Tests for commit / verify."""

    def test_commit_deterministic(self):
        """Same (amount, blinding) gives the same commitment."""
        r = _random_r()
        assert SCHEME.commit(1000, r) == SCHEME.commit(1000, r)

    def test_commit_size(self):
        assert len(SCHEME.commit(1, _random_r())) == 32

    def test_hiding(self):
        """Different blindings hide the same amount differently."""
        assert SCHEME.commit(1000, _random_r()) != SCHEME.commit(1000, _random_r())

    def test_verify_valid(self):
        r = _random_r()
        assert SCHEME.verify(SCHEME.commit(42, r), 42, r)

    def test_verify_wrong_amount(self):
        r = _random_r()
        assert not SCHEME.verify(SCHEME.commit(42, r), 43, r)

    def test_verify_wrong_blinding(self):
        r = _random_r()
        assert not SCHEME.verify(SCHEME.commit(42, r), 42, r + 1)

    def test_verify_garbage_returns_false(self):
        assert not SCHEME.verify(b"\xff" * 32, 1, 1)
        assert not SCHEME.verify(b"short", 1, 1)

    def test_negative_amount_rejected(self):
        with pytest.raises(AmountOutOfRange):
            SCHEME.commit(-1, _random_r())

    def test_blinding_reduced_mod_order(self):
        """r and r + n commit identically."""
        r = _random_r()
        assert SCHEME.commit(5, r) == SCHEME.commit(5, r + CURVE_ORDER)

    def test_zero_commitment_is_identity(self):
        """0·H + 0·G2 is the identity."""
        assert SCHEME.commit(0, 0) == IDENTITY_BYTES

    def test_generators_distinct(self):
        """H, G2 and G are pairwise distinct."""
        encodings = {encode_point(SCHEME.H), encode_point(SCHEME.G2), encode_point(BASE_POINT)}
        assert len(encodings) == 3

    def test_cache_shares_generators(self):
        """Two schemes on one cache reuse the derived generators."""
        cache = DerivationCache()
        a, b = PedersenCommitment(cache), PedersenCommitment(cache)
        assert a.H is b.H
        assert cache.stats()["hits"] == 2


class TestHomomorphism:
    """commit(a, r1) + commit(b, r2) == commit(a+b, r1+r2)."""

    def test_add(self):
        for a, b in [(0, 0), (1, 2), (1000, 999_999), (2**32 - 1, 1)]:
            r1, r2 = _random_r(), _random_r()
            assert SCHEME.add(SCHEME.commit(a, r1), SCHEME.commit(b, r2)) == SCHEME.commit(a + b, r1 + r2)

    def test_subtract(self):
        r1, r2 = _random_r(), _random_r()
        diff = SCHEME.subtract(SCHEME.commit(500, r1), SCHEME.commit(200, r2))
        assert diff == SCHEME.commit(300, r1 - r2)

    def test_sum(self):
        pairs = [(10, _random_r()), (20, _random_r()), (30, _random_r())]
        total = SCHEME.sum(SCHEME.commit(v, r) for v, r in pairs)
        assert total == SCHEME.commit(60, sum(r for _, r in pairs))

    def test_sum_empty_is_identity(self):
        assert SCHEME.sum([]) == IDENTITY_BYTES

    def test_add_malformed(self):
        with pytest.raises(CiphertextMalformed):
            SCHEME.add(b"\x00" * 31, SCHEME.commit(1, 1))


# ==============================================================================
# BalanceProof
# ==============================================================================


class TestBalanceProof:
    """Tests for value conservation."""

    def test_balanced_split(self):
        """One input of 100 split into 60 + 40."""
        proof = prove_balance([(100, _random_r())], [(60, _random_r()), (40, _random_r())], SCHEME)
        assert isinstance(proof, BalanceProof)
        assert verify_balance(proof, SCHEME)

    def test_unbalanced_rejected(self):
        with pytest.raises(ValueError, match="don't balance"):
            prove_balance([(100, _random_r())], [(60, _random_r()), (41, _random_r())], SCHEME)

    def test_tampered_delta_r(self):
        proof = prove_balance([(100, _random_r())], [(100, _random_r())], SCHEME)
        forged = BalanceProof(
            input_commitments=proof.input_commitments,
            output_commitments=proof.output_commitments,
            residual=proof.residual,
            delta_r=(proof.delta_r + 1) % CURVE_ORDER,
        )
        assert not verify_balance(forged, SCHEME)

    def test_swapped_output_commitment(self):
        """An output committing to a different value breaks the equation."""
        r_in, r_out = _random_r(), _random_r()
        proof = prove_balance([(100, r_in)], [(100, r_out)], SCHEME)
        forged = BalanceProof(
            input_commitments=proof.input_commitments,
            output_commitments=(SCHEME.commit(101, r_out),),
            residual=proof.residual,
            delta_r=proof.delta_r,
        )
        assert not verify_balance(forged, SCHEME)

    def test_malformed_commitment(self):
        proof = prove_balance([(1, _random_r())], [(1, _random_r())], SCHEME)
        forged = BalanceProof(
            input_commitments=(b"\x00" * 5,),
            output_commitments=proof.output_commitments,
            residual=proof.residual,
            delta_r=proof.delta_r,
        )
        assert not verify_balance(forged, SCHEME)
