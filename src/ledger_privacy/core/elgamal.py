"""
ElGamal confidential balance engine.

Amounts are encoded as group elements and encrypted additively:

    C1 = r·G
    C2 = v·G + r·P          (P = recipient public point)
    decrypt: M = C2 - x·C1 = v·G, then bounded discrete-log recovery of v.

Each EncryptedAmount also carries a Pedersen commitment v·H + r2·G2 with an
independent blinding r2 and a range proof from the configured ProofSystem.
Ciphertexts and commitments both compose additively, which is what lets a
balance be credited and debited without ever decrypting it.

Encodings: every point is 32 bytes; a ciphertext is C1 ‖ C2 (64 bytes).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace

import ecdsa.ellipticcurve as ec

from ledger_privacy.cache import DerivationCache
from ledger_privacy.config import PrivacyConfig
from ledger_privacy.core.models import EncryptedBalance
from ledger_privacy.crypto.commitments import PedersenCommitment
from ledger_privacy.crypto.curve import (
    POINT_SIZE,
    DomainLabels,
    base_mult,
    check_scalar,
    decode_point,
    derive_scalar,
    encode_point,
    point_add,
    point_sub,
    random_scalar,
    scalar_mult,
)
from ledger_privacy.crypto.dlog import DiscreteLogSolver
from ledger_privacy.crypto.proofs import (
    PlaceholderProofSystem,
    ProofSystem,
    RangeProofInputs,
    require_sound,
)
from ledger_privacy.errors import (
    AmountOutOfRange,
    CiphertextMalformed,
    InvalidKeyMaterial,
    ProofUnavailable,
)

logger = logging.getLogger("ledger_privacy.elgamal")

CIPHERTEXT_SIZE = 2 * POINT_SIZE


# ==============================================================================
# Keys and ciphertexts
# ==============================================================================


@dataclass(frozen=True)
class ElGamalKeypair:
    """
    An owner's encryption identity.

    Attributes:
        private_scalar: x in [1, n-1].
        public_point:   x·G, 32-byte encoding. Checked on construction.
    """
    private_scalar: int
    public_point: bytes

    def __post_init__(self) -> None:
        check_scalar(self.private_scalar, field="private_scalar")
        if encode_point(base_mult(self.private_scalar)) != self.public_point:
            raise InvalidKeyMaterial(
                "public_point does not match private_scalar·G", field="public_point"
            )

    @classmethod
    def from_scalar(cls, scalar: int) -> ElGamalKeypair:
        check_scalar(scalar, field="private_scalar")
        return cls(private_scalar=scalar, public_point=encode_point(base_mult(scalar)))

    @classmethod
    def generate(cls) -> ElGamalKeypair:
        """Fresh keypair from the OS CSPRNG."""
        return cls.from_scalar(random_scalar())

    def __repr__(self) -> str:
        return f"ElGamalKeypair(public_point={self.public_point.hex()})"


@dataclass(frozen=True)
class EncryptedAmount:
    """
    One encrypted value in transit.

    Attributes:
        ciphertext:           C1 ‖ C2 (64 bytes).
        commitment:           Pedersen commitment v·H + r2·G2 (32 bytes).
        range_proof:          Bytes from the configured ProofSystem.
        randomness:           r (creator-only; None once stripped).
        commitment_blinding:  r2 (creator-only; None once stripped).
        proof_is_placeholder: True when range_proof came from a placeholder system.
    """
    ciphertext: bytes
    commitment: bytes
    range_proof: bytes
    randomness: int | None = None
    commitment_blinding: int | None = None
    proof_is_placeholder: bool = True

    @property
    def c1(self) -> bytes:
        return self.ciphertext[:POINT_SIZE]

    @property
    def c2(self) -> bytes:
        return self.ciphertext[POINT_SIZE:]

    def public_view(self) -> EncryptedAmount:
        """Copy without the creator-only blinding values, safe to hand on."""
        return replace(self, randomness=None, commitment_blinding=None)

    def __repr__(self) -> str:
        return (
            f"EncryptedAmount(ciphertext={self.ciphertext.hex()[:16]}..., "
            f"commitment={self.commitment.hex()[:16]}..., "
            f"proof_is_placeholder={self.proof_is_placeholder})"
        )


def _split_ciphertext(ciphertext: bytes) -> tuple[ec.AbstractPoint, ec.AbstractPoint]:
    if not isinstance(ciphertext, (bytes, bytearray)) or len(ciphertext) != CIPHERTEXT_SIZE:
        size = len(ciphertext) if isinstance(ciphertext, (bytes, bytearray)) else type(ciphertext).__name__
        raise CiphertextMalformed(
            f"ciphertext must be {CIPHERTEXT_SIZE} bytes, got {size}", field="ciphertext"
        )
    try:
        # Either half may be the identity after homomorphic subtraction.
        c1 = decode_point(bytes(ciphertext[:POINT_SIZE]), allow_identity=True, field="c1")
        c2 = decode_point(bytes(ciphertext[POINT_SIZE:]), allow_identity=True, field="c2")
    except InvalidKeyMaterial as e:
        raise CiphertextMalformed(str(e), field=e.field) from None
    return c1, c2


def _join_ciphertext(c1: ec.AbstractPoint, c2: ec.AbstractPoint) -> bytes:
    return encode_point(c1) + encode_point(c2)


# ==============================================================================
# Engine
# ==============================================================================


class ElGamalEngine:
    """
    Encrypts, decrypts and verifies confidential amounts.

    Args:
        config:       PrivacyConfig (defaults apply when omitted).
        proof_system: Range-proof backend; PlaceholderProofSystem by default.
        cache:        DerivationCache for generators and the discrete-log table.
        clock:        Time source for EncryptedBalance.last_updated.
    """

    def __init__(
        self,
        config: PrivacyConfig | None = None,
        proof_system: ProofSystem | None = None,
        cache: DerivationCache | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or PrivacyConfig()
        self.cache = cache if cache is not None else DerivationCache()
        self.proof_system = proof_system or PlaceholderProofSystem()
        self.commitments = PedersenCommitment(self.cache)
        self.solver = DiscreteLogSolver.from_config(self.config, self.cache)
        self._clock = clock

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def derive_keypair(self, owner_root_secret: bytes) -> ElGamalKeypair:
        """Deterministically derive the owner's keypair from a root secret."""
        if not isinstance(owner_root_secret, (bytes, bytearray)) or not owner_root_secret:
            raise InvalidKeyMaterial("owner_root_secret must be non-empty bytes", field="owner_root_secret")
        scalar = derive_scalar(bytes(owner_root_secret), DomainLabels.ELGAMAL_KEYPAIR)
        return ElGamalKeypair.from_scalar(scalar)

    # ------------------------------------------------------------------
    # Encrypt / decrypt / verify
    # ------------------------------------------------------------------

    def _check_amount(self, amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise AmountOutOfRange(f"amount must be an int, got {type(amount).__name__}", field="amount")
        if not 0 <= amount <= self.config.max_supported_amount:
            raise AmountOutOfRange(
                f"amount {amount} outside [0, {self.config.max_supported_amount}]", field="amount"
            )

    def _check_proof_policy(self) -> None:
        if self.proof_system.is_placeholder and not self.config.allow_placeholder_proofs:
            raise ProofUnavailable(
                f"proof system '{self.proof_system.name}' is a placeholder and "
                "placeholder proofs are disabled",
                field="proof_system",
            )

    def encrypt(self, amount: int, recipient_public: bytes) -> EncryptedAmount:
        """
        Encrypt `amount` to `recipient_public`.

        Returns:
            EncryptedAmount with the 64-byte ciphertext, commitment, range proof
            and the creator-only blinding values.

        Raises:
            AmountOutOfRange:   amount not an int in [0, max_supported_amount]
                                (checked before any curve arithmetic).
            InvalidKeyMaterial: recipient_public is not a valid point.
            ProofUnavailable:   placeholder proofs are disabled.
        """
        self._check_amount(amount)
        self._check_proof_policy()
        recipient = decode_point(recipient_public, field="recipient_public")

        r = random_scalar()
        c1 = base_mult(r)
        c2 = point_add(base_mult(amount), scalar_mult(r, recipient))

        r2 = random_scalar()
        commitment = self.commitments.commit(amount, r2)
        proof = self.proof_system.generate(
            RangeProofInputs(amount=amount, blinding=r2, commitment=commitment)
        )

        return EncryptedAmount(
            ciphertext=_join_ciphertext(c1, c2),
            commitment=commitment,
            range_proof=proof,
            randomness=r,
            commitment_blinding=r2,
            proof_is_placeholder=self.proof_system.is_placeholder,
        )

    def decrypt(self, ciphertext: bytes, owner_private_scalar: int) -> int:
        """
        Recover the amount from a ciphertext.

        Raises:
            CiphertextMalformed: wrong length or invalid point encodings.
            InvalidKeyMaterial:  owner_private_scalar not in [1, n-1].
            AmountOutOfRange:    amount not recoverable within the configured
                                 bound or budget (never reported as 0).
        """
        c1, c2 = _split_ciphertext(ciphertext)
        check_scalar(owner_private_scalar, field="owner_private_scalar")
        message = point_sub(c2, scalar_mult(owner_private_scalar, c1))
        return self.solver.solve(
            message,
            max_iterations=self.config.dlog_max_iterations,
            timeout=self.config.dlog_timeout_seconds,
        )

    def verify(self, encrypted_amount: EncryptedAmount, *, require_sound_proof: bool = False) -> bool:
        """
        Structural and proof validation.

        True when C1, C2 and the commitment decode to valid group elements and
        the proof system accepts the range proof.

        Raises:
            ProofUnavailable: the proof system is a placeholder and either
                require_sound_proof is set or placeholder proofs are disabled.
        """
        if require_sound_proof:
            require_sound(self.proof_system, "verify")
        self._check_proof_policy()
        try:
            _split_ciphertext(encrypted_amount.ciphertext)
            decode_point(encrypted_amount.commitment, allow_identity=True, field="commitment")
        except (CiphertextMalformed, InvalidKeyMaterial) as e:
            logger.debug(f"EncryptedAmount failed structural check: {e}")
            return False
        return self.proof_system.verify(encrypted_amount.range_proof, encrypted_amount.commitment)

    # ------------------------------------------------------------------
    # Homomorphic operations
    # ------------------------------------------------------------------

    def add_ciphertexts(self, a: bytes, b: bytes) -> bytes:
        """Enc(v1) + Enc(v2) = Enc(v1 + v2) under the same key."""
        a1, a2 = _split_ciphertext(a)
        b1, b2 = _split_ciphertext(b)
        return _join_ciphertext(point_add(a1, b1), point_add(a2, b2))

    def subtract_ciphertexts(self, a: bytes, b: bytes) -> bytes:
        """Enc(v1) - Enc(v2) = Enc(v1 - v2) under the same key."""
        a1, a2 = _split_ciphertext(a)
        b1, b2 = _split_ciphertext(b)
        return _join_ciphertext(point_sub(a1, b1), point_sub(a2, b2))

    def rerandomize(self, ciphertext: bytes, public: bytes) -> bytes:
        """Add a fresh encryption of zero so the result is unlinkable to the input."""
        c1, c2 = _split_ciphertext(ciphertext)
        owner = decode_point(public, field="public")
        r = random_scalar()
        return _join_ciphertext(point_add(c1, base_mult(r)), point_add(c2, scalar_mult(r, owner)))

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    def open_balance(self, owner_public: bytes) -> EncryptedBalance:
        """A new confidential balance holding an encryption of zero."""
        zero = self.encrypt(0, owner_public)
        return EncryptedBalance(
            ciphertext=zero.ciphertext.hex(),
            commitment=zero.commitment.hex(),
            last_updated=self._clock(),
            exists=True,
        )

    def credit(
        self,
        balance: EncryptedBalance,
        encrypted_amount: EncryptedAmount,
        owner_public: bytes,
    ) -> EncryptedBalance:
        """
        Return a new balance with `encrypted_amount` added.

        The amount must be encrypted to owner_public. The ciphertext is
        re-randomized; the input balance is left untouched.
        """
        summed = self.add_ciphertexts(balance.ciphertext_bytes, encrypted_amount.ciphertext)
        commitment = self.commitments.add(balance.commitment_bytes, encrypted_amount.commitment)
        logger.debug("Credited confidential balance")
        return self._rewrite(balance, summed, commitment, owner_public)

    def debit(
        self,
        balance: EncryptedBalance,
        encrypted_amount: EncryptedAmount,
        owner_public: bytes,
    ) -> EncryptedBalance:
        """
        Return a new balance with `encrypted_amount` subtracted.

        Underflow is not detectable on ciphertexts: an overdrawn balance
        fails to decrypt with AmountOutOfRange. Pair debits with a range
        proof from a sound proof system.
        """
        remaining = self.subtract_ciphertexts(balance.ciphertext_bytes, encrypted_amount.ciphertext)
        commitment = self.commitments.subtract(balance.commitment_bytes, encrypted_amount.commitment)
        logger.debug("Debited confidential balance")
        return self._rewrite(balance, remaining, commitment, owner_public)

    def _rewrite(
        self,
        balance: EncryptedBalance,
        ciphertext: bytes,
        commitment: bytes,
        owner_public: bytes,
    ) -> EncryptedBalance:
        return balance.model_copy(
            update={
                "ciphertext": self.rerandomize(ciphertext, owner_public).hex(),
                "commitment": commitment.hex(),
                "last_updated": self._clock(),
                "exists": True,
            }
        )

    def decrypt_balance(self, balance: EncryptedBalance, owner_private_scalar: int) -> int:
        return self.decrypt(balance.ciphertext_bytes, owner_private_scalar)
