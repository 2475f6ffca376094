"""
Pluggable range-proof interface.

The balance engine asks a ProofSystem for a proof that a commitment hides a
value in range, and asks it again to verify that proof. Only a placeholder
ships here: PlaceholderProofSystem produces bytes bound to the commitment so
integration code can exercise the full encrypt/verify path, but it proves
NOTHING about the committed value. A Bulletproofs-style prover must be
plugged in before any amount-hiding claim is made.

Anything that needs a genuine security guarantee calls require_sound(),
which raises ProofUnavailable for a placeholder.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from ledger_privacy.crypto.curve import DomainLabels
from ledger_privacy.errors import ProofUnavailable

logger = logging.getLogger("ledger_privacy.proofs")

PLACEHOLDER_PROOF_SIZE = 128


@dataclass(frozen=True)
class RangeProofInputs:
    """
    Witness and statement for a range proof.

    Attributes:
        amount:     Committed value v.
        blinding:   Commitment blinding r2.
        commitment: Encoded commitment v·H + r2·G2 (the public statement).
    """
    amount: int
    blinding: int
    commitment: bytes

    def __repr__(self) -> str:
        # Witness values stay out of reprs and logs.
        return f"RangeProofInputs(commitment={self.commitment.hex()[:16]}...)"


class ProofSystem(ABC):
    """Interface every range-proof backend implements."""

    name: str = "abstract"
    is_placeholder: bool = False

    @abstractmethod
    def generate(self, inputs: RangeProofInputs) -> bytes:
        """Produce proof bytes for `inputs`."""

    @abstractmethod
    def verify(self, proof: bytes, commitment: bytes) -> bool:
        """Check `proof` against the public `commitment`."""


class PlaceholderProofSystem(ProofSystem):
    """
    PLACEHOLDER, NOT SECURE.

    Emits 128 deterministic bytes derived from the commitment alone and
    "verifies" by recomputing them. Passing verification only shows the
    proof was produced for this commitment; it says nothing about the range
    of the committed value.
    """

    name = "placeholder"
    is_placeholder = True

    def generate(self, inputs: RangeProofInputs) -> bytes:
        logger.warning(
            "Generating a placeholder range proof; it provides no security guarantee"
        )
        return self._expected(inputs.commitment)

    def verify(self, proof: bytes, commitment: bytes) -> bool:
        if len(proof) != PLACEHOLDER_PROOF_SIZE:
            return False
        return hmac.compare_digest(proof, self._expected(commitment))

    @staticmethod
    def _expected(commitment: bytes) -> bytes:
        label = DomainLabels.RANGE_PROOF_PLACEHOLDER
        head = hashlib.blake2b(label + b"\x00" + commitment, digest_size=64).digest()
        tail = hashlib.blake2b(label + b"\x01" + commitment, digest_size=64).digest()
        return head + tail


def require_sound(proof_system: ProofSystem, purpose: str) -> None:
    """
    Refuse to back a security claim with a placeholder proof system.

    Raises:
        ProofUnavailable: if `proof_system` is a placeholder.
    """
    if proof_system.is_placeholder:
        raise ProofUnavailable(
            f"{purpose} requires a sound proof system; "
            f"'{proof_system.name}' is a placeholder",
            field="proof_system",
        )
