"""
ledger_privacy.crypto — Group primitives for confidential balances.

Provides:
- edwards25519 point/scalar encodings and domain-separated derivation
- Pedersen Commitments (C = v·H + r·G2) and value-conservation proofs
- AES-GCM sealing of derived key material
- Pluggable range-proof interface (placeholder only)
- Bounded discrete-log recovery (linear + baby-step giant-step)
"""

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
    POINT_SIZE,
    SCALAR_SIZE,
    DomainLabels,
    decode_point,
    decode_scalar,
    derive_generator,
    derive_scalar,
    encode_point,
    encode_scalar,
    random_scalar,
)
from ledger_privacy.crypto.dlog import DiscreteLogSolver
from ledger_privacy.crypto.proofs import (
    PlaceholderProofSystem,
    ProofSystem,
    RangeProofInputs,
    require_sound,
)
from ledger_privacy.crypto.sealing import (
    derive_sealing_key,
    open_from_sender,
    open_sealed,
    seal,
    seal_for_recipient,
)

__all__ = [
    # Curve
    "BASE_POINT",
    "CURVE_ORDER",
    "IDENTITY_BYTES",
    "POINT_SIZE",
    "SCALAR_SIZE",
    "DomainLabels",
    "decode_point",
    "decode_scalar",
    "derive_generator",
    "derive_scalar",
    "encode_point",
    "encode_scalar",
    "random_scalar",
    # Commitments
    "PedersenCommitment",
    "BalanceProof",
    "prove_balance",
    "verify_balance",
    # Discrete log
    "DiscreteLogSolver",
    # Proofs
    "ProofSystem",
    "PlaceholderProofSystem",
    "RangeProofInputs",
    "require_sound",
    # Sealing
    "derive_sealing_key",
    "seal",
    "open_sealed",
    "seal_for_recipient",
    "open_from_sender",
]
