"""
Error hierarchy for the confidential-balance / stealth-address core.

Every error is terminal for the attempted operation: inputs and the group
arithmetic are deterministic, so retrying with the same inputs cannot
succeed. The only legitimate retry is to regenerate inputs (fresh
ephemeral key, fresh randomness) and re-run the whole operation.

Each error carries:
    kind:  stable machine-readable identifier (e.g. "amount_out_of_range")
    field: name of the offending input, or None
"""

from __future__ import annotations


class PrivacyError(Exception):
    """Base class for all ledger_privacy errors."""

    kind: str = "privacy_error"

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind!r}, field={self.field!r}, message={str(self)!r})"


class InvalidKeyMaterial(PrivacyError):
    """Raised for a malformed scalar or point (wrong length, off-curve, torsion, zero)."""

    kind = "invalid_key_material"


class CiphertextMalformed(PrivacyError):
    """Raised for a ciphertext of the wrong length, with invalid encodings, or failing AEAD authentication."""

    kind = "ciphertext_malformed"


class AmountOutOfRange(PrivacyError):
    """
    Raised when an amount lies outside [0, MAX_SUPPORTED].

    Also raised by decryption when the discrete-log search exhausts its
    bound or budget. This is never reported as a silent zero.
    """

    kind = "amount_out_of_range"


class PermissionDenied(PrivacyError):
    """Raised when a viewing key lacks the requested capability."""

    kind = "permission_denied"


class KeyExpired(PrivacyError):
    """Raised when a viewing key is used at or after its expiry."""

    kind = "key_expired"


class ProofUnavailable(PrivacyError):
    """
    Raised when the configured proof system cannot back a security claim.

    This is a configuration problem of this library, not a cryptographic
    failure of the caller's input: the placeholder proof system satisfies
    the interface but proves nothing.
    """

    kind = "proof_unavailable"


class EphemeralKeyReused(InvalidKeyMaterial):
    """Raised when a caller-supplied ephemeral key was already used for a payment."""

    kind = "ephemeral_key_reused"


class PaymentAlreadySpent(PrivacyError):
    """Raised when a detected stealth payment is marked spent a second time."""

    kind = "payment_already_spent"


class ConfigError(PrivacyError, ValueError):
    """Raised for an inconsistent PrivacyConfig."""

    kind = "config_error"
