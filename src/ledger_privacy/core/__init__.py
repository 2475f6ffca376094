"""core module init"""
from ledger_privacy.core.disclosure import (
    DisclosurePolicy,
    can_disclose,
    disclose_encrypted_amount,
    disclose_encrypted_balance,
)
from ledger_privacy.core.elgamal import (
    CIPHERTEXT_SIZE,
    ElGamalEngine,
    ElGamalKeypair,
    EncryptedAmount,
)
from ledger_privacy.core.models import EncryptedBalance, ViewingKey, ViewingKeyPermissions
from ledger_privacy.core.stealth import (
    EphemeralKey,
    EphemeralKeyRegistry,
    PaymentCandidate,
    StealthAddress,
    StealthAddressEngine,
    StealthKeys,
    StealthMetaAddress,
    StealthPayment,
)
from ledger_privacy.core.viewing_keys import ViewingKeyManager

__all__ = [
    "CIPHERTEXT_SIZE",
    "DisclosurePolicy",
    "ElGamalEngine",
    "ElGamalKeypair",
    "EncryptedAmount",
    "EncryptedBalance",
    "EphemeralKey",
    "EphemeralKeyRegistry",
    "PaymentCandidate",
    "StealthAddress",
    "StealthAddressEngine",
    "StealthKeys",
    "StealthMetaAddress",
    "StealthPayment",
    "ViewingKey",
    "ViewingKeyManager",
    "ViewingKeyPermissions",
    "can_disclose",
    "disclose_encrypted_amount",
    "disclose_encrypted_balance",
]
