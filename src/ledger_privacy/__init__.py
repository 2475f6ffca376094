"""
ledger-privacy: confidential balances, stealth addresses and viewing keys.

Usage:
    from ledger_privacy import ElGamalEngine, StealthAddressEngine, ViewingKeyManager
    from ledger_privacy.config import PrivacyConfig
"""

from ledger_privacy.cache import DerivationCache
from ledger_privacy.config import MAX_SUPPORTED_AMOUNT, PrivacyConfig
from ledger_privacy.core.elgamal import ElGamalEngine, ElGamalKeypair, EncryptedAmount
from ledger_privacy.core.models import EncryptedBalance, ViewingKey, ViewingKeyPermissions
from ledger_privacy.core.stealth import (
    EphemeralKeyRegistry,
    PaymentCandidate,
    StealthAddressEngine,
    StealthKeys,
    StealthMetaAddress,
)
from ledger_privacy.core.viewing_keys import ViewingKeyManager
from ledger_privacy.errors import PrivacyError

__version__ = "0.1.0"
__all__ = [
    "DerivationCache",
    "ElGamalEngine",
    "ElGamalKeypair",
    "EncryptedAmount",
    "EncryptedBalance",
    "EphemeralKeyRegistry",
    "MAX_SUPPORTED_AMOUNT",
    "PaymentCandidate",
    "PrivacyConfig",
    "PrivacyError",
    "StealthAddressEngine",
    "StealthKeys",
    "StealthMetaAddress",
    "ViewingKey",
    "ViewingKeyManager",
    "ViewingKeyPermissions",
]
