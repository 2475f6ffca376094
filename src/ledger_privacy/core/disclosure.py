"""
Selective disclosure of encrypted records.

Produces redacted views that can be shared with a third party without
decrypting anything. Ciphertexts and blinding values never appear in the
output; only the fields a policy allows do.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ledger_privacy.core.elgamal import EncryptedAmount
from ledger_privacy.core.models import EncryptedBalance, ViewingKeyPermissions

DISCLOSURE_CATEGORIES = ("balances", "amounts", "metadata")


@dataclass(frozen=True)
class DisclosurePolicy:
    """Which non-secret fields of an EncryptedBalance may be shared."""
    disclose_commitment: bool = True
    disclose_timestamps: bool = True
    disclose_exists_flag: bool = True


def disclose_encrypted_balance(
    balance: EncryptedBalance,
    policy: DisclosurePolicy | None = None,
) -> dict[str, Any]:
    """Redacted view of a balance; omitted fields are absent from the dict."""
    policy = policy or DisclosurePolicy()
    out: dict[str, Any] = {}
    if policy.disclose_commitment:
        out["commitment"] = balance.commitment
    if policy.disclose_timestamps:
        out["last_updated"] = balance.last_updated
    if policy.disclose_exists_flag:
        out["exists"] = balance.exists
    return out


def disclose_encrypted_amount(
    amount: EncryptedAmount,
    include_commitment: bool = True,
    include_range_proof: bool = False,
) -> dict[str, Any]:
    """Redacted view of an encrypted amount (hex-encoded)."""
    out: dict[str, Any] = {}
    if include_commitment:
        out["commitment"] = amount.commitment.hex()
    if include_range_proof:
        out["range_proof"] = amount.range_proof.hex()
        out["proof_is_placeholder"] = amount.proof_is_placeholder
    return out


def can_disclose(permissions: ViewingKeyPermissions, category: str) -> bool:
    """
    Whether `permissions` allow disclosing `category`.

    Raises:
        ValueError: unknown category.
    """
    if category == "balances":
        return permissions.can_view_balances
    if category == "amounts":
        return permissions.can_view_amounts
    if category == "metadata":
        return permissions.can_view_metadata
    raise ValueError(f"Unknown disclosure category {category!r}; expected one of {DISCLOSURE_CATEGORIES}")
