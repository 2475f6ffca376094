"""
Persisted records for confidential balances and viewing keys.

These are the records a caller stores. Binary values are kept as lowercase
hex strings so the models round-trip through JSON unchanged; the *_bytes
properties give the raw bytes back. Records are frozen: every update
produces a new record rather than mutating the stored one.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

CIPHERTEXT_HEX_LEN = 128  # C1 ‖ C2, 64 bytes
POINT_HEX_LEN = 64


def _check_hex(value: str, expected_len: int | None, name: str) -> str:
    try:
        raw = bytes.fromhex(value)
    except ValueError:
        raise ValueError(f"{name} must be a hex string") from None
    if expected_len is not None and len(value) != expected_len:
        raise ValueError(f"{name} must be {expected_len // 2} bytes, got {len(raw)}")
    return value.lower()


class EncryptedBalance(BaseModel):
    """Confidential account state: ElGamal ciphertext plus Pedersen commitment."""

    model_config = ConfigDict(frozen=True)

    ciphertext: str
    commitment: str
    last_updated: float
    exists: bool = True

    @field_validator("ciphertext")
    @classmethod
    def _ciphertext_hex(cls, v: str) -> str:
        return _check_hex(v, CIPHERTEXT_HEX_LEN, "ciphertext")

    @field_validator("commitment")
    @classmethod
    def _commitment_hex(cls, v: str) -> str:
        return _check_hex(v, POINT_HEX_LEN, "commitment")

    @property
    def ciphertext_bytes(self) -> bytes:
        return bytes.fromhex(self.ciphertext)

    @property
    def commitment_bytes(self) -> bytes:
        return bytes.fromhex(self.commitment)


class ViewingKeyPermissions(BaseModel):
    """
    Capabilities granted by a viewing key.

    An empty allowed_accounts means the key only covers the account it was
    derived for.
    """

    model_config = ConfigDict(frozen=True)

    can_view_balances: bool = True
    can_view_amounts: bool = True
    can_view_metadata: bool = False
    allowed_accounts: tuple[str, ...] = Field(default_factory=tuple)


class ViewingKey(BaseModel):
    """
    Delegated, read-only decryption capability for one account.

    masked_secret is either the raw masked owner secret, or (when sealed_for
    is set) that value sealed for the auditor whose public key hex is in
    sealed_for. It never grants spending authority.
    """

    model_config = ConfigDict(frozen=True)

    account_id: str
    masked_secret: str
    permissions: ViewingKeyPermissions = Field(default_factory=ViewingKeyPermissions)
    expires_at: float | None = None
    sealed_for: str | None = None
    created_at: float

    @field_validator("masked_secret")
    @classmethod
    def _masked_hex(cls, v: str) -> str:
        return _check_hex(v, None, "masked_secret")

    @field_validator("sealed_for")
    @classmethod
    def _sealed_for_hex(cls, v: str | None) -> str | None:
        return None if v is None else _check_hex(v, POINT_HEX_LEN, "sealed_for")

    @property
    def masked_secret_bytes(self) -> bytes:
        return bytes.fromhex(self.masked_secret)

    @property
    def is_sealed(self) -> bool:
        return self.sealed_for is not None
