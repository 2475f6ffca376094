"""
Viewing keys: read-only, account-scoped, time-boxed decryption capability.

    block_i       = Blake2b-512(label ‖ account_id, salt=i)     (i = 0, 1, ...)
    mask          = (block_0 ‖ block_1 ‖ ...)[:len(owner_secret)]
    masked_secret = owner_secret XOR mask
    owner_secret  = masked_secret XOR mask          (exact inverse)

The masked secret re-derives only the owner's ElGamal decryption key; it
cannot authorize ledger operations. It can optionally be sealed for one
auditor (ECDH + AEAD) so only that auditor can unseal it.

Revocation is local and advisory: revoke() returns a copy that expires now.
Nothing here can stop a party who already copied a ViewingKey from using
the masked secret elsewhere.
"""

from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Callable

from ledger_privacy.cache import DerivationCache
from ledger_privacy.core.elgamal import ElGamalEngine, EncryptedAmount
from ledger_privacy.core.models import EncryptedBalance, ViewingKey, ViewingKeyPermissions
from ledger_privacy.crypto.curve import DomainLabels, base_mult, check_scalar, encode_point
from ledger_privacy.crypto.sealing import open_from_sender, seal_for_recipient
from ledger_privacy.errors import InvalidKeyMaterial, KeyExpired, PermissionDenied

logger = logging.getLogger("ledger_privacy.viewing_keys")

MASK_BLOCK_SIZE = 64

# blake2b salt width; block 0 uses the all-zero (default) salt.
_SALT_SIZE = 16


def _xor(a: bytes, b: bytes) -> bytes:
    return bytes(x ^ y for x, y in zip(a, b, strict=True))


def _mask_block(key: bytes, index: int) -> bytes:
    return hashlib.blake2b(
        DomainLabels.ACCOUNT_MASK + key,
        digest_size=MASK_BLOCK_SIZE,
        salt=index.to_bytes(_SALT_SIZE, "little"),
    ).digest()


class ViewingKeyManager:
    """
    Issues viewing keys and decrypts on their behalf.

    Args:
        engine: ElGamalEngine whose decrypt path viewing keys delegate to.
        cache:  DerivationCache for account masks (defaults to the engine's).
        clock:  Time source (epoch seconds) for issue/expiry checks.
    """

    def __init__(
        self,
        engine: ElGamalEngine,
        cache: DerivationCache | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.engine = engine
        self.cache = cache if cache is not None else engine.cache
        self._clock = clock

    # ------------------------------------------------------------------
    # Masking
    # ------------------------------------------------------------------

    def _mask(self, account_id: str, length: int) -> bytes:
        if not isinstance(account_id, str) or not account_id:
            raise InvalidKeyMaterial("account_id must be a non-empty string", field="account_id")
        key = account_id.encode("utf-8")
        first = self.cache.get_or_compute("account-mask", key, lambda: _mask_block(key, 0))
        if length <= MASK_BLOCK_SIZE:
            return first[:length]
        blocks = [first]
        for i in range(1, -(-length // MASK_BLOCK_SIZE)):
            blocks.append(_mask_block(key, i))
        return b"".join(blocks)[:length]

    @staticmethod
    def _check_secret(secret: bytes, field: str) -> bytes:
        if not isinstance(secret, (bytes, bytearray)) or not secret:
            raise InvalidKeyMaterial(f"{field} must be non-empty bytes", field=field)
        return bytes(secret)

    def derive_viewing_key(
        self,
        owner_secret: bytes,
        account_id: str,
        permissions: ViewingKeyPermissions | None = None,
        expires_at: float | None = None,
        *,
        auditor_public: bytes | None = None,
    ) -> ViewingKey:
        """
        Issue a viewing key for `account_id`.

        Args:
            owner_secret:   The root secret the owner's ElGamal key derives from (non-empty, any length).
            account_id:     Account the key is scoped to.
            permissions:    Granted capabilities (balances + amounts by default).
            expires_at:     Epoch seconds after which the key is refused; None = no expiry.
            auditor_public: Seal the masked secret for this auditor's public point.
        """
        secret = self._check_secret(owner_secret, "owner_secret")
        masked = _xor(secret, self._mask(account_id, len(secret)))
        sealed_for = None
        if auditor_public is not None:
            masked = seal_for_recipient(auditor_public, masked, DomainLabels.AUDITOR_SEAL)
            sealed_for = auditor_public.hex()

        logger.info(f"Issued viewing key for account {account_id} (sealed={sealed_for is not None})")
        return ViewingKey(
            account_id=account_id,
            masked_secret=masked.hex(),
            permissions=permissions or ViewingKeyPermissions(),
            expires_at=expires_at,
            sealed_for=sealed_for,
            created_at=self._clock(),
        )

    def recover_owner_secret(self, masked_secret: bytes, account_id: str) -> bytes:
        """Invert the mask: recover(derive(s, id).masked_secret, id) == s."""
        masked = self._check_secret(masked_secret, "masked_secret")
        return _xor(masked, self._mask(account_id, len(masked)))

    def unseal(self, viewing_key: ViewingKey, auditor_private: int) -> ViewingKey:
        """
        Return an unsealed copy of an auditor-sealed key.

        Raises:
            PermissionDenied:    auditor_private does not match sealed_for.
            CiphertextMalformed: the sealed blob fails authentication.
        """
        if not viewing_key.is_sealed:
            return viewing_key
        check_scalar(auditor_private, field="auditor_private")
        if encode_point(base_mult(auditor_private)).hex() != viewing_key.sealed_for:
            raise PermissionDenied("viewing key is sealed for a different auditor", field="auditor_private")
        masked = open_from_sender(auditor_private, viewing_key.masked_secret_bytes, DomainLabels.AUDITOR_SEAL)
        return viewing_key.model_copy(update={"masked_secret": masked.hex(), "sealed_for": None})

    # ------------------------------------------------------------------
    # Validity and scope
    # ------------------------------------------------------------------

    def is_valid(self, viewing_key: ViewingKey) -> bool:
        return viewing_key.expires_at is None or self._clock() < viewing_key.expires_at

    @staticmethod
    def can_access_account(viewing_key: ViewingKey, account_id: str) -> bool:
        """The key's own account, plus any listed in allowed_accounts."""
        return account_id == viewing_key.account_id or account_id in viewing_key.permissions.allowed_accounts

    def revoke(self, viewing_key: ViewingKey) -> ViewingKey:
        """Advisory revocation: a copy expiring now. Copies held elsewhere still work."""
        logger.info(f"Revoked viewing key for account {viewing_key.account_id}")
        return viewing_key.model_copy(update={"expires_at": self._clock()})

    def _authorize(self, viewing_key: ViewingKey, capability: str, account_id: str | None) -> None:
        if not self.is_valid(viewing_key):
            raise KeyExpired(f"viewing key for {viewing_key.account_id} has expired", field="expires_at")
        if not getattr(viewing_key.permissions, capability):
            raise PermissionDenied(f"viewing key lacks {capability}", field=capability)
        if account_id is not None and not self.can_access_account(viewing_key, account_id):
            raise PermissionDenied(
                f"viewing key does not cover account {account_id}", field="account_id"
            )

    def _owner_private(self, viewing_key: ViewingKey, auditor_private: int | None) -> int:
        if viewing_key.is_sealed:
            if auditor_private is None:
                raise PermissionDenied("viewing key is sealed; auditor_private required", field="auditor_private")
            viewing_key = self.unseal(viewing_key, auditor_private)
        secret = self.recover_owner_secret(viewing_key.masked_secret_bytes, viewing_key.account_id)
        return self.engine.derive_keypair(secret).private_scalar

    # ------------------------------------------------------------------
    # Decryption
    # ------------------------------------------------------------------

    def decrypt_balance(
        self,
        encrypted_balance: EncryptedBalance,
        viewing_key: ViewingKey,
        *,
        account_id: str | None = None,
        auditor_private: int | None = None,
    ) -> int:
        """
        Decrypt a balance through a viewing key.

        Raises:
            KeyExpired:       the key is at or past expires_at.
            PermissionDenied: no can_view_balances, account out of scope, or a
                              sealed key without the matching auditor key.
        """
        self._authorize(viewing_key, "can_view_balances", account_id)
        owner_private = self._owner_private(viewing_key, auditor_private)
        return self.engine.decrypt_balance(encrypted_balance, owner_private)

    def decrypt_amount(
        self,
        ciphertext: bytes | EncryptedAmount,
        viewing_key: ViewingKey,
        *,
        account_id: str | None = None,
        auditor_private: int | None = None,
    ) -> int:
        """Decrypt one transferred amount; needs can_view_amounts."""
        self._authorize(viewing_key, "can_view_amounts", account_id)
        if isinstance(ciphertext, EncryptedAmount):
            ciphertext = ciphertext.ciphertext
        owner_private = self._owner_private(viewing_key, auditor_private)
        return self.engine.decrypt(ciphertext, owner_private)
