"""
Unit tests for ledger_privacy.core.viewing_keys — masking, expiry,
permissions, account scope and auditor sealing.
"""

import os

import pytest

from ledger_privacy.cache import DerivationCache
from ledger_privacy.config import PrivacyConfig
from ledger_privacy.core.elgamal import ElGamalEngine, ElGamalKeypair
from ledger_privacy.core.models import ViewingKey, ViewingKeyPermissions
from ledger_privacy.core.viewing_keys import MASK_BLOCK_SIZE, ViewingKeyManager
from ledger_privacy.errors import InvalidKeyMaterial, KeyExpired, PermissionDenied

SMALL = PrivacyConfig(max_supported_amount=2**20, linear_search_limit=1024)
_CACHE = DerivationCache()


class _Clock:
    """Settable time source."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _setup(now: float = 1000.0):
    clock = _Clock(now)
    engine = ElGamalEngine(config=SMALL, cache=_CACHE, clock=clock)
    manager = ViewingKeyManager(engine, clock=clock)
    secret = os.urandom(32)
    owner = engine.derive_keypair(secret)
    return clock, engine, manager, secret, owner


# ==============================================================================
# Masking
# ==============================================================================


class TestMasking:
    """mask() is XOR with an account-bound pad, so it inverts exactly."""

    def test_invertible_many(self):
        _, _, manager, _, _ = _setup()
        for i in range(128):
            secret = os.urandom(1 + i * 2)
            account = f"acct-{i}"
            vk = manager.derive_viewing_key(secret, account)
            assert manager.recover_owner_secret(vk.masked_secret_bytes, account) == secret

    def test_masked_differs_from_secret(self):
        _, _, manager, secret, _ = _setup()
        vk = manager.derive_viewing_key(secret, "alice")
        assert vk.masked_secret_bytes != secret
        assert len(vk.masked_secret_bytes) == len(secret)

    def test_mask_depends_on_account(self):
        _, _, manager, secret, _ = _setup()
        a = manager.derive_viewing_key(secret, "alice")
        b = manager.derive_viewing_key(secret, "bob")
        assert a.masked_secret != b.masked_secret

    def test_wrong_account_does_not_recover(self):
        _, _, manager, secret, _ = _setup()
        vk = manager.derive_viewing_key(secret, "alice")
        assert manager.recover_owner_secret(vk.masked_secret_bytes, "bob") != secret

    @pytest.mark.parametrize("secret", [b"", "not-bytes"])
    def test_secret_must_be_nonempty_bytes(self, secret):
        _, _, manager, _, _ = _setup()
        with pytest.raises(InvalidKeyMaterial):
            manager.derive_viewing_key(secret, "alice")

    @pytest.mark.parametrize("size", [MASK_BLOCK_SIZE, MASK_BLOCK_SIZE + 1, 3 * MASK_BLOCK_SIZE + 8, 1000])
    def test_long_secret_invertible(self, size):
        _, _, manager, _, _ = _setup()
        secret = os.urandom(size)
        vk = manager.derive_viewing_key(secret, "alice")
        assert len(vk.masked_secret_bytes) == size
        assert manager.recover_owner_secret(vk.masked_secret_bytes, "alice") == secret

    def test_long_mask_extends_short_mask(self):
        """The first block of a long mask is the mask a short secret gets."""
        _, _, manager, _, _ = _setup()
        short = manager.derive_viewing_key(b"\x00" * MASK_BLOCK_SIZE, "alice").masked_secret_bytes
        extended = manager.derive_viewing_key(b"\x00" * (2 * MASK_BLOCK_SIZE), "alice").masked_secret_bytes
        assert extended[:MASK_BLOCK_SIZE] == short
        assert extended[MASK_BLOCK_SIZE:] != short

    def test_empty_account_rejected(self):
        _, _, manager, secret, _ = _setup()
        with pytest.raises(InvalidKeyMaterial) as exc:
            manager.derive_viewing_key(secret, "")
        assert exc.value.field == "account_id"

    def test_mask_cached_per_account(self):
        cache = DerivationCache()
        engine = ElGamalEngine(config=SMALL, cache=cache)
        manager = ViewingKeyManager(engine)
        manager.derive_viewing_key(b"s" * 16, "alice")
        manager.derive_viewing_key(b"t" * 16, "alice")
        assert ("account-mask", b"alice") in cache


# ==============================================================================
# Decryption through a viewing key
# ==============================================================================


class TestDecrypt:
    """Viewing keys delegate to the owner's ElGamal decrypt path."""

    def test_decrypt_balance(self):
        _, engine, manager, secret, owner = _setup()
        balance = engine.credit(engine.open_balance(owner.public_point), engine.encrypt(4321, owner.public_point), owner.public_point)
        vk = manager.derive_viewing_key(secret, "alice")
        assert manager.decrypt_balance(balance, vk) == 4321

    def test_decrypt_amount(self):
        _, engine, manager, secret, owner = _setup()
        enc = engine.encrypt(77, owner.public_point)
        vk = manager.derive_viewing_key(secret, "alice")
        assert manager.decrypt_amount(enc, vk) == 77
        assert manager.decrypt_amount(enc.ciphertext, vk) == 77

    def test_decrypt_with_long_owner_secret(self):
        _, engine, manager, _, _ = _setup()
        secret = os.urandom(200)
        owner = engine.derive_keypair(secret)
        enc = engine.encrypt(512, owner.public_point)
        vk = manager.derive_viewing_key(secret, "alice")
        assert manager.decrypt_amount(enc, vk) == 512

    def test_amounts_permission_required(self):
        _, engine, manager, secret, owner = _setup()
        enc = engine.encrypt(77, owner.public_point)
        vk = manager.derive_viewing_key(secret, "alice", ViewingKeyPermissions(can_view_amounts=False))
        with pytest.raises(PermissionDenied) as exc:
            manager.decrypt_amount(enc, vk)
        assert exc.value.field == "can_view_amounts"

    def test_balances_permission_required(self):
        _, engine, manager, secret, owner = _setup()
        vk = manager.derive_viewing_key(secret, "alice", ViewingKeyPermissions(can_view_balances=False))
        with pytest.raises(PermissionDenied):
            manager.decrypt_balance(engine.open_balance(owner.public_point), vk)


class TestExpiry:
    """A key is refused at or after expires_at."""

    def test_valid_before_expiry(self):
        clock, _, manager, secret, _ = _setup(now=1000.0)
        vk = manager.derive_viewing_key(secret, "alice", expires_at=2000.0)
        assert manager.is_valid(vk)
        clock.now = 1999.9
        assert manager.is_valid(vk)

    def test_invalid_at_expiry(self):
        clock, _, manager, secret, _ = _setup(now=1000.0)
        vk = manager.derive_viewing_key(secret, "alice", expires_at=2000.0)
        clock.now = 2000.0
        assert not manager.is_valid(vk)

    def test_no_expiry(self):
        clock, _, manager, secret, _ = _setup()
        vk = manager.derive_viewing_key(secret, "alice")
        clock.now = 10**12
        assert manager.is_valid(vk)

    def test_expired_key_refused(self):
        clock, engine, manager, secret, owner = _setup(now=1000.0)
        balance = engine.open_balance(owner.public_point)
        vk = manager.derive_viewing_key(secret, "alice", expires_at=1500.0)
        clock.now = 1500.0
        with pytest.raises(KeyExpired):
            manager.decrypt_balance(balance, vk)

    def test_revoke_returns_expired_copy(self):
        clock, engine, manager, secret, owner = _setup(now=1000.0)
        balance = engine.open_balance(owner.public_point)
        vk = manager.derive_viewing_key(secret, "alice")
        revoked = manager.revoke(vk)
        assert revoked.expires_at == 1000.0
        assert vk.expires_at is None
        assert not manager.is_valid(revoked)
        with pytest.raises(KeyExpired):
            manager.decrypt_balance(balance, revoked)
        # The original copy still works; revocation is advisory.
        assert manager.decrypt_balance(balance, vk) == 0

    def test_created_at_from_clock(self):
        _, _, manager, secret, _ = _setup(now=1234.5)
        assert manager.derive_viewing_key(secret, "alice").created_at == 1234.5


class TestAccountScope:
    """Account scope is the key's own account plus allowed_accounts."""

    def test_own_account(self):
        _, _, manager, secret, _ = _setup()
        vk = manager.derive_viewing_key(secret, "alice")
        assert manager.can_access_account(vk, "alice")
        assert not manager.can_access_account(vk, "bob")

    def test_allowed_accounts(self):
        _, _, manager, secret, _ = _setup()
        vk = manager.derive_viewing_key(secret, "alice", ViewingKeyPermissions(allowed_accounts=("bob",)))
        assert manager.can_access_account(vk, "bob")
        assert not manager.can_access_account(vk, "carol")

    def test_out_of_scope_refused(self):
        _, engine, manager, secret, owner = _setup()
        vk = manager.derive_viewing_key(secret, "alice")
        with pytest.raises(PermissionDenied) as exc:
            manager.decrypt_balance(engine.open_balance(owner.public_point), vk, account_id="bob")
        assert exc.value.field == "account_id"

    def test_in_scope_accepted(self):
        _, engine, manager, secret, owner = _setup()
        vk = manager.derive_viewing_key(secret, "alice")
        assert manager.decrypt_balance(engine.open_balance(owner.public_point), vk, account_id="alice") == 0


class TestAuditorSealing:
    """A key sealed for an auditor is only usable with that auditor's key."""

    def test_sealed_flow(self):
        _, engine, manager, secret, owner = _setup()
        auditor = ElGamalKeypair.generate()
        enc = engine.encrypt(900, owner.public_point)
        vk = manager.derive_viewing_key(secret, "alice", auditor_public=auditor.public_point)
        assert vk.is_sealed
        assert vk.sealed_for == auditor.public_point.hex()
        assert manager.decrypt_amount(enc, vk, auditor_private=auditor.private_scalar) == 900

    def test_sealed_without_auditor_key(self):
        _, engine, manager, secret, owner = _setup()
        auditor = ElGamalKeypair.generate()
        vk = manager.derive_viewing_key(secret, "alice", auditor_public=auditor.public_point)
        with pytest.raises(PermissionDenied):
            manager.decrypt_amount(engine.encrypt(1, owner.public_point), vk)

    def test_sealed_wrong_auditor(self):
        _, engine, manager, secret, owner = _setup()
        auditor, other = ElGamalKeypair.generate(), ElGamalKeypair.generate()
        vk = manager.derive_viewing_key(secret, "alice", auditor_public=auditor.public_point)
        with pytest.raises(PermissionDenied):
            manager.decrypt_amount(engine.encrypt(1, owner.public_point), vk, auditor_private=other.private_scalar)

    def test_unseal(self):
        _, _, manager, secret, _ = _setup()
        auditor = ElGamalKeypair.generate()
        sealed = manager.derive_viewing_key(secret, "alice", auditor_public=auditor.public_point)
        plain = manager.unseal(sealed, auditor.private_scalar)
        assert not plain.is_sealed
        assert manager.recover_owner_secret(plain.masked_secret_bytes, "alice") == secret

    def test_unseal_unsealed_is_noop(self):
        _, _, manager, secret, _ = _setup()
        vk = manager.derive_viewing_key(secret, "alice")
        assert manager.unseal(vk, ElGamalKeypair.generate().private_scalar) is vk


class TestViewingKeyModel:
    """The persisted record round-trips through JSON."""

    def test_json_roundtrip(self):
        _, _, manager, secret, _ = _setup()
        vk = manager.derive_viewing_key(
            secret, "alice", ViewingKeyPermissions(allowed_accounts=("bob",)), expires_at=5000.0
        )
        restored = ViewingKey.model_validate_json(vk.model_dump_json())
        assert restored == vk
        assert restored.permissions.allowed_accounts == ("bob",)

    def test_frozen(self):
        _, _, manager, secret, _ = _setup()
        vk = manager.derive_viewing_key(secret, "alice")
        with pytest.raises(Exception):
            vk.account_id = "mallory"

    def test_bad_hex_rejected(self):
        with pytest.raises(ValueError):
            ViewingKey(account_id="alice", masked_secret="zz", created_at=0.0)

    def test_default_permissions(self):
        perms = ViewingKeyPermissions()
        assert perms.can_view_balances and perms.can_view_amounts
        assert not perms.can_view_metadata
        assert perms.allowed_accounts == ()
