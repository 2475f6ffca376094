"""
Authenticated sealing of derived key material.

Only key material passes through here (viewing-key secrets, ephemeral
private scalars). Amounts are never sealed; they are ElGamal-encrypted so
balances stay additively homomorphic.

Layouts:
    seal(key, pt)                    -> nonce(12) ‖ ciphertext ‖ tag(16)
    seal_for_recipient(pub, pt, lbl) -> ephemeral_public(32) ‖ nonce(12) ‖ ciphertext ‖ tag(16)
"""

from __future__ import annotations

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ledger_privacy.crypto.curve import (
    POINT_SIZE,
    base_mult,
    decode_point,
    encode_point,
    hash_bytes,
    random_scalar,
    scalar_mult,
)
from ledger_privacy.errors import CiphertextMalformed, InvalidKeyMaterial

NONCE_SIZE = 12
TAG_SIZE = 16
KEY_SIZE = 32


def derive_sealing_key(shared_point_bytes: bytes, domain_label: bytes) -> bytes:
    """Derive a 32-byte AEAD key from an encoded ECDH point."""
    return hash_bytes(shared_point_bytes, domain_label, size=KEY_SIZE)


def seal(key: bytes, plaintext: bytes, associated_data: bytes = b"") -> bytes:
    """
    Encrypt and authenticate `plaintext` with AES-256-GCM.

    A fresh random nonce is drawn on every call and prepended to the output.
    """
    if len(key) != KEY_SIZE:
        raise InvalidKeyMaterial(f"sealing key must be {KEY_SIZE} bytes, got {len(key)}", field="key")
    nonce = os.urandom(NONCE_SIZE)
    return nonce + AESGCM(key).encrypt(nonce, plaintext, associated_data or None)


def open_sealed(key: bytes, sealed: bytes, associated_data: bytes = b"") -> bytes:
    """
    Reverse seal().

    Raises:
        CiphertextMalformed: input too short, or authentication failed
            (wrong key, wrong associated data, or tampering).
    """
    if len(key) != KEY_SIZE:
        raise InvalidKeyMaterial(f"sealing key must be {KEY_SIZE} bytes, got {len(key)}", field="key")
    if len(sealed) < NONCE_SIZE + TAG_SIZE:
        raise CiphertextMalformed(
            f"sealed blob too short: {len(sealed)} bytes", field="sealed"
        )
    nonce, body = sealed[:NONCE_SIZE], sealed[NONCE_SIZE:]
    try:
        return AESGCM(key).decrypt(nonce, body, associated_data or None)
    except InvalidTag:
        raise CiphertextMalformed("sealed blob failed authentication", field="sealed") from None


def seal_for_recipient(recipient_public: bytes, plaintext: bytes, domain_label: bytes) -> bytes:
    """
    Seal `plaintext` so only the holder of `recipient_public`'s scalar can open it.

    ECDH with a fresh ephemeral scalar e:
        key = KDF(label, e·P ‖ e·G)
    The ephemeral public e·G is prepended and bound as associated data.
    """
    recipient_point = decode_point(recipient_public, field="recipient_public")
    ephemeral = random_scalar()
    ephemeral_public = encode_point(base_mult(ephemeral))
    shared = encode_point(scalar_mult(ephemeral, recipient_point))
    key = derive_sealing_key(shared + ephemeral_public, domain_label)
    return ephemeral_public + seal(key, plaintext, associated_data=ephemeral_public)


def open_from_sender(recipient_private: int, sealed: bytes, domain_label: bytes) -> bytes:
    """
    Open a blob produced by seal_for_recipient().

    Raises:
        CiphertextMalformed: blob too short, bad ephemeral point, or failed
            authentication (including a wrong recipient key).
    """
    if len(sealed) < POINT_SIZE + NONCE_SIZE + TAG_SIZE:
        raise CiphertextMalformed(
            f"sealed blob too short: {len(sealed)} bytes", field="sealed"
        )
    ephemeral_public, body = sealed[:POINT_SIZE], sealed[POINT_SIZE:]
    try:
        ephemeral_point = decode_point(ephemeral_public, field="ephemeral_public")
    except InvalidKeyMaterial as e:
        raise CiphertextMalformed(str(e), field="sealed") from None
    shared = encode_point(scalar_mult(recipient_private, ephemeral_point))
    key = derive_sealing_key(shared + ephemeral_public, domain_label)
    return open_sealed(key, body, associated_data=ephemeral_public)
