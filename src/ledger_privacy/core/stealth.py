"""
Stealth addresses: one reusable meta-address, unlinkable one-time destinations.

Protocol (recipient publishes V = v·G, S = s·G):

    sender:     e fresh, R = e·G
                shared   = Blake2b(label ‖ enc(e·V))
                offset   = derive_scalar(shared, offset-label)
                address  = S + offset·G                  (publish R with the payment)
    recipient:  shared   = Blake2b(label ‖ enc(v·R))     (same value, e·V == v·R)
                address' = S + offset·G, compare with the observed destination
    spending:   key      = (s + offset) mod n, valid iff key·G == address

Without v the address is indistinguishable from a random group element
(DDH). Reusing e for two payments links them, so fresh ephemeral keys are
the default and an optional EphemeralKeyRegistry refuses a reused one.

No I/O happens here: callers fetch candidate ephemeral keys and
destinations from wherever the ledger publishes them.
"""

from __future__ import annotations

import hmac
import logging
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from ledger_privacy.config import PrivacyConfig
from ledger_privacy.core.elgamal import ElGamalKeypair
from ledger_privacy.crypto.curve import (
    CURVE_ORDER,
    POINT_SIZE,
    DomainLabels,
    base_mult,
    check_scalar,
    decode_point,
    decode_scalar,
    derive_scalar,
    encode_point,
    encode_scalar,
    hash_bytes,
    point_add,
    scalar_mult,
)
from ledger_privacy.crypto.sealing import open_sealed, seal
from ledger_privacy.errors import (
    EphemeralKeyReused,
    InvalidKeyMaterial,
    PaymentAlreadySpent,
)

logger = logging.getLogger("ledger_privacy.stealth")

META_ADDRESS_PREFIX = "stealth"


# ==============================================================================
# Data model
# ==============================================================================


@dataclass(frozen=True)
class StealthKeys:
    """A recipient's private view and spend keypairs."""
    view: ElGamalKeypair
    spend: ElGamalKeypair

    @classmethod
    def generate(cls) -> StealthKeys:
        return cls(view=ElGamalKeypair.generate(), spend=ElGamalKeypair.generate())

    @property
    def meta_address(self) -> StealthMetaAddress:
        return StealthMetaAddress(
            view_public=self.view.public_point, spend_public=self.spend.public_point
        )


@dataclass(frozen=True)
class StealthMetaAddress:
    """
    Published, long-lived receiving identity (V, S).

    Never used as a payment destination itself.
    """
    view_public: bytes
    spend_public: bytes
    version: int = 1

    def __post_init__(self) -> None:
        decode_point(self.view_public, field="view_public")
        decode_point(self.spend_public, field="spend_public")

    def encode(self) -> str:
        """Text form: stealth:<view hex>:<spend hex>."""
        return f"{META_ADDRESS_PREFIX}:{self.view_public.hex()}:{self.spend_public.hex()}"

    @classmethod
    def decode(cls, text: str) -> StealthMetaAddress:
        """
        Parse the encode() form.

        Raises:
            InvalidKeyMaterial: wrong prefix, wrong part count, bad hex or bad points.
        """
        parts = text.split(":")
        if len(parts) != 3 or parts[0] != META_ADDRESS_PREFIX:
            raise InvalidKeyMaterial(
                "meta-address must look like 'stealth:<view hex>:<spend hex>'",
                field="meta_address",
            )
        try:
            view, spend = bytes.fromhex(parts[1]), bytes.fromhex(parts[2])
        except ValueError:
            raise InvalidKeyMaterial("meta-address contains invalid hex", field="meta_address") from None
        return cls(view_public=view, spend_public=spend)


@dataclass(frozen=True)
class EphemeralKey:
    """
    Single-use sender key for one payment.

    Attributes:
        public_key:        R = e·G, published with the payment.
        private_scalar:    e, kept only when the sender did not seal it.
        encrypted_private: e sealed under the sender's seal key, if requested.
    """
    public_key: bytes
    private_scalar: int | None = None
    encrypted_private: bytes | None = None

    def __repr__(self) -> str:
        return f"EphemeralKey(public_key={self.public_key.hex()}, sealed={self.encrypted_private is not None})"


@dataclass(frozen=True)
class StealthAddress:
    """One-time destination S + H(shared)·G plus the R to publish alongside it."""
    address: bytes
    ephemeral_public_key: bytes
    shared_secret_hash: bytes


@dataclass(frozen=True)
class PaymentCandidate:
    """An observed (ephemeral key, destination) pair handed in for scanning."""
    ephemeral_public_key: bytes
    destination: bytes
    amount: int = 0
    transaction_signature: str | None = None


@dataclass
class StealthPayment:
    """A detected incoming payment. `spent` goes False -> True exactly once."""
    stealth_address: bytes
    ephemeral_public_key: bytes
    shared_secret: bytes
    amount: int = 0
    transaction_signature: str | None = None
    spent: bool = False

    def mark_spent(self) -> None:
        if self.spent:
            raise PaymentAlreadySpent(
                f"payment to {self.stealth_address.hex()[:16]}... already spent",
                field="payment",
            )
        self.spent = True

    def __repr__(self) -> str:
        return (
            f"StealthPayment(stealth_address={self.stealth_address.hex()}, "
            f"amount={self.amount}, spent={self.spent})"
        )


class EphemeralKeyRegistry:
    """
    Tracks ephemeral public keys already used for a payment.

    Thread-safe; entries are only ever added.
    """

    def __init__(self) -> None:
        self._seen: set[bytes] = set()
        self._lock = threading.Lock()

    def register(self, public_key: bytes) -> None:
        """Record `public_key`, raising EphemeralKeyReused if it was seen before."""
        with self._lock:
            if public_key in self._seen:
                raise EphemeralKeyReused(
                    "ephemeral key was already used for a payment; reuse links payments",
                    field="ephemeral_keypair",
                )
            self._seen.add(public_key)

    def __contains__(self, public_key: bytes) -> bool:
        return public_key in self._seen

    def __len__(self) -> int:
        return len(self._seen)


# ==============================================================================
# Engine
# ==============================================================================


class StealthAddressEngine:
    """
    Derives, detects and spends stealth payments.

    Args:
        config:   PrivacyConfig (max_scan_candidates bounds detect_payments).
        registry: Optional EphemeralKeyRegistry; when set, a caller-supplied
                  ephemeral key that was used before is refused.
    """

    def __init__(
        self,
        config: PrivacyConfig | None = None,
        registry: EphemeralKeyRegistry | None = None,
    ) -> None:
        self.config = config or PrivacyConfig()
        self.registry = registry

    # ------------------------------------------------------------------
    # Shared-secret arithmetic
    # ------------------------------------------------------------------

    @staticmethod
    def _shared_secret(scalar: int, point_bytes: bytes, field: str) -> bytes:
        point = decode_point(point_bytes, field=field)
        return hash_bytes(encode_point(scalar_mult(scalar, point)), DomainLabels.STEALTH_SHARED_SECRET)

    @staticmethod
    def _offset(shared_secret: bytes) -> int:
        return derive_scalar(shared_secret, DomainLabels.STEALTH_OFFSET)

    def _stealth_public(self, spend_public: bytes, shared_secret: bytes) -> bytes:
        spend = decode_point(spend_public, field="spend_public")
        return encode_point(point_add(spend, base_mult(self._offset(shared_secret))))

    # ------------------------------------------------------------------
    # Sender side
    # ------------------------------------------------------------------

    def generate_meta_address(
        self, view_keypair: ElGamalKeypair, spend_keypair: ElGamalKeypair
    ) -> StealthMetaAddress:
        """Publishable (V, S); the private halves stay with the recipient."""
        return StealthMetaAddress(
            view_public=view_keypair.public_point, spend_public=spend_keypair.public_point
        )

    def derive_stealth_address(
        self,
        meta_address: StealthMetaAddress,
        ephemeral_keypair: ElGamalKeypair | None = None,
        *,
        sender_seal_key: bytes | None = None,
    ) -> tuple[StealthAddress, EphemeralKey]:
        """
        Derive a one-time destination for a payment to `meta_address`.

        Args:
            meta_address:      Recipient's published meta-address.
            ephemeral_keypair: Caller-supplied ephemeral key. Fresh when omitted.
            sender_seal_key:   32-byte key; if given, the ephemeral private
                               scalar is sealed under it and not returned in clear.

        Raises:
            EphemeralKeyReused: the registry has already seen this ephemeral key.
        """
        if ephemeral_keypair is None:
            ephemeral_keypair = ElGamalKeypair.generate()
        if self.registry is not None:
            self.registry.register(ephemeral_keypair.public_point)

        e = ephemeral_keypair.private_scalar
        ephemeral_public = ephemeral_keypair.public_point
        shared = self._shared_secret(e, meta_address.view_public, field="view_public")
        address = self._stealth_public(meta_address.spend_public, shared)

        if sender_seal_key is not None:
            ephemeral = EphemeralKey(
                public_key=ephemeral_public,
                encrypted_private=seal(sender_seal_key, encode_scalar(e), associated_data=ephemeral_public),
            )
        else:
            ephemeral = EphemeralKey(public_key=ephemeral_public, private_scalar=e)

        stealth = StealthAddress(
            address=address,
            ephemeral_public_key=ephemeral_public,
            shared_secret_hash=hash_bytes(shared, DomainLabels.STEALTH_SECRET_DIGEST),
        )
        return stealth, ephemeral

    @staticmethod
    def recover_ephemeral_private(ephemeral_key: EphemeralKey, sender_seal_key: bytes) -> int:
        """Unseal the ephemeral private scalar sealed by derive_stealth_address."""
        if ephemeral_key.encrypted_private is None:
            raise InvalidKeyMaterial("ephemeral key has no sealed private component", field="encrypted_private")
        raw = open_sealed(
            sender_seal_key, ephemeral_key.encrypted_private, associated_data=ephemeral_key.public_key
        )
        return decode_scalar(raw, field="encrypted_private")

    # ------------------------------------------------------------------
    # Recipient side
    # ------------------------------------------------------------------

    def is_payment_for(
        self,
        meta_address: StealthMetaAddress,
        view_private: int,
        candidate: PaymentCandidate,
    ) -> StealthPayment | None:
        """
        Check a single candidate.

        Raises:
            InvalidKeyMaterial: the candidate's ephemeral key is not a valid point,
                or its destination is not a 32-byte encoding.
        """
        destination = candidate.destination
        if not isinstance(destination, (bytes, bytearray, memoryview)) or len(destination) != POINT_SIZE:
            raise InvalidKeyMaterial(
                f"destination must be a {POINT_SIZE}-byte point encoding", field="destination"
            )
        shared = self._shared_secret(view_private, candidate.ephemeral_public_key, field="ephemeral_public_key")
        expected = self._stealth_public(meta_address.spend_public, shared)
        if not hmac.compare_digest(expected, bytes(destination)):
            return None
        return StealthPayment(
            stealth_address=expected,
            ephemeral_public_key=candidate.ephemeral_public_key,
            shared_secret=shared,
            amount=candidate.amount,
            transaction_signature=candidate.transaction_signature,
        )

    def detect_payments(
        self,
        meta_address: StealthMetaAddress,
        view_private: int,
        candidates: Iterable[PaymentCandidate],
        *,
        limit: int | None = None,
    ) -> Iterator[StealthPayment]:
        """
        Lazily yield the candidates that pay `meta_address`.

        At most `limit` candidates (default config.max_scan_candidates) are
        examined. Candidates with malformed ephemeral keys or destinations
        are skipped. The
        scan is restartable: calling again with the same input yields the
        same payments.
        """
        check_scalar(view_private, field="view_private")
        bound = self.config.max_scan_candidates if limit is None else limit
        if bound < 1:
            raise ValueError(f"limit must be >= 1, got {bound}")
        return self._scan(meta_address, view_private, candidates, bound)

    def _scan(
        self,
        meta_address: StealthMetaAddress,
        view_private: int,
        candidates: Iterable[PaymentCandidate],
        bound: int,
    ) -> Iterator[StealthPayment]:
        examined = 0
        for candidate in candidates:
            if examined >= bound:
                logger.warning(f"Stopped payment scan after {bound} candidates; remaining input ignored")
                return
            examined += 1
            try:
                payment = self.is_payment_for(meta_address, view_private, candidate)
            except InvalidKeyMaterial as e:
                logger.debug(f"Skipping malformed candidate: {e}")
                continue
            if payment is not None:
                logger.debug(f"Detected stealth payment to {payment.stealth_address.hex()[:16]}...")
                yield payment

    # ------------------------------------------------------------------
    # Spending
    # ------------------------------------------------------------------

    def derive_spending_key(self, shared_secret: bytes, spend_private: int) -> int:
        """(spend_private + H(shared_secret)) mod n. Verify before use."""
        check_scalar(spend_private, field="spend_private")
        key = (spend_private + self._offset(shared_secret)) % CURVE_ORDER
        return check_scalar(key, field="stealth_private")

    @staticmethod
    def verify_spending_key(stealth_private: int, stealth_address: StealthAddress | bytes) -> bool:
        """True iff stealth_private·G equals the one-time address."""
        address = stealth_address.address if isinstance(stealth_address, StealthAddress) else stealth_address
        return hmac.compare_digest(encode_point(base_mult(stealth_private)), bytes(address))

    def spend(self, payment: StealthPayment, spend_private: int) -> int:
        """
        Derive and check the one-time private key, then mark the payment spent.

        Raises:
            PaymentAlreadySpent: the payment was already spent.
            InvalidKeyMaterial:  the derived key does not control the address.
        """
        if payment.spent:
            raise PaymentAlreadySpent(
                f"payment to {payment.stealth_address.hex()[:16]}... already spent", field="payment"
            )
        key = self.derive_spending_key(payment.shared_secret, spend_private)
        if not self.verify_spending_key(key, payment.stealth_address):
            raise InvalidKeyMaterial(
                "derived spending key does not match the stealth address", field="spend_private"
            )
        payment.mark_spent()
        return key
