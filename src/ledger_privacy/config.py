"""
Runtime configuration for the privacy core.

All engines accept a PrivacyConfig; defaults are safe for a pure-Python
deployment. Overrides can be pulled from the environment with
PrivacyConfig.from_env().
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields

from ledger_privacy.errors import ConfigError

MAX_SUPPORTED_AMOUNT = 2**32 - 1
"""Largest amount decrypt() can recover. Encrypt rejects anything above it."""

MAX_AMOUNT_BOUND = 2**64 - 1
"""Hard ceiling for max_supported_amount: amounts are 64-bit unsigned."""

DEFAULT_LINEAR_SEARCH_LIMIT = 4096
"""Phase-1 (linear) discrete-log fast path covers amounts 1..4096."""

DEFAULT_MAX_SCAN_CANDIDATES = 10_000


@dataclass(frozen=True)
class PrivacyConfig:
    """
    Configuration for the balance engine, discrete-log recovery and scanning.

    Args:
        max_supported_amount:     Upper bound (inclusive) for encryptable /
                                  recoverable amounts, at most MAX_AMOUNT_BOUND.
                                  The baby-step table grows as O(sqrt(N)) in
                                  both memory and first-build time, so 2**32
                                  needs ~65k entries while 2**48 needs ~16M.
        linear_search_limit:      Phase-1 linear search bound T1.
        baby_steps:               Baby-step table size m. None picks
                                  ceil(sqrt(max_supported_amount - T1)).
        dlog_max_iterations:      Optional cap on total search iterations.
        dlog_timeout_seconds:     Optional wall-clock budget per decryption.
        max_scan_candidates:      Default cap on candidates examined by detect_payments.
        allow_placeholder_proofs: If False, the placeholder proof system is refused
                                  with ProofUnavailable.
    """
    max_supported_amount: int = MAX_SUPPORTED_AMOUNT
    linear_search_limit: int = DEFAULT_LINEAR_SEARCH_LIMIT
    baby_steps: int | None = None
    dlog_max_iterations: int | None = None
    dlog_timeout_seconds: float | None = None
    max_scan_candidates: int = DEFAULT_MAX_SCAN_CANDIDATES
    allow_placeholder_proofs: bool = True

    def __post_init__(self) -> None:
        if not 1 <= self.max_supported_amount <= MAX_AMOUNT_BOUND:
            raise ConfigError(
                f"max_supported_amount must be in [1, {MAX_AMOUNT_BOUND}], got {self.max_supported_amount}",
                field="max_supported_amount",
            )
        if not 1 <= self.linear_search_limit <= self.max_supported_amount:
            raise ConfigError(
                f"linear_search_limit must be in [1, {self.max_supported_amount}], "
                f"got {self.linear_search_limit}",
                field="linear_search_limit",
            )
        if self.baby_steps is not None and self.baby_steps < 1:
            raise ConfigError(f"baby_steps must be >= 1, got {self.baby_steps}", field="baby_steps")
        if self.dlog_max_iterations is not None and self.dlog_max_iterations < 1:
            raise ConfigError(
                f"dlog_max_iterations must be >= 1, got {self.dlog_max_iterations}",
                field="dlog_max_iterations",
            )
        if self.dlog_timeout_seconds is not None and self.dlog_timeout_seconds <= 0:
            raise ConfigError(
                f"dlog_timeout_seconds must be > 0, got {self.dlog_timeout_seconds}",
                field="dlog_timeout_seconds",
            )
        if self.max_scan_candidates < 1:
            raise ConfigError(
                f"max_scan_candidates must be >= 1, got {self.max_scan_candidates}",
                field="max_scan_candidates",
            )

    @classmethod
    def from_env(cls, prefix: str = "LEDGER_PRIVACY_") -> PrivacyConfig:
        """
        Build a config from environment variables.

        Each field maps to PREFIX + FIELD_NAME in upper case, e.g.
        LEDGER_PRIVACY_MAX_SUPPORTED_AMOUNT=1048575. Unset variables keep
        the default.
        """
        overrides: dict[str, object] = {}
        for f in fields(cls):
            raw = os.getenv(prefix + f.name.upper())
            if raw is None or raw == "":
                continue
            overrides[f.name] = _parse_env_value(f.name, raw)
        return cls(**overrides)


def _parse_env_value(name: str, raw: str) -> object:
    if name == "allow_placeholder_proofs":
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ConfigError(f"Invalid boolean for {name}: {raw!r}", field=name)
    try:
        if name == "dlog_timeout_seconds":
            return float(raw)
        return int(raw, 0)
    except ValueError:
        raise ConfigError(f"Invalid value for {name}: {raw!r}", field=name) from None
