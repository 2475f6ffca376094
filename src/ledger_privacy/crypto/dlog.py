"""
Bounded discrete-log recovery of ElGamal message points.

Given M = v·G with 0 <= v <= max_supported, recover v in two phases:

    Phase 1 (linear):  i·G for i in 1..T1, compared against M. Covers the
                       common small amounts without building any table.
    Phase 2 (BSGS):    baby steps  {(T1 + j)·G : j in [0, m)} in a table,
                       giant steps M - k·m·G probed against it for
                       k = 0, 1, ... until T1 + k·m exceeds max_supported.

Cost: time O(T1 + (max_supported - T1) / m) point operations after a one-off
O(m) table build; memory O(m). m defaults to ceil(sqrt(max_supported - T1)).

The bound is a hard limit. Decryption of unbounded 64-bit amounts is not
feasible, so anything not found within it raises AmountOutOfRange; the
same happens when an iteration or wall-clock budget runs out.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable

import ecdsa.ellipticcurve as ec

from ledger_privacy.cache import DerivationCache
from ledger_privacy.config import PrivacyConfig
from ledger_privacy.crypto.curve import (
    BASE_POINT,
    base_mult,
    encode_point,
    is_identity,
    point_add,
    point_neg,
)
from ledger_privacy.errors import AmountOutOfRange, ConfigError

logger = logging.getLogger("ledger_privacy.dlog")

# How often (in iterations) the wall-clock budget is checked.
_CLOCK_CHECK_INTERVAL = 256


class DiscreteLogSolver:
    """
    Two-phase bounded discrete-log search over the base point G.

    Args:
        max_supported: Largest recoverable value (inclusive).
        linear_limit:  Phase-1 bound T1.
        baby_steps:    Table size m (default ceil(sqrt(max_supported - T1))).
        cache:         Optional DerivationCache holding the baby-step table.
    """

    def __init__(
        self,
        max_supported: int,
        linear_limit: int,
        baby_steps: int | None = None,
        cache: DerivationCache | None = None,
    ) -> None:
        if max_supported < 1:
            raise ConfigError(f"max_supported must be >= 1, got {max_supported}", field="max_supported")
        if linear_limit < 1:
            raise ConfigError(f"linear_limit must be >= 1, got {linear_limit}", field="linear_limit")
        self.max_supported = max_supported
        self.linear_limit = min(linear_limit, max_supported)
        remaining = max_supported - self.linear_limit
        if baby_steps is None:
            baby_steps = max(1, math.isqrt(remaining - 1) + 1) if remaining > 0 else 1
        if baby_steps < 1:
            raise ConfigError(f"baby_steps must be >= 1, got {baby_steps}", field="baby_steps")
        self.baby_steps = baby_steps
        self._cache = cache if cache is not None else DerivationCache()
        self._table: dict[bytes, int] | None = None

    @classmethod
    def from_config(cls, config: PrivacyConfig, cache: DerivationCache | None = None) -> DiscreteLogSolver:
        return cls(
            max_supported=config.max_supported_amount,
            linear_limit=config.linear_search_limit,
            baby_steps=config.baby_steps,
            cache=cache,
        )

    # ------------------------------------------------------------------
    # Baby-step table
    # ------------------------------------------------------------------

    def _baby_step_table(self, tick: Callable[[], None] | None = None) -> dict[bytes, int]:
        """
        Fetch or build the table. `tick` is called once per baby step; if it
        raises, the partial table is discarded and nothing is cached.
        """
        if self._table is None:
            key = f"bsgs:{self.linear_limit}:{self.baby_steps}".encode()
            self._table = self._cache.get_or_compute("dlog-table", key, lambda: self._build_table(tick))
        return self._table

    def _build_table(self, tick: Callable[[], None] | None = None) -> dict[bytes, int]:
        started = time.monotonic()
        table: dict[bytes, int] = {}
        point = base_mult(self.linear_limit)
        for j in range(self.baby_steps):
            if tick is not None:
                tick()
            table[encode_point(point)] = self.linear_limit + j
            point = point_add(point, BASE_POINT)
        logger.debug(
            f"Built baby-step table: m={self.baby_steps}, T1={self.linear_limit}, "
            f"{time.monotonic() - started:.2f}s"
        )
        return table

    def warm_up(self) -> None:
        """Build (or fetch from the cache) the baby-step table ahead of time."""
        if self.max_supported > self.linear_limit:
            self._baby_step_table()

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def solve(
        self,
        point: ec.AbstractPoint,
        *,
        max_iterations: int | None = None,
        timeout: float | None = None,
    ) -> int:
        """
        Recover v from M = v·G.

        Args:
            point:          The message point M.
            max_iterations: Optional cap on point operations across both phases,
                            including a first-time baby-step table build.
            timeout:        Optional wall-clock budget in seconds, table build included.

        Returns:
            v in [0, max_supported].

        Raises:
            AmountOutOfRange: v was not found within the bound or the budget.
        """
        if is_identity(point):
            return 0

        deadline = time.monotonic() + timeout if timeout is not None else None
        iterations = 0

        def tick() -> None:
            nonlocal iterations
            iterations += 1
            if max_iterations is not None and iterations > max_iterations:
                raise AmountOutOfRange(
                    f"discrete-log search exceeded {max_iterations} iterations",
                    field="ciphertext",
                )
            if (
                deadline is not None
                and iterations % _CLOCK_CHECK_INTERVAL == 0
                and time.monotonic() > deadline
            ):
                raise AmountOutOfRange(
                    f"discrete-log search exceeded {timeout}s budget", field="ciphertext"
                )

        # Phase 1: linear
        candidate = BASE_POINT
        for i in range(1, self.linear_limit + 1):
            tick()
            if candidate == point:
                return i
            candidate = point_add(candidate, BASE_POINT)

        if self.max_supported <= self.linear_limit:
            raise AmountOutOfRange(
                f"amount not found in [0, {self.max_supported}]", field="ciphertext"
            )

        # Phase 2: baby-step giant-step
        # The table build counts against the same budget as the search.
        table = self._baby_step_table(tick)
        neg_giant = point_neg(base_mult(self.baby_steps))
        probe = point
        giant = 0
        while self.linear_limit + giant * self.baby_steps <= self.max_supported:
            tick()
            j = table.get(encode_point(probe))
            if j is not None:
                amount = j + giant * self.baby_steps
                if amount > self.max_supported:
                    break
                return amount
            probe = point_add(probe, neg_giant)
            giant += 1

        raise AmountOutOfRange(
            f"amount not found in [0, {self.max_supported}]", field="ciphertext"
        )
