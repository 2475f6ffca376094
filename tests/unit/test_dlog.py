"""
Unit tests for ledger_privacy.crypto.dlog — bounded two-phase discrete log.

Small bounds keep these fast; the default 2**32 - 1 bound is exercised in
the integration suite.
"""

import math
import time

import pytest

from ledger_privacy.cache import DerivationCache
from ledger_privacy.config import PrivacyConfig
from ledger_privacy.crypto.curve import BASE_POINT, base_mult, scalar_mult
from ledger_privacy.crypto.dlog import DiscreteLogSolver
from ledger_privacy.errors import AmountOutOfRange, ConfigError

SOLVER = DiscreteLogSolver(max_supported=5000, linear_limit=100)


class TestSolve:
    """Recovery across both phases and at the edges."""

    def test_zero_is_identity(self):
        assert SOLVER.solve(scalar_mult(0, BASE_POINT)) == 0

    @pytest.mark.parametrize("amount", [1, 2, 99, 100])
    def test_linear_phase(self, amount):
        assert SOLVER.solve(base_mult(amount)) == amount

    @pytest.mark.parametrize("amount", [101, 170, 171, 2500, 4999, 5000])
    def test_bsgs_phase(self, amount):
        assert SOLVER.solve(base_mult(amount)) == amount

    def test_above_bound(self):
        with pytest.raises(AmountOutOfRange):
            SOLVER.solve(base_mult(5001))

    def test_far_above_bound(self):
        with pytest.raises(AmountOutOfRange) as exc:
            SOLVER.solve(base_mult(10**12))
        assert exc.value.field == "ciphertext"

    def test_linear_only_solver(self):
        """With T1 == max there is no phase 2."""
        solver = DiscreteLogSolver(max_supported=50, linear_limit=50)
        assert solver.solve(base_mult(50)) == 50
        with pytest.raises(AmountOutOfRange):
            solver.solve(base_mult(51))


class TestBudgets:
    """Iteration and wall-clock budgets end the search loudly."""

    def test_iteration_budget(self):
        with pytest.raises(AmountOutOfRange, match="iterations"):
            SOLVER.solve(base_mult(4000), max_iterations=10)

    def test_iteration_budget_sufficient(self):
        assert SOLVER.solve(base_mult(5), max_iterations=10) == 5

    def test_timeout(self):
        solver = DiscreteLogSolver(max_supported=2**16, linear_limit=1024)
        with pytest.raises(AmountOutOfRange, match="budget"):
            solver.solve(base_mult(60000), timeout=1e-9)

    def test_timeout_covers_table_build(self):
        """A huge bound with a cold table still stops at the deadline."""
        cache = DerivationCache()
        solver = DiscreteLogSolver(max_supported=2**40, linear_limit=16, cache=cache)
        started = time.monotonic()
        with pytest.raises(AmountOutOfRange, match="budget"):
            solver.solve(base_mult(2**39), timeout=0.05)
        assert time.monotonic() - started < 5.0
        assert len(cache) == 0

    def test_iteration_budget_covers_table_build(self):
        cache = DerivationCache()
        solver = DiscreteLogSolver(max_supported=2**40, linear_limit=16, cache=cache)
        with pytest.raises(AmountOutOfRange, match="iterations"):
            solver.solve(base_mult(2**39), max_iterations=100)
        assert len(cache) == 0
        assert ("dlog-table", b"bsgs:16:1048576") not in cache

    def test_interrupted_build_does_not_poison_later_solves(self):
        cache = DerivationCache()
        solver = DiscreteLogSolver(max_supported=5000, linear_limit=100, cache=cache)
        with pytest.raises(AmountOutOfRange):
            solver.solve(base_mult(4000), max_iterations=120)
        assert solver.solve(base_mult(4000)) == 4000
        assert len(cache) == 1


class TestTable:
    """Baby-step table sizing and memoization."""

    def test_default_baby_steps(self):
        solver = DiscreteLogSolver(max_supported=5000, linear_limit=100)
        assert solver.baby_steps == math.ceil(math.sqrt(4900))

    def test_explicit_baby_steps(self):
        solver = DiscreteLogSolver(max_supported=5000, linear_limit=100, baby_steps=16)
        assert solver.baby_steps == 16
        assert solver.solve(base_mult(4321)) == 4321

    def test_table_shared_through_cache(self):
        cache = DerivationCache()
        DiscreteLogSolver(3000, 50, cache=cache).warm_up()
        DiscreteLogSolver(3000, 50, cache=cache).warm_up()
        stats = cache.stats()
        assert stats["misses"] == 1
        assert stats["hits"] == 1
        assert len(cache) == 1

    def test_from_config(self):
        config = PrivacyConfig(max_supported_amount=2**12, linear_search_limit=64, baby_steps=32)
        solver = DiscreteLogSolver.from_config(config)
        assert (solver.max_supported, solver.linear_limit, solver.baby_steps) == (4096, 64, 32)

    def test_invalid_bounds(self):
        with pytest.raises(ConfigError):
            DiscreteLogSolver(max_supported=0, linear_limit=1)
        with pytest.raises(ConfigError):
            DiscreteLogSolver(max_supported=10, linear_limit=0)
        with pytest.raises(ConfigError):
            DiscreteLogSolver(max_supported=10, linear_limit=1, baby_steps=0)
