"""Tests for the engine adapter."""

import numpy as np
import pytest
from scipy.optimize import OptimizeResult

from mipmodel.engine import (
    Engine,
    SECONDARY_INFEASIBLE,
    SECONDARY_NODE_LIMIT,
    SECONDARY_OPTIMAL,
    SECONDARY_SOLUTION_LIMIT,
    SECONDARY_TIME_LIMIT,
    SECONDARY_UNBOUNDED,
    SECONDARY_UNSET,
    STATUS_FINISHED,
    STATUS_NOT_SOLVED,
    STATUS_STOPPED_ON_LIMIT,
)


@pytest.fixture
def engine():
    e = Engine("test")
    yield e
    e.free()


def _two_member_sos(engine):
    """0 <= a, b <= 10, a + b >= 1, minimize a + 2b, SOS1 over (a, b)."""
    engine.add_column("a", 0.0, 10.0, 1.0, False)
    engine.add_column("b", 0.0, 10.0, 2.0, False)
    engine.add_row("cover", [0, 1], [1.0, 1.0], 'G', 1.0)
    engine.set_objective_sense(1)
    engine.add_sos([0, 2], [0, 1], [0.0, 1.0], 1)


class TestProblemDefinition:
    """Tests for column, row and set declarations."""

    def test_counts(self, engine):
        engine.add_column("a", 0.0, 1.0, 0.0, True)
        engine.add_column("b", 0.0, 1.0, 0.0, False)
        engine.add_row("r", [0, 1], [1.0, 1.0], 'L', 1.0)
        assert engine.num_columns == 2
        assert engine.num_rows == 1

    def test_unknown_row_sense(self, engine):
        engine.add_column("a", 0.0, 1.0, 0.0, False)
        with pytest.raises(ValueError):
            engine.add_row("r", [0], [1.0], 'R', 1.0)

    def test_row_length_mismatch(self, engine):
        engine.add_column("a", 0.0, 1.0, 0.0, False)
        with pytest.raises(ValueError):
            engine.add_row("r", [0], [1.0, 2.0], 'L', 1.0)

    def test_row_with_unknown_column(self, engine):
        engine.add_column("a", 0.0, 1.0, 0.0, False)
        with pytest.raises(IndexError):
            engine.add_row("r", [1], [1.0], 'L', 1.0)

    def test_row_bound_on_missing_row(self, engine):
        with pytest.raises(IndexError):
            engine.set_row_lower(0, 1.0)
        with pytest.raises(IndexError):
            engine.set_row_upper(0, 1.0)

    def test_objective_coefficient_on_missing_column(self, engine):
        with pytest.raises(IndexError):
            engine.set_objective_coefficient(0, 1.0)

    def test_invalid_objective_sense(self, engine):
        with pytest.raises(ValueError):
            engine.set_objective_sense(2)

    def test_only_sos_type_1(self, engine):
        engine.add_column("a", 0.0, 1.0, 0.0, False)
        with pytest.raises(ValueError):
            engine.add_sos([0, 1], [0], [0.0], 2)

    def test_malformed_sos_starts(self, engine):
        engine.add_column("a", 0.0, 1.0, 0.0, False)
        engine.add_column("b", 0.0, 1.0, 0.0, False)
        with pytest.raises(ValueError):
            engine.add_sos([0, 3], [0, 1], [0.0, 1.0], 1)


class TestSolve:
    """Tests for solving and reading results back."""

    def test_results_before_solve(self, engine):
        assert engine.status() == STATUS_NOT_SOLVED
        assert engine.secondary_status() == SECONDARY_UNSET
        assert engine.best_solution() is None
        assert engine.saved_solution_count() == 0

    def test_maximize(self, engine):
        engine.add_column("a", 0.0, 10.0, 0.0, True)
        engine.add_column("b", -np.inf, np.inf, 0.0, True)
        engine.add_row("sum", [0, 1], [1.0, 1.0], 'E', 17.0)
        engine.set_objective_sense(-1)
        engine.set_objective_coefficient(1, 1.0)
        engine.solve()

        np.testing.assert_allclose(engine.best_solution(), [0.0, 17.0], atol=1e-6)
        assert engine.objective_value() == pytest.approx(17.0)
        assert engine.best_possible_objective_value() == pytest.approx(17.0, abs=1e-3)
        assert engine.status() == STATUS_FINISHED
        assert engine.secondary_status() == SECONDARY_OPTIMAL
        assert engine.is_initial_solve_proven_optimal()
        assert not engine.is_initial_solve_abandoned()
        assert engine.saved_solution_count() == 1

    def test_row_bounds_override(self, engine):
        engine.add_column("a", -np.inf, np.inf, 1.0, True)
        engine.add_row("range", [0], [1.0], 'E', 0.0)
        engine.set_row_lower(0, 1.0)
        engine.set_row_upper(0, 10.0)
        engine.set_objective_sense(-1)
        engine.solve()
        np.testing.assert_allclose(engine.best_solution(), [10.0], atol=1e-6)

    def test_infeasible(self, engine):
        engine.add_column("a", -np.inf, np.inf, 0.0, True)
        engine.add_row("one", [0], [1.0], 'E', 1.0)
        engine.add_row("two", [0], [1.0], 'E', 2.0)
        engine.solve()

        assert engine.best_solution() is None
        assert engine.saved_solution_count() == 0
        assert engine.status() == STATUS_FINISHED
        assert engine.secondary_status() == SECONDARY_INFEASIBLE
        assert np.isnan(engine.objective_value())

    def test_inverted_column_bounds(self, engine):
        engine.add_column("a", 5.0, 1.0, 0.0, False)
        engine.solve()
        assert engine.best_solution() is None
        assert engine.secondary_status() == SECONDARY_INFEASIBLE

    def test_no_columns(self, engine):
        engine.solve()
        assert engine.best_solution() is not None
        assert len(engine.best_solution()) == 0

    def test_ignored_objective_reports_zero(self, engine):
        engine.add_column("a", 0.0, 5.0, 3.0, False)
        engine.set_objective_sense(0)
        engine.solve()
        assert engine.objective_value() == 0.0

    def test_resolve_discards_previous_results(self, engine):
        engine.add_column("a", -np.inf, np.inf, 0.0, True)
        engine.add_row("one", [0], [1.0], 'E', 1.0)
        engine.solve()
        assert engine.best_solution() is not None

        engine.add_row("two", [0], [1.0], 'E', 2.0)
        engine.solve()
        assert engine.best_solution() is None

    def test_unbounded_integer(self, engine):
        engine.add_column("a", -np.inf, np.inf, 1.0, True)
        engine.set_objective_sense(-1)
        engine.solve()

        assert engine.best_solution() is None
        assert engine.is_continuous_unbounded()
        assert engine.status() == STATUS_FINISHED
        assert engine.secondary_status() == SECONDARY_UNBOUNDED

    def test_unbounded_continuous(self, engine):
        engine.add_column("x", 0.0, np.inf, 1.0, False)
        engine.set_objective_sense(-1)
        engine.solve()

        assert engine.is_continuous_unbounded()
        assert engine.secondary_status() == SECONDARY_UNBOUNDED

    def test_saved_solution_out_of_range(self, engine):
        engine.add_column("a", 0.0, 1.0, 0.0, False)
        engine.solve()
        assert engine.saved_solution(5) is None
        assert engine.saved_solution(-1) is None


class TestSpecialOrderedSets:
    """Tests for SOS1 branching."""

    def test_only_one_member_nonzero(self, engine):
        engine.add_column("a", -np.inf, 10.0, 0.0, True)
        engine.add_column("b", -np.inf, np.inf, 0.0, True)
        engine.add_row("sum", [0, 1], [1.0, 1.0], 'E', 17.0)
        engine.add_sos([0, 2], [0, 1], [0.0, 1.0], 1)
        engine.solve()
        np.testing.assert_allclose(engine.best_solution(), [0.0, 17.0], atol=1e-6)

    def test_each_branch_saved_best_first(self, engine):
        _two_member_sos(engine)
        engine.solve()

        assert engine.saved_solution_count() == 2
        np.testing.assert_allclose(engine.saved_solution(0), [1.0, 0.0], atol=1e-6)
        np.testing.assert_allclose(engine.saved_solution(1), [0.0, 1.0], atol=1e-6)
        assert engine.objective_value() == pytest.approx(1.0)

    def test_solution_limit(self, engine):
        _two_member_sos(engine)
        engine.set_max_solutions(1)
        engine.solve()

        assert engine.saved_solution_count() == 1
        assert engine.is_solution_limit_reached()
        assert engine.status() == STATUS_STOPPED_ON_LIMIT
        assert engine.secondary_status() == SECONDARY_SOLUTION_LIMIT

    def test_empty_set_constrains_nothing(self, engine):
        engine.add_column("a", -np.inf, np.inf, 0.0, True)
        engine.add_row("three", [0], [1.0], 'E', 3.0)
        engine.add_sos([0, 0], [], [], 1)
        engine.solve()

        np.testing.assert_allclose(engine.best_solution(), [3.0], atol=1e-6)
        assert engine.secondary_status() == SECONDARY_OPTIMAL

    def test_empty_set_beside_real_set(self, engine):
        _two_member_sos(engine)
        engine.add_sos([0, 0, 2], [0, 1], [0.0, 1.0], 1)
        engine.solve()
        assert engine.saved_solution_count() == 2

    def test_positive_lower_bound_excludes_branch(self, engine):
        engine.add_column("a", 1.0, 10.0, 0.0, False)
        engine.add_column("b", 1.0, 10.0, 0.0, False)
        engine.add_sos([0, 2], [0, 1], [0.0, 1.0], 1)
        engine.solve()
        assert engine.best_solution() is None


class TestLimits:
    """Tests for time and node limits reported as flags."""

    def test_seconds_limit(self, engine):
        _two_member_sos(engine)
        engine.set_max_seconds(0.0)
        engine.solve()

        assert engine.is_seconds_limit_reached()
        assert not engine.is_node_limit_reached()
        assert engine.status() == STATUS_STOPPED_ON_LIMIT
        assert engine.secondary_status() == SECONDARY_TIME_LIMIT

    def test_node_limit(self, engine, monkeypatch):
        received = {}

        def limited_milp(c, integrality, bounds, constraints, options):
            received.update(options)
            return OptimizeResult(status=1, x=np.array([3.0]), fun=3.0,
                                  mip_node_count=5, mip_dual_bound=2.0)

        monkeypatch.setattr('mipmodel.engine.milp', limited_milp)
        engine.add_column("a", 0.0, 10.0, 1.0, True)
        engine.set_objective_sense(1)
        engine.set_max_nodes(5)
        engine.solve()

        assert received['node_limit'] == 5
        assert engine.is_node_limit_reached()
        assert not engine.is_seconds_limit_reached()
        assert engine.node_count() == 5
        assert engine.status() == STATUS_STOPPED_ON_LIMIT
        assert engine.secondary_status() == SECONDARY_NODE_LIMIT
        np.testing.assert_allclose(engine.best_solution(), [3.0])
        assert engine.best_possible_objective_value() == 2.0

    def test_limit_without_node_cap_is_time(self, engine, monkeypatch):
        monkeypatch.setattr(
            'mipmodel.engine.milp',
            lambda *args, **kwargs: OptimizeResult(status=1, x=None, fun=None,
                                                   mip_node_count=40, mip_dual_bound=None),
        )
        engine.add_column("a", 0.0, 10.0, 1.0, True)
        engine.solve()

        assert engine.is_seconds_limit_reached()
        assert engine.secondary_status() == SECONDARY_TIME_LIMIT


class TestLifetime:
    """Tests for freeing the engine."""

    def test_use_after_free(self):
        engine = Engine()
        engine.free()
        assert not engine.is_valid()
        with pytest.raises(RuntimeError):
            engine.add_column("a", 0.0, 1.0, 0.0, False)
        with pytest.raises(RuntimeError):
            engine.best_solution()

    def test_free_twice(self):
        engine = Engine()
        engine.free()
        engine.free()
        assert repr(engine) == "<mipmodel.Engine (freed)>"

    def test_context_manager(self):
        with Engine("scoped") as engine:
            engine.add_column("a", 0.0, 1.0, 0.0, False)
            assert engine.is_valid()
        assert not engine.is_valid()
