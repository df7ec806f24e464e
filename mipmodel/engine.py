"""
Engine adapter for mipmodel

The :class:`Engine` is the only place that talks to the MIP solver. It
exposes a small set of primitive, index-based operations (add a column, add a
row, set a bound, solve, read a result buffer) and hides how the problem is
actually handed to the solver.

Solving is delegated to HiGHS through :func:`scipy.optimize.linprog` (root
LP relaxation) and :func:`scipy.optimize.milp` (the mixed-integer problem).
HiGHS has no notion of special ordered sets, so type-1 sets are resolved here:
for every combination of "which member of each set may be nonzero" the other
members are fixed to zero and the restricted problem is passed to ``milp``.
Each feasible branch becomes a saved solution, best first.

Status codes follow the CBC conventions so callers can pass them through
unchanged:

============  ======================================================
status        -1 not solved, 0 finished, 1 stopped on a limit,
              2 abandoned (numerical difficulties)
secondary     -1 unset, 0 optimal, 1 infeasible, 3 node limit,
              4 time limit, 6 solution limit, 7 unbounded
============  ======================================================
"""
import itertools
import logging
import time

import numpy as np
from scipy import sparse
from scipy.optimize import Bounds, LinearConstraint, linprog, milp
from typing import List, Optional, Sequence


logger = logging.getLogger(__name__)

INT32_MAX = 2147483647

STATUS_NOT_SOLVED = -1
STATUS_FINISHED = 0
STATUS_STOPPED_ON_LIMIT = 1
STATUS_ABANDONED = 2

SECONDARY_UNSET = -1
SECONDARY_OPTIMAL = 0
SECONDARY_INFEASIBLE = 1
SECONDARY_NODE_LIMIT = 3
SECONDARY_TIME_LIMIT = 4
SECONDARY_SOLUTION_LIMIT = 6
SECONDARY_UNBOUNDED = 7

# scipy.optimize.linprog / milp status codes
_SCIPY_OPTIMAL = 0
_SCIPY_LIMIT = 1
_SCIPY_INFEASIBLE = 2
_SCIPY_UNBOUNDED = 3
_SCIPY_OTHER = 4


def _ensure_contiguous_int32(arr):
    """Ensure array is contiguous int32"""
    if not isinstance(arr, np.ndarray):
        arr = np.array(arr, dtype=np.int32)
    if arr.dtype != np.int32:
        arr = arr.astype(np.int32)
    return np.ascontiguousarray(arr)


def _ensure_contiguous_float64(arr):
    """Ensure array is contiguous float64"""
    if not isinstance(arr, np.ndarray):
        arr = np.array(arr, dtype=np.float64)
    if arr.dtype != np.float64:
        arr = arr.astype(np.float64)
    return np.ascontiguousarray(arr)


class Engine:
    """
    Owned handle to one MIP solver model.

    The problem is stored column by column and row by row as it is declared
    and assembled into a sparse matrix when :meth:`solve` is called. Results
    of the last solve are kept until the next one and read back through
    :meth:`best_solution`, :meth:`saved_solution` and the metric queries.

    An engine must be released exactly once with :meth:`free`, by leaving a
    ``with`` block, or by garbage collection. Any call after that raises
    ``RuntimeError``.

    Parameters
    ----------
    name : str, optional
        Problem name, used in log messages

    Examples
    --------
    >>> import numpy as np
    >>> from mipmodel.engine import Engine
    >>>
    >>> with Engine("example") as engine:
    ...     engine.add_column("a", 0.0, 10.0, 0.0, True)
    ...     engine.add_column("b", 0.0, np.inf, 0.0, True)
    ...     engine.add_row("sum", [0, 1], [1.0, 1.0], 'E', 17.0)
    ...     engine.set_objective_sense(-1)
    ...     engine.set_objective_coefficient(1, 1.0)
    ...     engine.solve()
    ...     print(engine.best_solution())
    [ 0. 17.]
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._freed = False

        # Configuration
        self._log_level = 0
        self._max_seconds = np.inf
        self._max_nodes = INT32_MAX
        self._max_solutions = INT32_MAX
        self._fraction_gap = 1e-4

        # Columns
        self._col_names: List[str] = []
        self._col_lower: List[float] = []
        self._col_upper: List[float] = []
        self._col_cost: List[float] = []
        self._col_integer: List[int] = []

        # Rows
        self._row_names: List[str] = []
        self._row_indices: List[np.ndarray] = []
        self._row_values: List[np.ndarray] = []
        self._row_lower: List[float] = []
        self._row_upper: List[float] = []

        self._objective_sense = 0
        self._sos_sets: List[np.ndarray] = []

        self._reset_results()

    def _reset_results(self):
        self._solutions: List[np.ndarray] = []
        self._solution_values: List[float] = []
        self._status = STATUS_NOT_SOLVED
        self._secondary_status = SECONDARY_UNSET
        self._iterations = 0
        self._nodes = 0
        self._best_bound = np.nan
        self._continuous_unbounded = False
        self._node_limit_reached = False
        self._seconds_limit_reached = False
        self._solution_limit_reached = False
        self._initial_abandoned = False
        self._initial_optimal = False

    def _check(self):
        if self._freed:
            raise RuntimeError("Engine has been freed")

    def _check_column(self, col: int):
        if not 0 <= col < len(self._col_names):
            raise IndexError(f"Column index {col} out of range ({len(self._col_names)} columns)")

    def _check_columns(self, cols: np.ndarray):
        if cols.size and (cols.min() < 0 or cols.max() >= len(self._col_names)):
            raise IndexError(f"Column indices out of range ({len(self._col_names)} columns)")

    def _check_row(self, row: int):
        if not 0 <= row < len(self._row_names):
            raise IndexError(f"Row index {row} out of range ({len(self._row_names)} rows)")

    @property
    def num_columns(self) -> int:
        """Number of columns (variables)"""
        self._check()
        return len(self._col_names)

    @property
    def num_rows(self) -> int:
        """Number of rows (constraints)"""
        self._check()
        return len(self._row_names)

    # Configuration

    def set_log_level(self, level: int):
        """Solver output: 0 is silent, anything higher prints the HiGHS log"""
        self._check()
        self._log_level = int(level)

    def set_max_seconds(self, seconds: float):
        """Wall-clock budget for one call to :meth:`solve`"""
        self._check()
        self._max_seconds = float(seconds)

    def set_max_nodes(self, nodes: int):
        self._check()
        self._max_nodes = int(nodes)

    def set_max_solutions(self, solutions: int):
        """Stop exploring special-ordered-set branches after this many solutions"""
        self._check()
        self._max_solutions = int(solutions)

    def set_allowable_fraction_gap(self, gap: float):
        """Relative MIP gap at which a solution is accepted as optimal"""
        self._check()
        self._fraction_gap = float(gap)

    # Problem definition

    def add_column(self, name: str, lower: float, upper: float,
                   obj_coeff: float, is_integer: bool):
        """
        Append a column with no row entries.

        Bounds are stored as given; an inverted range makes the problem
        infeasible at solve time.
        """
        self._check()
        self._col_names.append(name)
        self._col_lower.append(float(lower))
        self._col_upper.append(float(upper))
        self._col_cost.append(float(obj_coeff))
        self._col_integer.append(1 if is_integer else 0)

    def add_row(self, name: str, indices: Sequence[int], coefficients: Sequence[float],
                sense: str, rhs: float):
        """
        Append the row ``sum(coefficients[k] * x[indices[k]]) <sense> rhs``.

        Parameters
        ----------
        name : str
            Row name
        indices : sequence of int
            Column indices; each may appear at most once
        coefficients : sequence of float
            Coefficients, same length as ``indices``
        sense : str
            'L' (<=), 'G' (>=) or 'E' (==)
        rhs : float
            Right-hand side
        """
        self._check()
        cols = _ensure_contiguous_int32(indices)
        values = _ensure_contiguous_float64(coefficients)

        if len(cols) != len(values):
            raise ValueError(f"indices and coefficients must have the same length "
                             f"({len(cols)} != {len(values)})")
        self._check_columns(cols)

        rhs = float(rhs)
        if sense == 'L':
            lower, upper = -np.inf, rhs
        elif sense == 'G':
            lower, upper = rhs, np.inf
        elif sense == 'E':
            lower, upper = rhs, rhs
        else:
            raise ValueError(f"Unknown row sense {sense!r}; expected 'L', 'G' or 'E'")

        self._row_names.append(name)
        self._row_indices.append(cols)
        self._row_values.append(values)
        self._row_lower.append(lower)
        self._row_upper.append(upper)

    def set_row_lower(self, row: int, value: float):
        self._check()
        self._check_row(row)
        self._row_lower[row] = float(value)

    def set_row_upper(self, row: int, value: float):
        self._check()
        self._check_row(row)
        self._row_upper[row] = float(value)

    def set_objective_coefficient(self, col: int, value: float):
        self._check()
        self._check_column(col)
        self._col_cost[col] = float(value)

    def set_objective_sense(self, sense: int):
        """1 to minimize, -1 to maximize, 0 to ignore the objective"""
        self._check()
        if sense not in (-1, 0, 1):
            raise ValueError(f"Objective sense must be -1, 0 or 1, got {sense}")
        self._objective_sense = int(sense)

    def add_sos(self, row_starts: Sequence[int], col_indices: Sequence[int],
                weights: Sequence[float], sos_type: int = 1):
        """
        Add special ordered sets.

        Set ``k`` consists of ``col_indices[row_starts[k]:row_starts[k + 1]]``
        with the matching ``weights``, which order the members.

        Raises
        ------
        ValueError
            For anything but type 1 or malformed set boundaries
        """
        self._check()
        if sos_type != 1:
            raise ValueError(f"Only SOS type 1 is supported, got type {sos_type}")

        starts = _ensure_contiguous_int32(row_starts)
        cols = _ensure_contiguous_int32(col_indices)
        set_weights = _ensure_contiguous_float64(weights)

        if len(cols) != len(set_weights):
            raise ValueError("col_indices and weights must have the same length")
        if len(starts) < 2 or starts[0] != 0 or starts[-1] != len(cols) or np.any(np.diff(starts) < 0):
            raise ValueError(f"Invalid SOS row starts {starts.tolist()} for {len(cols)} members")
        self._check_columns(cols)

        for begin, end in zip(starts[:-1], starts[1:]):
            # An empty set constrains nothing
            if begin == end:
                continue
            order = np.argsort(set_weights[begin:end], kind='stable')
            self._sos_sets.append(cols[begin:end][order].copy())

    # Solving

    def _build_matrix(self) -> sparse.csr_matrix:
        m = len(self._row_names)
        n = len(self._col_names)
        if m == 0:
            return sparse.csr_matrix((0, n))

        lengths = [len(indices) for indices in self._row_indices]
        rows = np.repeat(np.arange(m, dtype=np.int32), lengths)
        cols = np.concatenate(self._row_indices)
        data = np.concatenate(self._row_values)

        # Convert to CSR format
        return sparse.coo_matrix((data, (rows, cols)), shape=(m, n)).tocsr()

    def _solve_relaxation(self, c, A, row_lower, row_upper, lower, upper, time_limit):
        """Root LP relaxation; sets the initial-solve flags and iteration count"""
        equal = row_lower == row_upper
        has_upper = ~equal & np.isfinite(row_upper)
        has_lower = ~equal & np.isfinite(row_lower)

        A_ub = b_ub = A_eq = b_eq = None
        if np.any(has_upper) or np.any(has_lower):
            A_ub = sparse.vstack([A[np.flatnonzero(has_upper)],
                                  -A[np.flatnonzero(has_lower)]]).tocsr()
            b_ub = np.concatenate([row_upper[has_upper], -row_lower[has_lower]])
        if np.any(equal):
            A_eq = A[np.flatnonzero(equal)]
            b_eq = row_lower[equal]

        options = {'disp': self._log_level > 0}
        if np.isfinite(time_limit):
            options['time_limit'] = max(time_limit, 0.0)

        result = linprog(c, A_ub=A_ub, b_ub=b_ub, A_eq=A_eq, b_eq=b_eq,
                         bounds=np.column_stack([lower, upper]),
                         method='highs', options=options)

        self._iterations = int(getattr(result, 'nit', 0) or 0)
        self._initial_optimal = result.status == _SCIPY_OPTIMAL
        self._initial_abandoned = result.status in (_SCIPY_LIMIT, _SCIPY_OTHER)
        self._continuous_unbounded = result.status == _SCIPY_UNBOUNDED
        return result

    def _solve_branch(self, c, A, row_lower, row_upper, lower, upper, integrality, time_limit):
        options = {'disp': self._log_level > 0, 'mip_rel_gap': self._fraction_gap}
        if np.isfinite(time_limit):
            options['time_limit'] = time_limit
        if self._max_nodes < INT32_MAX:
            options['node_limit'] = self._max_nodes

        constraints = None
        if A.shape[0] > 0:
            constraints = LinearConstraint(A, row_lower, row_upper)

        return milp(c, integrality=integrality, bounds=Bounds(lower, upper),
                    constraints=constraints, options=options)

    def _record(self, x: np.ndarray, value: float):
        x = np.asarray(x, dtype=np.float64)
        for existing in self._solutions:
            if np.allclose(existing, x):
                return
        self._solutions.append(x)
        self._solution_values.append(float(value))

    def _solve_empty(self, row_lower, row_upper):
        # Rows with no columns evaluate to zero
        self._status = STATUS_FINISHED
        if np.all(row_lower <= 0.0) and np.all(row_upper >= 0.0):
            self._record(np.zeros(0), 0.0)
            self._best_bound = 0.0
            self._initial_optimal = True
            self._secondary_status = SECONDARY_OPTIMAL
        else:
            self._secondary_status = SECONDARY_INFEASIBLE

    def solve(self):
        """
        Solve the current problem, blocking until the solver returns.

        Results of any previous solve are discarded. Infeasibility and reached
        limits are reported through the status queries, never raised.
        """
        self._check()
        self._reset_results()
        start = time.perf_counter()
        deadline = start + self._max_seconds

        n = len(self._col_names)
        row_lower = np.array(self._row_lower, dtype=np.float64)
        row_upper = np.array(self._row_upper, dtype=np.float64)

        logger.debug(f"Solving {self.name!r}: {n} columns, {len(self._row_names)} rows, "
                     f"{len(self._sos_sets)} SOS1 sets")

        if n == 0:
            self._solve_empty(row_lower, row_upper)
            return

        c = self._objective_sense * np.array(self._col_cost, dtype=np.float64)
        lower = np.array(self._col_lower, dtype=np.float64)
        upper = np.array(self._col_upper, dtype=np.float64)
        integrality = np.array(self._col_integer, dtype=np.uint8)
        A = self._build_matrix()

        self._status = STATUS_FINISHED
        if np.any(lower > upper):
            logger.warning(f"{self.name!r}: column bounds are inverted, problem is infeasible")
            self._secondary_status = SECONDARY_INFEASIBLE
            return

        relaxation = self._solve_relaxation(c, A, row_lower, row_upper, lower, upper,
                                            deadline - time.perf_counter())
        if relaxation.status == _SCIPY_INFEASIBLE:
            self._secondary_status = SECONDARY_INFEASIBLE
            logger.debug(f"{self.name!r}: LP relaxation infeasible")
            return

        outcomes = []
        bounds = []
        explored_all = True
        branches = itertools.product(*[range(len(members)) for members in self._sos_sets])
        for choice in branches:
            if len(self._solutions) >= self._max_solutions:
                self._solution_limit_reached = True
                explored_all = False
                break
            remaining = deadline - time.perf_counter()
            if remaining <= 0:
                self._seconds_limit_reached = True
                explored_all = False
                break

            branch_lower = lower.copy()
            branch_upper = upper.copy()
            for members, keep in zip(self._sos_sets, choice):
                fixed = np.delete(members, keep)
                branch_lower[fixed] = np.maximum(branch_lower[fixed], 0.0)
                branch_upper[fixed] = np.minimum(branch_upper[fixed], 0.0)
            if np.any(branch_lower > branch_upper):
                continue

            result = self._solve_branch(c, A, row_lower, row_upper, branch_lower, branch_upper,
                                        integrality, remaining)
            outcomes.append(result.status)
            node_count = result.get('mip_node_count') or 0
            self._nodes += int(node_count)

            if result.status == _SCIPY_LIMIT:
                if self._max_nodes < INT32_MAX and node_count >= self._max_nodes:
                    self._node_limit_reached = True
                else:
                    self._seconds_limit_reached = True

            if result.x is not None:
                self._record(result.x, result.fun)
                dual_bound = result.get('mip_dual_bound')
                bounds.append(result.fun if dual_bound is None else dual_bound)

        order = np.argsort(self._solution_values, kind='stable')
        self._solutions = [self._solutions[i] for i in order]
        self._solution_values = [self._solution_values[i] for i in order]

        if bounds:
            self._best_bound = min(bounds) if explored_all else -np.inf

        self._finish_status(outcomes)
        elapsed = time.perf_counter() - start
        logger.debug(f"{self.name!r}: status {self._status}/{self._secondary_status}, "
                     f"{len(self._solutions)} solutions, {self._nodes} nodes, {elapsed:.3f}s")

    def _finish_status(self, outcomes):
        if self._seconds_limit_reached:
            self._status, self._secondary_status = STATUS_STOPPED_ON_LIMIT, SECONDARY_TIME_LIMIT
        elif self._node_limit_reached:
            self._status, self._secondary_status = STATUS_STOPPED_ON_LIMIT, SECONDARY_NODE_LIMIT
        elif self._solution_limit_reached:
            self._status, self._secondary_status = STATUS_STOPPED_ON_LIMIT, SECONDARY_SOLUTION_LIMIT
        elif self._solutions:
            self._status, self._secondary_status = STATUS_FINISHED, SECONDARY_OPTIMAL
        elif _SCIPY_UNBOUNDED in outcomes:
            self._status, self._secondary_status = STATUS_FINISHED, SECONDARY_UNBOUNDED
        elif _SCIPY_OTHER in outcomes and self._continuous_unbounded:
            # milp reports "unbounded or infeasible" for integer problems;
            # an unbounded relaxation is taken as unbounded
            self._status, self._secondary_status = STATUS_FINISHED, SECONDARY_UNBOUNDED
        elif _SCIPY_OTHER in outcomes:
            self._status, self._secondary_status = STATUS_ABANDONED, SECONDARY_UNSET
        else:
            self._status, self._secondary_status = STATUS_FINISHED, SECONDARY_INFEASIBLE

        if self._status != STATUS_FINISHED:
            logger.warning(f"{self.name!r}: solve stopped early "
                           f"(status {self._status}, secondary {self._secondary_status})")

    # Results

    def best_solution(self) -> Optional[np.ndarray]:
        """Column values of the best solution, or None if none was found"""
        self._check()
        if not self._solutions:
            return None
        return self._solutions[0].copy()

    def saved_solution_count(self) -> int:
        self._check()
        return len(self._solutions)

    def saved_solution(self, index: int) -> Optional[np.ndarray]:
        """Column values of saved solution ``index`` (0 is the best), or None"""
        self._check()
        if not 0 <= index < len(self._solutions):
            return None
        return self._solutions[index].copy()

    def _to_user_sense(self, value: float) -> float:
        if self._objective_sense == 0:
            return 0.0
        return self._objective_sense * value

    def objective_value(self) -> float:
        """Objective of the best solution in the caller's sense, nan if none"""
        self._check()
        if not self._solution_values:
            return np.nan
        return self._to_user_sense(self._solution_values[0])

    def best_possible_objective_value(self) -> float:
        """Proven bound on the objective in the caller's sense, nan if unknown"""
        self._check()
        if np.isnan(self._best_bound):
            return np.nan
        return self._to_user_sense(self._best_bound)

    def iteration_count(self) -> int:
        """Simplex iterations of the root relaxation"""
        self._check()
        return self._iterations

    def node_count(self) -> int:
        """Branch-and-bound nodes over all branches"""
        self._check()
        return self._nodes

    def is_continuous_unbounded(self) -> bool:
        self._check()
        return self._continuous_unbounded

    def is_node_limit_reached(self) -> bool:
        self._check()
        return self._node_limit_reached

    def is_seconds_limit_reached(self) -> bool:
        self._check()
        return self._seconds_limit_reached

    def is_solution_limit_reached(self) -> bool:
        self._check()
        return self._solution_limit_reached

    def is_initial_solve_abandoned(self) -> bool:
        self._check()
        return self._initial_abandoned

    def is_initial_solve_proven_optimal(self) -> bool:
        self._check()
        return self._initial_optimal

    def status(self) -> int:
        self._check()
        return self._status

    def secondary_status(self) -> int:
        self._check()
        return self._secondary_status

    # Lifetime

    def is_valid(self) -> bool:
        """Check if engine is valid (not freed)"""
        return not self._freed

    def free(self):
        """
        Release the engine.

        Safe to call more than once; after the first call every other method
        raises ``RuntimeError``.
        """
        if not self._freed:
            self._col_names = []
            self._row_names = []
            self._row_indices = []
            self._row_values = []
            self._sos_sets = []
            self._solutions = []
            self._freed = True

    def __del__(self):
        """Destructor - automatically free engine when object is garbage collected"""
        if not getattr(self, '_freed', True):
            self.free()

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - automatically free engine"""
        self.free()
        return False

    def __repr__(self):
        if self._freed:
            return "<mipmodel.Engine (freed)>"
        else:
            return (f"<mipmodel.Engine name={self.name!r} columns={len(self._col_names)} "
                    f"rows={len(self._row_names)}>")
