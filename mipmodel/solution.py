"""
Solution classes for mipmodel solver output
"""
import numpy as np
from typing import Optional, Dict, Any, Sequence, Iterator

from .exceptions import ModelConsistencyError
from .expression import Variable, Expression, as_sum


class Solution:
    """
    Result of solving a model: feasible values for every variable, or
    infeasible.

    A feasible solution maps each variable of the model, in declaration
    order, to its value. Solver metrics are not copied into the solution;
    every metric property queries the engine when it is read, so after a
    later solve on the same model they describe the later solve.

    Infeasibility and reached limits are data, not errors: check
    :meth:`is_feasible` and the limit flags (or :meth:`is_proven_optimal`)
    before relying on the values.

    Attributes
    ----------
    values : dict or None
        Variable -> value in declaration order, None if infeasible
    objective_value : float
        Objective of the solution as reported by the engine (the objective's
        constant term is not included)
    best_possible_objective_value : float
        Proven bound on the optimal objective
    iteration_count : int
        Simplex iterations of the root relaxation
    node_count : int
        Branch-and-bound nodes
    status : int
        Engine status, passed through unchanged
    secondary_status : int
        Engine secondary status, passed through unchanged

    Examples
    --------
    >>> solution = model.solve()
    >>> if solution.is_feasible():
    ...     print(solution[a], solution.objective_value)
    """

    def __init__(self, engine, values: Optional[Dict[Variable, float]] = None):
        self._engine = engine
        self._values = values

    @classmethod
    def from_buffer(cls, engine, variables: Sequence[Variable],
                    buffer: Optional[np.ndarray]) -> 'Solution':
        """
        Create a Solution from an engine result buffer.

        Values are assigned positionally: ``buffer[i]`` belongs to
        ``variables[i]``. A missing buffer means infeasible.

        Raises
        ------
        ModelConsistencyError
            If the buffer length differs from the number of variables
        """
        if buffer is None:
            return cls(engine, None)

        if len(buffer) != len(variables):
            raise ModelConsistencyError(
                f"Engine returned {len(buffer)} values for {len(variables)} variables"
            )

        values = {var: float(value) for var, value in zip(variables, buffer)}
        return cls(engine, values)

    def is_feasible(self) -> bool:
        """Check if the engine found a feasible point"""
        return self._values is not None

    def is_proven_optimal(self) -> bool:
        """Feasible, finished without hitting any limit, and optimal"""
        return (self.is_feasible()
                and self.status == 0
                and self.secondary_status == 0)

    @property
    def values(self) -> Optional[Dict[Variable, float]]:
        if self._values is None:
            return None
        return dict(self._values)

    def __getitem__(self, var: Variable) -> float:
        if self._values is None:
            raise KeyError(f"{var!r}: solution is infeasible")
        return self._values[var]

    def __contains__(self, var) -> bool:
        return self._values is not None and var in self._values

    def __iter__(self) -> Iterator[Variable]:
        return iter(self._values or {})

    def __len__(self) -> int:
        return len(self._values or {})

    def evaluate(self, expr: Expression) -> float:
        """
        Value of an expression under this solution, constant term included.

        Examples
        --------
        >>> solution.evaluate(model.objective.expression)
        """
        if self._values is None:
            raise ValueError("Cannot evaluate an expression on an infeasible solution")
        return as_sum(expr).evaluate(self._values)

    # Metrics, read from the engine on every access

    @property
    def objective_value(self) -> float:
        return self._engine.objective_value()

    @property
    def best_possible_objective_value(self) -> float:
        return self._engine.best_possible_objective_value()

    @property
    def iteration_count(self) -> int:
        return self._engine.iteration_count()

    @property
    def node_count(self) -> int:
        return self._engine.node_count()

    @property
    def is_continuous_unbounded(self) -> bool:
        return self._engine.is_continuous_unbounded()

    @property
    def is_node_limit_reached(self) -> bool:
        return self._engine.is_node_limit_reached()

    @property
    def is_seconds_limit_reached(self) -> bool:
        return self._engine.is_seconds_limit_reached()

    @property
    def is_solution_limit_reached(self) -> bool:
        return self._engine.is_solution_limit_reached()

    @property
    def is_initial_solve_abandoned(self) -> bool:
        return self._engine.is_initial_solve_abandoned()

    @property
    def is_initial_solve_proven_optimal(self) -> bool:
        return self._engine.is_initial_solve_proven_optimal()

    @property
    def status(self) -> int:
        return self._engine.status()

    @property
    def secondary_status(self) -> int:
        return self._engine.secondary_status()

    def __repr__(self):
        if self._values is None:
            return "Solution(infeasible)"
        values = ", ".join(f"{var.name}={value:g}" for var, value in self._values.items())
        return f"Solution({values})"

    def __str__(self):
        lines = [
            "mipmodel Solution",
            "=" * 50,
            f"Feasible:        {self.is_feasible()}",
            f"Status:          {self.status} / {self.secondary_status}",
        ]

        if self._values is not None:
            lines.append(f"Objective:       {self.objective_value:.6e}")
            lines.append(f"Best possible:   {self.best_possible_objective_value:.6e}")
            lines.append(f"Nodes:           {self.node_count}")
            lines.append(f"Variables:       {len(self._values)}")
            for var, value in self._values.items():
                lines.append(f"  {var.name} = {value:g}")

        if self.is_seconds_limit_reached:
            lines.append("Stopped on time limit")
        if self.is_node_limit_reached:
            lines.append("Stopped on node limit")
        if self.is_solution_limit_reached:
            lines.append("Stopped on solution limit")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert solution to dictionary; values are listed in declaration order"""
        return {
            'feasible': self.is_feasible(),
            'names': [var.name for var in self._values] if self._values is not None else None,
            'x': list(self._values.values()) if self._values is not None else None,
            'objective_value': self.objective_value,
            'best_possible_objective_value': self.best_possible_objective_value,
            'iteration_count': self.iteration_count,
            'node_count': self.node_count,
            'status': self.status,
            'secondary_status': self.secondary_status,
        }


class SavedSolutions:
    """
    The solutions saved by one solve, best first.

    The count is fixed when the object is created; each Solution is built
    from the engine only when it is indexed or reached during iteration.
    Iterating again walks the same saved solutions. Call
    :meth:`Model.solutions <mipmodel.model.Model.solutions>` again to
    re-solve.
    """

    def __init__(self, engine, variables: Sequence[Variable]):
        self._engine = engine
        self._variables = tuple(variables)
        self._count = engine.saved_solution_count()

    def __len__(self) -> int:
        return self._count

    def __getitem__(self, index: int) -> Solution:
        if not 0 <= index < self._count:
            raise IndexError(f"Saved solution {index} out of range ({self._count} saved)")
        return Solution.from_buffer(self._engine, self._variables,
                                    self._engine.saved_solution(index))

    def __iter__(self) -> Iterator[Solution]:
        for index in range(self._count):
            yield self[index]

    def __repr__(self):
        return f"SavedSolutions(count={self._count})"
