"""
Model class for mipmodel
"""
import copy
import logging

import numpy as np
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .engine import Engine
from .exceptions import ModelConsistencyError
from .expression import (
    Constraint, ConstraintSense, Expression, Objective, Sense, Sum, Variable,
    VariableType, ignore, minimize,
)
from .parameters import Parameters
from .solution import SavedSolutions, Solution


logger = logging.getLogger(__name__)

_ROW_SENSE = {
    ConstraintSense.LE: 'L',
    ConstraintSense.GE: 'G',
    ConstraintSense.EQ: 'E',
}

_OBJECTIVE_SENSE = {
    Sense.MINIMIZE: 1,
    Sense.MAXIMIZE: -1,
    Sense.IGNORE: 0,
}


class Model:
    """
    Mixed-integer linear program built from expressions.

    A Model owns exactly one :class:`~mipmodel.engine.Engine`. Variables,
    constraints, the objective and special ordered sets are forwarded to the
    engine as they are declared, so the engine always mirrors the model:

    * the n-th variable declared is engine column ``n - 1``;
    * the n-th constraint added is engine row ``n - 1``;
    * setting an objective replaces the previous one completely.

    Variables are only valid for the model that created them; passing one
    to another model raises :class:`~mipmodel.exceptions.ModelConsistencyError`.

    The engine is released by :meth:`free`, at the end of a ``with`` block,
    or when the model is garbage collected.

    Attributes
    ----------
    name : str
        Name of the model
    parameters : Parameters
        Engine configuration, applied before every solve
    m : int
        Number of constraints
    n : int
        Number of variables

    Examples
    --------
    >>> from mipmodel import Model, VariableType, maximize
    >>>
    >>> with Model("example") as model:
    ...     a = model.add_variable('a', VariableType.INTEGER, lower_bound=0, upper_bound=10)
    ...     b = model.add_variable('b', VariableType.INTEGER)
    ...     model.add_constraint(a + b <= 17)
    ...     model.set_objective(maximize(b))
    ...     solution = model.solve()
    ...     print(solution[a], solution[b])
    0.0 17.0
    """

    def __init__(self, name: str = "", parameters: Optional[Parameters] = None):
        self.name = name
        self.parameters = parameters if parameters is not None else Parameters()

        self._engine = Engine(name)
        self._token = object()
        self._variables: List[Variable] = []
        self._constraints: List[Constraint] = []
        self._sos_sets: List[Tuple[Variable, ...]] = []
        self._objective = ignore()
        self._freed = False

        self.set_objective(self._objective)

    def _check(self):
        if self._freed:
            raise RuntimeError("Model has been freed")

    def _check_variable(self, var: Variable):
        if not isinstance(var, Variable):
            raise TypeError(f"Expected a Variable, got {type(var).__name__}")
        if var._owner is not self._token:
            raise ModelConsistencyError(f"{var!r} was not declared on model {self.name!r}")

    def _row_terms(self, expr: Sum) -> Tuple[List[int], List[float]]:
        indices = []
        coefficients = []
        for var, coef in expr.coefficients.items():
            self._check_variable(var)
            indices.append(var.index)
            coefficients.append(coef)
        return indices, coefficients

    @property
    def m(self) -> int:
        """Number of constraints"""
        return len(self._constraints)

    @property
    def n(self) -> int:
        """Number of variables"""
        return len(self._variables)

    @property
    def variables(self) -> List[Variable]:
        """Declared variables, in index order"""
        return list(self._variables)

    @property
    def constraints(self) -> List[Constraint]:
        """Added constraints, in row order"""
        return list(self._constraints)

    @property
    def special_ordered_sets(self) -> List[Tuple[Variable, ...]]:
        return list(self._sos_sets)

    @property
    def objective(self) -> Objective:
        return self._objective

    def add_variable(self, name: Optional[str] = None,
                     var_type: VariableType = VariableType.CONTINUOUS,
                     lower_bound: float = -np.inf,
                     upper_bound: float = np.inf) -> Variable:
        """
        Add a decision variable to the model.

        The variable gets the next column index. Bounds are forwarded to the
        engine unchecked; an inverted range makes the model infeasible.

        Parameters
        ----------
        name : str, optional
            Name of the variable; names need not be unique
        var_type : VariableType, optional
            Integer or continuous (default: continuous)
        lower_bound : float, optional
            Lower bound (default: -inf)
        upper_bound : float, optional
            Upper bound (default: inf)

        Returns
        -------
        Variable
            The created variable object

        Examples
        --------
        >>> x = model.add_variable('x', VariableType.INTEGER, lower_bound=0, upper_bound=10)
        >>> y = model.add_variable('y')  # continuous, unbounded
        """
        self._check()
        index = len(self._variables)
        var = Variable(index, name, var_type, lower_bound, upper_bound, owner=self._token)
        self._engine.add_column(var.name, var.lower_bound, var.upper_bound, 0.0, var.is_integer)
        self._variables.append(var)
        return var

    def add_variables(self, count: int, name_prefix: str = 'x',
                      var_type: VariableType = VariableType.CONTINUOUS,
                      lower_bound: float = -np.inf,
                      upper_bound: float = np.inf) -> List[Variable]:
        """
        Add multiple variables at once.

        Examples
        --------
        >>> x = model.add_variables(5, name_prefix='x')  # Creates x0, x1, x2, x3, x4
        """
        return [self.add_variable(f"{name_prefix}{i}", var_type, lower_bound, upper_bound)
                for i in range(count)]

    def add_constraint(self, constraint: Constraint,
                       name: Optional[str] = None) -> Constraint:
        """
        Add a constraint to the model as the next engine row.

        ``expr <= 0``, ``expr >= 0`` and ``expr == 0`` become one row whose
        right-hand side is the negated constant of ``expr``. A range
        constraint ``lower <= expr <= upper`` becomes a row over the
        variable terms whose bounds are then set to ``lower - C`` and
        ``upper - C``, where ``C`` is the constant of ``expr``.

        Parameters
        ----------
        constraint : Constraint
            Constraint object (created using <=, >=, equal() or between())
        name : str, optional
            Name for the constraint (default: ``c<row>``)

        Returns
        -------
        Constraint
            The added constraint
        """
        self._check()
        if not isinstance(constraint, Constraint):
            raise TypeError("Must provide a Constraint object (use <=, >=, equal() or between())")

        # Name a copy; the caller's constraint may be added again elsewhere
        constraint = copy.copy(constraint)
        if name:
            constraint.name = name
        elif constraint.name is None:
            constraint.name = f"c{len(self._constraints)}"

        expr = constraint.expression
        indices, coefficients = self._row_terms(expr)
        row = len(self._constraints)

        if constraint.sense is ConstraintSense.RANGE:
            self._engine.add_row(constraint.name, indices, coefficients, 'E', 0.0)
            if self._engine.num_rows - 1 != row:
                raise ModelConsistencyError(
                    f"Cannot set bounds of row {row}: engine has {self._engine.num_rows} rows"
                )
            self._engine.set_row_lower(row, constraint.lower - expr.constant)
            self._engine.set_row_upper(row, constraint.upper - expr.constant)
        else:
            self._engine.add_row(constraint.name, indices, coefficients,
                                 _ROW_SENSE[constraint.sense], -expr.constant)

        self._constraints.append(constraint)
        return constraint

    def add_constraints(self, constraints: Iterable[Constraint]) -> List[Constraint]:
        return [self.add_constraint(constraint) for constraint in constraints]

    def set_objective(self, objective: Union[Objective, Expression]):
        """
        Replace the objective.

        Every variable's objective coefficient is reset to zero before the
        terms of the new expression are written, so nothing carries over
        from a previous objective. The expression's constant term is not
        sent to the engine and so is not part of
        :attr:`Solution.objective_value <mipmodel.solution.Solution.objective_value>`;
        use ``solution.evaluate(model.objective.expression)`` to include it.

        Parameters
        ----------
        objective : Objective or expression
            ``minimize(expr)``, ``maximize(expr)`` or ``ignore()``; a bare
            expression is minimized

        Examples
        --------
        >>> model.set_objective(maximize(3*x + 5*y))
        """
        self._check()
        if not isinstance(objective, Objective):
            objective = minimize(objective)

        if objective.sense is not Sense.IGNORE:
            for var in objective.expression.coefficients:
                self._check_variable(var)

        self._engine.set_objective_sense(_OBJECTIVE_SENSE[objective.sense])

        if objective.sense is not Sense.IGNORE:
            for var in self._variables:
                self._engine.set_objective_coefficient(var.index, 0.0)
            for var, coef in objective.expression.coefficients.items():
                self._engine.set_objective_coefficient(var.index, coef)

        self._objective = objective

    def add_sos1(self, variables: Sequence[Variable]):
        """
        Allow at most one of ``variables`` to be nonzero.

        Members are weighted by position (0, 1, 2, ...).
        """
        self._check()
        members = tuple(variables)
        for var in members:
            self._check_variable(var)

        self._engine.add_sos(
            [0, len(members)],
            [var.index for var in members],
            [float(i) for i in range(len(members))],
            1,
        )
        self._sos_sets.append(members)

    def solve(self) -> Solution:
        """
        Solve the model and return the best solution.

        Blocks until the engine returns. An infeasible model, or one where
        no solution was found before a limit was reached, gives a Solution
        for which ``is_feasible()`` is False.

        Returns
        -------
        Solution
            Best solution with one value per declared variable
        """
        self._check()
        self.parameters.apply(self._engine)

        logger.debug(f"Solving model {self.name!r}: {self.n} variables, {self.m} constraints")
        self._engine.solve()

        solution = Solution.from_buffer(self._engine, self._variables,
                                        self._engine.best_solution())
        if not solution.is_feasible():
            logger.debug(f"Model {self.name!r} has no feasible solution")
        return solution

    def solutions(self) -> SavedSolutions:
        """
        Solve the model and return every saved solution, best first.

        Each call solves again. Solutions are read from the engine only when
        they are iterated over or indexed.

        Examples
        --------
        >>> for solution in model.solutions():
        ...     print(solution[a], solution[b])
        """
        self._check()
        self.parameters.apply(self._engine)
        self._engine.solve()
        return SavedSolutions(self._engine, self._variables)

    def is_valid(self) -> bool:
        """Check if model is valid (not freed)"""
        return not self._freed and self._engine.is_valid()

    def free(self):
        """
        Free the model and release the engine.

        After calling this method, the model cannot be used anymore.
        """
        if not self._freed:
            self._engine.free()
            self._freed = True

    def __del__(self):
        """Destructor - automatically free model when object is garbage collected"""
        if not getattr(self, '_freed', True):
            self.free()

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - automatically free model"""
        self.free()
        return False

    def __repr__(self):
        if self._freed:
            return "<mipmodel.Model (freed)>"
        else:
            return f"<mipmodel.Model name={self.name!r} m={self.m} n={self.n}>"
