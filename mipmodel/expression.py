"""
Linear expression algebra for mipmodel

This module provides the symbolic half of the modeling interface: decision
variables, linear sums of variables and constants, and the constraint and
objective values built from them. Nothing here touches a solver; the values
are plain data that a :class:`~mipmodel.model.Model` later translates into
engine rows and columns.

Example
-------
>>> from mipmodel import Model, VariableType, between, equal, maximize
>>>
>>> model = Model()
>>> a = model.add_variable('a', VariableType.INTEGER, upper_bound=10)
>>> b = model.add_variable('b', VariableType.INTEGER)
>>>
>>> expr = 3*a + b - 5           # Sum: 3*a + b - 5
>>> c1 = a + b <= 17             # Constraint: a + b - 17 <= 0
>>> c2 = equal(2*a, 20)          # Constraint: 2*a - 20 == 0
>>> c3 = between(1, a, 10)       # RangeConstraint: 1 <= a <= 10
>>> objective = maximize(b)

Notes
-----
``==`` is value equality, not a constraint builder. Variables compare equal
when their indices are equal and are used as dictionary keys in solutions,
so equality constraints are written with :func:`equal` or
:meth:`Sum.equal_to` instead.
"""

import numpy as np
from enum import Enum
from types import MappingProxyType
from typing import Union, Optional, Dict, Iterable, Mapping


_NUMBER_TYPES = (int, float, np.number)


class VariableType(Enum):
    """Numeric type of a decision variable"""
    CONTINUOUS = 'continuous'
    INTEGER = 'integer'


class Sense(Enum):
    """Optimization sense"""
    MINIMIZE = 'minimize'
    MAXIMIZE = 'maximize'
    IGNORE = 'ignore'


class ConstraintSense(Enum):
    """Constraint sense"""
    LE = '<='  # Less than or equal
    GE = '>='  # Greater than or equal
    EQ = '=='  # Equal
    RANGE = 'range'  # lower <= expression <= upper


class _ExpressionOperators:
    """
    Operator overloads shared by every expression type.

    Subclasses implement :meth:`to_sum`; everything else is derived from the
    module level functions so the operator and named forms cannot drift
    apart.
    """

    # Make numpy scalars defer to our reflected operators
    __array_ufunc__ = None

    def to_sum(self) -> 'Sum':
        raise NotImplementedError

    # Named operations
    def add(self, other) -> 'Sum':
        return add(self, other)

    def subtract(self, other) -> 'Sum':
        return subtract(self, other)

    def scaled_by(self, factor) -> 'Sum':
        return scale(self, factor)

    def divided_by(self, divisor) -> 'Sum':
        return divide(self, divisor)

    def less_than_or_equal(self, other) -> 'Constraint':
        return less_than_or_equal(self, other)

    def greater_than_or_equal(self, other) -> 'Constraint':
        return greater_than_or_equal(self, other)

    def equal_to(self, other) -> 'Constraint':
        return equal(self, other)

    # Arithmetic operations
    def __add__(self, other):
        if not _is_expression(other):
            return NotImplemented
        return add(self, other)

    def __radd__(self, other):
        if not _is_expression(other):
            return NotImplemented
        return add(other, self)

    def __sub__(self, other):
        if not _is_expression(other):
            return NotImplemented
        return subtract(self, other)

    def __rsub__(self, other):
        if not _is_expression(other):
            return NotImplemented
        return subtract(other, self)

    def __mul__(self, other):
        if not _is_expression(other):
            return NotImplemented
        own = self.to_sum()
        if isinstance(other, _ExpressionOperators) and not own.coefficients:
            return scale(other, own.constant)
        return scale(self, other)

    def __rmul__(self, other):
        if not _is_expression(other):
            return NotImplemented
        return scale(self, other)

    def __neg__(self):
        return scale(self, -1.0)

    def __pos__(self):
        return self.to_sum()

    def __truediv__(self, other):
        if not _is_expression(other):
            return NotImplemented
        return divide(self, other)

    # Comparison operators for constraints
    def __le__(self, other):
        if not _is_expression(other):
            return NotImplemented
        return less_than_or_equal(self, other)

    def __ge__(self, other):
        if not _is_expression(other):
            return NotImplemented
        return greater_than_or_equal(self, other)


class Variable(_ExpressionOperators):
    """
    Represents a decision variable in the optimization model.

    Variables are created by :meth:`Model.add_variable
    <mipmodel.model.Model.add_variable>` and are only meaningful for the
    model that created them. They are immutable handles: bounds and type
    are fixed at creation.

    Index is identity: two variables compare equal, and hash equal, when
    their indices are equal, regardless of name.

    Parameters
    ----------
    index : int
        Position of the variable in the owning model's registry
    name : str, optional
        Name of the variable for display
    var_type : VariableType, optional
        Integer or continuous (default: continuous)
    lower_bound : float, optional
        Lower bound (default: -inf)
    upper_bound : float, optional
        Upper bound (default: inf)
    owner : object, optional
        Token of the owning model, used to reject foreign variables

    Examples
    --------
    >>> x = Variable(0, name='x', upper_bound=10)
    >>> expr = 3*x + 5  # Create linear expression
    """

    def __init__(self, index: int, name: Optional[str] = None,
                 var_type: VariableType = VariableType.CONTINUOUS,
                 lower_bound: float = -np.inf, upper_bound: float = np.inf,
                 owner: object = None):
        self._index = int(index)
        self._name = name or f"x{index}"
        self._var_type = var_type
        self._lower_bound = float(lower_bound)
        self._upper_bound = float(upper_bound)
        self._owner = owner

    @property
    def index(self) -> int:
        """Column index of this variable in its model"""
        return self._index

    @property
    def name(self) -> str:
        return self._name

    @property
    def var_type(self) -> VariableType:
        return self._var_type

    @property
    def is_integer(self) -> bool:
        return self._var_type is VariableType.INTEGER

    @property
    def lower_bound(self) -> float:
        return self._lower_bound

    @property
    def upper_bound(self) -> float:
        return self._upper_bound

    def to_sum(self) -> 'Sum':
        return Sum({self: 1.0})

    def __eq__(self, other):
        if not isinstance(other, Variable):
            return NotImplemented
        return self._index == other._index

    def __hash__(self):
        return hash(self._index)

    def __repr__(self):
        return f"Variable({self._name})"


class Sum(_ExpressionOperators):
    """
    Represents a linear expression: sum of (coefficient * variable) + constant.

    A Sum is immutable. Coefficients are stored in a mapping from
    :class:`Variable` to float and the constant term is kept separately.
    Every operation returns a new Sum; terms for the same variable are merged
    by adding their coefficients. Zero coefficients are kept, and so are NaN
    or infinite ones produced by dividing by zero.

    Two Sums are equal when their coefficient mappings and constants are
    equal; term order does not matter.

    Parameters
    ----------
    coefficients : mapping, optional
        Mapping from variables to coefficients
    constant : float, optional
        Constant term

    Examples
    --------
    >>> x = Variable(0, 'x')
    >>> y = Variable(1, 'y')
    >>> expr = 3*x + 2*y - 5
    >>> print(expr)
    3.0*x + 2.0*y - 5.0
    """

    __hash__ = None

    def __init__(self, coefficients: Optional[Mapping[Variable, float]] = None,
                 constant: float = 0.0):
        self._coefficients: Dict[Variable, float] = {
            var: float(coef) for var, coef in (coefficients or {}).items()
        }
        self._constant = float(constant)

    @staticmethod
    def from_constant(value: float) -> 'Sum':
        """Create expression from a constant"""
        return Sum({}, value)

    @property
    def coefficients(self) -> Mapping[Variable, float]:
        """Read-only view of the variable terms"""
        return MappingProxyType(self._coefficients)

    @property
    def constant(self) -> float:
        return self._constant

    def get_coefficient(self, var: Variable) -> float:
        """Get coefficient for a variable"""
        return self._coefficients.get(var, 0.0)

    def evaluate(self, values: Mapping[Variable, float]) -> float:
        """
        Value of the expression for the given variable values.

        Parameters
        ----------
        values : mapping
            Value for every variable in the expression, e.g. a
            :class:`~mipmodel.solution.Solution`

        Returns
        -------
        float
            Sum of coefficient * value over all terms, plus the constant
        """
        total = self._constant
        for var, coef in self._coefficients.items():
            total += coef * values[var]
        return total

    def to_sum(self) -> 'Sum':
        return self

    def __eq__(self, other):
        if not isinstance(other, Sum):
            return NotImplemented
        return (self._coefficients == other._coefficients
                and self._constant == other._constant)

    def __repr__(self):
        if not self._coefficients and self._constant == 0:
            return "0"

        terms = []
        for var, coef in sorted(self._coefficients.items(), key=lambda item: item[0].index):
            if coef == 1.0:
                terms.append(var.name)
            elif coef == -1.0:
                terms.append(f"-{var.name}")
            else:
                terms.append(f"{coef}*{var.name}")

        if self._constant != 0 or not terms:
            terms.append(f"{self._constant}")

        result = terms[0]
        for term in terms[1:]:
            if term.startswith('-'):
                result += f" - {term[1:]}"
            else:
                result += f" + {term}"
        return result


Expression = Union[Variable, Sum, int, float, np.number]


def _is_expression(value) -> bool:
    return isinstance(value, (_ExpressionOperators,) + _NUMBER_TYPES)


def as_sum(value: Expression) -> Sum:
    """
    Convert any expression to its canonical Sum.

    A number becomes a constant-only Sum and a variable becomes ``{var: 1}``.

    Raises
    ------
    TypeError
        If ``value`` is not a Variable, Sum or number
    """
    if isinstance(value, _ExpressionOperators):
        return value.to_sum()
    if isinstance(value, _NUMBER_TYPES):
        return Sum.from_constant(float(value))
    raise TypeError(f"Cannot use {type(value).__name__} as a linear expression")


def _as_scalar(value) -> float:
    if isinstance(value, _NUMBER_TYPES):
        return float(value)
    if isinstance(value, _ExpressionOperators):
        expr = value.to_sum()
        if not expr.coefficients:
            return expr.constant
        raise TypeError("Can only multiply expression by scalar (no quadratic terms)")
    raise TypeError(f"Cannot scale an expression by {type(value).__name__}")


def add(a: Expression, b: Expression) -> Sum:
    """Merge two expressions, adding coefficients of shared variables"""
    lhs = as_sum(a)
    rhs = as_sum(b)
    coefficients = dict(lhs.coefficients)
    for var, coef in rhs.coefficients.items():
        coefficients[var] = coefficients.get(var, 0.0) + coef
    return Sum(coefficients, lhs.constant + rhs.constant)


def scale(expr: Expression, factor) -> Sum:
    """Multiply every coefficient, and the constant, by ``factor``"""
    k = _as_scalar(factor)
    source = as_sum(expr)
    return Sum({var: coef * k for var, coef in source.coefficients.items()},
               source.constant * k)


def divide(expr: Expression, divisor) -> Sum:
    """
    Scale by the reciprocal of ``divisor``.

    Dividing by zero does not raise: the reciprocal is computed in IEEE-754
    arithmetic, so the resulting terms are ``inf`` or ``nan``.
    """
    k = _as_scalar(divisor)
    with np.errstate(divide='ignore', invalid='ignore'):
        reciprocal = float(np.float64(1.0) / np.float64(k))
    return scale(expr, reciprocal)


def subtract(a: Expression, b: Expression) -> Sum:
    return add(a, scale(b, -1.0))


def quicksum(items: Iterable[Expression], initial: Expression = 0.0) -> Sum:
    """
    Sum many expressions at once.

    Equivalent to chaining ``+`` but merges all terms into a single mapping
    instead of building an intermediate Sum per addition.

    Examples
    --------
    >>> x = model.add_variables(100, name_prefix='x')
    >>> total = quicksum(i * var for i, var in enumerate(x))
    """
    start = as_sum(initial)
    coefficients = dict(start.coefficients)
    constant = start.constant
    for item in items:
        term = as_sum(item)
        for var, coef in term.coefficients.items():
            coefficients[var] = coefficients.get(var, 0.0) + coef
        constant += term.constant
    return Sum(coefficients, constant)


class Constraint:
    """
    Represents a linear constraint ``expression <sense> 0``.

    Comparison operators and the functions :func:`less_than_or_equal`,
    :func:`greater_than_or_equal` and :func:`equal` build constraints by
    moving everything to the left-hand side, so the comparison is always
    against zero.

    Parameters
    ----------
    expression : Sum or Variable or float
        Left-hand side, compared against zero
    sense : ConstraintSense
        Constraint sense (<=, >=, ==)
    name : str, optional
        Name of the constraint

    Examples
    --------
    >>> x = Variable(0, 'x')
    >>> y = Variable(1, 'y')
    >>> constraint1 = 2*x + 3*y <= 10   # 2*x + 3*y - 10 <= 0
    >>> constraint2 = equal(x + y, 7)   # x + y - 7 == 0
    """

    def __init__(self, expression: Expression, sense: ConstraintSense,
                 name: Optional[str] = None):
        self.expression = as_sum(expression)
        self.sense = sense
        self.name = name

    def __repr__(self):
        return f"Constraint({self.expression} {self.sense.value} 0, name={self.name})"


class RangeConstraint(Constraint):
    """
    Represents a two-sided constraint: lower <= expression <= upper.

    Python's comparison chaining doesn't work for custom objects, so these
    are built with :func:`between`.

    Parameters
    ----------
    expression : Sum or Variable
        Expression to bound; a constant term is allowed and is moved into the
        bounds when the row is built
    lower : float
        Lower bound
    upper : float
        Upper bound
    name : str, optional
        Name of the constraint
    """

    def __init__(self, expression: Expression, lower: float, upper: float,
                 name: Optional[str] = None):
        lower_val = _as_scalar(lower)
        upper_val = _as_scalar(upper)

        if lower_val > upper_val:
            raise ValueError(f"Lower bound ({lower_val}) must be <= upper bound ({upper_val})")

        super().__init__(expression, ConstraintSense.RANGE, name)
        self.lower = lower_val
        self.upper = upper_val

    def __repr__(self):
        return f"Constraint({self.lower} <= {self.expression} <= {self.upper}, name={self.name})"


def less_than_or_equal(a: Expression, b: Expression) -> Constraint:
    return Constraint(subtract(a, b), ConstraintSense.LE)


def greater_than_or_equal(a: Expression, b: Expression) -> Constraint:
    return Constraint(subtract(a, b), ConstraintSense.GE)


def equal(a: Expression, b: Expression) -> Constraint:
    """Equality constraint ``a - b == 0``"""
    return Constraint(subtract(a, b), ConstraintSense.EQ)


def between(lower: Union[float, int], expr: Expression,
            upper: Union[float, int]) -> RangeConstraint:
    """
    Create a two-sided constraint: lower <= expr <= upper.

    Parameters
    ----------
    lower : float or int
        Lower bound
    expr : Sum or Variable
        Expression to bound
    upper : float or int
        Upper bound

    Returns
    -------
    RangeConstraint
        Two-sided constraint object

    Examples
    --------
    >>> x = Variable(0)
    >>> c = between(5, 2*x, 10)  # 5 <= 2*x <= 10
    """
    return RangeConstraint(expr, lower, upper)


class Objective:
    """
    The objective of a model: minimize or maximize an expression, or ignore.

    Build these with :func:`minimize`, :func:`maximize` and :func:`ignore`.
    ``expression`` is ``None`` for an ignored objective.
    """

    def __init__(self, sense: Sense, expression: Optional[Expression] = None):
        self.sense = sense
        if sense is Sense.IGNORE:
            self.expression = None
        else:
            self.expression = as_sum(expression) if expression is not None else Sum()

    def __repr__(self):
        if self.sense is Sense.IGNORE:
            return "Objective(ignore)"
        return f"Objective({self.sense.value} {self.expression})"


def minimize(expr: Expression) -> Objective:
    """
    Objective that minimizes ``expr``.

    Examples
    --------
    >>> model.set_objective(minimize(-3*x - 5*y))
    """
    return Objective(Sense.MINIMIZE, expr)


def maximize(expr: Expression) -> Objective:
    """
    Objective that maximizes ``expr``.

    Examples
    --------
    >>> model.set_objective(maximize(3*x + 5*y))
    """
    return Objective(Sense.MAXIMIZE, expr)


def ignore() -> Objective:
    """Objective with no coefficients; the engine only looks for a feasible point"""
    return Objective(Sense.IGNORE)
