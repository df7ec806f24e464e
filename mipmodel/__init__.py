"""
mipmodel Python Package

Algebraic modeling layer for mixed-integer linear programs, solved with HiGHS.
"""

from .model import Model
from .engine import Engine
from .parameters import Parameters
from .solution import Solution, SavedSolutions
from .exceptions import ModelConsistencyError
from .expression import (
    Variable, VariableType, Sum, Constraint, RangeConstraint, Objective,
    Sense, ConstraintSense, as_sum, add, scale, divide, subtract, quicksum,
    less_than_or_equal, greater_than_or_equal, equal, between,
    minimize, maximize, ignore
)

__version__ = "0.1.0"

__all__ = [
    'Model',
    'Engine',
    'Parameters',
    'Solution',
    'SavedSolutions',
    'ModelConsistencyError',
    '__version__',
    # Expression algebra
    'Variable',
    'VariableType',
    'Sum',
    'Constraint',
    'RangeConstraint',
    'Objective',
    'Sense',
    'ConstraintSense',
    'as_sum',
    'add',
    'scale',
    'divide',
    'subtract',
    'quicksum',
    'less_than_or_equal',
    'greater_than_or_equal',
    'equal',
    'between',
    'minimize',
    'maximize',
    'ignore',
]
