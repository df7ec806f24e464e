"""
Example: Building models with expressions

Solves two small integer programs with the algebraic modeling interface and
walks through every saved solution of a model with a special ordered set.
"""

import sys
import mipmodel
from mipmodel import Model, VariableType, equal, maximize, minimize


def brothers():
    # Martin is four times as old as his brother Luther. In 10 years he will
    # be twice the age of his brother.
    with Model("brothers") as model:
        martin = model.add_variable("martin", VariableType.INTEGER)
        luther = model.add_variable("luther", VariableType.INTEGER)
        model.add_constraint(equal(martin, 4 * luther))
        model.add_constraint(equal(martin + 10, 2 * (luther + 10)))

        solution = model.solve()
        print(solution)
        print()


def cover():
    with Model("cover") as model:
        a = model.add_variable("a", lower_bound=0, upper_bound=10)
        b = model.add_variable("b", lower_bound=0, upper_bound=10)
        model.add_constraint(a + b >= 1)
        model.add_sos1([a, b])
        model.set_objective(minimize(a + 2 * b))

        for i, solution in enumerate(model.solutions()):
            print(f"Solution {i}: a = {solution[a]:g}, b = {solution[b]:g}")
        print()


def limited():
    param = mipmodel.Parameters()
    param.max_seconds = 5.0

    with Model("limited", parameters=param) as model:
        a = model.add_variable("a", VariableType.INTEGER, lower_bound=0, upper_bound=10)
        b = model.add_variable("b", VariableType.INTEGER)
        model.add_constraint(equal(a + b, 17))
        model.set_objective(maximize(b))

        solution = model.solve()
        if not solution.is_feasible():
            print("Infeasible")
        elif solution.is_proven_optimal():
            print(f"Optimal: {solution!r}")
        else:
            print(f"Stopped early: {solution!r}")
        print()


def main():
    print()
    print("=" * 70)
    print(f"mipmodel {mipmodel.__version__} Example: Modeling - Python")
    print("=" * 70)
    print()

    brothers()
    cover()
    limited()
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(130)
