"""
Example: Driving the mipmodel engine directly

This example builds the same problem as example_modeling.py with the
index-based engine operations that the Model uses internally.

Problem:
    maximize     b
    subject to   a + b == 17
                 0 <= a <= 10, b free, a and b integer
"""

import numpy as np
from mipmodel import Engine


def main():
    print()
    print("=" * 70)
    print("mipmodel Example: Engine operations - Python")
    print("=" * 70)
    print()

    with Engine("direct") as engine:
        # Step 1: Columns (name, lower, upper, objective, integer)
        engine.add_column("a", 0.0, 10.0, 0.0, True)
        engine.add_column("b", -np.inf, np.inf, 0.0, True)

        # Step 2: Rows (name, column indices, coefficients, sense, rhs)
        engine.add_row("total", [0, 1], [1.0, 1.0], 'E', 17.0)

        # Step 3: Objective
        engine.set_objective_sense(-1)
        engine.set_objective_coefficient(1, 1.0)

        # Step 4: Solve
        engine.set_max_seconds(10.0)
        engine.solve()

        print(f"Status: {engine.status()} / {engine.secondary_status()}")
        print(f"Objective: {engine.objective_value():.6f}")
        print(f"Nodes: {engine.node_count()}")
        print(f"Best solution: {engine.best_solution()}")
    print()


if __name__ == "__main__":
    main()
