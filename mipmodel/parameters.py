"""
Parameters class for the mipmodel engine
"""
import numpy as np


class Parameters:
    """
    Configuration parameters forwarded to the engine before every solve.

    Attributes
    ----------
    log_level : int
        Solver output, 0 is silent (default: 0)
    max_seconds : float
        Wall-clock budget per solve in seconds (default: inf)
    max_nodes : int
        Maximum number of branch-and-bound nodes (default: 2^31 - 1)
    max_solutions : int
        Stop after this many saved solutions (default: 2^31 - 1)
    allowable_fraction_gap : float
        Relative gap at which a solution is accepted as optimal (default: 1e-4)

    Examples
    --------
    >>> param = Parameters()
    >>> param.max_seconds = 30.0
    >>> param.log_level = 1
    >>> model = Model("plant", parameters=param)
    """

    def __init__(self):
        self.log_level = 0
        self.max_seconds = np.inf
        self.max_nodes = 2147483647  # INT32_MAX
        self.max_solutions = 2147483647
        self.allowable_fraction_gap = 1e-4

    def __repr__(self):
        return (f"Parameters(log_level={self.log_level}, "
                f"max_seconds={self.max_seconds}, "
                f"max_nodes={self.max_nodes}, "
                f"max_solutions={self.max_solutions}, "
                f"allowable_fraction_gap={self.allowable_fraction_gap})")

    def apply(self, engine):
        """Forward every parameter to an :class:`~mipmodel.engine.Engine`"""
        engine.set_log_level(self.log_level)
        engine.set_max_seconds(self.max_seconds)
        engine.set_max_nodes(self.max_nodes)
        engine.set_max_solutions(self.max_solutions)
        engine.set_allowable_fraction_gap(self.allowable_fraction_gap)

    @classmethod
    def from_dict(cls, d):
        """Create Parameters from dictionary"""
        param = cls()
        for key, value in d.items():
            if hasattr(param, key):
                setattr(param, key, value)
        return param

    def to_dict(self):
        """Convert to dictionary"""
        return {
            'log_level': self.log_level,
            'max_seconds': self.max_seconds,
            'max_nodes': self.max_nodes,
            'max_solutions': self.max_solutions,
            'allowable_fraction_gap': self.allowable_fraction_gap,
        }
