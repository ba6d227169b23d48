"""The optimizer: runs a solver over a system and times it."""

from __future__ import annotations

import time

from inferno.solver import Solver, SolverError
from inferno.specs import OptimizerSpec
from inferno.system import System


class Optimizer:
    """Runs a solver configured by an optimizer spec."""

    def __init__(self, spec: OptimizerSpec | None) -> None:
        self.spec = spec
        self.solver: Solver | None = None
        self.solution_time_msec = 0

    def optimize(self, system: System) -> None:
        """Solve the allocation problem of the system."""
        if self.spec is None:
            raise SolverError("missing optimizer spec")
        self.solver = Solver(self.spec, system)
        start = time.perf_counter()
        try:
            self.solver.solve()
        finally:
            self.solution_time_msec = int((time.perf_counter() - start) * 1000)

    def __str__(self) -> str:
        text = str(self.solver) if self.solver is not None else ""
        return f"{text}Solution time: {self.solution_time_msec} msec\n"