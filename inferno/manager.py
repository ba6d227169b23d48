"""Ties a system to an optimizer and records per-type allocation totals."""

from __future__ import annotations

from inferno.optimizer import Optimizer
from inferno.system import System


class Manager:
    """Runs an optimizer over a system."""

    def __init__(self, system: System, optimizer: Optimizer) -> None:
        self.system = system
        self.optimizer = optimizer

    def optimize(self) -> None:
        """Solve the allocation problem, then total the allocations by accelerator type."""
        self.optimizer.optimize(self.system)
        self.system.allocate_by_type()