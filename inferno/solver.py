"""Assignment of allocations to servers, with unlimited or limited capacity."""

from __future__ import annotations

import bisect
import math
from dataclasses import dataclass, field

from inferno.allocation import Allocation, AllocationDiff, create_allocation_diff
from inferno.specs import PRIORITY_WEIGHT_FACTOR, OptimizerSpec
from inferno.system import System


class SolverError(RuntimeError):
    """Raised when a solution cannot be computed."""


@dataclass
class _Entry:
    server_name: str
    priority: int
    allocations: list[Allocation]
    cur_index: int = 0
    delta: float = field(default=0.0)

    def order_key(self) -> tuple[float, float]:
        # Larger weighted delta first; on ties, larger weighted value first.
        weight = 1 + PRIORITY_WEIGHT_FACTOR / (1 + self.priority)
        return (-self.delta * weight, -self.allocations[self.cur_index].value * weight)


def _order_key(entry: _Entry) -> tuple[float, float]:
    return entry.order_key()


class Solver:
    """Chooses one allocation per server."""

    def __init__(self, spec: OptimizerSpec, system: System) -> None:
        self.spec = spec
        self.system = system
        self.current_allocation: dict[str, Allocation] = {}
        self.diff_allocation: dict[str, AllocationDiff] = {}

    def solve(self) -> None:
        """Find allocations for all servers and record the change from the current ones."""
        self.current_allocation = {
            name: server.cur_allocation
            for name, server in self.system.servers.items()
            if server.cur_allocation is not None
        }
        if self.spec.milp_solver:
            raise SolverError("MILP solver is not available")
        if self.spec.unlimited:
            self.solve_unlimited()
        else:
            self.solve_limited()

        self.diff_allocation = {}
        for name, server in self.system.servers.items():
            diff = create_allocation_diff(self.current_allocation.get(name), server.allocation)
            if diff is not None:
                self.diff_allocation[name] = diff

    def solve_unlimited(self) -> None:
        """Give each server its allocation of least value."""
        for server in self.system.servers.values():
            server.remove_allocation()
            best: Allocation | None = None
            for alloc in server.all_allocations.values():
                if alloc.value < (best.value if best is not None else math.inf):
                    best = alloc
            if best is not None:
                server.set_allocation(best)

    def solve_limited(self) -> None:
        """Assign allocations greedily within the available accelerator capacity."""
        available = dict(self.system.capacities)
        entries: list[_Entry] = []
        for name, server in self.system.servers.items():
            server.remove_allocation()
            if not server.all_allocations:
                continue
            allocs = sorted(server.all_allocations.values(), key=lambda a: a.value)
            delta = allocs[1].value - allocs[0].value if len(allocs) > 1 else math.inf
            entries.append(
                _Entry(server_name=name, priority=server.priority(self.system), allocations=allocs, delta=delta)
            )
        entries.sort(key=_order_key)

        while entries:
            top = entries.pop(0)
            server = self.system.server(top.server_name)
            if server is None:
                continue
            model = self.system.model(server.model_name)
            if model is None:
                continue
            alloc = top.allocations[top.cur_index]
            acc = self.system.accelerator(alloc.accelerator)
            if acc is None:
                continue
            count = alloc.num_replicas * model.num_instances(alloc.accelerator) * acc.multiplicity
            if available.get(acc.type, 0) >= count:
                available[acc.type] = available.get(acc.type, 0) - count
                server.set_allocation(alloc)
                continue
            top.cur_index += 1
            if top.cur_index + 1 < len(top.allocations):
                top.delta = top.allocations[top.cur_index + 1].value - top.allocations[top.cur_index].value
            elif top.cur_index == len(top.allocations):
                continue
            else:
                top.delta = math.inf
            position = bisect.bisect_left(entries, top.order_key(), key=_order_key)
            entries.insert(position, top)

    @property
    def allocation_diff(self) -> dict[str, AllocationDiff]:
        return self.diff_allocation

    def __str__(self) -> str:
        lines = ["Solver: \n"]
        lines.extend(f"sName={name}, allocDiff={diff} \n" for name, diff in self.diff_allocation.items())
        return "".join(lines)