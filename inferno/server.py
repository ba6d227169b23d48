"""Inference servers: a service class and model pair with load and allocations."""

from __future__ import annotations

import copy
import dataclasses
from typing import Any

from inferno.allocation import Allocation, allocation_from_data, create_allocation
from inferno.specs import (
    DEFAULT_SERVICE_CLASS_NAME,
    DEFAULT_SERVICE_CLASS_PRIORITY,
    AllocationData,
    ServerLoadSpec,
    ServerSpec,
)


class Server:
    """A server for a service class and model."""

    def __init__(self, spec: ServerSpec) -> None:
        self.name = spec.name
        self.service_class_name = spec.class_name or DEFAULT_SERVICE_CLASS_NAME
        self.model_name = spec.model
        self.load: ServerLoadSpec | None = dataclasses.replace(spec.current_alloc.load)
        self.all_allocations: dict[str, Allocation] = {}
        self.allocation: Allocation | None = None
        self.cur_allocation: Allocation | None = allocation_from_data(spec.current_alloc)
        self.spec = spec

    def calculate(self, system: Any) -> None:
        """Compute feasible allocations on every accelerator of the system."""
        self.all_allocations = {}
        for acc in system.accelerators.values():
            alloc = create_allocation(system, self.name, acc.name)
            if alloc is None:
                continue
            if self.cur_allocation is not None:
                alloc.value = self.cur_allocation.transition_penalty(alloc)
            self.all_allocations[acc.name] = alloc

    def priority(self, system: Any) -> int:
        svc = system.service_class(self.service_class_name)
        return svc.priority if svc is not None else DEFAULT_SERVICE_CLASS_PRIORITY

    def set_allocation(self, allocation: Allocation | None) -> None:
        self.allocation = allocation
        self.update_desired_alloc()

    def remove_allocation(self) -> None:
        self.allocation = None

    def update_desired_alloc(self) -> None:
        """Mirror the chosen allocation into the spec's desired allocation."""
        if self.allocation is None:
            self.spec.desired_alloc = AllocationData()
            return
        data = self.allocation.allocation_data()
        data.load = dataclasses.replace(self.load) if self.load is not None else ServerLoadSpec()
        self.spec.desired_alloc = data

    def apply_desired_alloc(self) -> None:
        """Make the desired allocation the current one."""
        self.spec.current_alloc = copy.deepcopy(self.spec.desired_alloc)
        self.cur_allocation = allocation_from_data(self.spec.current_alloc)
        self.load = self.spec.current_alloc.load

    def __str__(self) -> str:
        if self.load is None:
            load = "<nil>"
        else:
            ld = self.load
            load = f"{{{ld.arrival_rate} {ld.avg_length} {ld.arrival_cov} {ld.service_cov}}}"
        alloc = str(self.allocation) if self.allocation is not None else "<nil>"
        return (
            f"Server: name={self.name}; class={self.service_class_name}; "
            f"model={self.model_name}; load={load}; allocation={alloc}"
        )