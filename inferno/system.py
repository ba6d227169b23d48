"""The system: accelerators, models, service classes, servers and capacities."""

from __future__ import annotations

import copy
import dataclasses
from dataclasses import dataclass

from inferno.accelerator import Accelerator
from inferno.model import Model
from inferno.server import Server
from inferno.serviceclass import ServiceClass
from inferno.specs import (
    AcceleratorCount,
    AcceleratorData,
    AcceleratorSpec,
    AllocationSolution,
    CapacityData,
    ModelData,
    OptimizerSpec,
    ServerData,
    ServerLoadSpec,
    ServerSpec,
    ServiceClassData,
    SystemSpec,
)


def _fmt(value: float) -> str:
    text = repr(float(value))
    return text[:-2] if text.endswith(".0") else text


class EntityNotFoundError(LookupError):
    """Raised when a named entity is not part of the system."""


@dataclass
class AllocationByType:
    """Allocated units and cost of one accelerator type."""

    name: str
    count: int = 0
    limit: int = 0
    cost: float = 0.0

    def __str__(self) -> str:
        return f"name={self.name}, count={self.count}, limit={self.limit}, cost={_fmt(self.cost)}"


class System:
    """All accelerators, models, service classes and servers."""

    def __init__(self) -> None:
        self.accelerators: dict[str, Accelerator] = {}
        self.models: dict[str, Model] = {}
        self.service_classes: dict[str, ServiceClass] = {}
        self.servers: dict[str, Server] = {}
        self.capacities: dict[str, int] = {}
        self.allocation_by_type: dict[str, AllocationByType] = {}
        self.allocation_solution: AllocationSolution | None = None

    def set_from_spec(self, spec: SystemSpec) -> OptimizerSpec:
        """Load every part of the system; return the optimizer spec it carries."""
        self.set_accelerators_from_spec(spec.accelerators)
        self.set_models_from_spec(spec.models)
        self.set_service_classes_from_spec(spec.service_classes)
        self.set_servers_from_spec(spec.servers)
        self.set_capacity_from_spec(spec.capacity)
        return spec.optimizer.spec

    def set_accelerators_from_spec(self, data: AcceleratorData) -> None:
        for spec in data.spec:
            self.add_accelerator(spec)

    def add_accelerator(self, spec: AcceleratorSpec) -> None:
        """Add an accelerator, replacing one of the same name."""
        self.accelerators[spec.name] = Accelerator(copy.deepcopy(spec))

    def remove_accelerator(self, name: str) -> None:
        if name not in self.accelerators:
            raise EntityNotFoundError(f"accelerator {name} not found")
        del self.accelerators[name]

    def set_capacity_from_spec(self, data: CapacityData) -> None:
        for count in data.count:
            self.set_count(count)

    def set_count(self, count: AcceleratorCount) -> None:
        self.capacities[count.type] = count.count

    def set_models_from_spec(self, data: ModelData) -> None:
        for perf in data.perf_data:
            model = self.models.get(perf.name)
            if model is None:
                model = self.add_model(perf.name)
            model.add_perf_data(dataclasses.replace(perf))

    def add_model(self, name: str) -> Model:
        """Add an empty model, replacing one of the same name."""
        model = Model(name)
        self.models[name] = model
        return model

    def remove_model(self, name: str) -> None:
        if name not in self.models:
            raise EntityNotFoundError(f"model {name} not found")
        del self.models[name]

    def set_servers_from_spec(self, data: ServerData) -> None:
        for spec in data.spec:
            self.add_server(spec)

    def add_server(self, spec: ServerSpec) -> None:
        """Add a server, replacing one of the same name."""
        self.servers[spec.name] = Server(copy.deepcopy(spec))

    def remove_server(self, name: str) -> None:
        if name not in self.servers:
            raise EntityNotFoundError(f"server {name} not found")
        del self.servers[name]

    def set_service_classes_from_spec(self, data: ServiceClassData) -> None:
        for spec in data.spec:
            svc = self.service_classes.get(spec.name)
            if svc is None:
                svc = ServiceClass(spec.name, spec.priority)
                self.service_classes[spec.name] = svc
            svc.set_target(spec)

    def add_service_class(self, name: str, priority: int) -> None:
        """Add an empty service class, replacing one of the same name."""
        self.service_classes[name] = ServiceClass(name, priority)

    def remove_service_class(self, name: str) -> None:
        if name not in self.service_classes:
            raise EntityNotFoundError(f"service class {name} not found")
        del self.service_classes[name]

    def accelerator(self, name: str) -> Accelerator | None:
        return self.accelerators.get(name)

    def model(self, name: str) -> Model | None:
        return self.models.get(name)

    def service_class(self, name: str) -> ServiceClass | None:
        return self.service_classes.get(name)

    def server(self, name: str) -> Server | None:
        return self.servers.get(name)

    def capacity(self, name: str) -> int | None:
        """Available units of an accelerator type; None if the type is unknown."""
        return self.capacities.get(name)

    def remove_capacity(self, name: str) -> bool:
        """Forget the capacity of a type; False if it was not known."""
        return self.capacities.pop(name, None) is not None

    def calculate(self) -> None:
        """Prepare accelerators and compute candidate allocations of all servers."""
        for acc in self.accelerators.values():
            acc.calculate()
        for server in self.servers.values():
            server.calculate(self)

    def allocate_by_type(self) -> None:
        """Accumulate allocated units and cost by accelerator type."""
        self.allocation_by_type = {}
        for server in self.servers.values():
            alloc = server.allocation
            if alloc is None:
                continue
            acc = self.accelerators.get(alloc.accelerator)
            model = self.models.get(server.model_name)
            if acc is None or model is None:
                continue
            entry = self.allocation_by_type.get(acc.type)
            if entry is None:
                entry = AllocationByType(name=acc.type, limit=self.capacities.get(acc.type, 0))
                self.allocation_by_type[acc.type] = entry
            entry.count += alloc.num_replicas * model.num_instances(alloc.accelerator) * acc.multiplicity
            entry.cost += alloc.cost

    def generate_solution(self) -> AllocationSolution:
        """Collect the chosen allocation of every server."""
        solution = AllocationSolution()
        for name, server in self.servers.items():
            if server.allocation is None:
                continue
            data = server.allocation.allocation_data()
            data.load = dataclasses.replace(server.load) if server.load is not None else ServerLoadSpec()
            solution.spec[name] = data
        self.allocation_solution = solution
        return solution

    def __str__(self) -> str:
        parts = ["Solution: \n"]
        total_cost = 0.0
        for name, server in self.servers.items():
            load = server.load
            svc = self.service_classes.get(server.service_class_name)
            if load is None or svc is None:
                continue
            target = svc.model_target(server.model_name)
            if target is None:
                continue
            alloc = server.allocation
            if alloc is None:
                parts.append(
                    f"s={name}; c={server.service_class_name}; m={server.model_name}; "
                    "no feasible allocation! \n"
                )
                continue
            total_cost += alloc.cost
            parts.append(
                f"c={server.service_class_name}; m={server.model_name}; rate={_fmt(load.arrival_rate)}; "
                f"tk={load.avg_length}; sol={len(server.all_allocations)}, alloc={alloc}; "
                f"slo-itl={_fmt(target.itl)}, slo-ttw={_fmt(target.ttw)}, slo-tps={_fmt(target.tps)} \n"
            )
        parts.append("AllocationByType: \n")
        parts.extend(f"{entry} \n" for entry in self.allocation_by_type.values())
        parts.append(f"totalCost={_fmt(total_cost)} \n")
        return "".join(parts)