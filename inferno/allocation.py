"""Allocations of accelerators to inference servers, and their performance analysis."""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass
from typing import Any

from inferno.queueing import QueueError, StateDependentQueue, binary_search
from inferno.specs import (
    ACCEL_PENALTY_FACTOR,
    DELTA,
    MAX_QUEUE_TO_BATCH_RATIO,
    SLO_MARGIN,
    STABILITY_SAFETY_FRACTION,
    AllocationData,
)


def _fmt(value: float) -> str:
    text = repr(float(value))
    return text[:-2] if text.endswith(".0") else text


def _divide(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return math.nan if numerator == 0 else math.copysign(math.inf, numerator)
    return numerator / denominator


@dataclass
class Allocation:
    """An allocation of an accelerator type to a server, with expected performance."""

    accelerator: str
    num_replicas: int
    batch_size: int = 0
    cost: float = 0.0
    value: float = 0.0
    serv_time: float = 0.0
    wait_time: float = 0.0
    rho: float = 0.0
    max_arrv_rate_per_replica: float = 0.0

    def scale(self, system: Any, server_name: str) -> tuple[Allocation | None, int]:
        """Recompute the allocation on the same accelerator; return it and the replica change."""
        server = system.server(server_name)
        if server is None or server.load is None:
            return None, 0
        if system.accelerator(self.accelerator) is None:
            return None, 0
        alloc = create_allocation(system, server_name, self.accelerator)
        if alloc is None:
            return None, 0
        return alloc, alloc.num_replicas - self.num_replicas

    def reallocate(self, system: Any, server_name: str) -> tuple[Allocation | None, str]:
        """Find the feasible allocation of least value over all accelerators."""
        best: Allocation | None = None
        for name in system.accelerators:
            alloc = create_allocation(system, server_name, name)
            if alloc is None:
                continue
            if best is None or best.value == 0 or alloc.value < best.value:
                best = alloc
        if best is None:
            return None, ""
        return best, best.accelerator

    def transition_penalty(self, other: Allocation) -> float:
        """Penalty of moving from this allocation to ``other``."""
        if self.accelerator == other.accelerator:
            if self.num_replicas == other.num_replicas:
                return 0.0
            return other.cost - self.cost
        return ACCEL_PENALTY_FACTOR * (self.cost + other.cost) + (other.cost - self.cost)

    def clone(self) -> Allocation:
        return dataclasses.replace(self)

    def allocation_data(self) -> AllocationData:
        return AllocationData(
            accelerator=self.accelerator,
            num_replicas=self.num_replicas,
            max_batch=self.batch_size,
            cost=self.cost,
            itl_average=self.serv_time,
            wait_average=self.wait_time,
        )

    def __str__(self) -> str:
        return (
            f"{{acc={self.accelerator}; num={self.num_replicas}; maxBatch={self.batch_size}; "
            f"cost={_fmt(self.cost)}, val={_fmt(self.value)}, servTime={_fmt(self.serv_time)}, "
            f"waitTime={_fmt(self.wait_time)}, rho={_fmt(self.rho)}}}"
        )


@dataclass
class AllocationDiff:
    """Orchestration difference between two allocations."""

    old_accelerator: str
    new_accelerator: str
    old_num_replicas: int
    new_num_replicas: int
    cost_diff: float

    def __str__(self) -> str:
        return (
            f"{{ {self.old_accelerator} -> {self.new_accelerator}, "
            f"{self.old_num_replicas} -> {self.new_num_replicas}, {_fmt(self.cost_diff)} }}"
        )


def _lookup(system: Any, server_name: str, accelerator_name: str):
    acc = system.accelerator(accelerator_name)
    if acc is None:
        return None
    server = system.server(server_name)
    if server is None or server.load is None:
        return None
    model = system.model(server.model_name)
    if model is None:
        return None
    perf = model.perf_data(accelerator_name)
    if perf is None:
        return None
    svc = system.service_class(server.service_class_name)
    if svc is None:
        return None
    target = svc.model_target(server.model_name)
    if target is None:
        return None
    return acc, server.load, model, perf, target


def create_allocation(system: Any, server_name: str, accelerator_name: str) -> Allocation | None:
    """Allocation of an accelerator to a server using a state-dependent queue; None if infeasible."""
    found = _lookup(system, server_name, accelerator_name)
    if found is None:
        return None
    acc, load, model, perf, target = found
    if load.arrival_rate <= 0 or load.avg_length <= 0:
        return None

    k = load.avg_length
    n_batch = max(perf.max_batch_size * perf.at_tokens // k, 1)
    max_queue = n_batch * MAX_QUEUE_TO_BATCH_RATIO

    serv_time_limit = k * target.itl
    wait_time_limit = target.ttw / SLO_MARGIN
    throughput_limit = target.tps / (1000 * k)

    rates = []
    for n in range(1, n_batch + 1):
        token_time = perf.alpha + perf.beta * n
        if token_time <= 0:
            return None
        rates.append(n / (token_time * k))

    try:
        queue = StateDependentQueue(max_queue, rates)
        lambda_min = rates[0] * DELTA
        lambda_max = rates[-1] * (1 - DELTA)

        lambda_service = lambda_max
        if target.itl > 0:
            found_rate = binary_search(
                lambda_min, lambda_max, serv_time_limit, lambda x: queue.solve(x).avg_serv_time
            )
            if found_rate is None:
                return None
            lambda_service = found_rate

        lambda_wait = lambda_max
        if target.ttw > 0:
            found_rate = binary_search(
                lambda_min, lambda_max, wait_time_limit, lambda x: queue.solve(x).avg_wait_time
            )
            if found_rate is None:
                return None
            lambda_wait = found_rate

        lambda_throughput = lambda_max
        if target.tps > 0:
            lambda_throughput = lambda_max * (1 - STABILITY_SAFETY_FRACTION)

        lambda_star = min(lambda_service, lambda_wait, lambda_throughput)

        if target.tps == 0:
            total_lambda = load.arrival_rate / 60 / 1000
        else:
            total_lambda = throughput_limit
        num_replicas = math.ceil(total_lambda / lambda_star)
        if num_replicas <= 0:
            return None

        cost = acc.cost * model.num_instances(accelerator_name) * num_replicas
        stats = queue.solve(total_lambda / num_replicas)
    except QueueError:
        return None

    return Allocation(
        accelerator=accelerator_name,
        num_replicas=num_replicas,
        batch_size=n_batch,
        cost=cost,
        value=cost,
        serv_time=stats.avg_serv_time / k,
        wait_time=stats.avg_wait_time,
        rho=stats.rho,
        max_arrv_rate_per_replica=lambda_star,
    )


def create_allocation_ggm(system: Any, server_name: str, accelerator_name: str) -> Allocation | None:
    """Allocation of an accelerator to a server using a G/G/m approximation; None if infeasible."""
    found = _lookup(system, server_name, accelerator_name)
    if found is None:
        return None
    acc, load, model, perf, target = found
    k = load.avg_length
    if k <= 0:
        return None

    n_batch = max(perf.max_batch_size * perf.at_tokens // k, 1)
    serv_time = perf.alpha + perf.beta * n_batch
    if target.itl > 0 and serv_time > target.itl:
        return None

    num_replicas = 0
    gamma = (load.arrival_cov**2 + load.service_cov**2) / 2
    if target.itl > 0 and target.ttw > 0:
        wait_time_limit = target.ttw / SLO_MARGIN
        x_star = _divide(perf.max_batch_size * wait_time_limit, k * serv_time * gamma)
        rho_star = 1.0 if math.isinf(x_star) else x_star / (1 + x_star)
        lambda_star = _divide(rho_star, k * serv_time)
        replicas = _divide(load.arrival_rate, lambda_star * 60 * 1000)
        if not math.isfinite(replicas):
            return None
        num_replicas = math.ceil(replicas)
    if target.tps > 0:
        lambda_max = _divide(n_batch, serv_time * k)
        lambda_throughput = lambda_max * (1 - STABILITY_SAFETY_FRACTION)
        throughput_target = target.tps / (1000 * k)
        needed = _divide(throughput_target, lambda_throughput)
        if not math.isfinite(needed):
            return None
        num_replicas = max(num_replicas, math.ceil(needed))
    if num_replicas <= 0:
        return None

    cost = acc.cost * model.num_instances(accelerator_name) * num_replicas
    rho = load.arrival_rate * k * serv_time / (num_replicas * 60 * 1000)
    x = _divide(rho, 1 - rho)
    wait = _divide(k * serv_time * gamma * x, perf.max_batch_size)

    return Allocation(
        accelerator=accelerator_name,
        num_replicas=num_replicas,
        batch_size=n_batch,
        cost=cost,
        value=cost,
        serv_time=serv_time,
        wait_time=wait,
        rho=rho,
    )


def allocation_from_data(data: AllocationData) -> Allocation:
    return Allocation(
        accelerator=data.accelerator,
        num_replicas=data.num_replicas,
        batch_size=data.max_batch,
        cost=data.cost,
        serv_time=data.itl_average,
        wait_time=data.wait_average,
    )


def create_allocation_diff(old: Allocation | None, new: Allocation | None) -> AllocationDiff | None:
    """Difference between two allocations; None if both are missing."""
    if old is None and new is None:
        return None
    return AllocationDiff(
        old_accelerator=old.accelerator if old else "none",
        new_accelerator=new.accelerator if new else "none",
        old_num_replicas=old.num_replicas if old else 0,
        new_num_replicas=new.num_replicas if new else 0,
        cost_diff=(new.cost if new else 0.0) - (old.cost if old else 0.0),
    )