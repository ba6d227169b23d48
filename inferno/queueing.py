"""Finite birth-death queue with state-dependent service rates, and a root finder."""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass

_MAX_ITERATIONS = 200
_TOLERANCE = 1e-6


class QueueError(ValueError):
    """Raised when a queue cannot be built or solved."""


@dataclass(frozen=True)
class QueueStats:
    """Steady-state statistics of a solved queue."""

    arrival_rate: float
    throughput: float
    blocking_probability: float
    rho: float
    avg_num_in_system: float
    avg_num_in_service: float
    avg_resp_time: float
    avg_serv_time: float
    avg_wait_time: float


class StateDependentQueue:
    """Queue holding at most ``max_queue`` requests.

    ``service_rates[n-1]`` is the total service rate when ``n`` requests are in
    service; beyond ``len(service_rates)`` requests the extra ones wait and the
    last rate applies.
    """

    def __init__(self, max_queue: int, service_rates: Sequence[float]) -> None:
        rates = tuple(float(rate) for rate in service_rates)
        if not rates:
            raise QueueError("at least one service rate is required")
        if any(not math.isfinite(rate) or rate <= 0 for rate in rates):
            raise QueueError("service rates must be positive and finite")
        if max_queue < len(rates):
            raise QueueError("queue capacity is smaller than the batch size")
        self.max_queue = max_queue
        self.service_rates = rates

    @property
    def batch_size(self) -> int:
        return len(self.service_rates)

    def _rate(self, n: int) -> float:
        return self.service_rates[min(n, self.batch_size) - 1]

    def _in_service(self, n: int) -> int:
        return min(n, self.batch_size)

    def solve(self, arrival_rate: float) -> QueueStats:
        """Solve the queue at the given arrival rate."""
        if not math.isfinite(arrival_rate) or arrival_rate <= 0:
            raise QueueError(f"invalid arrival rate {arrival_rate}")
        log_arrival = math.log(arrival_rate)
        log_weights = [0.0]
        total_log = 0.0
        for n in range(1, self.max_queue + 1):
            total_log += log_arrival - math.log(self._rate(n))
            log_weights.append(total_log)
        peak = max(log_weights)
        weights = [math.exp(w - peak) for w in log_weights]
        norm = sum(weights)
        probs = [w / norm for w in weights]

        blocking = probs[-1]
        throughput = arrival_rate * (1 - blocking)
        if throughput <= 0:
            raise QueueError(f"queue saturated at arrival rate {arrival_rate}")
        in_system = sum(n * p for n, p in enumerate(probs))
        in_service = sum(self._in_service(n) * p for n, p in enumerate(probs))
        return QueueStats(
            arrival_rate=arrival_rate,
            throughput=throughput,
            blocking_probability=blocking,
            rho=1 - probs[0],
            avg_num_in_system=in_system,
            avg_num_in_service=in_service,
            avg_resp_time=in_system / throughput,
            avg_serv_time=in_service / throughput,
            avg_wait_time=(in_system - in_service) / throughput,
        )


def binary_search(
    low: float, high: float, target: float, func: Callable[[float], float]
) -> float | None:
    """Find x in [low, high] with func(x) == target for an increasing func.

    Returns None when the target lies below func(low), and ``high`` when it
    lies at or above func(high).
    """
    if low > high:
        raise ValueError(f"empty interval [{low}, {high}]")
    if target < func(low):
        return None
    if target >= func(high):
        return high
    lo, hi = low, high
    scale = max(abs(target), 1e-300)
    for _ in range(_MAX_ITERATIONS):
        mid = (lo + hi) / 2
        value = func(mid)
        if abs(value - target) <= _TOLERANCE * scale:
            return mid
        if value < target:
            lo = mid
        else:
            hi = mid
        if hi - lo <= _TOLERANCE * max(abs(hi), abs(lo), 1e-300) * 1e-3:
            break
    return (lo + hi) / 2