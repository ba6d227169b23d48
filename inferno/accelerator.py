"""Accelerators and their power profile."""

from __future__ import annotations

import math

from inferno.specs import AcceleratorSpec


def _divide(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return math.nan if numerator == 0 else math.copysign(math.inf, numerator)
    return numerator / denominator


def _fmt(value: float) -> str:
    text = repr(float(value))
    return text[:-2] if text.endswith(".0") else text


class Accelerator:
    """A full or multi-card accelerator used by an inference server."""

    def __init__(self, spec: AcceleratorSpec) -> None:
        self.name = spec.name
        self.spec = spec
        self._slope_low = 0.0
        self._slope_high = 0.0

    def calculate(self) -> None:
        """Compute the slopes of the piecewise-linear power profile."""
        power = self.spec.power
        self._slope_low = _divide(power.mid_power - power.idle, power.mid_util)
        self._slope_high = _divide(power.full - power.mid_power, 1 - power.mid_util)

    def power(self, util: float) -> float:
        """Power consumption (Watts) at the given utilization."""
        power = self.spec.power
        if util <= power.mid_util:
            return power.idle + self._slope_low * util
        return power.mid_power + self._slope_high * (util - power.mid_util)

    @property
    def type(self) -> str:
        return self.spec.type

    @property
    def cost(self) -> float:
        return self.spec.cost

    @property
    def multiplicity(self) -> int:
        return self.spec.multiplicity

    @property
    def mem_size(self) -> int:
        return self.spec.mem_size

    def __str__(self) -> str:
        s = self.spec
        p = s.power
        return (
            f"Accelerator: name={self.name}; type={s.type}; multiplicity={s.multiplicity}; "
            f"memSize={s.mem_size}; memBW={s.mem_bw}; cost={_fmt(s.cost)}; "
            f"power={{ {p.idle}, {p.full}, {p.mid_power} @ {_fmt(p.mid_util)} }}"
        )