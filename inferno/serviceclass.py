"""Service classes and their per-model SLO targets."""

from __future__ import annotations

from dataclasses import dataclass

from inferno.specs import DEFAULT_SERVICE_CLASS_PRIORITY, ServiceClassSpec


def _fmt(value: float) -> str:
    text = repr(float(value))
    return text[:-2] if text.endswith(".0") else text


@dataclass
class Target:
    """SLO targets: inter-token latency (msec), waiting time (msec), throughput (tokens/sec)."""

    itl: float = 0.0
    ttw: float = 0.0
    tps: float = 0.0

    def __str__(self) -> str:
        return f"[ITL={_fmt(self.itl)}, TTW={_fmt(self.ttw)}, TPS={_fmt(self.tps)}]"


class ServiceClass:
    """A named service class with a priority (lower is more important)."""

    def __init__(self, name: str, priority: int) -> None:
        self.name = name
        self.priority = priority if priority >= 0 else DEFAULT_SERVICE_CLASS_PRIORITY
        self._targets: dict[str, Target] = {}

    def set_target(self, spec: ServiceClassSpec) -> None:
        """Set or replace the targets of a model; specs of other classes are ignored."""
        if spec.name != self.name:
            return
        self._targets[spec.model] = Target(itl=spec.slo_itl, ttw=spec.slo_ttw, tps=spec.slo_tps)

    def model_target(self, model_name: str) -> Target | None:
        return self._targets.get(model_name)

    def remove_model_target(self, model_name: str) -> None:
        self._targets.pop(model_name, None)

    def spec(self) -> list[ServiceClassSpec]:
        return [
            ServiceClassSpec(
                name=self.name,
                model=model_name,
                priority=self.priority,
                slo_itl=target.itl,
                slo_ttw=target.ttw,
                slo_tps=target.tps,
            )
            for model_name, target in self._targets.items()
        ]

    def __str__(self) -> str:
        targets = " ".join(f"{model}:{target}" for model, target in sorted(self._targets.items()))
        return f"ServiceClass: name={self.name}; priority={self.priority}; targets=map[{targets}]"