"""Inference models and their per-accelerator performance data."""

from __future__ import annotations

from inferno.specs import ModelAcceleratorPerfData, ModelData


class Model:
    """An inference model with performance data for a set of accelerators."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._perf_data: dict[str, ModelAcceleratorPerfData] = {}
        self._num_instances: dict[str, int] = {}

    def num_instances(self, accelerator_name: str) -> int:
        """Accelerator instances needed to fit the model; 0 if unknown."""
        return self._num_instances.get(accelerator_name, 0)

    def perf_data(self, accelerator_name: str) -> ModelAcceleratorPerfData | None:
        return self._perf_data.get(accelerator_name)

    def add_perf_data(self, spec: ModelAcceleratorPerfData) -> None:
        """Add or replace performance data; data for another model is ignored."""
        if spec.name != self.name:
            return
        self._perf_data[spec.acc] = spec
        self._num_instances[spec.acc] = spec.acc_count if spec.acc_count > 0 else 1

    def remove_perf_data(self, accelerator_name: str) -> None:
        self._perf_data.pop(accelerator_name, None)

    def spec(self) -> ModelData:
        return ModelData(perf_data=list(self._perf_data.values()))

    def __str__(self) -> str:
        counts = " ".join(f"{acc}:{n}" for acc, n in sorted(self._num_instances.items()))
        return f"Model: name={self.name}; numInstances=map[{counts}]"