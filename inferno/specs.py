"""Specification records exchanged as JSON, plus the tunable optimizer parameters."""

import json
import math
from collections.abc import Mapping
from dataclasses import MISSING, dataclass, field, fields, is_dataclass
from typing import Any, TypeVar, get_args, get_origin

# Tolerated percentile for SLOs.
SLO_PERCENTILE = 0.95
# Multiplier of the mean of an exponential distribution that reaches the percentile.
SLO_MARGIN = -math.log(1 - SLO_PERCENTILE)
# Small disturbance around a value.
DELTA = 0.001
# Maximum number of requests in the queueing system, as a multiple of the batch size.
MAX_QUEUE_TO_BATCH_RATIO = 10
# Accelerator transition penalty factor.
ACCEL_PENALTY_FACTOR = 0.1
DEFAULT_SERVICE_CLASS_NAME = "Free"
DEFAULT_SERVICE_CLASS_PRIORITY = 0
# Weight of class priority in the greedy limited solver.
PRIORITY_WEIGHT_FACTOR = 1.0
# Fraction below the maximum server throughput kept for stability.
STABILITY_SAFETY_FRACTION = 0.1

T = TypeVar("T")


class SpecError(ValueError):
    """Raised when JSON data does not fit a specification type."""


def _value(key: str, default: Any) -> Any:
    return field(default=default, metadata={"json": key})


def _nested(key: str, factory: Any) -> Any:
    return field(default_factory=factory, metadata={"json": key})


@dataclass
class PowerSpec:
    """Accelerator power consumption profile (Watts)."""

    idle: int = _value("idle", 0)
    full: int = _value("full", 0)
    mid_power: int = _value("midPower", 0)
    mid_util: float = _value("midUtil", 0.0)


@dataclass
class AcceleratorSpec:
    name: str = _value("name", "")
    type: str = _value("type", "")
    multiplicity: int = _value("multiplicity", 0)
    mem_size: int = _value("memSize", 0)
    mem_bw: int = _value("memBW", 0)
    power: PowerSpec = _nested("power", PowerSpec)
    cost: float = _value("cost", 0.0)


@dataclass
class AcceleratorData:
    spec: list[AcceleratorSpec] = _nested("accelerators", list)


@dataclass
class AcceleratorCount:
    type: str = _value("type", "")
    count: int = _value("count", 0)


@dataclass
class CapacityData:
    count: list[AcceleratorCount] = _nested("count", list)


@dataclass
class ModelAcceleratorPerfData:
    name: str = _value("name", "")
    acc: str = _value("acc", "")
    acc_count: int = _value("accCount", 0)
    alpha: float = _value("alpha", 0.0)
    beta: float = _value("beta", 0.0)
    max_batch_size: int = _value("maxBatchSize", 0)
    at_tokens: int = _value("atTokens", 0)


@dataclass
class ModelData:
    perf_data: list[ModelAcceleratorPerfData] = _nested("models", list)


@dataclass
class ServiceClassSpec:
    name: str = _value("name", "")
    model: str = _value("model", "")
    priority: int = _value("priority", 0)
    slo_itl: float = _value("slo-itl", 0.0)
    slo_ttw: float = _value("slo-ttw", 0.0)
    slo_tps: float = _value("slo-tps", 0.0)


@dataclass
class ServiceClassData:
    spec: list[ServiceClassSpec] = _nested("serviceClasses", list)


@dataclass
class ServerLoadSpec:
    arrival_rate: float = _value("arrivalRate", 0.0)
    avg_length: int = _value("avgLength", 0)
    arrival_cov: float = _value("arrivalCOV", 0.0)
    service_cov: float = _value("serviceCOV", 0.0)


@dataclass
class AllocationData:
    accelerator: str = _value("accelerator", "")
    num_replicas: int = _value("numReplicas", 0)
    max_batch: int = _value("maxBatch", 0)
    cost: float = _value("cost", 0.0)
    itl_average: float = _value("itlAverage", 0.0)
    wait_average: float = _value("waitAverage", 0.0)
    load: ServerLoadSpec = _nested("load", ServerLoadSpec)


@dataclass
class ServerSpec:
    name: str = _value("name", "")
    class_name: str = _value("class", "")
    model: str = _value("model", "")
    current_alloc: AllocationData = _nested("currentAlloc", AllocationData)
    desired_alloc: AllocationData = _nested("desiredAlloc", AllocationData)


@dataclass
class ServerData:
    spec: list[ServerSpec] = _nested("servers", list)


@dataclass
class OptimizerSpec:
    unlimited: bool = _value("unlimited", False)
    heterogeneous: bool = _value("heterogeneous", False)
    milp_solver: bool = _value("milpSolver", False)
    use_cplex: bool = _value("useCplex", False)


@dataclass
class OptimizerData:
    spec: OptimizerSpec = _nested("optimizer", OptimizerSpec)


@dataclass
class SystemSpec:
    accelerators: AcceleratorData = _nested("acceleratorData", AcceleratorData)
    models: ModelData = _nested("modelData", ModelData)
    service_classes: ServiceClassData = _nested("serviceClassData", ServiceClassData)
    servers: ServerData = _nested("serverData", ServerData)
    optimizer: OptimizerData = _nested("optimizerData", OptimizerData)
    capacity: CapacityData = _nested("capacityData", CapacityData)


@dataclass
class SystemData:
    spec: SystemSpec = _nested("system", SystemSpec)


@dataclass
class AllocationSolution:
    spec: dict[str, AllocationData] = _nested("allocations", dict)


def to_json(spec: Any) -> Any:
    """Convert a specification (or a list/dict of them) to JSON-ready data."""
    if is_dataclass(spec) and not isinstance(spec, type):
        return {f.metadata["json"]: to_json(getattr(spec, f.name)) for f in fields(spec)}
    if isinstance(spec, list):
        return [to_json(item) for item in spec]
    if isinstance(spec, dict):
        return {key: to_json(item) for key, item in spec.items()}
    return spec


def _zero(tp: Any) -> Any:
    origin = get_origin(tp)
    if origin is list:
        return []
    if origin is dict:
        return {}
    return tp()


def _decode(tp: Any, value: Any, where: str) -> Any:
    if value is None:
        return _zero(tp)
    origin = get_origin(tp)
    if origin is list:
        if not isinstance(value, list):
            raise SpecError(f"{where}: expected an array")
        (item_type,) = get_args(tp)
        return [_decode(item_type, item, f"{where}[{i}]") for i, item in enumerate(value)]
    if origin is dict:
        if not isinstance(value, Mapping):
            raise SpecError(f"{where}: expected an object")
        _, item_type = get_args(tp)
        return {key: _decode(item_type, item, f"{where}.{key}") for key, item in value.items()}
    if is_dataclass(tp):
        if not isinstance(value, Mapping):
            raise SpecError(f"{where}: expected an object")
        return _from_mapping(tp, value, where)
    if tp is bool:
        if not isinstance(value, bool):
            raise SpecError(f"{where}: expected a boolean")
        return value
    if tp is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise SpecError(f"{where}: expected an integer")
        return value
    if tp is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise SpecError(f"{where}: expected a number")
        return float(value)
    if tp is str:
        if not isinstance(value, str):
            raise SpecError(f"{where}: expected a string")
        return value
    raise SpecError(f"{where}: unsupported type {tp!r}")


def _lookup(data: Mapping[str, Any], key: str) -> Any:
    if key in data:
        return data[key]
    lowered = key.lower()
    for name, value in data.items():
        if isinstance(name, str) and name.lower() == lowered:
            return value
    return MISSING


def _from_mapping(spec_type: Any, data: Mapping[str, Any], where: str) -> Any:
    kwargs = {}
    for f in fields(spec_type):
        key = f.metadata["json"]
        value = _lookup(data, key)
        if value is MISSING:
            continue
        kwargs[f.name] = _decode(f.type, value, f"{where}.{key}" if where else key)
    return spec_type(**kwargs)


def from_json(spec_type: type[T], data: Mapping[str, Any]) -> T:
    """Build a specification of ``spec_type`` from decoded JSON data."""
    if not is_dataclass(spec_type):
        raise TypeError(f"{spec_type!r} is not a specification type")
    if not isinstance(data, Mapping):
        raise SpecError(f"expected an object for {spec_type.__name__}")
    return _from_mapping(spec_type, data, "")


def from_data_to_spec(raw: str | bytes, spec_type: type[T]) -> T:
    """Parse JSON text into a specification of ``spec_type``."""
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise SpecError(f"invalid JSON: {exc}") from exc
    if data is None:
        return spec_type()
    return from_json(spec_type, data)