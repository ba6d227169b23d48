"""Demonstrations of the optimizer on sample data directories."""

from __future__ import annotations

import argparse
import json
import math
import random
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

from inferno.allocation import Allocation
from inferno.manager import Manager
from inferno.optimizer import Optimizer
from inferno.solver import SolverError
from inferno.specs import (
    AcceleratorData,
    AllocationSolution,
    CapacityData,
    ModelData,
    OptimizerData,
    ServerData,
    ServerLoadSpec,
    ServiceClassData,
    SpecError,
    from_data_to_spec,
    to_json,
)
from inferno.system import System

ACCELERATOR_FILE_NAME = "accelerator-data.json"
CAPACITY_FILE_NAME = "capacity-data.json"
MODEL_FILE_NAME = "model-data.json"
SERVICE_CLASS_FILE_NAME = "serviceclass-data.json"
SERVER_FILE_NAME = "server-data.json"
OPTIMIZER_FILE_NAME = "optimizer-data.json"
SOLUTION_FILE_NAME = "solution-data.json"

DEFAULT_SIZE = "large"
DEFAULT_SAMPLES_ROOT = "../../samples"
DEFAULT_SCALE_SERVER = "Premium-llama3_8b"
DEFAULT_TRANSITION_ALPHA = 0.1

ARRIVAL_SCALE_FACTOR = 2.5
LENGTH_SCALE_FACTOR = 1.5

T = TypeVar("T")


class DemoError(RuntimeError):
    """Raised when a demonstration cannot proceed."""


@dataclass
class ScaleResult:
    """Allocations of a server before and after its load changed."""

    before: Allocation
    scaled: Allocation | None
    increment: int
    reallocated: Allocation | None
    accelerator: str


def _read(directory: Path, file_name: str, spec_type: type[T]) -> T:
    return from_data_to_spec((directory / file_name).read_bytes(), spec_type)


def load_system(directory: str | Path) -> tuple[System, Optimizer]:
    """Build a system and an optimizer from the sample files of a directory."""
    path = Path(directory)
    system = System()
    system.set_accelerators_from_spec(_read(path, ACCELERATOR_FILE_NAME, AcceleratorData))
    system.set_capacity_from_spec(_read(path, CAPACITY_FILE_NAME, CapacityData))
    system.set_models_from_spec(_read(path, MODEL_FILE_NAME, ModelData))
    system.set_service_classes_from_spec(_read(path, SERVICE_CLASS_FILE_NAME, ServiceClassData))
    system.set_servers_from_spec(_read(path, SERVER_FILE_NAME, ServerData))
    optimizer = Optimizer(_read(path, OPTIMIZER_FILE_NAME, OptimizerData).spec)
    return system, optimizer


def _optimize(system: System, optimizer: Optimizer) -> None:
    manager = Manager(system, optimizer)
    system.calculate()
    manager.optimize()


def run_main(directory: str | Path) -> AllocationSolution:
    """Optimize the sample system and write the solution next to the samples."""
    system, optimizer = load_system(directory)
    _optimize(system, optimizer)
    solution = system.generate_solution()
    (Path(directory) / SOLUTION_FILE_NAME).write_text(
        json.dumps(to_json(solution), separators=(",", ":"))
    )
    print(system, end="")
    print(optimizer, end="")
    return solution


def run_scale(directory: str | Path, server_name: str = DEFAULT_SCALE_SERVER) -> ScaleResult:
    """Optimize, raise one server's load, then scale and reallocate it."""
    system, optimizer = load_system(directory)
    _optimize(system, optimizer)

    server = system.server(server_name)
    if server is None:
        raise DemoError(f"No server {server_name}")
    before = server.allocation
    if before is None:
        raise DemoError(f"No allocation for server {server_name}")
    load = server.load
    if load is None:
        raise DemoError(f"No model load data for server {server_name}")
    print("AllocBefore: ", before)

    server.load = ServerLoadSpec(
        arrival_rate=load.arrival_rate * ARRIVAL_SCALE_FACTOR,
        avg_length=int(load.avg_length * LENGTH_SCALE_FACTOR),
        arrival_cov=load.arrival_cov,
        service_cov=load.service_cov,
    )

    scaled, increment = before.scale(system, server_name)
    print("AllocAfter: ", scaled)
    print("Inc: ", increment)

    reallocated, accelerator = before.reallocate(system, server_name)
    print("AllocAfter: ", reallocated)
    print("gName: ", accelerator)
    return ScaleResult(
        before=before,
        scaled=scaled,
        increment=increment,
        reallocated=reallocated,
        accelerator=accelerator,
    )


def run_transition(
    directory: str | Path,
    alpha: float = DEFAULT_TRANSITION_ALPHA,
    rng: random.Random | None = None,
) -> System:
    """Optimize, perturb every server's load randomly, then optimize again.

    Loads are multiplied by random factors in [alpha, 2 - alpha).
    """
    rng = rng if rng is not None else random.Random()
    system, optimizer = load_system(directory)
    _optimize(system, optimizer)
    print(system, end="")
    print(optimizer, end="")

    for server in system.servers.values():
        load = server.load
        if load is None:
            continue
        factor_a = 2 * (rng.random() - 0.5) * (1 - alpha)
        new_rate = load.arrival_rate * (1 + factor_a)
        if new_rate <= 0:
            new_rate = 1.0
        factor_b = 2 * (rng.random() - 0.5) * (1 - alpha)
        new_length = math.ceil(load.avg_length * (1 + factor_b))
        if new_length <= 0:
            new_length = 1
        server.load = ServerLoadSpec(
            arrival_rate=new_rate,
            avg_length=new_length,
            arrival_cov=load.arrival_cov,
            service_cov=load.service_cov,
        )
        if server.cur_allocation is not None and server.allocation is not None:
            server.cur_allocation = server.allocation.clone()

    _optimize(system, optimizer)
    print(system, end="")
    print(optimizer, end="")
    return system


def main(argv: list[str] | None = None) -> int:
    """Run one of the demonstrations on a sample directory."""
    parser = argparse.ArgumentParser(description="Optimizer demonstrations.")
    parser.add_argument("demo", choices=("main", "scale", "transition"))
    parser.add_argument("size", nargs="?", default=DEFAULT_SIZE)
    parser.add_argument("--root", default=DEFAULT_SAMPLES_ROOT)
    parser.add_argument("--server", default=DEFAULT_SCALE_SERVER)
    parser.add_argument("--alpha", type=float, default=DEFAULT_TRANSITION_ALPHA)
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)

    directory = Path(args.root) / args.size
    try:
        if args.demo == "main":
            run_main(directory)
        elif args.demo == "scale":
            run_scale(directory, args.server)
        else:
            run_transition(directory, args.alpha, random.Random(args.seed))
    except (OSError, SpecError, SolverError, DemoError) as exc:
        print(exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())