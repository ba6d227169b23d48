import json
import random

import pytest

from inferno.demo import (
    SOLUTION_FILE_NAME,
    DemoError,
    load_system,
    main,
    run_main,
    run_scale,
    run_transition,
)

SERVER = "Premium-llama"
RATE = 60.0
LENGTH = 512

_ALLOC = {
    "accelerator": "A100",
    "numReplicas": 1,
    "maxBatch": 32,
    "cost": 40.0,
    "itlAverage": 20.0,
    "waitAverage": 0.0,
    "load": {"arrivalRate": RATE, "avgLength": LENGTH, "arrivalCOV": 1.0, "serviceCOV": 1.0},
}

SAMPLES = {
    "accelerator-data.json": {
        "accelerators": [
            {
                "name": "A100",
                "type": "A100",
                "multiplicity": 1,
                "memSize": 80,
                "memBW": 2000,
                "power": {"idle": 150, "full": 400, "midPower": 320, "midUtil": 0.6},
                "cost": 40.0,
            }
        ]
    },
    "capacity-data.json": {"count": [{"type": "A100", "count": 64}]},
    "model-data.json": {
        "models": [
            {
                "name": "llama",
                "acc": "A100",
                "accCount": 1,
                "alpha": 20.58,
                "beta": 0.41,
                "maxBatchSize": 32,
                "atTokens": 512,
            }
        ]
    },
    "serviceclass-data.json": {
        "serviceClasses": [
            {"name": "Premium", "model": "llama", "priority": 1, "slo-itl": 40.0, "slo-ttw": 500.0, "slo-tps": 0.0}
        ]
    },
    "server-data.json": {
        "servers": [
            {
                "name": SERVER,
                "class": "Premium",
                "model": "llama",
                "currentAlloc": _ALLOC,
                "desiredAlloc": _ALLOC,
            }
        ]
    },
    "optimizer-data.json": {
        "optimizer": {"unlimited": True, "heterogeneous": False, "milpSolver": False, "useCplex": False}
    },
}


@pytest.fixture
def samples(tmp_path):
    for name, content in SAMPLES.items():
        (tmp_path / name).write_text(json.dumps(content))
    return tmp_path


def test_load_system_reads_all_files(samples):
    system, optimizer = load_system(samples)
    assert set(system.accelerators) == {"A100"}
    assert set(system.servers) == {SERVER}
    assert system.capacity("A100") == 64
    assert optimizer.spec.unlimited is True


def test_load_system_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_system(tmp_path)


def test_run_main_writes_solution(samples, capsys):
    solution = run_main(samples)
    assert set(solution.spec) == {SERVER}
    assert solution.spec[SERVER].accelerator == "A100"
    written = json.loads((samples / SOLUTION_FILE_NAME).read_text())
    assert written["allocations"][SERVER]["accelerator"] == "A100"
    assert written["allocations"][SERVER]["numReplicas"] == solution.spec[SERVER].num_replicas
    assert "Solution:" in capsys.readouterr().out


def test_run_scale_unknown_server(samples):
    with pytest.raises(DemoError):
        run_scale(samples, "nobody")


def test_run_scale_keeps_accelerator(samples):
    result = run_scale(samples, SERVER)
    assert result.before.accelerator == "A100"
    assert result.scaled is not None
    assert result.scaled.accelerator == result.before.accelerator
    assert result.increment == result.scaled.num_replicas - result.before.num_replicas
    assert result.increment >= 0
    assert result.accelerator == "A100"
    assert result.reallocated.accelerator == result.accelerator


def test_run_transition_perturbs_within_bounds(samples):
    alpha = 0.1
    system = run_transition(samples, alpha, random.Random(7))
    load = system.server(SERVER).load
    assert RATE * alpha <= load.arrival_rate <= RATE * (2 - alpha)
    assert 1 <= load.avg_length <= LENGTH * (2 - alpha) + 1


def test_run_transition_is_reproducible(samples):
    first = run_transition(samples, 0.1, random.Random(3)).server(SERVER).load
    second = run_transition(samples, 0.1, random.Random(3)).server(SERVER).load
    assert first.arrival_rate == second.arrival_rate
    assert first.avg_length == second.avg_length


def test_main_runs_main_demo(samples):
    assert main(["main", samples.name, "--root", str(samples.parent)]) == 0
    assert (samples / SOLUTION_FILE_NAME).exists()


def test_main_reports_missing_directory(tmp_path, capsys):
    assert main(["main", "absent", "--root", str(tmp_path)]) == 1
    assert "accelerator-data.json" in capsys.readouterr().out