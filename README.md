# inferno

`inferno` decides which accelerator should run each LLM inference server, and
how many replicas it needs, so that every server meets the latency and
throughput objectives of its service class at the lowest cost.

Each combination of server and accelerator is analysed with a finite queue
whose service rate depends on how many requests are batched together
(`inferno.queueing.StateDependentQueue`). The analysis gives the highest
request rate one replica can take while it still meets the inter-token latency
(ITL), time-to-wait (TTW) and throughput (TPS) targets. From that rate the
package works out the replica count and the cost of the allocation. A solver
then picks one allocation per server:

- **unlimited**: every server gets its feasible allocation of least value;
- **limited**: a greedy, priority-weighted assignment that respects the number
  of units available for each accelerator type.

When a server already has a current allocation, the value of each candidate is
the cost of moving to it from the current one, so the solver does not change
accelerators without need.

## Installation

```
pip install .
```

To also install what the tests need:

```
pip install .[test]
```

## Input data

The system is described by JSON documents:

| Document             | Top-level key      | Contents                                                                      |
|----------------------|--------------------|-------------------------------------------------------------------------------|
| accelerator data     | `accelerators`     | name, type, multiplicity, memory, power profile, cost                         |
| capacity data        | `count`            | available units for each accelerator type                                     |
| model data           | `models`           | per model and accelerator: `alpha`, `beta`, `maxBatchSize`, `atTokens`, `accCount` |
| service class data   | `serviceClasses`   | name, priority, model, `slo-itl`, `slo-ttw`, `slo-tps`                        |
| server data          | `servers`          | name, class, model, current allocation with its load                          |
| optimizer data       | `optimizer`        | `unlimited`, `heterogeneous`, `milpSolver`, `useCplex`                        |

A single `system` document holds all of them, under the keys `acceleratorData`,
`modelData`, `serviceClassData`, `serverData`, `optimizerData` and
`capacityData`.

`inferno.specs` holds a dataclass for each of these documents, with
`from_json`, `from_data_to_spec` (from JSON text) and `to_json` to convert
between them and JSON data. Data that does not fit raises `SpecError`.

## Using the library

```python
import json
from pathlib import Path

from inferno.manager import Manager
from inferno.optimizer import Optimizer
from inferno.specs import SystemData, from_json, to_json
from inferno.system import System

data = from_json(SystemData, json.loads(Path("system.json").read_text()))

system = System()
optimizer_spec = system.set_from_spec(data.spec)
manager = Manager(system, Optimizer(optimizer_spec))

system.calculate()
manager.optimize()

solution = system.generate_solution()
print(json.dumps(to_json(solution), indent=2))
```

`manager.optimize()` raises `inferno.solver.SolverError` when the optimization
cannot be done. `system.generate_solution()` returns an `AllocationSolution`
that maps each server name to its `AllocationData`: accelerator, replica count,
maximum batch size, cost, expected average ITL and waiting time, and the load
the allocation was computed for.

`inferno.demo.load_system` builds a `System` and its `Optimizer` from a
directory holding `accelerator-data.json`, `capacity-data.json`,
`model-data.json`, `serviceclass-data.json`, `server-data.json` and
`optimizer-data.json`.

## Commands

### `inferno-optimizer`

Starts the optimizer as a REST server.

```
inferno-optimizer        # stateless: POST /optimizeOne plus read-only queries
inferno-optimizer -F     # stateful: the full set of set/add/get/remove calls
```

The address comes from `INFERNO_HOST` (all interfaces by default) and
`INFERNO_PORT` (default `8080`).

In stateless mode, `POST /optimizeOne` takes a whole `system` document, starts
from a fresh system, optimizes it and returns the allocation solution. The
`get*` calls then show the state of that system.

In stateful mode the system is built one call at a time: `setAccelerators`,
`addAccelerator`, `setCapacities`, `setCapacity`, `setModels`, `addModel/<name>`,
`setServiceClasses`, `addServiceClass/<name>/<priority>`,
`addServiceClassModelTarget`, `setServers`, `addServer`,
`addModelAcceleratorPerf`, the matching `get*` and `remove*` calls, and finally
`POST /optimize` with an optimizer spec. `GET /applyAllocation` makes the
desired allocation of every server its current one.

A body that is not valid for its document answers 400; an unknown name answers
404 with a `message`; a failed optimization answers 404 with
`optimization error: ...`.

### `inferno-generate-models`

Prints a model data document (`models`) built from the bundled table of
performance parameters, for a range of common models on many accelerator
configurations.

```
inferno-generate-models > model-data.json
```

### `inferno-demo`

```
inferno-demo {main,scale,transition} [size] [--root DIR] [--server NAME] [--alpha A] [--seed N]
```

Loads a system from `<root>/<size>` (defaults `../../samples` and `large`) and
optimizes it.

- `main` prints the solution and writes it to `solution-data.json` in that
  directory;
- `scale` raises the load of one server (`--server`, default
  `Premium-llama3_8b`) and works out a scaled and a reallocated allocation
  for it;
- `transition` perturbs every server's load at random (factors in
  `[alpha, 2 - alpha)`, `--seed` for repeatable runs) and optimizes again from
  the current allocations.

## What the package does not do

- It has no control loop: nothing here collects live load data from running
  servers or applies the chosen allocations to a cluster. It computes
  allocations, as a library or over the REST server, and leaves carrying them
  out to the caller.
- It has no MILP solver: an optimizer spec with `milpSolver` set makes the
  optimization fail with `SolverError`. The `heterogeneous` and `useCplex`
  settings are read but have no effect.

## Running the tests

```
pip install .[test]
pytest
```