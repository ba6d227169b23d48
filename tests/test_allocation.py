import pytest

from inferno.accelerator import Accelerator
from inferno.allocation import (
    Allocation,
    allocation_from_data,
    create_allocation,
    create_allocation_diff,
    create_allocation_ggm,
)
from inferno.model import Model
from inferno.server import Server
from inferno.serviceclass import ServiceClass
from inferno.specs import (
    ACCEL_PENALTY_FACTOR,
    AcceleratorSpec,
    AllocationData,
    ModelAcceleratorPerfData,
    ServerLoadSpec,
    ServerSpec,
    ServiceClassSpec,
)


class _System:
    def __init__(self):
        self.accelerators = {}
        self.models = {}
        self.service_classes = {}
        self.servers = {}

    def accelerator(self, name):
        return self.accelerators.get(name)

    def model(self, name):
        return self.models.get(name)

    def service_class(self, name):
        return self.service_classes.get(name)

    def server(self, name):
        return self.servers.get(name)


def _build(itl=40.0, ttw=500.0, tps=0.0, rate=60.0, length=512, cov=1.0):
    system = _System()
    for name, cost in (("A100", 40.0), ("L40S", 20.0), ("SLOW", 5.0)):
        system.accelerators[name] = Accelerator(
            AcceleratorSpec(name=name, type=name, multiplicity=1, cost=cost)
        )
    model = Model("llama")
    model.add_perf_data(ModelAcceleratorPerfData("llama", "A100", 1, 20.0, 0.4, 32, 512))
    model.add_perf_data(ModelAcceleratorPerfData("llama", "L40S", 2, 30.0, 0.2, 16, 512))
    model.add_perf_data(ModelAcceleratorPerfData("llama", "SLOW", 1, 60.0, 1.0, 8, 512))
    system.models["llama"] = model
    svc = ServiceClass("Premium", 1)
    svc.set_target(ServiceClassSpec("Premium", "llama", 1, itl, ttw, tps))
    system.service_classes["Premium"] = svc
    load = ServerLoadSpec(arrival_rate=rate, avg_length=length, arrival_cov=cov, service_cov=cov)
    spec = ServerSpec(name="srv", class_name="Premium", model="llama",
                      current_alloc=AllocationData(load=load))
    system.servers["srv"] = Server(spec)
    return system


def test_feasible_allocation_invariants():
    system = _build()
    alloc = create_allocation(system, "srv", "A100")
    assert alloc.accelerator == "A100"
    assert alloc.batch_size == 32
    assert alloc.value == alloc.cost
    assert alloc.cost == pytest.approx(40.0 * alloc.num_replicas)
    assert alloc.num_replicas * alloc.max_arrv_rate_per_replica >= 60.0 / 60 / 1000
    assert alloc.serv_time <= 40.0 * (1 + 1e-3)
    assert 0 < alloc.rho < 1


def test_num_instances_scale_cost():
    system = _build()
    alloc = create_allocation(system, "srv", "L40S")
    assert alloc.cost == pytest.approx(20.0 * 2 * alloc.num_replicas)


def test_unattainable_itl_is_infeasible():
    system = _build(itl=10.0)
    assert create_allocation(system, "srv", "A100") is None


def test_infeasible_accelerator_for_target():
    system = _build()
    assert create_allocation(system, "srv", "SLOW") is None


@pytest.mark.parametrize("server, acc", [("nope", "A100"), ("srv", "H100")])
def test_missing_entities(server, acc):
    system = _build()
    assert create_allocation(system, server, acc) is None


def test_zero_arrival_rate_is_infeasible():
    system = _build(rate=0.0)
    assert create_allocation(system, "srv", "A100") is None


def test_missing_target_is_infeasible():
    system = _build()
    system.service_classes["Premium"].remove_model_target("llama")
    assert create_allocation(system, "srv", "A100") is None


def test_more_load_needs_no_fewer_replicas():
    low = create_allocation(_build(rate=60.0), "srv", "A100")
    high = create_allocation(_build(rate=6000.0), "srv", "A100")
    assert high.num_replicas >= low.num_replicas
    assert high.num_replicas > 1


def test_throughput_target_drives_replicas():
    system = _build(itl=0.0, ttw=0.0, tps=5000.0)
    alloc = create_allocation(system, "srv", "A100")
    assert alloc.num_replicas * alloc.max_arrv_rate_per_replica >= 5000.0 / (1000 * 512)


def test_ggm_feasible_and_infeasible():
    alloc = create_allocation_ggm(_build(), "srv", "A100")
    assert alloc.accelerator == "A100"
    assert alloc.num_replicas >= 1
    assert alloc.serv_time == pytest.approx(20.0 + 0.4 * 32)
    assert create_allocation_ggm(_build(), "srv", "SLOW") is None
    assert create_allocation_ggm(_build(itl=0.0, ttw=0.0), "srv", "A100") is None


def test_transition_penalty():
    a = Allocation(accelerator="A100", num_replicas=1, cost=10.0)
    assert a.transition_penalty(Allocation(accelerator="A100", num_replicas=1, cost=99.0)) == 0.0
    same = Allocation(accelerator="A100", num_replicas=3, cost=30.0)
    assert a.transition_penalty(same) == pytest.approx(20.0)
    other = Allocation(accelerator="L40S", num_replicas=1, cost=30.0)
    assert a.transition_penalty(other) == pytest.approx(ACCEL_PENALTY_FACTOR * 40.0 + 20.0)


def test_clone_is_independent():
    a = create_allocation(_build(), "srv", "A100")
    b = a.clone()
    assert b == a
    b.value = -1.0
    assert a.value != b.value


def test_allocation_data_round_trip():
    a = create_allocation(_build(), "srv", "A100")
    back = allocation_from_data(a.allocation_data())
    assert back.accelerator == a.accelerator
    assert back.num_replicas == a.num_replicas
    assert back.batch_size == a.batch_size
    assert back.cost == a.cost
    assert back.serv_time == a.serv_time
    assert back.wait_time == a.wait_time


def test_allocation_diff():
    assert create_allocation_diff(None, None) is None
    new = Allocation(accelerator="A100", num_replicas=2, cost=5.0)
    diff = create_allocation_diff(None, new)
    assert diff.old_accelerator == "none"
    assert diff.new_num_replicas == 2
    assert str(diff) == "{ none -> A100, 0 -> 2, 5 }"
    gone = create_allocation_diff(new, None)
    assert gone.new_accelerator == "none"
    assert gone.cost_diff == -5.0


def test_scale_reports_increment():
    system = _build()
    before = create_allocation(system, "srv", "A100")
    system.servers["srv"].load = ServerLoadSpec(arrival_rate=6000.0, avg_length=512)
    after, inc = before.scale(system, "srv")
    assert inc == after.num_replicas - before.num_replicas
    assert inc > 0
    assert before.scale(system, "nope") == (None, 0)


def test_reallocate_picks_minimum_value():
    system = _build()
    alloc = create_allocation(system, "srv", "A100")
    best, name = alloc.reallocate(system, "srv")
    candidates = [create_allocation(system, "srv", n) for n in system.accelerators]
    values = [c.value for c in candidates if c is not None]
    assert best.value == min(values)
    assert name == best.accelerator


def test_reallocate_none_feasible():
    system = _build(itl=1.0)
    alloc = Allocation(accelerator="A100", num_replicas=1)
    assert alloc.reallocate(system, "srv") == (None, "")