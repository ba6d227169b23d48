import json

import pytest

from inferno.specs import (
    AcceleratorCount,
    AcceleratorSpec,
    AllocationData,
    AllocationSolution,
    CapacityData,
    PowerSpec,
    ServerLoadSpec,
    ServiceClassSpec,
    SpecError,
    SystemData,
    from_data_to_spec,
    from_json,
    to_json,
)


def _a100():
    return AcceleratorSpec(
        name="A100",
        type="A100",
        multiplicity=1,
        mem_size=80,
        mem_bw=2039,
        power=PowerSpec(idle=150, full=400, mid_power=320, mid_util=0.6),
        cost=40.0,
    )


def test_accelerator_spec_round_trip():
    spec = _a100()
    assert from_json(AcceleratorSpec, to_json(spec)) == spec


def test_to_json_uses_wire_names():
    data = to_json(ServiceClassSpec(name="Premium", model="llama", priority=1, slo_itl=40, slo_ttw=500))
    assert set(data) == {"name", "model", "priority", "slo-itl", "slo-ttw", "slo-tps"}
    assert data["slo-itl"] == 40
    assert to_json(_a100())["power"]["midPower"] == 320


def test_missing_fields_take_zero_values():
    spec = from_data_to_spec(b'{"name": "L4"}', AcceleratorSpec)
    assert spec == AcceleratorSpec(name="L4")
    assert spec.power == PowerSpec()


def test_unknown_fields_ignored_and_keys_match_case_insensitively():
    spec = from_data_to_spec('{"NAME": "x", "extra": 1, "memsize": 24}', AcceleratorSpec)
    assert spec.name == "x"
    assert spec.mem_size == 24


def test_null_document_gives_default():
    assert from_data_to_spec("null", CapacityData) == CapacityData()


def test_nested_system_data():
    raw = json.dumps(
        {
            "system": {
                "acceleratorData": {
                    "accelerators": [{"name": "A100", "type": "A100", "multiplicity": 1, "cost": 40}]
                },
                "capacityData": {"count": [{"type": "A100", "count": 4}]},
                "optimizerData": {"optimizer": {"unlimited": True}},
            }
        }
    )
    data = from_data_to_spec(raw, SystemData)
    assert data.spec.accelerators.spec[0].cost == 40
    assert data.spec.capacity.count == [AcceleratorCount(type="A100", count=4)]
    assert data.spec.optimizer.spec.unlimited is True
    assert data.spec.servers.spec == []


def test_allocation_solution_round_trip_through_text():
    solution = AllocationSolution(
        spec={
            "srv": AllocationData(
                accelerator="A100",
                num_replicas=2,
                max_batch=8,
                cost=80.0,
                load=ServerLoadSpec(arrival_rate=60.0, avg_length=512),
            )
        }
    )
    text = json.dumps(to_json(solution))
    assert from_data_to_spec(text, AllocationSolution) == solution
    assert "allocations" in json.loads(text)


@pytest.mark.parametrize(
    "raw, spec_type",
    [
        ('{"count": [{"type": "A100", "count": "four"}]}', CapacityData),
        ('{"multiplicity": 1.5}', AcceleratorSpec),
        ('{"name": 3}', AcceleratorSpec),
        ("[1, 2]", AcceleratorSpec),
        ("not json", AcceleratorSpec),
        ('{"count": {"type": "A100"}}', CapacityData),
    ],
)
def test_bad_data_raises(raw, spec_type):
    with pytest.raises(SpecError):
        from_data_to_spec(raw, spec_type)


def test_from_json_rejects_non_spec_type():
    with pytest.raises(TypeError):
        from_json(dict, {})


def test_to_json_converts_lists_and_dicts_of_specs():
    data = to_json({"a": [AcceleratorCount(type="L4", count=2)]})
    assert data == {"a": [{"type": "L4", "count": 2}]}


def test_integer_accepted_for_float_field():
    load = from_data_to_spec('{"arrivalRate": 30, "avgLength": 256}', ServerLoadSpec)
    assert load.arrival_rate == 30.0
    assert isinstance(load.arrival_rate, float)
    assert load.avg_length == 256