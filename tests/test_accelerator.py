import pytest

from inferno.accelerator import Accelerator
from inferno.specs import AcceleratorSpec, PowerSpec


def _spec():
    return AcceleratorSpec(
        name="A100-1",
        type="A100",
        multiplicity=2,
        mem_size=80,
        mem_bw=2039,
        power=PowerSpec(idle=150, full=400, mid_power=320, mid_util=0.6),
        cost=40.0,
    )


def _calculated():
    acc = Accelerator(_spec())
    acc.calculate()
    return acc


def test_power_at_profile_points():
    acc = _calculated()
    assert acc.power(0.0) == pytest.approx(150)
    assert acc.power(0.6) == pytest.approx(320)
    assert acc.power(1.0) == pytest.approx(400)


def test_power_is_monotone_in_utilization():
    acc = _calculated()
    values = [acc.power(u / 10) for u in range(11)]
    assert values == sorted(values)


def test_power_before_calculate_is_flat():
    acc = Accelerator(_spec())
    assert acc.power(0.3) == 150
    assert acc.power(0.9) == 320


def test_properties_come_from_spec():
    acc = Accelerator(_spec())
    assert acc.name == "A100-1"
    assert acc.type == "A100"
    assert acc.cost == 40.0
    assert acc.multiplicity == 2
    assert acc.mem_size == 80


def test_zero_mid_util_does_not_raise_on_calculate():
    spec = _spec()
    spec.power = PowerSpec(idle=100, full=300, mid_power=200, mid_util=0.0)
    acc = Accelerator(spec)
    acc.calculate()
    assert acc.power(1.0) == pytest.approx(300)


def test_str():
    assert str(Accelerator(_spec())) == (
        "Accelerator: name=A100-1; type=A100; multiplicity=2; memSize=80; memBW=2039; "
        "cost=40; power={ 150, 400, 320 @ 0.6 }"
    )