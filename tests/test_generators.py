import json

from inferno.generators import ACCELERATOR_NAMES, MODEL_NAMES, generate_model_data, main
from inferno.specs import ModelData, from_data_to_spec


def test_one_entry_per_model_and_accelerator():
    data = generate_model_data()
    assert len(data.perf_data) == len(MODEL_NAMES) * len(ACCELERATOR_NAMES)
    pairs = {(p.name, p.acc) for p in data.perf_data}
    assert len(pairs) == len(data.perf_data)


def test_models_vary_slowest():
    data = generate_model_data()
    names = [p.name for p in data.perf_data]
    block = len(ACCELERATOR_NAMES)
    assert names[:block] == [MODEL_NAMES[0]] * block
    assert [p.acc for p in data.perf_data[:block]] == list(ACCELERATOR_NAMES)


def test_first_entry_values():
    first = generate_model_data().perf_data[0]
    assert first.name == "granite_13b"
    assert first.acc == "AIU2"
    assert first.alpha == 205.80
    assert first.beta == 4.10
    assert first.max_batch_size == 51
    assert first.acc_count == 1
    assert first.at_tokens == 512


def test_accelerator_count_for_large_model():
    data = generate_model_data()
    entry = next(p for p in data.perf_data if p.name == "llama_70b" and p.acc == "2xA100")
    assert entry.acc_count == 2
    assert entry.max_batch_size == 10


def test_main_prints_round_trippable_json(capsys):
    assert main([]) == 0
    out = capsys.readouterr().out.strip()
    parsed = json.loads(out)
    assert len(parsed["models"]) == len(MODEL_NAMES) * len(ACCELERATOR_NAMES)
    assert parsed["models"][0]["maxBatchSize"] == 51
    restored = from_data_to_spec(out.encode(), ModelData)
    assert restored == generate_model_data()