"""Basic sanity checks for the mock Kudu generator and mock fetcher."""

from kudu_exporter.collector.mock_fetcher import MockFetchTask
from kudu_exporter.config import build_config
from kudu_exporter.mock.generator import MockKuduNode
from kudu_exporter.storage.memory_store import MetricStore


def _metric(entity, name):
    for metric in entity["metrics"]:
        if metric["name"] == name:
            return metric
    raise KeyError(name)


def test_entities_shape():
    entities = MockKuduNode(seed=1, tablets=4).entities(tick=10)

    assert entities[0]["type"] == "server"
    assert [e["type"] for e in entities[1:]] == ["tablet"] * 4
    assert _metric(entities[0], "tablets_num_running")["value"] == 4
    hist = _metric(entities[0], "handler_latency_kudu_tserver_TabletServerService_Write")
    assert hist["percentile_75"] <= hist["percentile_99"] <= hist["max"]


def test_counters_do_not_go_backwards():
    node = MockKuduNode(seed=3)
    earlier = node.entities(tick=5)
    later = node.entities(tick=6)

    for before, after in zip(earlier[1:], later[1:]):
        assert _metric(after, "rows_inserted")["value"] >= _metric(before, "rows_inserted")["value"]


def test_deterministic_for_same_seed_and_tick():
    assert MockKuduNode(seed=9).entities(7) == MockKuduNode(seed=9).entities(7)
    assert MockKuduNode(seed=9).entities(7) != MockKuduNode(seed=10).entities(7)


def test_mock_fetcher_stores_per_node():
    config = build_config(["sim-1:8050", "sim-2:8050"], fetcher="mock")
    store = MetricStore()

    MockFetchTask(0, config, store).run()
    MockFetchTask(1, config, store).run()

    assert len(store.get("sim-1:8050")) == 4
    tablet_ids = {r["labels"]["entity_id"] for r in store.get("sim-1:8050")}
    other_ids = {r["labels"]["entity_id"] for r in store.get("sim-2:8050")}
    assert tablet_ids != other_ids
