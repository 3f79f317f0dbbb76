"""Tests for config validation and node list parsing."""

import pytest

from kudu_exporter.config import ExporterConfig, build_config, load_nodes
from kudu_exporter.errors import ConfigurationError


def test_valid_config_passes():
    config = build_config(["ts1:8050", "10.0.0.2:8050", "[::1]:8051"], interval=10, timeout=3)
    assert config.nodes == ("ts1:8050", "10.0.0.2:8050", "[::1]:8051")
    assert config.pending_limit == 2 * config.workers


def test_node_url():
    config = build_config(["ts1:8050"], scheme="https")
    assert config.node_url("ts1:8050") == "https://ts1:8050/metrics"
    assert config.node_url("ts1:8050", "/healthz") == "https://ts1:8050/healthz"


@pytest.mark.parametrize("nodes", [
    [],
    ["ts1"],
    ["ts1:0"],
    ["ts1:99999"],
    ["http://ts1:8050"],
    ["ts1:8050", "ts1:8050"],
])
def test_bad_node_lists_rejected(nodes):
    with pytest.raises(ConfigurationError):
        build_config(nodes)


@pytest.mark.parametrize("options", [
    {"interval": 0},
    {"timeout": -1},
    {"workers": 0},
    {"workers": 4, "queue_size": 2},
    {"backpressure": "grow"},
    {"capacity": 0},
    {"scheme": "ftp"},
    {"report_mode": "push"},
    {"report_mode": "textfile"},
    {"report_interval": 0},
])
def test_bad_options_rejected(options):
    with pytest.raises(ConfigurationError):
        build_config(["ts1:8050"], **options)


def test_config_is_immutable():
    config = build_config(["ts1:8050"])
    with pytest.raises(AttributeError):
        config.interval = 1


def test_load_nodes_mixed_separators_and_comments():
    text = """
    # tablet servers
    ts1:8050, ts2:8050
    ts3:8050   # rack b
    master1:8051
    """
    assert load_nodes(text) == ("ts1:8050", "ts2:8050", "ts3:8050", "master1:8051")


def test_load_nodes_empty():
    assert load_nodes("") == ()
    assert ExporterConfig(nodes=load_nodes("# nothing\n")).nodes == ()


def test_default_queue_covers_every_node():
    nodes = [f"ts{i}:8050" for i in range(20)]
    config = build_config(nodes, workers=8)
    assert config.pending_limit == 20


def test_queue_smaller_than_node_count_rejected():
    nodes = [f"ts{i}:8050" for i in range(5)]
    with pytest.raises(ConfigurationError, match="smaller than the 5 configured nodes"):
        build_config(nodes, workers=2, queue_size=4)
