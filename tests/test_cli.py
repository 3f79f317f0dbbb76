"""Tests for the click entry point."""

import re

from click.testing import CliRunner

from kudu_exporter.main import cli


def test_fetchers_lists_builtins():
    result = CliRunner().invoke(cli, ["fetchers"])
    assert result.exit_code == 0
    assert {"kudu", "mock", "prometheus"} <= set(result.output.split())


def test_once_with_mock_fetcher():
    result = CliRunner().invoke(
        cli, ["--fetcher", "mock", "--node", "sim-1:8050", "--node", "sim-2:8050", "once", "--show-metrics"]
    )
    assert result.exit_code == 0, result.output
    assert "sim-1:8050" in result.output
    assert "OK" in result.output
    assert "Last success" in result.output
    assert re.search(r"sim-1:8050.*\d\d:\d\d:\d\d", result.output)
    assert 'kudu_rows_inserted{node="sim-2:8050"' in result.output
    assert "kudu_exporter_nodes_reporting 2.0" in result.output


def test_once_reports_failed_node():
    result = CliRunner().invoke(cli, ["--node", "127.0.0.1:1", "--timeout", "0.5", "once"])
    assert result.exit_code == 1
    assert "FAILED" in result.output


def test_no_nodes_is_usage_error():
    result = CliRunner().invoke(cli, [])
    assert result.exit_code == 2
    assert "no nodes configured" in result.output


def test_unknown_fetcher_is_usage_error():
    result = CliRunner().invoke(cli, ["--node", "a:8050", "--fetcher", "bogus", "once"])
    assert result.exit_code == 2
    assert "unknown fetcher" in result.output


def test_nodes_file(tmp_path):
    nodes = tmp_path / "nodes.txt"
    nodes.write_text("# sims\nsim-1:8050\nsim-2:8050\n")
    result = CliRunner().invoke(cli, ["--fetcher", "mock", "--nodes-file", str(nodes), "once"])
    assert result.exit_code == 0, result.output
    assert "sim-2:8050" in result.output


def test_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "kudu-exporter" in result.output


def test_malformed_plugin_path_is_usage_error():
    result = CliRunner().invoke(cli, ["--node", "a:8050", "--fetcher", ":Foo", "once"])
    assert result.exit_code == 2
    assert "Traceback" not in result.output
