"""Tests for the Prometheus text format parser and the Prometheus fetcher."""

import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from kudu_exporter.collector.prometheus_fetcher import PrometheusFetchTask
from kudu_exporter.collector.prometheus_parser import parse_labels, parse_prometheus_text, to_records
from kudu_exporter.config import build_config
from kudu_exporter.errors import FetchError
from kudu_exporter.storage.memory_store import MetricStore

SAMPLE_KUDU_OUTPUT = """\
# HELP kudu_tablets_num_running Number of tablets currently running
# TYPE kudu_tablets_num_running gauge
kudu_tablets_num_running{unit_type="tablets"} 214

# HELP kudu_rows_inserted Number of rows inserted into this tablet since service start
# TYPE kudu_rows_inserted counter
kudu_rows_inserted{unit_type="rows",table_name="events",tablet_id="a1"} 148329
kudu_rows_inserted{unit_type="rows",table_name="events",tablet_id="b2"} 52841

# HELP kudu_scan_duration Scan latency
# TYPE kudu_scan_duration histogram
kudu_scan_duration_bucket{le="0.01"} 5
kudu_scan_duration_bucket{le="+Inf"} 100
kudu_scan_duration_count 100
kudu_scan_duration_sum 4.5600
"""


def test_parse_labels():
    result = parse_labels('table_name="events",le="0.5"')
    assert result == {"table_name": "events", "le": "0.5"}


def test_parse_labels_with_escaped_quote():
    assert parse_labels(r'partition="RANGE (\"a\")"') == {"partition": 'RANGE ("a")'}


def test_parse_labels_escaped_backslash_before_n():
    # a\\n on the wire is a backslash followed by the letter n, not a newline
    assert parse_labels(r'path="a\\n"') == {"path": "a\\n"}
    assert parse_labels(r'msg="line1\nline2"') == {"msg": "line1\nline2"}


def test_parse_labels_empty():
    assert parse_labels("") == {}


def test_parse_families_and_types():
    families = parse_prometheus_text(SAMPLE_KUDU_OUTPUT)
    assert families["kudu_tablets_num_running"].metric_type == "gauge"
    assert families["kudu_rows_inserted"].metric_type == "counter"
    assert len(families["kudu_rows_inserted"].samples) == 2
    assert len(families["kudu_scan_duration"].samples) == 4
    assert families["kudu_scan_duration"].help_text == "Scan latency"


def test_typed_name_ending_in_suffix_is_kept_whole():
    families = parse_prometheus_text("# TYPE rpc_count gauge\nrpc_count 3\n")
    assert "rpc_count" in families
    assert families["rpc_count"].metric_type == "gauge"


def test_malformed_lines_skipped():
    families = parse_prometheus_text("good 1\nbad_no_value\nworse{a=\"b\"}\nnan_ok NaN\nbad not_a_number\n")
    assert set(families) == {"good", "nan_ok"}


def test_empty_input():
    assert parse_prometheus_text("") == {}


def test_handles_comments_and_blank_lines():
    text = """
    # This is a comment
    # HELP my_gauge A test gauge
    # TYPE my_gauge gauge
    my_gauge 42.5

    """
    families = parse_prometheus_text(text)
    assert families["my_gauge"].samples[0].value == 42.5


def test_to_records_groups_by_label_set():
    records = to_records(parse_prometheus_text(SAMPLE_KUDU_OUTPUT))
    by_tablet = {r["labels"].get("tablet_id"): r for r in records if "labels" in r}

    assert by_tablet["a1"]["kudu_rows_inserted"] == 148329
    assert by_tablet["b2"]["kudu_rows_inserted"] == 52841
    unlabelled = [r for r in records if "labels" not in r]
    assert unlabelled == [{"kudu_scan_duration_count": 100.0, "kudu_scan_duration_sum": 4.56}]


class _PrometheusHandler(BaseHTTPRequestHandler):
    def do_GET(self):
        if self.path != "/metrics_prometheus":
            self.send_response(404)
            self.end_headers()
            return
        body = SAMPLE_KUDU_OUTPUT.encode()
        self.send_response(200)
        self.send_header("Content-Type", "text/plain; version=0.0.4")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


def test_prometheus_fetcher_against_local_server():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _PrometheusHandler)
    threading.Thread(target=server.serve_forever, daemon=True).start()
    node = f"127.0.0.1:{server.server_address[1]}"
    store = MetricStore()
    try:
        config = build_config([node], fetcher="prometheus", timeout=2)
        PrometheusFetchTask(0, config, store).run()
    finally:
        server.shutdown()

    stored = store.get(node)
    assert stored is not None
    assert any(r.get("kudu_tablets_num_running") == 214 for r in stored)


def test_prometheus_fetcher_http_error():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _PrometheusHandler)
    threading.Thread(target=server.serve_forever, daemon=True).start()
    node = f"127.0.0.1:{server.server_address[1]}"
    try:
        task = PrometheusFetchTask(0, build_config([node], timeout=2), MetricStore())
        task.path = "/missing"
        with pytest.raises(FetchError):
            task.fetch()
    finally:
        server.shutdown()
