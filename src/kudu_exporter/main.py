"""
kudu-exporter entry point.

Usage:
    kudu-exporter --node ts1:8050 --node ts2:8050      Serve /metrics on :9045
    kudu-exporter --nodes-file nodes.txt --mode textfile --textfile kudu.prom
    kudu-exporter --fetcher mock --node a:1 once       One cycle, print a summary
    kudu-exporter fetchers                             List fetcher selectors
"""

from __future__ import annotations

import logging
import signal
import threading
import time
from concurrent.futures import wait

import click

from kudu_exporter import __version__
from kudu_exporter.collector.registry import available_fetchers
from kudu_exporter.config import (
    BACKPRESSURE_POLICIES,
    DEFAULT_INTERVAL,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT,
    DEFAULT_WORKERS,
    REPORT_MODES,
    ExporterConfig,
    build_config,
    load_nodes,
)
from kudu_exporter.errors import ConfigurationError
from kudu_exporter.scheduler import FetchScheduler
from kudu_exporter.storage.memory_store import MetricStore

log = logging.getLogger("kudu_exporter")


def _build_config(ctx) -> ExporterConfig:
    opts = ctx.obj
    nodes = list(opts["nodes"])
    if opts["nodes_file"]:
        nodes.extend(load_nodes(opts["nodes_file"].read()))
    try:
        return build_config(
            nodes,
            interval=opts["interval"],
            fetcher=opts["fetcher"],
            timeout=opts["timeout"],
            workers=opts["workers"],
            queue_size=opts["queue_size"],
            backpressure=opts["backpressure"],
            capacity=opts["capacity"],
            metric_filter=opts["metric_filter"],
            scheme="https" if opts["https"] else "http",
            listen_host=opts["listen"],
            listen_port=opts["port"],
            report_mode=opts["mode"],
            textfile_path=opts["textfile"],
            report_interval=opts["report_interval"] or opts["interval"],
            metric_prefix=opts["prefix"],
        )
    except ConfigurationError as exc:
        raise click.UsageError(str(exc), ctx=ctx) from exc


def _prepare_scheduler(ctx, config: ExporterConfig, store: MetricStore) -> FetchScheduler:
    scheduler = FetchScheduler(config, store)
    try:
        scheduler.prepare()
    except ConfigurationError as exc:
        raise click.UsageError(str(exc), ctx=ctx) from exc
    return scheduler


@click.group(invoke_without_command=True, context_settings={"auto_envvar_prefix": "KUDU_EXPORTER"})
@click.version_option(version=__version__, prog_name="kudu-exporter")
@click.option("--node", "nodes", multiple=True, help="Kudu node host:port (repeatable)")
@click.option("--nodes-file", type=click.File("r"), default=None,
              help="File with one host:port per line ('#' comments allowed)")
@click.option("--interval", default=DEFAULT_INTERVAL, help="Seconds between fetch cycles")
@click.option("--fetcher", default="kudu", help="Fetcher selector or module:Class path")
@click.option("--timeout", default=DEFAULT_TIMEOUT, help="Per-node fetch timeout in seconds")
@click.option("--workers", default=DEFAULT_WORKERS, help="Fetch worker threads")
@click.option("--queue-size", type=int, default=None,
              help="Max fetches queued or running at once (default: max(2x workers, nodes))")
@click.option("--backpressure", type=click.Choice(BACKPRESSURE_POLICIES), default="drop",
              help="What to do when the worker pool is full")
@click.option("--capacity", type=int, default=None, help="Max distinct nodes held in the store")
@click.option("--metric-filter", default=None, help="Kudu ?metrics= filter, e.g. 'rows_,memory'")
@click.option("--https", is_flag=True, default=False, help="Talk to nodes over HTTPS")
@click.option("--listen", default="0.0.0.0", help="Address for the /metrics endpoint")
@click.option("--port", default=DEFAULT_PORT, help="Port for the /metrics endpoint")
@click.option("--mode", type=click.Choice(REPORT_MODES), default="serve",
              help="serve: HTTP /metrics; textfile: write a .prom file periodically")
@click.option("--textfile", default=None, help="Output path for --mode textfile")
@click.option("--report-interval", type=float, default=None,
              help="Seconds between textfile writes (default: --interval)")
@click.option("--prefix", default="kudu", help="Metric name prefix")
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging")
@click.pass_context
def cli(ctx, nodes, nodes_file, interval, fetcher, timeout, workers, queue_size, backpressure,
        capacity, metric_filter, https, listen, port, mode, textfile, report_interval, prefix,
        verbose):
    """kudu-exporter - Prometheus exporter for Apache Kudu."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    ctx.ensure_object(dict)
    ctx.obj.update(
        nodes=nodes, nodes_file=nodes_file, interval=interval, fetcher=fetcher,
        timeout=timeout, workers=workers, queue_size=queue_size, backpressure=backpressure,
        capacity=capacity, metric_filter=metric_filter, https=https, listen=listen,
        port=port, mode=mode, textfile=textfile, report_interval=report_interval,
        prefix=prefix,
    )

    if ctx.invoked_subcommand is None:
        run_exporter(ctx)


def run_exporter(ctx):
    """Start the fetch scheduler and reporter and block until interrupted."""
    from kudu_exporter.reporter.server import ReportServer, TextfileReporter

    config = _build_config(ctx)
    store = MetricStore(capacity=config.capacity)
    scheduler = _prepare_scheduler(ctx, config, store)

    if config.report_mode == "serve":
        try:
            reporter = ReportServer(store, config.listen_host, config.listen_port, config.metric_prefix)
        except OSError as exc:
            raise click.ClickException(f"cannot listen on {config.listen_host}:{config.listen_port}: {exc}")
    else:
        reporter = TextfileReporter(store, config.textfile_path, config.report_interval, config.metric_prefix)

    done = threading.Event()
    signal.signal(signal.SIGTERM, lambda signum, frame: done.set())

    reporter.start()
    scheduler.start()
    log.info("kudu-exporter %s running", __version__)

    try:
        while not done.wait(1.0):
            pass
    except KeyboardInterrupt:
        pass
    finally:
        log.info("Shutting down")
        scheduler.stop()
        reporter.stop()


@cli.command()
@click.option("--show-metrics", is_flag=True, default=False, help="Also print the rendered exposition")
@click.pass_context
def once(ctx, show_metrics):
    """Run a single fetch cycle and print per-node status."""
    from rich.console import Console
    from rich.table import Table

    from kudu_exporter.metrics import count_samples
    from kudu_exporter.reporter.exposition import render_store

    config = _build_config(ctx)
    store = MetricStore(capacity=config.capacity)
    scheduler = _prepare_scheduler(ctx, config, store)

    try:
        wait(scheduler.run_cycle(), timeout=config.timeout * 2 + 1)
    finally:
        scheduler.stop()

    console = Console()
    table = Table(show_header=True, header_style="bold")
    table.add_column("Node")
    table.add_column("Status", justify="center")
    table.add_column("Records", justify="right")
    table.add_column("Samples", justify="right")
    table.add_column("Last success", justify="right")

    for node_id in config.nodes:
        collection = store.get(node_id)
        if collection is None:
            table.add_row(node_id, "[red]FAILED[/red]", "-", "-", "-")
        else:
            fetched_at = time.strftime("%H:%M:%S", time.localtime(store.last_success(node_id)))
            table.add_row(
                node_id, "[green]OK[/green]", str(len(collection)), str(count_samples(collection)), fetched_at
            )
    console.print(table)

    if show_metrics:
        click.echo(render_store(store, config.metric_prefix), nl=False)

    if len(store) < len(config.nodes):
        raise SystemExit(1)


@cli.command()
def fetchers():
    """List the built-in fetcher selectors."""
    for name in available_fetchers():
        click.echo(name)


if __name__ == "__main__":
    cli()
