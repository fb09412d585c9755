"""Typer-based CLI entrypoint for the operator."""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import typer
from injector import CallableProvider, Injector, singleton
from loguru import logger
from prometheus_client import start_http_server
from rich.console import Console
from rich.table import Table

from managed_exceptions import ManagedException
from request_handler import RequestThreadPool
from ipsync import __version__
from ipsync.configs import OperatorConfig, load_config
from ipsync.logging import init_logging
from ipsync.models import ConfirmationReport, IpAddress
from ipsync.services.cluster import ClusterNodesApi, KubernetesNodesApi
from ipsync.services.confirmation import TrustAuthority
from ipsync.services.observers import ObserverClient, ObserverRegistry
from ipsync.services.operator import OperatorScheduler, ReconciliationCycleService
from ipsync.utils import AddressUtil


console = Console()
app = typer.Typer(
    help="Keep the ExternalIP addresses of a Kubernetes node in sync with its public IP.",
    no_args_is_help=True,
    pretty_exceptions_enable=False,
)

CONFIG_OPTION = typer.Option(None, "--config", envvar="IPSYNC_CONFIG", help="YAML file with an ipsync.operator section.")
NODE_OPTION = typer.Option(None, "--node", envvar="IPSYNC_NODE", help="Name of the node to manage.")
OBSERVER_OPTION = typer.Option(None, "--observer", help="Observer to ask (repeatable); defaults to all.")
DISABLE_OPTION = typer.Option(None, "--disable", envvar="IPSYNC_DISABLE", help="Observer to leave out (repeatable).")
TRUST_FACTOR_OPTION = typer.Option(None, "--trust-factor", help="Trust factor override as observer=weight (repeatable).")
CONFIRMATIONS_OPTION = typer.Option(None, "--confirmations", envvar="IPSYNC_CONFIRMATIONS", min=0, help="Confirmation threshold override.")
DEADLINE_OPTION = typer.Option(None, "--deadline", help="Deadline for all observers of a cycle, e.g. 20s.")
LOCAL_ADDRESS_OPTION = typer.Option(None, "--local-address", help="Local address observer calls bind to.")
DRY_RUN_OPTION = typer.Option(None, "--dry-run/--no-dry-run", help="Compute changes without persisting them.")
KUBECONFIG_OPTION = typer.Option(None, "--kubeconfig", help="Kubeconfig file to use.")
API_SERVER_OPTION = typer.Option(None, "--api-server", help="Kubernetes API server URL.")


@app.callback()
def main(
    ctx: typer.Context,
    log_level: str = typer.Option("INFO", "--log-level", envvar="IPSYNC_LOG_LEVEL", help="Logging level."),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Optional log file path."),
) -> None:
    """Initialize logging before executing any subcommand."""

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)

    target = log_file.expanduser().resolve() if log_file else None
    init_logging(target, log_level)


def build_cluster_nodes_api(config: OperatorConfig) -> ClusterNodesApi:
    return KubernetesNodesApi.from_config(config.kubernetes)


def build_observer_client(config: OperatorConfig) -> ObserverClient:
    return ObserverClient(timeout=config.request_timeout_seconds, local_address=config.local_address)


def build_injector(config: OperatorConfig) -> Injector:
    def configure_bindings(binder):
        binder.bind(OperatorConfig, to=config)
        binder.bind(ClusterNodesApi, to=CallableProvider(lambda: build_cluster_nodes_api(config)), scope=singleton)
        binder.bind(ObserverClient, to=CallableProvider(lambda: build_observer_client(config)), scope=singleton)

    return Injector([configure_bindings])


@app.command("version")
def version() -> None:
    """Print the CLI version."""

    console.print(f"ipsync {__version__}")


@app.command("observers")
def observers(
    trust_factor: Optional[List[str]] = TRUST_FACTOR_OPTION,
) -> None:
    """List the supported observers and their trust factors."""

    with _guarded():
        trust_authority = TrustAuthority(dict(TrustAuthority.parse_trust_factor(pair) for pair in trust_factor or []))
        table = Table(title="Observers")
        table.add_column("Observer")
        table.add_column("Endpoint")
        table.add_column("Default trust", justify="right")
        table.add_column("Trust", justify="right")
        for observer in ObserverRegistry.all():
            descriptor = ObserverRegistry.describe(observer)
            table.add_row(
                observer.value,
                f"{descriptor.request_method.value} {descriptor.request_uri}",
                str(TrustAuthority.default_trust_factor(observer)),
                str(trust_authority.trust_factor(observer)),
            )
        console.print(table)
        console.print(f"Confirmation threshold with all observers: {trust_authority.confirmation_threshold(ObserverRegistry.all())}")


@app.command("probe")
def probe(
    config_path: Optional[Path] = CONFIG_OPTION,
    observer: Optional[List[str]] = OBSERVER_OPTION,
    disable: Optional[List[str]] = DISABLE_OPTION,
    trust_factor: Optional[List[str]] = TRUST_FACTOR_OPTION,
    confirmations: Optional[int] = CONFIRMATIONS_OPTION,
    deadline: Optional[str] = DEADLINE_OPTION,
    local_address: Optional[str] = LOCAL_ADDRESS_OPTION,
) -> None:
    """Ask the observers once and print the consensus, without touching the cluster."""

    with _guarded():
        config = load_config(config_path, {
            "observers": _split(observer),
            "disabled_observers": _split(disable),
            "trust_factors": trust_factor or None,
            "confirmations": confirmations,
            "cycle_deadline_seconds": deadline,
            "local_address": local_address,
        })
        RequestThreadPool.init(max_workers=config.max_threads)
        cycle_service: ReconciliationCycleService = build_injector(config).get(ReconciliationCycleService)
        report: ConfirmationReport = asyncio.run(cycle_service.probe())
        _print_report(report)


@app.command("run")
def run(
    config_path: Optional[Path] = CONFIG_OPTION,
    node: Optional[str] = NODE_OPTION,
    observer: Optional[List[str]] = OBSERVER_OPTION,
    disable: Optional[List[str]] = DISABLE_OPTION,
    trust_factor: Optional[List[str]] = TRUST_FACTOR_OPTION,
    confirmations: Optional[int] = CONFIRMATIONS_OPTION,
    dry_run: Optional[bool] = DRY_RUN_OPTION,
    strict: Optional[bool] = typer.Option(None, "--strict/--no-strict", envvar="IPSYNC_STRICT", help="Remove ExternalIP addresses that are not confirmed."),
    interval: Optional[str] = typer.Option(None, "--interval", envvar="IPSYNC_INTERVAL", help="Time between cycles, e.g. 30s or 5m (minimum 30s)."),
    deadline: Optional[str] = DEADLINE_OPTION,
    local_address: Optional[str] = LOCAL_ADDRESS_OPTION,
    metrics_port: Optional[int] = typer.Option(None, "--metrics-port", envvar="IPSYNC_METRICS_PORT", help="Expose Prometheus metrics on this port."),
    kubeconfig: Optional[Path] = KUBECONFIG_OPTION,
    api_server: Optional[str] = API_SERVER_OPTION,
    once: bool = typer.Option(False, "--once", help="Run a single cycle and exit."),
) -> None:
    """Reconcile the node now and then once per interval until interrupted."""

    with _guarded():
        config = load_config(config_path, {
            "node_name": node,
            "observers": _split(observer),
            "disabled_observers": _split(disable),
            "trust_factors": trust_factor or None,
            "confirmations": confirmations,
            "dry_run": dry_run,
            "strict": strict,
            "interval_seconds": interval,
            "cycle_deadline_seconds": deadline,
            "local_address": local_address,
            "metrics_port": metrics_port,
            "kubernetes": {"kubeconfig": kubeconfig, "api_server": api_server},
        })
        node_name: str = config.require_node_name()
        RequestThreadPool.init(max_workers=config.max_threads)
        if config.metrics_port:
            start_http_server(config.metrics_port)
            logger.info("Serving metrics on port {}", config.metrics_port)

        injector: Injector = build_injector(config)
        server_version: str = injector.get(ClusterNodesApi).verify_connection()
        logger.info("Connected to Kubernetes {}, managing node {}", server_version, node_name)
        if config.dry_run:
            logger.warning("Dry run: changes are validated by the API server but never persisted")

        scheduler: OperatorScheduler = injector.get(OperatorScheduler)
        scheduler.install_signal_handlers()
        scheduler.run(max_cycles=1 if once else None)


@app.command("purge")
def purge(
    config_path: Optional[Path] = CONFIG_OPTION,
    node: Optional[str] = NODE_OPTION,
    observer: Optional[List[str]] = OBSERVER_OPTION,
    disable: Optional[List[str]] = DISABLE_OPTION,
    trust_factor: Optional[List[str]] = TRUST_FACTOR_OPTION,
    confirmations: Optional[int] = CONFIRMATIONS_OPTION,
    dry_run: Optional[bool] = DRY_RUN_OPTION,
    deadline: Optional[str] = DEADLINE_OPTION,
    local_address: Optional[str] = LOCAL_ADDRESS_OPTION,
    kubeconfig: Optional[Path] = KUBECONFIG_OPTION,
    api_server: Optional[str] = API_SERVER_OPTION,
) -> None:
    """Keep only the confirmed ExternalIP addresses of the node and remove the rest."""

    with _guarded():
        config = load_config(config_path, {
            "node_name": node,
            "observers": _split(observer),
            "disabled_observers": _split(disable),
            "trust_factors": trust_factor or None,
            "confirmations": confirmations,
            "dry_run": dry_run,
            "cycle_deadline_seconds": deadline,
            "local_address": local_address,
            "kubernetes": {"kubeconfig": kubeconfig, "api_server": api_server},
        })
        config.require_node_name()
        RequestThreadPool.init(max_workers=config.max_threads)
        cycle_service: ReconciliationCycleService = build_injector(config).get(ReconciliationCycleService)
        removed: List[IpAddress] = asyncio.run(cycle_service.purge())
        if removed:
            console.print("Removed: " + ", ".join(str(address) for address in removed))
        else:
            console.print("Nothing to remove")


@contextmanager
def _guarded() -> Iterator[None]:
    try:
        yield
    except ManagedException as e:
        logger.error("critical error: {}", e.message)
        raise typer.Exit(code=1) from e
    finally:
        RequestThreadPool.shutdown(wait=False)


def _split(values: Optional[List[str]]) -> Optional[List[str]]:
    if not values:
        return None
    return [part.strip() for value in values for part in value.split(",") if part.strip()]


def _print_report(report: ConfirmationReport) -> None:
    table = Table(title=f"Consensus (threshold {report.threshold})")
    table.add_column("Address")
    table.add_column("Weight", justify="right")
    table.add_column("Status")
    table.add_column("Observers")
    for address in sorted(report.weights, key=AddressUtil.sort_key):
        table.add_row(
            str(address),
            str(report.weights[address]),
            "confirmed" if address in report.confirmed else "unconfirmed",
            ", ".join(observer.value for observer in report.votes.get(address, ())),
        )
    console.print(table)
    for observer, error in report.failed.items():
        console.print(f"[red]{observer.value} failed:[/red] {error.message}")
