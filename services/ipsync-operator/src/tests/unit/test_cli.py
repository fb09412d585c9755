"""CLI tests with the cluster and the observers replaced by fakes."""

import ipaddress
import signal

import pytest
import yaml
from typer.testing import CliRunner

from managed_exceptions import ConflictException
from ipsync import cli
from ipsync.cli import app
from ipsync.models import Observer

runner = CliRunner()


@pytest.fixture
def fakes(monkeypatch, cluster_api, observer_client_factory):
    client = observer_client_factory({observer: "9.9.9.9" for observer in Observer})
    monkeypatch.setattr(cli, "build_cluster_nodes_api", lambda config: cluster_api)
    monkeypatch.setattr(cli, "build_observer_client", lambda config: client)
    monkeypatch.setattr(signal, "signal", lambda signum, handler: None)
    return cluster_api, client


def _externals(addresses):
    return [ipaddress.ip_address(entry.address) for entry in addresses if entry.type == "ExternalIP"]


def test_help_command():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "ExternalIP" in result.stdout


def test_version_command():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "ipsync" in result.stdout


def test_observers_command():
    result = runner.invoke(app, ["observers"])
    assert result.exit_code == 0
    for observer in Observer:
        assert observer.value in result.stdout
    assert "Confirmation threshold with all observers: 4" in result.stdout


def test_observers_command_with_override():
    result = runner.invoke(app, ["observers", "--trust-factor", "httpbin=3"])
    assert result.exit_code == 0
    assert "Confirmation threshold with all observers: 6" in result.stdout


def test_observers_command_rejects_bad_trust_factor():
    result = runner.invoke(app, ["observers", "--trust-factor", "httpbin=7"])
    assert result.exit_code == 1


def test_probe_command(fakes):
    cluster_api, client = fakes
    result = runner.invoke(app, ["probe", "--disable", "httpbin"])

    assert result.exit_code == 0, result.output
    assert "9.9.9.9" in result.stdout
    assert "confirmed" in result.stdout
    assert Observer.HTTPBIN not in client.calls
    assert cluster_api.get_calls == []


def test_run_once(fakes):
    cluster_api, _ = fakes
    result = runner.invoke(app, ["run", "--node", "node-1", "--once"])

    assert result.exit_code == 0, result.output
    assert _externals(cluster_api.nodes["node-1"])[-1] == ipaddress.ip_address("9.9.9.9")


def test_run_once_strict_from_config_file(fakes, tmp_path):
    cluster_api, _ = fakes
    config_path = tmp_path / "ipsync.yaml"
    config_path.write_text(yaml.safe_dump({"ipsync": {"operator": {"node_name": "node-1", "strict": True}}}))

    result = runner.invoke(app, ["run", "--config", str(config_path), "--once"])

    assert result.exit_code == 0, result.output
    assert _externals(cluster_api.nodes["node-1"]) == [ipaddress.ip_address("9.9.9.9")]


def test_run_requires_node(fakes):
    result = runner.invoke(app, ["run", "--once"], env={"IPSYNC_NODE": ""})
    assert result.exit_code == 1


def test_run_rejects_short_interval(fakes):
    result = runner.invoke(app, ["run", "--node", "node-1", "--interval", "10s", "--once"])
    assert result.exit_code == 1


def test_run_exits_on_failed_cycle(fakes, monkeypatch):
    cluster_api, _ = fakes

    def conflict(node_name, addresses, dry_run):
        raise ConflictException("node changed")

    monkeypatch.setattr(cluster_api, "patch_node_addresses", conflict)
    result = runner.invoke(app, ["run", "--node", "node-1"])

    assert result.exit_code == 1


def test_purge_command(fakes):
    cluster_api, _ = fakes
    result = runner.invoke(app, ["purge", "--node", "node-1"])

    assert result.exit_code == 0, result.output
    assert "Removed: 1.1.1.1, 8.8.8.8" in result.stdout
    assert _externals(cluster_api.nodes["node-1"]) == [ipaddress.ip_address("9.9.9.9")]


def test_purge_dry_run_keeps_node(fakes):
    cluster_api, _ = fakes
    result = runner.invoke(app, ["purge", "--node", "node-1", "--dry-run"])

    assert result.exit_code == 0, result.output
    assert _externals(cluster_api.nodes["node-1"]) == [ipaddress.ip_address("8.8.8.8"), ipaddress.ip_address("1.1.1.1")]
    assert cluster_api.patch_calls[-1][2] is True
