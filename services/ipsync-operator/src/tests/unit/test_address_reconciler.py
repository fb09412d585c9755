import ipaddress

import pytest

from managed_exceptions import FailedPreconditionException, InvalidArgumentException, ItemNotFoundException
from ipsync.models import AddrStatus, NodeAddress, ReconcilerState
from ipsync.services.reconciliation import AddressReconciler

A = ipaddress.ip_address("8.8.8.8")
B = ipaddress.ip_address("1.1.1.1")
C = ipaddress.ip_address("9.9.9.9")
D = ipaddress.ip_address("2606:4700:4700::1111")

HOSTNAME = NodeAddress(address="node-1", type="Hostname")
INTERNAL = NodeAddress(address="10.0.0.5", type="InternalIP")


def _externals(addresses):
    return [ipaddress.ip_address(entry.address) for entry in addresses if entry.type == "ExternalIP"]


def test_construction_reads_live_addresses(cluster_api):
    reconciler = AddressReconciler(cluster_api, "node-1")

    assert reconciler.state == ReconcilerState.FRESH
    assert reconciler.external_addresses == [A, B]
    assert reconciler.foreign == frozenset({A, B})
    assert reconciler.applied == frozenset()
    assert cluster_api.get_calls == ["node-1"]


def test_stage_then_apply_without_purge(cluster_api, external_address):
    reconciler = AddressReconciler(cluster_api, "node-1")
    reconciler.stage(B)
    reconciler.stage("9.9.9.9")
    assert reconciler.state == ReconcilerState.STAGED

    statuses = reconciler.apply()

    assert statuses == {B: AddrStatus.SKIPPED, A: AddrStatus.SKIPPED, C: AddrStatus.NEW}
    assert cluster_api.nodes["node-1"] == [HOSTNAME, INTERNAL, external_address("8.8.8.8"), external_address("1.1.1.1"), external_address("9.9.9.9")]
    assert len(cluster_api.patch_calls) == 1
    assert cluster_api.patch_calls[0][2] is False
    assert reconciler.state == ReconcilerState.APPLIED
    assert reconciler.staged == frozenset()


def test_stage_then_apply_with_purge(cluster_api, external_address):
    reconciler = AddressReconciler(cluster_api, "node-1", purge=True)
    reconciler.stage(B)
    reconciler.stage(C)

    statuses = reconciler.apply()

    assert statuses == {B: AddrStatus.SKIPPED, A: AddrStatus.REMOVED, C: AddrStatus.NEW}
    assert cluster_api.nodes["node-1"] == [HOSTNAME, INTERNAL, external_address("1.1.1.1"), external_address("9.9.9.9")]
    assert reconciler.applied == frozenset({B, C})


def test_apply_is_idempotent(cluster_api):
    reconciler = AddressReconciler(cluster_api, "node-1")
    reconciler.stage(B)
    reconciler.stage(C)
    reconciler.apply()

    reconciler.stage(B)
    reconciler.stage(C)
    statuses = reconciler.apply()

    assert len(cluster_api.patch_calls) == 1
    assert statuses == {B: AddrStatus.SKIPPED, A: AddrStatus.SKIPPED, C: AddrStatus.SKIPPED}
    assert reconciler.state == ReconcilerState.FRESH


def test_apply_without_changes_sends_no_patch(cluster_api):
    reconciler = AddressReconciler(cluster_api, "node-1")
    reconciler.stage(A)

    statuses = reconciler.apply()

    assert cluster_api.patch_calls == []
    assert statuses == {B: AddrStatus.SKIPPED, A: AddrStatus.SKIPPED}


def test_apply_with_nothing_staged_fails_without_purge(cluster_api):
    reconciler = AddressReconciler(cluster_api, "node-1")

    with pytest.raises(FailedPreconditionException):
        reconciler.apply()

    assert cluster_api.get_calls == ["node-1"]
    assert cluster_api.patch_calls == []
    assert _externals(cluster_api.nodes["node-1"]) == [A, B]


def test_apply_with_nothing_staged_and_purge_removes_everything(cluster_api):
    reconciler = AddressReconciler(cluster_api, "node-1", purge=True)

    statuses = reconciler.apply()

    assert statuses == {B: AddrStatus.REMOVED, A: AddrStatus.REMOVED}
    assert cluster_api.nodes["node-1"] == [HOSTNAME, INTERNAL]


def test_apply_reads_live_state(cluster_api, external_address):
    reconciler = AddressReconciler(cluster_api, "node-1")
    cluster_api.nodes["node-1"].append(external_address("9.9.9.9"))
    reconciler.stage(C)

    statuses = reconciler.apply()

    # Already on the node, nothing to send
    assert statuses[C] == AddrStatus.NEW
    assert cluster_api.patch_calls == []


def test_dry_run_never_persists(cluster_api):
    reconciler = AddressReconciler(cluster_api, "node-1", dry_run=True, purge=True)
    reconciler.stage(C)

    statuses = reconciler.apply()

    assert statuses == {B: AddrStatus.REMOVED, A: AddrStatus.REMOVED, C: AddrStatus.NEW}
    assert cluster_api.patch_calls[0][2] is True
    assert _externals(cluster_api.nodes["node-1"]) == [A, B]
    assert cluster_api.get_calls == ["node-1"]
    assert reconciler.external_addresses == [A, B]
    assert reconciler.state == ReconcilerState.FRESH


def test_refresh_forgets_addresses_removed_elsewhere(cluster_api, external_address):
    reconciler = AddressReconciler(cluster_api, "node-1")
    reconciler.stage(C)
    reconciler.apply()
    assert C in reconciler.applied

    cluster_api.nodes["node-1"] = [HOSTNAME, INTERNAL, external_address("8.8.8.8"), external_address(str(D))]
    reconciler.refresh()

    assert reconciler.applied == frozenset({A})
    assert reconciler.foreign == frozenset({D})

    # Re-adding a forgotten address is reported as new again
    reconciler.stage(C)
    assert reconciler.apply()[C] == AddrStatus.NEW


def test_purge_unstaged_keeps_applied_addresses(cluster_api, external_address):
    reconciler = AddressReconciler(cluster_api, "node-1")
    reconciler.stage(C)
    reconciler.apply()
    cluster_api.nodes["node-1"].append(external_address(str(D)))

    removed = reconciler.purge_unstaged()

    assert removed == [D]
    assert _externals(cluster_api.nodes["node-1"]) == [A, B, C]


def test_purge_unstaged_without_prior_apply_strips_foreign(cluster_api):
    reconciler = AddressReconciler(cluster_api, "node-1")
    reconciler.stage(A)

    removed = reconciler.purge_unstaged()

    assert removed == [B]
    assert _externals(cluster_api.nodes["node-1"]) == [A]


def test_other_address_types_pass_through(cluster_api):
    cluster_api.nodes["node-1"] = [
        NodeAddress(address="node-1.example", type="InternalDNS"),
        NodeAddress(address="not-an-ip", type="ExternalIP"),
        HOSTNAME,
    ]
    reconciler = AddressReconciler(cluster_api, "node-1", purge=True)
    reconciler.stage(C)

    reconciler.apply()

    assert cluster_api.nodes["node-1"][:3] == [
        NodeAddress(address="node-1.example", type="InternalDNS"),
        NodeAddress(address="not-an-ip", type="ExternalIP"),
        HOSTNAME,
    ]
    assert cluster_api.nodes["node-1"][3:] == [NodeAddress(address="9.9.9.9", type="ExternalIP")]


def test_staged_addresses_are_appended_in_order(cluster_api):
    reconciler = AddressReconciler(cluster_api, "node-1", purge=True)
    reconciler.stage(D)
    reconciler.stage(C)
    reconciler.stage(B)

    reconciler.apply()

    assert _externals(cluster_api.nodes["node-1"]) == [B, C, D]


def test_stage_rejects_invalid_address(cluster_api):
    reconciler = AddressReconciler(cluster_api, "node-1")
    with pytest.raises(InvalidArgumentException):
        reconciler.stage("999.1.1.1")


def test_missing_node(cluster_api):
    with pytest.raises(ItemNotFoundException):
        AddressReconciler(cluster_api, "ghost")


def test_empty_node_name(cluster_api):
    with pytest.raises(InvalidArgumentException):
        AddressReconciler(cluster_api, " ")
