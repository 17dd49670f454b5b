import pytest

from rebootctl.modules import preflight
from rebootctl.modules.errors import PreflightError
from rebootctl.tests.conftest import RefusingGate, ScriptedGate


def test_session_check_returns_user(cluster):
    assert preflight.check_session(cluster) == "system:admin"


def test_session_without_permission_fails(cluster):
    cluster.allowed = False
    with pytest.raises(PreflightError, match="cluster-admin"):
        preflight.check_session(cluster)


def test_healthy_cluster_asks_nothing(cluster):
    preflight.check_cluster_health(cluster, RefusingGate())
    assert [c[0] for c in cluster.calls] == ["operators", "not-ready", "csrs"]


def test_degraded_operators_declined(cluster):
    cluster.degraded = ["authentication"]
    gate = ScriptedGate(confirm_answer=False)
    with pytest.raises(PreflightError, match="degraded operators"):
        preflight.check_cluster_health(cluster, gate)
    assert gate.prompts == ["Continue despite degraded operators?"]


def test_unready_nodes_accepted(cluster):
    cluster.unready = ["worker-3"]
    gate = ScriptedGate(confirm_answer=True)
    preflight.check_cluster_health(cluster, gate)
    assert gate.prompts == ["Continue despite unhealthy nodes?"]


def test_skip_prompts_continues_despite_problems(cluster):
    cluster.degraded = ["authentication"]
    cluster.unready = ["worker-3"]
    preflight.check_cluster_health(cluster, RefusingGate(), skip_prompts=True)


def test_pending_csrs_only_warn(cluster, caplog):
    cluster.csrs = ["csr-abc12"]
    preflight.check_cluster_health(cluster, RefusingGate())
    assert "csr-abc12" in caplog.text


def test_dry_run_checks_nothing(cluster):
    preflight.check_cluster_health(cluster, RefusingGate(), dry_run=True)
    preflight.ensure_debug_namespace(cluster, "debug", dry_run=True)
    assert cluster.calls == []


def test_ensure_debug_namespace(cluster):
    preflight.ensure_debug_namespace(cluster, "debug")
    assert cluster.calls == [("namespace", "debug")]
