from datetime import datetime

from rebootctl.modules.models import LifecycleState, NodeResult, NodeRole, RunOutcome
from rebootctl.modules.report import ReportMetadata, log_report, render_report, write_report

GENERATED = datetime(2024, 1, 2, 3, 4, 5)


def make_outcome(**kwargs):
    results = (
        NodeResult("worker-0", NodeRole.WORKER, LifecycleState.SUCCEEDED),
        NodeResult(
            "worker-1", NodeRole.WORKER, LifecycleState.FAILED,
            failed_phase=LifecycleState.AWAITING_READY,
            error="node did not become Ready after 30 attempts",
        ),
        NodeResult("worker-2", NodeRole.WORKER, LifecycleState.SKIPPED),
    )
    values = dict(
        total=3, succeeded=1, failed=1, skipped=1,
        failed_nodes=("worker-1",), skipped_nodes=("worker-2",), results=results,
    )
    values.update(kwargs)
    return RunOutcome(**values)


def metadata(**kwargs):
    values = dict(
        version="1.2.0", role="worker", parallel_count=2, runtime="1m 5s",
        command="rebootctl reboot nodes -t worker", generated_at=GENERATED,
    )
    values.update(kwargs)
    return ReportMetadata(**values)


def test_render_report_contents():
    text = render_report(make_outcome(), metadata())

    assert "Total nodes processed:  3" in text
    assert "Success rate:           50%" in text
    assert "Failed nodes:           worker-1" in text
    assert "Skipped node names:     worker-2" in text
    assert "worker-1 [AwaitingReady]: node did not become Ready" in text
    assert "Tool version: 1.2.0" in text
    assert "Command used: rebootctl reboot nodes -t worker" in text
    assert "Node role: worker" in text
    assert "Parallel count: 2" in text
    assert "Dry run: no" in text
    assert "Runtime: 1m 5s" in text
    assert "Run aborted" not in text


def test_render_report_for_aborted_run():
    outcome = make_outcome(completed=False, abort_reason="interrupted", remediation_nodes=("worker-1",))
    text = render_report(outcome, metadata(role=None, node_name="worker-1", dry_run=True))

    assert "Run aborted:            interrupted" in text
    assert "Left cordoned (manual): worker-1" in text
    assert "Node name: worker-1" in text
    assert "Node role" not in text
    assert "Dry run: yes" in text


def test_write_report_uses_timestamped_name(tmp_path):
    path = write_report(make_outcome(), metadata(), str(tmp_path / "reports"))

    assert path.name == "reboot-report-20240102-030405.txt"
    assert path.read_text() == render_report(make_outcome(), metadata())


def test_log_report(caplog):
    caplog.set_level("INFO", logger="rebootctl")
    log_report(make_outcome())

    assert "Reboot Status Report" in caplog.text
    assert "Successfully rebooted:  1" in caplog.text
    assert "worker-1: node did not become Ready after 30 attempts (AwaitingReady)" in caplog.text
