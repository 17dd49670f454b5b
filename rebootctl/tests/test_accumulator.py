import threading

import pytest

from rebootctl.modules.accumulator import OutcomeAccumulator
from rebootctl.modules.errors import DuplicateOutcomeError
from rebootctl.modules.models import LifecycleState, NodeResult, NodeRole


def result(name, state, **kwargs):
    return NodeResult(node=name, role=NodeRole.WORKER, state=state, **kwargs)


def test_concurrent_records_are_all_counted():
    accumulator = OutcomeAccumulator()
    states = [LifecycleState.SUCCEEDED, LifecycleState.FAILED, LifecycleState.SKIPPED]
    start = threading.Barrier(30)

    def report(i):
        start.wait()
        accumulator.record(result(f"worker-{i}", states[i % 3]))

    threads = [threading.Thread(target=report, args=(i,)) for i in range(30)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    outcome = accumulator.summarize()
    assert outcome.total == 30
    assert outcome.succeeded == outcome.failed == outcome.skipped == 10
    assert outcome.succeeded + outcome.failed + outcome.skipped == outcome.total


def test_duplicate_outcome_rejected():
    accumulator = OutcomeAccumulator()
    accumulator.record(result("worker-0", LifecycleState.SUCCEEDED))
    with pytest.raises(DuplicateOutcomeError):
        accumulator.record(result("worker-0", LifecycleState.FAILED))
    assert accumulator.summarize().total == 1


def test_non_terminal_state_rejected():
    accumulator = OutcomeAccumulator()
    with pytest.raises(ValueError):
        accumulator.record(result("worker-0", LifecycleState.DRAINING))
    assert not accumulator.has_result("worker-0")


def test_summary_lists_nodes_in_record_order():
    accumulator = OutcomeAccumulator()
    accumulator.record(result("worker-1", LifecycleState.FAILED, needs_remediation=True))
    accumulator.record(result("worker-0", LifecycleState.SKIPPED))
    accumulator.record(result("worker-2", LifecycleState.FAILED))
    accumulator.record(result("worker-3", LifecycleState.SUCCEEDED))

    outcome = accumulator.summarize(completed=False, abort_reason="interrupted")
    assert outcome.failed_nodes == ("worker-1", "worker-2")
    assert outcome.skipped_nodes == ("worker-0",)
    assert outcome.remediation_nodes == ("worker-1",)
    assert [r.node for r in outcome.results] == ["worker-1", "worker-0", "worker-2", "worker-3"]
    assert outcome.success_rate == 33
    assert not outcome.completed
    assert outcome.abort_reason == "interrupted"
    assert accumulator.get("worker-3").state is LifecycleState.SUCCEEDED
