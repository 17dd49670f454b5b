import pytest

from rebootctl.modules.errors import IllegalTransitionError
from rebootctl.modules.models import (
    LEGAL_TRANSITIONS,
    CancelToken,
    LifecycleState,
    NodeRole,
    NodeTarget,
    RunOutcome,
    can_transition,
)

HAPPY_PATH = [
    LifecycleState.DRAINING,
    LifecycleState.DRAINED,
    LifecycleState.REBOOTING,
    LifecycleState.AWAITING_READY,
    LifecycleState.AWAITING_ACCESS,
    LifecycleState.UNCORDONING,
    LifecycleState.SUCCEEDED,
]


def test_happy_path_transitions():
    node = NodeTarget(name="worker-0", role=NodeRole.WORKER)
    for state in HAPPY_PATH:
        node.transition(state)
    assert node.state is LifecycleState.SUCCEEDED
    assert node.history == [LifecycleState.PENDING] + HAPPY_PATH


def test_illegal_transition_rejected():
    node = NodeTarget(name="worker-0")
    with pytest.raises(IllegalTransitionError):
        node.transition(LifecycleState.REBOOTING)
    assert node.state is LifecycleState.PENDING


def test_terminal_states_have_no_exits():
    for state in LifecycleState:
        assert state in LEGAL_TRANSITIONS
        if state.is_terminal:
            assert not LEGAL_TRANSITIONS[state]


def test_drain_short_circuit_and_compensation_are_legal():
    assert can_transition(LifecycleState.DRAINING, LifecycleState.REBOOTING)
    assert can_transition(LifecycleState.REBOOTING, LifecycleState.UNCORDONING)
    assert not can_transition(LifecycleState.DRAINED, LifecycleState.UNCORDONING)


def test_every_non_terminal_state_can_fail():
    for state in LifecycleState:
        if not state.is_terminal:
            assert can_transition(state, LifecycleState.FAILED)


def test_role_from_label():
    assert NodeRole.from_label("worker") is NodeRole.WORKER
    assert NodeRole.from_label("Master") is NodeRole.MASTER
    assert NodeRole.from_label("gpu") is NodeRole.CUSTOM


def test_role_from_node_name():
    assert NodeRole.from_node_name("infra-2") is NodeRole.INFRA
    assert NodeRole.from_node_name("master-0.example.com") is NodeRole.MASTER
    assert NodeRole.from_node_name("ip-10-0-1-5") is NodeRole.CUSTOM


def test_role_label_defaults_to_role():
    assert NodeTarget(name="worker-0", role=NodeRole.WORKER).role_label == "worker"
    assert NodeTarget(name="gpu-0", role_label="gpu").role_label == "gpu"


def test_success_rate_excludes_skipped():
    outcome = RunOutcome(total=4, succeeded=2, failed=1, skipped=1)
    assert outcome.attempted == 3
    assert outcome.success_rate == 66


def test_success_rate_with_nothing_attempted():
    assert RunOutcome(total=2, skipped=2).success_rate == 0
    assert RunOutcome().success_rate == 0


def test_cancel_token_wakes_waiters():
    token = CancelToken()
    assert not token.cancelled
    assert token.wait(0) is False
    token.cancel()
    assert token.cancelled
    assert token.wait(30) is True
