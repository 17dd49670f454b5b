"""
Data models for node reboot runs.
"""
import re
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from .errors import IllegalTransitionError

ROLE_PREFIX = re.compile(r"^(master|infra|worker)")


class NodeRole(str, Enum):
    """Node roles that carry a default parallelism."""
    MASTER = 'master'
    INFRA = 'infra'
    WORKER = 'worker'
    CUSTOM = 'custom'

    @classmethod
    def from_label(cls, label: str) -> "NodeRole":
        """Map a role label (``node-role.kubernetes.io/<label>``) to a role."""
        try:
            return cls(label.strip().lower())
        except ValueError:
            return cls.CUSTOM

    @classmethod
    def from_node_name(cls, name: str) -> "NodeRole":
        """Infer the role from a node name prefix such as ``worker-01``."""
        match = ROLE_PREFIX.match(name)
        return cls(match.group(1)) if match else cls.CUSTOM


class LifecycleState(str, Enum):
    """Per-node lifecycle states, in phase order."""
    PENDING = 'Pending'
    DRAINING = 'Draining'
    DRAINED = 'Drained'
    REBOOTING = 'Rebooting'
    AWAITING_READY = 'AwaitingReady'
    AWAITING_ACCESS = 'AwaitingAccess'
    UNCORDONING = 'Uncordoning'
    SUCCEEDED = 'Succeeded'
    FAILED = 'Failed'
    SKIPPED = 'Skipped'

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES: FrozenSet[LifecycleState] = frozenset({
    LifecycleState.SUCCEEDED,
    LifecycleState.FAILED,
    LifecycleState.SKIPPED,
})

LEGAL_TRANSITIONS: Dict[LifecycleState, FrozenSet[LifecycleState]] = {
    LifecycleState.PENDING: frozenset({
        LifecycleState.DRAINING, LifecycleState.SKIPPED, LifecycleState.FAILED,
    }),
    # Draining -> Rebooting is the drain short-circuit for nodes with no evictable pods
    LifecycleState.DRAINING: frozenset({
        LifecycleState.DRAINED, LifecycleState.REBOOTING, LifecycleState.FAILED,
    }),
    LifecycleState.DRAINED: frozenset({
        LifecycleState.REBOOTING, LifecycleState.FAILED,
    }),
    # Rebooting -> Uncordoning is the compensation path after a failed reboot
    LifecycleState.REBOOTING: frozenset({
        LifecycleState.AWAITING_READY, LifecycleState.UNCORDONING, LifecycleState.FAILED,
    }),
    LifecycleState.AWAITING_READY: frozenset({
        LifecycleState.AWAITING_ACCESS, LifecycleState.FAILED,
    }),
    LifecycleState.AWAITING_ACCESS: frozenset({
        LifecycleState.UNCORDONING, LifecycleState.FAILED,
    }),
    LifecycleState.UNCORDONING: frozenset({
        LifecycleState.SUCCEEDED, LifecycleState.FAILED,
    }),
    LifecycleState.SUCCEEDED: frozenset(),
    LifecycleState.FAILED: frozenset(),
    LifecycleState.SKIPPED: frozenset(),
}


def can_transition(current: LifecycleState, new: LifecycleState) -> bool:
    return new in LEGAL_TRANSITIONS[current]


@dataclass
class NodeTarget:
    """A node selected for reboot."""
    name: str
    role: NodeRole = NodeRole.CUSTOM
    role_label: str = ''
    state: LifecycleState = LifecycleState.PENDING
    history: List[LifecycleState] = field(default_factory=list)

    def __post_init__(self):
        if not self.role_label:
            self.role_label = self.role.value
        if not self.history:
            self.history.append(self.state)

    def transition(self, new_state: LifecycleState) -> None:
        """Move to ``new_state`` or raise IllegalTransitionError."""
        if not can_transition(self.state, new_state):
            raise IllegalTransitionError(
                f"Node {self.name}: illegal transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        self.history.append(new_state)


@dataclass(frozen=True)
class NodeStatus:
    """Point-in-time view of a node as reported by the cluster."""
    name: str
    exists: bool
    ready: bool = False
    roles: Tuple[str, ...] = ()


@dataclass(frozen=True)
class BatchWindow:
    """A contiguous slice of the node list processed concurrently."""
    index: int
    start: int
    nodes: Tuple[NodeTarget, ...]

    @property
    def end(self) -> int:
        return self.start + len(self.nodes) - 1

    def __len__(self) -> int:
        return len(self.nodes)


@dataclass
class NodeResult:
    """Terminal outcome of one node's lifecycle."""
    node: str
    role: NodeRole
    state: LifecycleState
    failed_phase: Optional[LifecycleState] = None
    error: Optional[str] = None
    needs_remediation: bool = False
    duration: float = 0.0

    @property
    def timed_out_waiting(self) -> bool:
        """True when the node failed while waiting for readiness or access."""
        return self.failed_phase in (
            LifecycleState.AWAITING_READY, LifecycleState.AWAITING_ACCESS,
        )


@dataclass(frozen=True)
class RunOutcome:
    """Aggregate result of a run; read-only once summarized."""
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    failed_nodes: Tuple[str, ...] = ()
    skipped_nodes: Tuple[str, ...] = ()
    remediation_nodes: Tuple[str, ...] = ()
    results: Tuple[NodeResult, ...] = ()
    completed: bool = True
    abort_reason: Optional[str] = None

    @property
    def attempted(self) -> int:
        return self.total - self.skipped

    @property
    def success_rate(self) -> int:
        """Integer percentage of attempted nodes that succeeded; skipped nodes excluded."""
        if self.attempted <= 0:
            return 0
        return self.succeeded * 100 // self.attempted


class CancelToken:
    """Shared cancellation flag for all lifecycles of a run."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; returns True early if cancelled."""
        return self._event.wait(seconds)
