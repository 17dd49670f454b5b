import logging
import threading

import pytest

from rebootctl.config import RebootPolicy
from rebootctl.modules.cluster import ClusterClient
from rebootctl.modules.errors import ClusterClientError
from rebootctl.modules.gate import OperatorGate
from rebootctl.modules.lifecycle import REBOOT_COMMAND, LifecycleDriver
from rebootctl.modules.models import NodeStatus

ALWAYS = 10_000

MUTATING_CALLS = {"cordon", "uncordon", "evict", "reboot", "probe"}


class FakeClusterClient(ClusterClient):
    """In-memory cluster that records every call in a global, thread-safe order."""

    def __init__(self, nodes=None):
        # node name -> role labels, kept in insertion order
        self.nodes = dict(nodes or {})
        self.pod_counts = {}
        self.not_ready_polls = {}
        self.never_ready = set()
        self.failures = {}
        self.calls = []
        self.allowed = True
        self.degraded = []
        self.unready = []
        self.csrs = []
        self._lock = threading.Lock()

    def _record(self, method, node=None):
        with self._lock:
            self.calls.append((method, node))

    def _maybe_fail(self, method, node):
        with self._lock:
            remaining = self.failures.get((method, node), 0)
            if remaining <= 0:
                return
            self.failures[(method, node)] = remaining - 1
        raise ClusterClientError(f"{method} failed on {node}")

    def calls_for(self, method, node=None):
        return [c for c in self.calls if c[0] == method and (node is None or c[1] == node)]

    def list_nodes_by_role(self, role):
        self._record("list", role)
        return [name for name, roles in self.nodes.items() if role in roles]

    def get_node(self, name):
        self._record("get", name)
        if name not in self.nodes:
            return NodeStatus(name=name, exists=False)
        with self._lock:
            pending = self.not_ready_polls.get(name, 0)
            if pending:
                self.not_ready_polls[name] = pending - 1
        ready = name not in self.never_ready and not pending
        return NodeStatus(name=name, exists=True, ready=ready, roles=tuple(self.nodes[name]))

    def count_evictable_pods(self, node):
        self._record("count", node)
        self._maybe_fail("count", node)
        return self.pod_counts.get(node, 3)

    def evict_workloads(self, node, timeout, cancel=None):
        self._record("evict", node)
        self._maybe_fail("evict", node)

    def execute_privileged(self, node, command, timeout, cancel=None):
        method = "reboot" if tuple(command) == REBOOT_COMMAND else "probe"
        self._record(method, node)
        self._maybe_fail(method, node)
        return ""

    def cordon(self, node):
        self._record("cordon", node)
        self._maybe_fail("cordon", node)

    def uncordon(self, node, timeout):
        self._record("uncordon", node)
        self._maybe_fail("uncordon", node)

    # Preflight helpers
    def current_user(self):
        return "system:admin"

    def can_create_namespaces(self):
        self._record("can-i", None)
        return self.allowed

    def degraded_operators(self):
        self._record("operators", None)
        return list(self.degraded)

    def not_ready_nodes(self):
        self._record("not-ready", None)
        return list(self.unready)

    def pending_csrs(self):
        self._record("csrs", None)
        return list(self.csrs)

    def ensure_debug_namespace(self, name):
        self._record("namespace", name)
        return "patched"


class RecordingSleep:
    """Stand-in for time.sleep that only records the requested delays."""

    def __init__(self):
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, seconds):
        with self._lock:
            self.calls.append(seconds)


class ScriptedGate(OperatorGate):
    """Gate with canned answers that records every question asked."""

    interactive = True

    def __init__(self, skip_nodes=(), continue_answers=(), confirm_answer=True):
        self.skip_nodes = set(skip_nodes)
        self.continue_answers = list(continue_answers)
        self.confirm_answer = confirm_answer
        self.node_prompts = []
        self.continue_prompts = []
        self.prompts = []

    def confirm(self, message):
        self.prompts.append(message)
        return self.confirm_answer

    def confirm_node(self, node):
        self.node_prompts.append(node.name)
        return node.name not in self.skip_nodes

    def confirm_continue(self, result):
        self.continue_prompts.append(result.node)
        return self.continue_answers.pop(0) if self.continue_answers else True


class RefusingGate(OperatorGate):
    """Fails the test if anything is asked."""

    def confirm(self, message):
        raise AssertionError(f"Unexpected prompt: {message}")

    def confirm_node(self, node):
        raise AssertionError(f"Unexpected node prompt for {node.name}")

    def confirm_continue(self, result):
        raise AssertionError(f"Unexpected continue prompt for {result.node}")


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("rebootctl")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def cluster():
    return FakeClusterClient({
        "worker-0": ["worker"],
        "worker-1": ["worker"],
        "worker-2": ["worker"],
        "worker-3": ["worker"],
        "master-0": ["master"],
    })


@pytest.fixture
def policy():
    return RebootPolicy(ready_attempts=3, access_attempts=2, retry_interval=10, drain_retries=3)


@pytest.fixture
def sleeps():
    return RecordingSleep()


@pytest.fixture
def driver(cluster, policy, sleeps):
    return LifecycleDriver(cluster, policy, sleep=sleeps)
