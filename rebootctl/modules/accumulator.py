"""Thread-safe tally of per-node outcomes."""
import logging
import threading
from typing import Dict, List, Optional

from .errors import DuplicateOutcomeError
from .models import LifecycleState, NodeResult, RunOutcome

logger = logging.getLogger("rebootctl.accumulator")


class OutcomeAccumulator:
    """Collects terminal results from concurrently running lifecycles.

    Every ``record`` call is serialized by a lock, so results reported at the
    same moment by different worker threads are all counted exactly once.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._results: Dict[str, NodeResult] = {}
        self._order: List[str] = []
        self._counts = {
            LifecycleState.SUCCEEDED: 0,
            LifecycleState.FAILED: 0,
            LifecycleState.SKIPPED: 0,
        }

    def record(self, result: NodeResult) -> None:
        if not result.state.is_terminal:
            raise ValueError(f"Cannot record non-terminal state {result.state.value} for node {result.node}")

        with self._lock:
            if result.node in self._results:
                raise DuplicateOutcomeError(f"Outcome for node {result.node} already recorded")
            self._results[result.node] = result
            self._order.append(result.node)
            self._counts[result.state] += 1

        logger.debug("Recorded %s for node %s", result.state.value, result.node)

    def has_result(self, node: str) -> bool:
        with self._lock:
            return node in self._results

    def get(self, node: str) -> Optional[NodeResult]:
        with self._lock:
            return self._results.get(node)

    def summarize(self, completed: bool = True, abort_reason: Optional[str] = None) -> RunOutcome:
        """Snapshot the counters as an immutable RunOutcome."""
        with self._lock:
            results = tuple(self._results[name] for name in self._order)
            counts = dict(self._counts)

        return RunOutcome(
            total=len(results),
            succeeded=counts[LifecycleState.SUCCEEDED],
            failed=counts[LifecycleState.FAILED],
            skipped=counts[LifecycleState.SKIPPED],
            failed_nodes=tuple(r.node for r in results if r.state is LifecycleState.FAILED),
            skipped_nodes=tuple(r.node for r in results if r.state is LifecycleState.SKIPPED),
            remediation_nodes=tuple(r.node for r in results if r.needs_remediation),
            results=results,
            completed=completed,
            abort_reason=abort_reason,
        )
