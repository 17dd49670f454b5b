"""Batch scheduler: runs node lifecycles in bounded-concurrency windows."""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional, Sequence

from .accumulator import OutcomeAccumulator
from .errors import ValidationError
from .gate import AutoApproveGate, OperatorGate
from .lifecycle import LifecycleDriver
from .models import BatchWindow, LifecycleState, NodeResult, NodeTarget, RunOutcome

logger = logging.getLogger("rebootctl.scheduler")

ABORT_DECLINED = "operator declined to continue after a node failure"
ABORT_INTERRUPTED = "interrupted"


def partition(nodes: Sequence[NodeTarget], size: int) -> List[BatchWindow]:
    """Split ``nodes`` into consecutive windows of ``size`` (the last may be shorter)."""
    if size < 1:
        raise ValidationError(f"Parallel count must be at least 1, got {size}")
    return [
        BatchWindow(index=index, start=start, nodes=tuple(nodes[start:start + size]))
        for index, start in enumerate(range(0, len(nodes), size), 1)
    ]


class BatchScheduler:
    """Runs lifecycles window by window.

    A window's lifecycles run concurrently on worker threads; the next window
    starts only after every lifecycle of the current one has settled.
    Prompts are issued from the calling thread, between windows.
    """

    def __init__(
        self,
        driver: LifecycleDriver,
        gate: Optional[OperatorGate] = None,
        accumulator: Optional[OutcomeAccumulator] = None,
    ):
        self.driver = driver
        self.gate = gate or AutoApproveGate()
        self.accumulator = accumulator or OutcomeAccumulator()

    def run(
        self,
        nodes: Sequence[NodeTarget],
        parallel_count: int,
        skip_prompts: bool = False,
        dry_run: bool = False,
    ) -> RunOutcome:
        windows = partition(nodes, parallel_count)
        total = len(nodes)
        logger.info("Processing %d nodes with parallelism of %d", total, parallel_count)

        try:
            for window in windows:
                logger.info("=" * 60)
                logger.info(
                    "Processing batch %d/%d: nodes %d to %d of %d",
                    window.index, len(windows), window.start + 1, window.end + 1, total,
                )
                logger.info("=" * 60)

                launch = self._confirm_window(window, total, skip_prompts)
                if self._run_window(launch, dry_run):
                    return self.accumulator.summarize(completed=False, abort_reason=ABORT_INTERRUPTED)

                has_next = window.index < len(windows)
                if not self._should_continue(window, skip_prompts, has_next):
                    logger.error("Exiting: %s", ABORT_DECLINED)
                    return self.accumulator.summarize(completed=False, abort_reason=ABORT_DECLINED)
        except KeyboardInterrupt:
            # Raised from a prompt; no lifecycle is in flight between windows
            logger.error("Run interrupted by user")
            return self.accumulator.summarize(completed=False, abort_reason=ABORT_INTERRUPTED)

        return self.accumulator.summarize()

    def _confirm_window(self, window: BatchWindow, total: int, skip_prompts: bool) -> List[NodeTarget]:
        launch = []
        for position, node in enumerate(window.nodes, window.start + 1):
            logger.info("-" * 60)
            logger.info("Processing node: %s (%d/%d)", node.name, position, total)
            if skip_prompts:
                logger.debug("Auto-confirming reboot of node %s (skip_prompts=true)", node.name)
                launch.append(node)
            elif self.gate.confirm_node(node):
                launch.append(node)
            else:
                node.transition(LifecycleState.SKIPPED)
                self.accumulator.record(NodeResult(node=node.name, role=node.role, state=node.state))
                logger.info("Skipping node %s per user request", node.name)
        return launch

    def _run_node(self, node: NodeTarget, dry_run: bool) -> NodeResult:
        result = self.driver.run_lifecycle(node, dry_run)
        self.accumulator.record(result)
        return result

    def _run_window(self, nodes: List[NodeTarget], dry_run: bool) -> bool:
        """Run ``nodes`` concurrently and wait for all of them; True if interrupted."""
        if not nodes:
            return False

        interrupted = False
        executor = ThreadPoolExecutor(max_workers=len(nodes), thread_name_prefix="reboot")
        try:
            future_to_node = {
                executor.submit(self._run_node, node, dry_run): node
                for node in nodes
            }
            logger.info("Waiting for batch to complete...")
            for future in as_completed(future_to_node):
                node = future_to_node[future]
                try:
                    result = future.result()
                except Exception as e:
                    logger.error("Error processing node %s: %s", node.name, e, exc_info=True)
                    self._record_failure(node, f"lifecycle crashed: {e}")
                    continue
                status = "Succeeded" if result.state is LifecycleState.SUCCEEDED else "Failed"
                logger.info("%s - %s (%.0fs)", status, node.name, result.duration)
        except KeyboardInterrupt:
            interrupted = True
            logger.error("Interrupted by user; stopping in-flight reboots...")
            self.driver.cancel.cancel()
        finally:
            executor.shutdown(wait=True)

        if interrupted:
            for node in nodes:
                if not self.accumulator.has_result(node.name):
                    self._record_failure(node, f"interrupted during {node.state.value}")
        return interrupted

    def _record_failure(self, node: NodeTarget, error: str) -> None:
        failed_phase = node.state
        if not node.state.is_terminal:
            node.transition(LifecycleState.FAILED)
        if self.accumulator.has_result(node.name):
            return
        self.accumulator.record(NodeResult(
            node=node.name,
            role=node.role,
            state=LifecycleState.FAILED,
            failed_phase=failed_phase,
            error=error,
        ))

    def _should_continue(self, window: BatchWindow, skip_prompts: bool, has_next: bool) -> bool:
        for node in window.nodes:
            result = self.accumulator.get(node.name)
            if result is None or not result.timed_out_waiting:
                continue
            if result.failed_phase is LifecycleState.AWAITING_READY:
                logger.warning("Node %s did not become Ready within the timeout period.", node.name)
            else:
                logger.warning("Node %s is not accessible via debug within the timeout period.", node.name)

            if not has_next:
                continue
            if skip_prompts:
                logger.info("Auto-continuing to next batch (skip_prompts=true)")
                continue
            if not self.gate.confirm_continue(result):
                return False
        return True
