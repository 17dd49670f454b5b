"""Per-node reboot lifecycle.

A lifecycle walks one node through Drain, Reboot, WaitReady, VerifyAccess
and Uncordon. Phase failures are handled here (retry, compensation, then
``Failed``) and come back to the caller as a NodeResult, never as an
exception.
"""
import logging
import time
from typing import Callable, Optional

from ..config import RebootPolicy
from ..utils import RetryError, poll_until, retry
from .cluster import ClusterClient
from .errors import (
    ClusterClientError,
    CompensationFailure,
    PhaseError,
    PhaseTimeoutError,
    RunCancelledError,
    TransientPhaseError,
)
from .models import CancelToken, LifecycleState, NodeResult, NodeTarget

logger = logging.getLogger("rebootctl.lifecycle")

REBOOT_COMMAND = ("systemctl", "reboot")
ACCESS_PROBE_COMMAND = ("ls", "/")

PDB_HINT = "PodDisruptionBudget"


class LifecycleDriver:
    """Runs the reboot lifecycle for individual nodes.

    Args:
        cluster: Cluster capability used by every live phase
        policy: Retry and timeout settings
        cancel: Shared cancellation token for the run
        sleep: Wait function between attempts; defaults to an interruptible
            wait on ``cancel``
        clock: Monotonic clock used for durations
    """

    def __init__(
        self,
        cluster: ClusterClient,
        policy: Optional[RebootPolicy] = None,
        cancel: Optional[CancelToken] = None,
        sleep: Optional[Callable[[float], object]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cluster = cluster
        self.policy = policy or RebootPolicy()
        self.cancel = cancel or CancelToken()
        self.sleep = sleep or self.cancel.wait
        self.clock = clock

    def run_lifecycle(self, node: NodeTarget, dry_run: bool = False) -> NodeResult:
        """Take ``node`` from Pending to a terminal state and report the result."""
        started = self.clock()
        run = _LifecycleRun(self, node, dry_run)
        failed_phase = None
        error = None

        logger.info("Starting graceful reboot process for node: %s", node.name)
        try:
            run.execute()
        except PhaseError as e:
            failed_phase, error = e.phase, e.reason
            logger.error("Node %s failed during %s: %s", node.name, e.phase.value, e.reason)
        except RunCancelledError:
            failed_phase, error = node.state, f"interrupted during {node.state.value}"
            logger.error("Reboot of node %s interrupted during %s", node.name, node.state.value)
            if run.cordoned:
                run.needs_remediation = True
                logger.warning("Node %s remains cordoned and needs manual remediation", node.name)
        except Exception as e:
            failed_phase, error = node.state, f"unexpected error: {e}"
            logger.error("Unexpected error while rebooting node %s", node.name, exc_info=True)

        if failed_phase is not None and not node.state.is_terminal:
            node.transition(LifecycleState.FAILED)

        return NodeResult(
            node=node.name,
            role=node.role,
            state=node.state,
            failed_phase=failed_phase,
            error=error,
            needs_remediation=run.needs_remediation,
            duration=self.clock() - started,
        )


class _LifecycleRun:
    """State for one lifecycle invocation; never shared between threads."""

    def __init__(self, driver: LifecycleDriver, node: NodeTarget, dry_run: bool):
        self.cluster = driver.cluster
        self.policy = driver.policy
        self.cancel = driver.cancel
        self.sleep = driver.sleep
        self.node = node
        self.dry_run = dry_run
        self.needs_remediation = False
        self.cordoned = False

    @property
    def name(self) -> str:
        return self.node.name

    def execute(self) -> None:
        self.check_cancelled()
        self.drain()
        self.reboot()
        self.wait_ready()
        self.verify_access()
        self.uncordon()
        self.node.transition(LifecycleState.SUCCEEDED)
        if self.dry_run:
            logger.info("[DRY RUN] Node %s would be rebooted and ready.", self.name)
        else:
            logger.info("Node %s has been successfully rebooted and is ready.", self.name)

    def check_cancelled(self) -> None:
        if self.cancel.cancelled:
            raise RunCancelledError(f"Run cancelled while node {self.name} was {self.node.state.value}")

    # -------------------------------------------------------------------------
    # Drain
    # -------------------------------------------------------------------------

    def drain(self) -> None:
        self.node.transition(LifecycleState.DRAINING)
        if self.dry_run:
            logger.info(
                "[DRY RUN] Would cordon node %s and evict its workloads "
                "(up to %d attempts, %ss timeout each)",
                self.name, self.policy.drain_retries, self.policy.drain_timeout,
            )
            self.node.transition(LifecycleState.DRAINED)
            return

        logger.info("Draining node: %s", self.name)
        try:
            pod_count = self.cluster.count_evictable_pods(self.name)
        except ClusterClientError as e:
            logger.warning("Could not count pods on node %s (%s); draining anyway", self.name, e.reason)
            pod_count = None

        if pod_count == 0:
            logger.info("No evictable pods found on node %s, skipping drain operation.", self.name)
            try:
                self._cordon()
            except ClusterClientError as e:
                raise PhaseError(self.name, LifecycleState.DRAINING, e.reason) from e
            return

        if pod_count is not None:
            logger.info("Found %d evictable pods on node %s.", pod_count, self.name)

        try:
            retry(
                self._drain_attempt,
                attempts=self.policy.drain_retries,
                interval=self.policy.retry_interval,
                sleep=self.sleep,
                exceptions=(TransientPhaseError,),
                before_attempt=self.check_cancelled,
                label=f"Drain of node {self.name}",
            )
        except RetryError as e:
            self._log_drain_hints(e.last_exception.reason)
            raise e.last_exception

        self.node.transition(LifecycleState.DRAINED)
        logger.info("Successfully drained node %s", self.name)

    def _drain_attempt(self) -> None:
        try:
            self._cordon()
            self.cluster.evict_workloads(self.name, self.policy.drain_timeout, cancel=self.cancel)
        except ClusterClientError as e:
            raise TransientPhaseError(self.name, LifecycleState.DRAINING, e.reason) from e

    def _cordon(self) -> None:
        self.cluster.cordon(self.name)
        self.cordoned = True

    def _log_drain_hints(self, reason: str) -> None:
        if PDB_HINT in reason:
            logger.warning("PodDisruptionBudget is preventing eviction of some pods on node %s.", self.name)
            logger.warning("Consider checking PDB configurations or setting DRAIN_DISABLE_EVICTION=true.")

    # -------------------------------------------------------------------------
    # Reboot
    # -------------------------------------------------------------------------

    def reboot(self) -> None:
        # From Draining this is the short-circuit for nodes with nothing to evict
        self.node.transition(LifecycleState.REBOOTING)
        logger.info("Issuing reboot command to node: %s", self.name)
        if self.dry_run:
            logger.info("[DRY RUN] Would execute on node %s: %s", self.name, " ".join(REBOOT_COMMAND))
            return

        self.check_cancelled()
        try:
            self.cluster.execute_privileged(
                self.name, REBOOT_COMMAND, self.policy.command_timeout, cancel=self.cancel
            )
        except ClusterClientError as e:
            logger.error("Failed to execute reboot command on node %s: %s", self.name, e.reason)
            self._compensate()
            raise PhaseError(self.name, LifecycleState.REBOOTING, e.reason) from e

        logger.info("Reboot command sent to %s", self.name)

    def _compensate(self) -> None:
        logger.warning("Attempting to uncordon node %s after reboot failure", self.name)
        self.node.transition(LifecycleState.UNCORDONING)
        try:
            self._uncordon_with_retries()
        except TransientPhaseError as e:
            failure = CompensationFailure(self.name, LifecycleState.UNCORDONING, e.reason)
            self.needs_remediation = True
            logger.warning("%s", failure)
            logger.warning("Node %s remains cordoned and needs manual remediation", self.name)

    # -------------------------------------------------------------------------
    # WaitReady / VerifyAccess
    # -------------------------------------------------------------------------

    def wait_ready(self) -> None:
        self.node.transition(LifecycleState.AWAITING_READY)
        attempts = self.policy.ready_attempts
        if self.dry_run:
            logger.info("[DRY RUN] Would wait for node %s to be Ready", self.name)
            logger.info(
                "[DRY RUN] Would check node status up to %d times at %s second intervals",
                attempts, self.policy.retry_interval,
            )
            return

        logger.info("Waiting for node %s to be Ready...", self.name)
        ready = poll_until(
            self._is_ready,
            attempts=attempts,
            interval=self.policy.retry_interval,
            sleep=self.sleep,
            before_attempt=self.check_cancelled,
            label=f"node {self.name} Ready",
        )
        if not ready:
            raise PhaseTimeoutError(
                self.name, LifecycleState.AWAITING_READY,
                f"node did not become Ready after {attempts} attempts",
            )
        logger.info("Node %s is Ready!", self.name)

    def _is_ready(self) -> bool:
        try:
            return self.cluster.get_node(self.name).ready
        except ClusterClientError as e:
            logger.debug("Node %s status unavailable: %s", self.name, e.reason)
            return False

    def verify_access(self) -> None:
        self.node.transition(LifecycleState.AWAITING_ACCESS)
        attempts = self.policy.access_attempts
        if self.dry_run:
            logger.info("[DRY RUN] Would check if node %s is accessible via debug", self.name)
            logger.info(
                "[DRY RUN] Would try to debug node up to %d times at %s second intervals",
                attempts, self.policy.retry_interval,
            )
            return

        logger.info("Checking if node %s is accessible via debug...", self.name)
        accessible = poll_until(
            self._is_accessible,
            attempts=attempts,
            interval=self.policy.retry_interval,
            sleep=self.sleep,
            before_attempt=self.check_cancelled,
            label=f"debug access to node {self.name}",
        )
        if not accessible:
            raise PhaseTimeoutError(
                self.name, LifecycleState.AWAITING_ACCESS,
                f"node not accessible via debug after {attempts} attempts",
            )
        logger.info("Node %s is accessible via debug!", self.name)

    def _is_accessible(self) -> bool:
        try:
            self.cluster.execute_privileged(
                self.name, ACCESS_PROBE_COMMAND, self.policy.command_timeout, cancel=self.cancel
            )
        except ClusterClientError as e:
            logger.debug("Node %s not accessible yet: %s", self.name, e.reason)
            return False
        return True

    # -------------------------------------------------------------------------
    # Uncordon
    # -------------------------------------------------------------------------

    def uncordon(self) -> None:
        self.node.transition(LifecycleState.UNCORDONING)
        if self.dry_run:
            logger.info("[DRY RUN] Would uncordon node %s", self.name)
            return

        logger.info("Uncordoning node: %s (making schedulable again)", self.name)
        try:
            self._uncordon_with_retries()
        except TransientPhaseError:
            self.needs_remediation = True
            logger.warning("Node %s rebooted but is still cordoned; uncordon it manually", self.name)
            raise
        logger.info("Successfully uncordoned node %s", self.name)

    def _uncordon_with_retries(self) -> None:
        try:
            retry(
                self._uncordon_attempt,
                attempts=self.policy.drain_retries,
                interval=self.policy.retry_interval,
                sleep=self.sleep,
                exceptions=(TransientPhaseError,),
                before_attempt=self.check_cancelled,
                label=f"Uncordon of node {self.name}",
            )
        except RetryError as e:
            raise e.last_exception

    def _uncordon_attempt(self) -> None:
        try:
            self.cluster.uncordon(self.name, self.policy.command_timeout)
        except ClusterClientError as e:
            raise TransientPhaseError(self.name, LifecycleState.UNCORDONING, e.reason) from e
        self.cordoned = False
