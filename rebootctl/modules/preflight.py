"""Checks run once before any node is touched."""
import logging

from .errors import ClusterClientError, PreflightError
from .gate import OperatorGate

logger = logging.getLogger("rebootctl.preflight")


def check_session(cluster) -> str:
    """Confirm we are logged in with enough privileges to create namespaces.

    Returns:
        The active user name (or "unknown" when the kubeconfig does not say)

    Raises:
        PreflightError: If the permission check fails or is denied
    """
    user = cluster.current_user() or "unknown"
    try:
        allowed = cluster.can_create_namespaces()
    except ClusterClientError as e:
        raise PreflightError(f"Not logged into the cluster: {e.reason}") from e

    if not allowed:
        raise PreflightError(
            "Insufficient permissions. The current user cannot create namespaces; "
            "cluster-admin privileges are required."
        )
    logger.info("Cluster session check passed. Logged in as: %s", user)
    return user


def _confirm_despite(gate: OperatorGate, skip_prompts: bool, what: str) -> None:
    if skip_prompts:
        logger.warning("Continuing despite %s (skip_prompts=true)", what)
        return
    if not gate.confirm(f"Continue despite {what}?"):
        raise PreflightError(f"Operation cancelled due to {what}")


def check_cluster_health(cluster, gate: OperatorGate, skip_prompts: bool = False, dry_run: bool = False) -> None:
    """Warn about degraded operators, NotReady nodes and pending CSRs.

    Degraded operators and NotReady nodes need operator confirmation unless
    prompts are skipped; pending CSRs are only reported.
    """
    if dry_run:
        logger.info("[DRY RUN] Would check cluster health status...")
        return

    logger.info("Checking cluster health status...")
    try:
        degraded = cluster.degraded_operators()
        not_ready = cluster.not_ready_nodes()
        pending = cluster.pending_csrs()
    except ClusterClientError as e:
        raise PreflightError(f"Cluster health check failed: {e.reason}") from e

    if degraded:
        logger.warning("The following operators are currently degraded:")
        for operator in degraded:
            logger.warning("  - %s", operator)
        _confirm_despite(gate, skip_prompts, "degraded operators")
    else:
        logger.info("No degraded operators found.")

    if not_ready:
        logger.warning("The following nodes are currently not Ready:")
        for node in not_ready:
            logger.warning("  - %s", node)
        _confirm_despite(gate, skip_prompts, "unhealthy nodes")
    else:
        logger.info("All nodes appear to be healthy.")

    if pending:
        logger.warning("There are pending certificate signing requests:")
        for csr in pending:
            logger.warning("  - %s", csr)
        logger.info("Pending CSRs won't be automatically approved during this operation.")
    else:
        logger.info("No pending certificate signing requests found.")

    logger.info("Cluster health check completed.")


def ensure_debug_namespace(cluster, name: str, dry_run: bool = False) -> None:
    """Make sure debug pods can land on every node."""
    if dry_run:
        logger.info("[DRY RUN] Would ensure namespace %s exists with empty node selector", name)
        return

    logger.info("Ensuring namespace %s exists with empty node selector...", name)
    try:
        action = cluster.ensure_debug_namespace(name)
    except ClusterClientError as e:
        raise PreflightError(e.reason) from e
    logger.info("Debug namespace %s %s", name, action)
