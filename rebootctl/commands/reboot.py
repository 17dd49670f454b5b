import logging
import time
from typing import Optional

import typer

from rebootctl import __version__
from rebootctl.config import Config, RebootPolicy
from rebootctl.modules import preflight
from rebootctl.modules.cluster import KubeClusterClient
from rebootctl.modules.errors import RebootError
from rebootctl.modules.gate import AutoApproveGate, InteractiveGate
from rebootctl.modules.lifecycle import LifecycleDriver
from rebootctl.modules.models import CancelToken
from rebootctl.modules.report import RULE, ReportMetadata, log_report, write_report
from rebootctl.modules.resolver import NodeResolver, Selection, validate_selectors
from rebootctl.modules.scheduler import BatchScheduler
from rebootctl.utils import format_duration

app = typer.Typer(help="Gracefully reboot cluster nodes")
logger = logging.getLogger("rebootctl.commands.reboot")


def _confirm_high_parallelism(parallel: int, yes: bool) -> bool:
    if parallel <= Config.PARALLEL_WARN_THRESHOLD:
        return True
    logger.warning("Parallel count of %d is unusually high", parallel)
    if yes:
        return True
    return typer.confirm(f"Are you sure you want to use a parallel count of {parallel}?", default=False)


def _show_plan(selection: Selection, dry_run: bool) -> None:
    logger.info(RULE)
    logger.info(
        "You are about to gracefully reboot %d node(s) with parallelism of %d.",
        len(selection.nodes), selection.parallel_count,
    )
    logger.info("This process will:")
    logger.info(" 1. Drain each node (evacuate pods)")
    logger.info(" 2. Reboot the node")
    logger.info(" 3. Wait for node to become ready")
    logger.info(" 4. Uncordon the node (make schedulable again)")
    if dry_run:
        logger.info("[DRY RUN] No actual changes will be made.")
    else:
        logger.warning("This will cause service disruption if not handled properly.")
    logger.info("Make sure you understand the impact of this operation.")
    logger.info(RULE)


@app.command("nodes")
def reboot_nodes(
    node_type: Optional[str] = typer.Option(None, "--type", "-t", help="Node role to reboot (master, worker, infra, or custom)"),
    node: Optional[str] = typer.Option(None, "--node", "-n", help="Specific node name to reboot"),
    parallel: int = typer.Option(0, "--parallel", "-p", help="Number of nodes to reboot in parallel (default depends on role)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip all confirmation prompts"),
    dry_run: bool = typer.Option(False, "--dry-run", "-d", help="Show what would be done without making changes"),
    timeout: Optional[int] = typer.Option(None, "--timeout", help="Seconds to wait for each node to become Ready"),
    skip_preflight: bool = typer.Option(False, "--skip-preflight", help="Skip session and cluster health checks"),
):
    """Drain, reboot, wait for and uncordon nodes, one batch at a time."""
    started = time.monotonic()

    if dry_run:
        logger.info(RULE)
        logger.info("DRY RUN MODE - No actual changes will be made")
        logger.info(RULE)

    try:
        validate_selectors(node_type, node, parallel)
        if node_type and not _confirm_high_parallelism(parallel, yes):
            logger.info("Operation cancelled by user")
            raise typer.Exit(code=0)

        policy = RebootPolicy.from_config()
        if timeout is not None:
            policy = policy.with_ready_timeout(timeout)
            logger.info("Using custom ready timeout: %d attempts (%ss)", policy.ready_attempts, timeout)

        gate = AutoApproveGate() if yes else InteractiveGate()
        cluster = KubeClusterClient.from_config()

        if skip_preflight:
            logger.warning("Skipping preflight checks")
        else:
            preflight.check_session(cluster)
            preflight.check_cluster_health(cluster, gate, skip_prompts=yes, dry_run=dry_run)
            preflight.ensure_debug_namespace(cluster, Config.DEBUG_NAMESPACE, dry_run=dry_run)

        selection = NodeResolver(cluster, policy.parallel_defaults).resolve(node_type, node, parallel)
        logger.info("Using parallel count: %d", selection.parallel_count)

        if not yes:
            _show_plan(selection, dry_run)
            if not gate.confirm("Do you want to proceed?"):
                logger.info("Operation cancelled by user")
                raise typer.Exit(code=0)
    except RebootError as e:
        logger.error("%s", e, exc_info=logger.isEnabledFor(logging.DEBUG))
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        logger.error("Operation interrupted by user")
        raise typer.Exit(code=1)

    driver = LifecycleDriver(cluster, policy, cancel=CancelToken())
    scheduler = BatchScheduler(driver, gate)
    outcome = scheduler.run(selection.nodes, selection.parallel_count, skip_prompts=yes, dry_run=dry_run)

    runtime = format_duration(time.monotonic() - started)
    log_report(outcome)
    metadata = ReportMetadata(
        version=__version__,
        role=selection.role,
        node_name=selection.node_name,
        parallel_count=selection.parallel_count,
        dry_run=dry_run,
        runtime=runtime,
    )
    try:
        write_report(outcome, metadata, Config.REPORT_DIR)
    except OSError as e:
        logger.error("Failed to write report: %s", e)
    logger.info("Execution time: %s", runtime)

    if not outcome.completed:
        logger.error("Run aborted: %s", outcome.abort_reason)
        raise typer.Exit(code=1)
    logger.info("All nodes processed.")
