import logging

import typer

from rebootctl.config import Config
from rebootctl.modules import preflight
from rebootctl.modules.cluster import KubeClusterClient
from rebootctl.modules.errors import RebootError
from rebootctl.modules.gate import AutoApproveGate, InteractiveGate

app = typer.Typer(help="Cluster readiness checks")
logger = logging.getLogger("rebootctl.commands.preflight")


@app.command("check")
def preflight_check(
    yes: bool = typer.Option(False, "--yes", "-y", help="Report problems without prompting"),
):
    """Check the cluster session, cluster health and the debug namespace."""
    gate = AutoApproveGate() if yes else InteractiveGate()
    try:
        cluster = KubeClusterClient.from_config()
        user = preflight.check_session(cluster)
        preflight.check_cluster_health(cluster, gate, skip_prompts=yes)
        preflight.ensure_debug_namespace(cluster, Config.DEBUG_NAMESPACE)
    except RebootError as e:
        logger.error("%s", e, exc_info=logger.isEnabledFor(logging.DEBUG))
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        logger.error("Operation interrupted by user")
        raise typer.Exit(code=1)

    logger.info("Preflight checks passed for %s", user)
