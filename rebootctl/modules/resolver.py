"""Resolve reboot targets from a role or a node name."""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .cluster import ClusterClient
from .errors import NotFoundError, ValidationError
from .models import NodeRole, NodeTarget

logger = logging.getLogger("rebootctl.resolver")

DEFAULT_PARALLELISM: Dict[str, int] = {"master": 1, "infra": 1, "worker": 2, "other": 1}


@dataclass(frozen=True)
class Selection:
    """Resolved targets and the parallelism to run them with."""
    nodes: List[NodeTarget]
    parallel_count: int
    role: Optional[str] = None
    node_name: Optional[str] = None


def validate_selectors(role: Optional[str], name: Optional[str], parallel: int) -> None:
    """Reject conflicting selectors and negative parallelism."""
    if not role and not name:
        raise ValidationError("Either node type (--type) or node name (--node) must be provided")
    if role and name:
        raise ValidationError("Provide either node type (--type) OR node name (--node), not both")
    if parallel < 0:
        raise ValidationError("Parallel count must be a positive integer")


class NodeResolver:
    """Turns operator selectors into an ordered list of NodeTargets."""

    def __init__(self, cluster: ClusterClient, parallel_defaults: Optional[Dict[str, int]] = None):
        self.cluster = cluster
        self.parallel_defaults = dict(DEFAULT_PARALLELISM)
        if parallel_defaults:
            self.parallel_defaults.update(parallel_defaults)

    def default_parallelism(self, role: NodeRole) -> int:
        if role is NodeRole.CUSTOM:
            return self.parallel_defaults["other"]
        return self.parallel_defaults[role.value]

    def by_role(self, role: str) -> List[NodeTarget]:
        """All nodes with the given role label, in cluster list order."""
        logger.info("Finding nodes with role: %s", role)
        names = self.cluster.list_nodes_by_role(role)
        if not names:
            raise NotFoundError(f"No nodes found with role '{role}'")

        node_role = NodeRole.from_label(role)
        targets = [NodeTarget(name=name, role=node_role, role_label=role) for name in names]
        logger.info("Found %d node(s) with role '%s':", len(targets), role)
        for target in targets:
            logger.info("  - %s", target.name)
        return targets

    def by_name(self, name: str) -> List[NodeTarget]:
        """A single-node list for an explicitly named node."""
        logger.info("Targeting specific node: %s", name)
        status = self.cluster.get_node(name)
        if not status.exists:
            raise NotFoundError(f"Node '{name}' not found")
        if status.roles:
            logger.info("Node roles: %s", ", ".join(status.roles))

        role = NodeRole.from_node_name(name)
        return [NodeTarget(name=name, role=role)]

    def resolve(self, role: Optional[str] = None, name: Optional[str] = None, parallel: int = 0) -> Selection:
        """Validate selectors, resolve targets and settle the effective parallelism.

        ``parallel`` of 0 means "use the role default". A named node always
        runs with parallelism 1 whatever was requested.
        """
        validate_selectors(role, name, parallel)

        if role:
            nodes = self.by_role(role)
            parallel_count = parallel or self.default_parallelism(NodeRole.from_label(role))
            return Selection(nodes=nodes, parallel_count=parallel_count, role=role)

        nodes = self.by_name(name)
        if parallel not in (0, 1):
            logger.info("Ignoring parallel count %d for a single node", parallel)
        return Selection(nodes=nodes, parallel_count=1, node_name=name)
