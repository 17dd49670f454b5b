"""Cluster access for node reboots.

``ClusterClient`` is the capability the lifecycle driver and the node
resolver depend on. ``KubeClusterClient`` implements it with the
kubernetes Python client, and uses ``oc debug`` for privileged host
commands since those need a debug pod scheduled on the node itself.
"""
import logging
import subprocess
import time
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from kubernetes import client
from kubernetes.client.rest import ApiException
from kubernetes.config import ConfigException
from urllib3.exceptions import HTTPError

from ..config import Config
from ..utils.kube import active_context_user, load_kubeconfig
from .errors import ClusterClientError, RunCancelledError
from .models import CancelToken, NodeStatus

logger = logging.getLogger("rebootctl.cluster")

ROLE_LABEL_PREFIX = "node-role.kubernetes.io/"
MIRROR_POD_ANNOTATION = "kubernetes.io/config.mirror"
NODE_SELECTOR_ANNOTATION = "openshift.io/node-selector"

# Connection drops, request timeouts and retry exhaustion surface as these
# rather than ApiException.
TRANSPORT_ERRORS = (HTTPError, OSError)

COMMAND_POLL_INTERVAL = 0.5


class ClusterClient(ABC):
    """Operations the reboot orchestrator needs from the cluster.

    Long-running operations take an optional ``cancel`` token and raise
    RunCancelledError once it is set.
    """

    @abstractmethod
    def list_nodes_by_role(self, role: str) -> List[str]:
        """Names of nodes carrying ``node-role.kubernetes.io/<role>``, in cluster order."""

    @abstractmethod
    def get_node(self, name: str) -> NodeStatus:
        """Existence and readiness of a node."""

    @abstractmethod
    def count_evictable_pods(self, node: str) -> int:
        """Pods on ``node`` that a drain would remove."""

    @abstractmethod
    def evict_workloads(self, node: str, timeout: float, cancel: Optional[CancelToken] = None) -> None:
        """Remove evictable pods from ``node``; raise ClusterClientError on failure."""

    @abstractmethod
    def execute_privileged(
        self, node: str, command: Sequence[str], timeout: float, cancel: Optional[CancelToken] = None
    ) -> str:
        """Run ``command`` on the node host; raise ClusterClientError on failure."""

    @abstractmethod
    def cordon(self, node: str) -> None:
        """Mark ``node`` unschedulable."""

    @abstractmethod
    def uncordon(self, node: str, timeout: float) -> None:
        """Mark ``node`` schedulable."""


def _is_daemon_pod(pod) -> bool:
    owners = (pod.metadata and pod.metadata.owner_references) or []
    return any(owner.kind == "DaemonSet" for owner in owners)


def _is_mirror_pod(pod) -> bool:
    annotations = (pod.metadata and pod.metadata.annotations) or {}
    return MIRROR_POD_ANNOTATION in annotations


def _is_evictable(pod) -> bool:
    return not (_is_daemon_pod(pod) or _is_mirror_pod(pod))


def _api_reason(exc: ApiException) -> str:
    return f"{exc.status} {exc.reason}: {exc.body}" if exc.body else f"{exc.status} {exc.reason}"


def _transport_reason(exc: Exception) -> str:
    return f"connection error: {exc}"


def _check_cancelled(cancel: Optional[CancelToken], what: str) -> None:
    if cancel is not None and cancel.cancelled:
        raise RunCancelledError(f"Cancelled while {what}")


class KubeClusterClient(ClusterClient):
    """ClusterClient backed by the Kubernetes API and the ``oc`` CLI."""

    def __init__(
        self,
        kubeconfig: Optional[str] = None,
        oc_binary: str = "oc",
        debug_namespace: str = "debug",
        disable_eviction: bool = True,
        request_timeout: int = 60,
        poll_interval: float = 5,
        api_client: Optional[client.ApiClient] = None,
    ):
        if api_client is None:
            source = load_kubeconfig(kubeconfig)
            logger.debug("Loaded cluster credentials from %s", source)
        self.core = client.CoreV1Api(api_client)
        self.policy = client.PolicyV1Api(api_client)
        self.custom = client.CustomObjectsApi(api_client)
        self.certificates = client.CertificatesV1Api(api_client)
        self.authorization = client.AuthorizationV1Api(api_client)
        self.oc_binary = oc_binary
        self.debug_namespace = debug_namespace
        self.disable_eviction = disable_eviction
        self.request_timeout = request_timeout
        self.poll_interval = poll_interval

    @classmethod
    def from_config(cls, config=Config) -> "KubeClusterClient":
        """Build a client from environment configuration."""
        try:
            return cls(
                kubeconfig=config.KUBECONFIG or None,
                oc_binary=config.OC_BINARY,
                debug_namespace=config.DEBUG_NAMESPACE,
                disable_eviction=config.DRAIN_DISABLE_EVICTION,
                request_timeout=config.OC_COMMAND_TIMEOUT,
            )
        except (FileNotFoundError, ConfigException) as e:
            raise ClusterClientError(f"Unable to load cluster credentials: {e}") from e

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    def list_nodes_by_role(self, role: str) -> List[str]:
        try:
            nodes = self.core.list_node(
                label_selector=f"{ROLE_LABEL_PREFIX}{role}",
                _request_timeout=self.request_timeout,
            ).items
        except ApiException as e:
            raise ClusterClientError(f"Failed to list nodes with role '{role}': {_api_reason(e)}") from e
        except TRANSPORT_ERRORS as e:
            raise ClusterClientError(f"Failed to list nodes with role '{role}': {_transport_reason(e)}") from e
        return [node.metadata.name for node in nodes]

    def get_node(self, name: str) -> NodeStatus:
        try:
            node = self.core.read_node(name, _request_timeout=self.request_timeout)
        except ApiException as e:
            if e.status == 404:
                return NodeStatus(name=name, exists=False)
            raise ClusterClientError(f"Failed to read node {name}: {_api_reason(e)}") from e
        except TRANSPORT_ERRORS as e:
            raise ClusterClientError(f"Failed to read node {name}: {_transport_reason(e)}") from e

        conditions = (node.status and node.status.conditions) or []
        ready = any(c.type == "Ready" and c.status == "True" for c in conditions)
        labels = node.metadata.labels or {}
        roles = tuple(
            sorted(key[len(ROLE_LABEL_PREFIX):] for key in labels if key.startswith(ROLE_LABEL_PREFIX))
        )
        return NodeStatus(name=name, exists=True, ready=ready, roles=roles)

    def _evictable_pods(self, node: str):
        try:
            pods = self.core.list_pod_for_all_namespaces(
                field_selector=f"spec.nodeName={node}",
                _request_timeout=self.request_timeout,
            ).items
        except ApiException as e:
            raise ClusterClientError(f"Failed to list pods on node {node}: {_api_reason(e)}") from e
        except TRANSPORT_ERRORS as e:
            raise ClusterClientError(f"Failed to list pods on node {node}: {_transport_reason(e)}") from e
        return [pod for pod in pods if _is_evictable(pod)]

    def count_evictable_pods(self, node: str) -> int:
        return len(self._evictable_pods(node))

    # =========================================================================
    # MUTATING OPERATIONS
    # =========================================================================

    def _set_unschedulable(self, node: str, value: bool, timeout: float) -> None:
        action = "cordon" if value else "uncordon"
        try:
            self.core.patch_node(node, {"spec": {"unschedulable": value}}, _request_timeout=timeout)
        except ApiException as e:
            raise ClusterClientError(f"Failed to {action} node {node}: {_api_reason(e)}") from e
        except TRANSPORT_ERRORS as e:
            raise ClusterClientError(f"Failed to {action} node {node}: {_transport_reason(e)}") from e

    def cordon(self, node: str) -> None:
        self._set_unschedulable(node, True, self.request_timeout)
        logger.debug("node/%s cordoned", node)

    def uncordon(self, node: str, timeout: float) -> None:
        self._set_unschedulable(node, False, timeout)
        logger.debug("node/%s uncordoned", node)

    def _remove_pod(self, pod) -> None:
        name, namespace = pod.metadata.name, pod.metadata.namespace
        try:
            if self.disable_eviction:
                self.core.delete_namespaced_pod(
                    name, namespace, _request_timeout=self.request_timeout
                )
            else:
                body = client.V1Eviction(
                    metadata=client.V1ObjectMeta(name=name, namespace=namespace)
                )
                self.policy.create_namespaced_pod_eviction(
                    name=name, namespace=namespace, body=body,
                    _request_timeout=self.request_timeout,
                )
        except ApiException as e:
            if e.status == 404:
                return
            if e.status == 429:
                raise ClusterClientError(
                    f"Cannot evict pod {namespace}/{name}: blocked by PodDisruptionBudget"
                ) from e
            raise ClusterClientError(f"Failed to remove pod {namespace}/{name}: {_api_reason(e)}") from e
        except TRANSPORT_ERRORS as e:
            raise ClusterClientError(f"Failed to remove pod {namespace}/{name}: {_transport_reason(e)}") from e

    def evict_workloads(self, node: str, timeout: float, cancel: Optional[CancelToken] = None) -> None:
        deadline = time.monotonic() + timeout
        wait = cancel.wait if cancel is not None else time.sleep
        for pod in self._evictable_pods(node):
            _check_cancelled(cancel, f"draining node {node}")
            self._remove_pod(pod)

        while True:
            _check_cancelled(cancel, f"draining node {node}")
            remaining = self._evictable_pods(node)
            if not remaining:
                return
            left = deadline - time.monotonic()
            if left <= 0:
                names = ", ".join(f"{p.metadata.namespace}/{p.metadata.name}" for p in remaining[:5])
                raise ClusterClientError(
                    f"Timed out after {timeout}s waiting for {len(remaining)} pod(s) to leave node {node}: {names}"
                )
            wait(min(self.poll_interval, left))

    def execute_privileged(
        self, node: str, command: Sequence[str], timeout: float, cancel: Optional[CancelToken] = None
    ) -> str:
        cmd = [
            self.oc_binary, "debug", f"node/{node}", "-n", self.debug_namespace,
            "--", "chroot", "/host", *command,
        ]
        description = " ".join(command)
        logger.debug("Running: %s", " ".join(cmd))
        try:
            proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
        except FileNotFoundError as e:
            raise ClusterClientError(f"{self.oc_binary} is not installed or not in PATH") from e

        deadline = time.monotonic() + timeout
        while True:
            left = deadline - time.monotonic()
            try:
                stdout, stderr = proc.communicate(timeout=max(0, min(COMMAND_POLL_INTERVAL, left)))
                break
            except subprocess.TimeoutExpired as e:
                if cancel is not None and cancel.cancelled:
                    proc.kill()
                    proc.communicate()
                    raise RunCancelledError(f"Cancelled while running '{description}' on node {node}") from e
                if time.monotonic() >= deadline:
                    proc.kill()
                    proc.communicate()
                    raise ClusterClientError(f"'{description}' on node {node} timed out after {timeout}s") from e

        if proc.returncode != 0:
            raise ClusterClientError(
                f"'{description}' on node {node} exited with {proc.returncode}: {stderr.strip()}"
            )
        return stdout

    # =========================================================================
    # PREFLIGHT HELPERS
    # =========================================================================

    def current_user(self) -> Optional[str]:
        return active_context_user()

    def can_create_namespaces(self) -> bool:
        review = client.V1SelfSubjectAccessReview(
            spec=client.V1SelfSubjectAccessReviewSpec(
                resource_attributes=client.V1ResourceAttributes(verb="create", resource="namespaces")
            )
        )
        try:
            response = self.authorization.create_self_subject_access_review(
                review, _request_timeout=self.request_timeout
            )
        except ApiException as e:
            raise ClusterClientError(f"Failed to check permissions: {_api_reason(e)}") from e
        except TRANSPORT_ERRORS as e:
            raise ClusterClientError(f"Failed to check permissions: {_transport_reason(e)}") from e
        return bool(response.status and response.status.allowed)

    def degraded_operators(self) -> List[str]:
        try:
            operators = self.custom.list_cluster_custom_object(
                group="config.openshift.io",
                version="v1",
                plural="clusteroperators",
                _request_timeout=self.request_timeout,
            )
        except ApiException as e:
            if e.status == 404:
                logger.debug("ClusterOperator API not available; not an OpenShift cluster")
                return []
            raise ClusterClientError(f"Failed to list cluster operators: {_api_reason(e)}") from e
        except TRANSPORT_ERRORS as e:
            raise ClusterClientError(f"Failed to list cluster operators: {_transport_reason(e)}") from e

        degraded = []
        for operator in operators.get("items", []):
            conditions = operator.get("status", {}).get("conditions", [])
            if any(c.get("type") == "Degraded" and c.get("status") == "True" for c in conditions):
                degraded.append(operator["metadata"]["name"])
        return degraded

    def not_ready_nodes(self) -> List[str]:
        try:
            nodes = self.core.list_node(_request_timeout=self.request_timeout).items
        except ApiException as e:
            raise ClusterClientError(f"Failed to list nodes: {_api_reason(e)}") from e
        except TRANSPORT_ERRORS as e:
            raise ClusterClientError(f"Failed to list nodes: {_transport_reason(e)}") from e
        not_ready = []
        for node in nodes:
            conditions = (node.status and node.status.conditions) or []
            if not any(c.type == "Ready" and c.status == "True" for c in conditions):
                not_ready.append(node.metadata.name)
        return not_ready

    def pending_csrs(self) -> List[str]:
        try:
            csrs = self.certificates.list_certificate_signing_request(
                _request_timeout=self.request_timeout
            ).items
        except ApiException as e:
            raise ClusterClientError(f"Failed to list certificate signing requests: {_api_reason(e)}") from e
        except TRANSPORT_ERRORS as e:
            raise ClusterClientError(
                f"Failed to list certificate signing requests: {_transport_reason(e)}"
            ) from e
        pending = []
        for csr in csrs:
            conditions = (csr.status and csr.status.conditions) or []
            if not any(c.type in ("Approved", "Denied") for c in conditions):
                pending.append(csr.metadata.name)
        return pending

    def ensure_debug_namespace(self, name: str) -> str:
        """Make sure ``name`` exists with an empty node selector; returns the action taken."""
        annotations = {NODE_SELECTOR_ANNOTATION: ""}
        try:
            self.core.read_namespace(name, _request_timeout=self.request_timeout)
        except ApiException as e:
            if e.status != 404:
                raise ClusterClientError(f"Failed to read namespace {name}: {_api_reason(e)}") from e
            body = client.V1Namespace(
                metadata=client.V1ObjectMeta(name=name, annotations=annotations)
            )
            try:
                self.core.create_namespace(body, _request_timeout=self.request_timeout)
            except ApiException as create_error:
                raise ClusterClientError(
                    f"Failed to create namespace {name}: {_api_reason(create_error)}"
                ) from create_error
            except TRANSPORT_ERRORS as create_error:
                raise ClusterClientError(
                    f"Failed to create namespace {name}: {_transport_reason(create_error)}"
                ) from create_error
            return "created"
        except TRANSPORT_ERRORS as e:
            raise ClusterClientError(f"Failed to read namespace {name}: {_transport_reason(e)}") from e

        try:
            self.core.patch_namespace(
                name, {"metadata": {"annotations": annotations}},
                _request_timeout=self.request_timeout,
            )
        except ApiException as e:
            raise ClusterClientError(f"Failed to patch namespace {name}: {_api_reason(e)}") from e
        except TRANSPORT_ERRORS as e:
            raise ClusterClientError(f"Failed to patch namespace {name}: {_transport_reason(e)}") from e
        return "patched"
