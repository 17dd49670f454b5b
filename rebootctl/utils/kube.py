import os
import tempfile
from pathlib import Path
from typing import Optional

from kubernetes import config


def load_kubeconfig(path: Optional[str] = None) -> str:
    """
    Load cluster credentials and return where they came from.

    Order: KUBECONFIG_CONTENT env var (CI secrets), an explicit path,
    the default kubeconfig, then in-cluster service account.
    """
    # CI/CD secret-based loading
    if "KUBECONFIG_CONTENT" in os.environ:
        fd, temp_path = tempfile.mkstemp(prefix="rebootctl-kubeconfig-", suffix=".yaml")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(os.environ["KUBECONFIG_CONTENT"])
            config.load_kube_config(config_file=temp_path)
        finally:
            # Credentials are read into memory by load_kube_config
            os.remove(temp_path)
        return "KUBECONFIG_CONTENT"

    # Local path loading
    if path:
        resolved = Path(os.path.expanduser(path)).resolve()
        if not resolved.exists():
            raise FileNotFoundError(f"Kubeconfig not found: {resolved}")
        config.load_kube_config(config_file=str(resolved))
        return str(resolved)

    try:
        config.load_kube_config()
        return os.path.expanduser(config.KUBE_CONFIG_DEFAULT_LOCATION)
    except config.ConfigException:
        config.load_incluster_config()
        return "in-cluster"


def active_context_user() -> Optional[str]:
    """Return the user of the active kubeconfig context, if any."""
    try:
        _, active_context = config.list_kube_config_contexts()
    except config.ConfigException:
        return None
    return (active_context or {}).get("context", {}).get("user")
