"""Configuration management for the rebootctl application."""
import os
from dataclasses import dataclass
from typing import Dict

from dotenv import load_dotenv

from .modules.errors import ValidationError

# Load environment variables from .env file if it exists
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration with sensible defaults."""

    # Polling budgets (number of attempts, spaced by RETRY_INTERVAL)
    NODE_READY_TIMEOUT: int = int(os.getenv("NODE_READY_TIMEOUT", "30"))  # ~5 minutes
    NODE_DEBUG_TIMEOUT: int = int(os.getenv("NODE_DEBUG_TIMEOUT", "12"))  # ~2 minutes
    RETRY_INTERVAL: int = int(os.getenv("RETRY_INTERVAL", "10"))

    # Timeouts (in seconds)
    OC_COMMAND_TIMEOUT: int = int(os.getenv("OC_COMMAND_TIMEOUT", "60"))
    NODE_DRAIN_TIMEOUT: int = int(os.getenv("NODE_DRAIN_TIMEOUT", "300"))

    # Retry configuration
    DRAIN_RETRY_COUNT: int = int(os.getenv("DRAIN_RETRY_COUNT", "3"))

    # Default parallel counts by node role
    MASTER_PARALLEL_DEFAULT: int = int(os.getenv("MASTER_PARALLEL_DEFAULT", "1"))
    INFRA_PARALLEL_DEFAULT: int = int(os.getenv("INFRA_PARALLEL_DEFAULT", "1"))
    WORKER_PARALLEL_DEFAULT: int = int(os.getenv("WORKER_PARALLEL_DEFAULT", "2"))
    OTHER_PARALLEL_DEFAULT: int = int(os.getenv("OTHER_PARALLEL_DEFAULT", "1"))
    PARALLEL_WARN_THRESHOLD: int = int(os.getenv("PARALLEL_WARN_THRESHOLD", "20"))

    # Cluster access
    KUBECONFIG: str = os.getenv("KUBECONFIG", "")
    OC_BINARY: str = os.getenv("OC_BINARY", "oc")
    DEBUG_NAMESPACE: str = os.getenv("DEBUG_NAMESPACE", "debug")
    DRAIN_DISABLE_EVICTION: bool = _env_bool("DRAIN_DISABLE_EVICTION", "true")

    # Reporting
    REPORT_DIR: str = os.getenv("REPORT_DIR", ".")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "[%(asctime)s] %(levelname)s: %(message)s")
    LOG_DATEFMT: str = "%Y-%m-%d %H:%M:%S"

    NUMERIC_SETTINGS: tuple = (
        "NODE_READY_TIMEOUT",
        "NODE_DEBUG_TIMEOUT",
        "RETRY_INTERVAL",
        "OC_COMMAND_TIMEOUT",
        "NODE_DRAIN_TIMEOUT",
        "DRAIN_RETRY_COUNT",
        "MASTER_PARALLEL_DEFAULT",
        "INFRA_PARALLEL_DEFAULT",
        "WORKER_PARALLEL_DEFAULT",
        "OTHER_PARALLEL_DEFAULT",
        "PARALLEL_WARN_THRESHOLD",
    )

    @classmethod
    def validate(cls) -> None:
        """Validate numeric tunables."""
        invalid = [name for name in cls.NUMERIC_SETTINGS if getattr(cls, name) < 1]
        if invalid:
            raise ValidationError(
                f"Configuration values must be positive integers: {', '.join(invalid)}"
            )


@dataclass(frozen=True)
class RebootPolicy:
    """Retry, timeout and parallelism settings used by a single run."""
    ready_attempts: int = 30
    access_attempts: int = 12
    retry_interval: float = 10
    command_timeout: int = 60
    drain_timeout: int = 300
    drain_retries: int = 3
    parallel_defaults: Dict[str, int] = None

    def __post_init__(self):
        if self.parallel_defaults is None:
            object.__setattr__(
                self,
                "parallel_defaults",
                {"master": 1, "infra": 1, "worker": 2, "other": 1},
            )

    @classmethod
    def from_config(cls, config=Config) -> "RebootPolicy":
        config.validate()
        return cls(
            ready_attempts=config.NODE_READY_TIMEOUT,
            access_attempts=config.NODE_DEBUG_TIMEOUT,
            retry_interval=config.RETRY_INTERVAL,
            command_timeout=config.OC_COMMAND_TIMEOUT,
            drain_timeout=config.NODE_DRAIN_TIMEOUT,
            drain_retries=config.DRAIN_RETRY_COUNT,
            parallel_defaults={
                "master": config.MASTER_PARALLEL_DEFAULT,
                "infra": config.INFRA_PARALLEL_DEFAULT,
                "worker": config.WORKER_PARALLEL_DEFAULT,
                "other": config.OTHER_PARALLEL_DEFAULT,
            },
        )

    def with_ready_timeout(self, seconds: int) -> "RebootPolicy":
        """Return a copy whose ready wait covers roughly ``seconds``."""
        if seconds <= 0:
            raise ValidationError("Custom timeout must be a positive number of seconds")
        attempts = max(1, int(seconds // self.retry_interval))
        return RebootPolicy(
            ready_attempts=attempts,
            access_attempts=self.access_attempts,
            retry_interval=self.retry_interval,
            command_timeout=self.command_timeout,
            drain_timeout=self.drain_timeout,
            drain_retries=self.drain_retries,
            parallel_defaults=dict(self.parallel_defaults),
        )
