"""rebootctl - graceful, batched node reboots for OpenShift clusters."""

__version__ = "1.2.0"
