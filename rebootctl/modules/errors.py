"""Error taxonomy for node reboot runs."""


class RebootError(Exception):
    """Base class for all rebootctl errors."""
    pass


class ValidationError(RebootError):
    """Malformed input (conflicting selectors, negative parallelism, bad tunables)."""
    pass


class ResolutionError(RebootError):
    """Target role or node could not be resolved."""
    pass


class NotFoundError(ResolutionError):
    """The cluster returned no node for the requested selector."""
    pass


class PreflightError(RebootError):
    """Session, permission or cluster health check failed before scheduling."""
    pass


class ClusterClientError(RebootError):
    """A call to the cluster failed."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class PhaseError(RebootError):
    """A lifecycle phase failed for one node."""

    def __init__(self, node: str, phase, reason: str):
        super().__init__(f"{phase.value} failed for node {node}: {reason}")
        self.node = node
        self.phase = phase
        self.reason = reason


class TransientPhaseError(PhaseError):
    """A drain/uncordon attempt failed; retried while the budget lasts."""
    pass


class PhaseTimeoutError(PhaseError):
    """Readiness or access polling exhausted its attempts."""
    pass


class CompensationFailure(PhaseError):
    """Uncordon after a failed reboot did not succeed; node left cordoned."""
    pass


class RunCancelledError(RebootError):
    """The run was interrupted while a lifecycle was in flight."""
    pass


class IllegalTransitionError(RebootError):
    """A lifecycle state change not allowed by the transition table."""
    pass


class DuplicateOutcomeError(RebootError):
    """A node reported a terminal outcome more than once."""
    pass
