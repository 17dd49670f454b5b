"""
Node reboot orchestration modules.
"""
from .errors import RebootError
from .models import LifecycleState, NodeResult, NodeRole, NodeTarget, RunOutcome

__all__ = [
    'RebootError',
    'LifecycleState',
    'NodeResult',
    'NodeRole',
    'NodeTarget',
    'RunOutcome',
]
