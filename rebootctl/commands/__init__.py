from . import preflight, reboot

__all__ = ['preflight', 'reboot']
