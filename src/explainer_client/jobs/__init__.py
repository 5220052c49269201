"""
Job progress tracking: per-job channels and state reconciliation.
"""

from .channel import JobChannel, JobListener
from .machine import JobStateMachine

__all__ = ["JobChannel", "JobListener", "JobStateMachine"]
