"""
Restamp Supervisor Package.

Keeps a watching compiler and a self-restarting runtime in step.
Requires Python 3.11+.
"""

from supervisor.lifecycle import LifecycleCoordinator, ShutdownState
from supervisor.process import ProcessHandle
from supervisor.process_pair import ProcessPairSupervisor, SupervisorState
from supervisor.session import WatchSession

__all__ = [
    "LifecycleCoordinator",
    "ProcessHandle",
    "ProcessPairSupervisor",
    "ShutdownState",
    "SupervisorState",
    "WatchSession",
]
