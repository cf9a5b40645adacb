"""
Restamp Watch Session.

Identity of one supervisor run, shared with both children.
Requires Python 3.11+.
"""

import os
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class WatchSession:
    """Opaque identifier correlating both children to one supervisor run."""

    id: str
    pid: int
    started_at: float

    @classmethod
    def create(cls) -> "WatchSession":
        """Create a session from the current time and process id."""
        started_at = time.time()
        pid = os.getpid()
        return cls(id=f"{int(started_at * 1000)}-{pid}", pid=pid, started_at=started_at)

    def child_env(
        self,
        base: Mapping[str, str],
        args: Sequence[str],
        prefix: str = "RESTAMP",
    ) -> dict[str, str]:
        """
        Build the environment passed to both children.

        Args:
            base: Inherited environment
            args: Pass-through arguments of this invocation
            prefix: Variable name prefix

        Returns:
            Environment with watch-mode variables set
        """
        env = dict(base)
        env[f"{prefix}_WATCH_MODE"] = "1"
        env[f"{prefix}_WATCH_SESSION"] = self.id
        if args:
            env[f"{prefix}_WATCH_COMMAND"] = " ".join(args)
        return env
