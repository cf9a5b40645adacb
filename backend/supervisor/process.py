"""
Restamp Process Handle.

Thin wrapper around an asyncio child process.
Requires Python 3.11+.
"""

import asyncio
from collections.abc import Mapping, Sequence
from pathlib import Path

from utils.logger import LoggerMixin


class ProcessHandle(LoggerMixin):
    """
    A spawned child process and its termination state.

    Only processes spawned with ``capture_output`` expose ``stdout`` and
    ``stderr`` readers; all other streams are inherited.
    """

    def __init__(self, name: str, process: asyncio.subprocess.Process) -> None:
        self.name = name
        self._process = process

    @classmethod
    async def spawn(
        cls,
        name: str,
        argv: Sequence[str],
        *,
        env: Mapping[str, str],
        cwd: Path,
        capture_output: bool = False,
    ) -> "ProcessHandle":
        """
        Start a child process.

        Args:
            name: Role name used in logs
            argv: Program and arguments
            env: Child environment
            cwd: Working directory
            capture_output: Pipe stdout/stderr instead of inheriting them

        Returns:
            Handle for the running process

        Raises:
            OSError: If the program cannot be started
        """
        pipe = asyncio.subprocess.PIPE if capture_output else None
        process = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd),
            env=dict(env),
            stdout=pipe,
            stderr=pipe,
        )
        handle = cls(name, process)
        handle.log.info("process_spawned", child=name, pid=process.pid, argv=list(argv))
        return handle

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def stdout(self) -> asyncio.StreamReader | None:
        return self._process.stdout

    @property
    def stderr(self) -> asyncio.StreamReader | None:
        return self._process.stderr

    @property
    def returncode(self) -> int | None:
        """Raw return code; negative when killed by a signal."""
        return self._process.returncode

    @property
    def alive(self) -> bool:
        return self._process.returncode is None

    @property
    def exit_code(self) -> int | None:
        """Exit status, or None while running or after death by signal."""
        code = self._process.returncode
        if code is None or code < 0:
            return None
        return code

    async def wait(self) -> int:
        return await self._process.wait()

    def terminate(self) -> bool:
        """
        Request graceful termination.

        Returns:
            True if a signal was sent
        """
        if not self.alive:
            return False
        try:
            self._process.terminate()
        except ProcessLookupError:
            return False
        self.log.debug("process_terminate_sent", child=self.name, pid=self.pid)
        return True

    def kill(self) -> bool:
        """Force termination."""
        if not self.alive:
            return False
        try:
            self._process.kill()
        except ProcessLookupError:
            return False
        self.log.warning("process_killed", child=self.name, pid=self.pid)
        return True
