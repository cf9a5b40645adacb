"""
Restamp Process Pair Supervisor.

Runs the initial build, then keeps a watching compiler and a
self-restarting runtime alive together until either one stops.
Requires Python 3.11+.
"""

import asyncio
import os
import sys
from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from typing import BinaryIO

import structlog

from supervisor.lifecycle import SIGNAL_EXIT_CODES, LifecycleCoordinator
from supervisor.process import ProcessHandle
from supervisor.session import WatchSession
from utils.config import Settings, get_settings
from utils.logger import LoggerMixin
from watcher.debouncer import Debouncer
from watcher.line_scanner import CompilerOutputScanner
from watcher.stamp import RestartStamp


class SupervisorState(str, Enum):
    """Supervisor lifecycle states."""

    INITIAL_BUILD = "initial_build"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    EXITED = "exited"


SIGNAL_SETTLE_SECONDS = 0.1

_TRANSITIONS: dict[SupervisorState | None, frozenset[SupervisorState]] = {
    None: frozenset({SupervisorState.INITIAL_BUILD}),
    SupervisorState.INITIAL_BUILD: frozenset(
        {SupervisorState.RUNNING, SupervisorState.SHUTTING_DOWN, SupervisorState.EXITED}
    ),
    SupervisorState.RUNNING: frozenset({SupervisorState.SHUTTING_DOWN}),
    SupervisorState.SHUTTING_DOWN: frozenset({SupervisorState.EXITED}),
    SupervisorState.EXITED: frozenset(),
}


class ProcessPairSupervisor(LoggerMixin):
    """
    Owns the compiler and runtime processes for one watch session.

    The supervisor never restarts the runtime itself. It rewrites the
    restart stamp after each debounced build and the runtime's own
    watcher, scoped to the stamp path, restarts the program. Any exit
    of either child while running ends the whole session.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        cwd: Path | None = None,
        stamp: RestartStamp | None = None,
        stdout: BinaryIO | None = None,
        stderr: BinaryIO | None = None,
    ) -> None:
        """
        Initialize the supervisor.

        Args:
            settings: Application settings; defaults to cached settings
            cwd: Working directory for both children
            stamp: Restart stamp; defaults to the configured stamp path
            stdout: Sink for passed-through compiler stdout
            stderr: Sink for passed-through compiler stderr
        """
        self._settings = settings or get_settings()
        self._cwd = cwd or Path.cwd()
        self._stamp = stamp or RestartStamp(self._cwd / self._settings.watch.stamp_path)
        self._stdout = stdout if stdout is not None else sys.stdout.buffer
        self._stderr = stderr if stderr is not None else sys.stderr.buffer

        self._debouncer = Debouncer(
            delay_ms=self._settings.watch.debounce_delay_ms,
            callback=self._stamp.write,
        )
        self._coordinator = LifecycleCoordinator(on_cleanup=self._on_cleanup)

        self._state: SupervisorState | None = None
        self._session: WatchSession | None = None
        self._build: ProcessHandle | None = None
        self._compiler: ProcessHandle | None = None
        self._runtime: ProcessHandle | None = None
        self._pumps: list[asyncio.Task[None]] = []
        self._exit_watchers: list[asyncio.Task[None]] = []

    def _transition(self, new_state: SupervisorState) -> None:
        """Move to a new state, rejecting transitions the lifecycle forbids."""
        if new_state not in _TRANSITIONS[self._state]:
            raise RuntimeError(
                f"Invalid supervisor transition: {self._state} -> {new_state}"
            )
        self.log.debug(
            "supervisor_state_changed",
            old=self._state.value if self._state else None,
            new=new_state.value,
        )
        self._state = new_state

    async def run(self, args: Sequence[str]) -> int:
        """
        Run one watch session until it ends.

        Args:
            args: Pass-through arguments for the runtime

        Returns:
            Exit code for the invoking shell
        """
        loop = asyncio.get_running_loop()
        args = list(args)

        self._session = WatchSession.create()
        env = self._session.child_env(os.environ, args, self._settings.watch.env_prefix)
        structlog.contextvars.bind_contextvars(watch_session=self._session.id)

        self._coordinator.install_signal_handlers(loop)
        try:
            return await self._run(args, env)
        finally:
            self._coordinator.remove_signal_handlers(loop)
            structlog.contextvars.unbind_contextvars("watch_session")

    async def _run(self, args: list[str], env: dict[str, str]) -> int:
        self._transition(SupervisorState.INITIAL_BUILD)
        build_code = await self._initial_build(env)

        if self._coordinator.requested:
            return await self._shutdown()
        if build_code != 0:
            self.log.error("initial_build_failed", exit_code=build_code)
            self._transition(SupervisorState.EXITED)
            return build_code

        # Baseline for the runtime's first watch cycle
        self._stamp.write()
        self._transition(SupervisorState.RUNNING)

        try:
            await self._start_children(args, env)
        except OSError as e:
            self.log.error("spawn_failed", error=str(e))
            self._coordinator.cleanup(1, "spawn_failed")

        await self._coordinator.wait()
        return await self._shutdown()

    async def _spawn(
        self,
        name: str,
        argv: list[str],
        env: dict[str, str],
        capture_output: bool = False,
    ) -> ProcessHandle:
        handle = await ProcessHandle.spawn(
            name, argv, env=env, cwd=self._cwd, capture_output=capture_output
        )
        # A shutdown may have begun while the spawn was in flight
        if self._coordinator.requested:
            handle.terminate()
        return handle

    async def _initial_build(self, env: dict[str, str]) -> int:
        argv = self._settings.compiler.build_command()
        self.log.info("initial_build_started", argv=argv)
        try:
            self._build = await self._spawn("build", argv, env)
        except OSError as e:
            self.log.error("spawn_failed", child="build", error=str(e))
            return 1

        await self._build.wait()
        code = self._build.exit_code
        return code if code is not None else 1

    async def _start_children(self, args: list[str], env: dict[str, str]) -> None:
        compiler_settings = self._settings.compiler
        watch_settings = self._settings.watch

        self._compiler = await self._spawn(
            "compiler", compiler_settings.watch_command(), env, capture_output=True
        )
        streams = (
            ("stdout", self._compiler.stdout, self._stdout),
            ("stderr", self._compiler.stderr, self._stderr),
        )
        for name, reader, sink in streams:
            if reader is None:
                continue
            scanner = CompilerOutputScanner(
                sink=sink,
                markers=compiler_settings.completion_markers,
                on_completion=self._debouncer.notify,
                max_line_bytes=watch_settings.max_line_bytes,
                name=name,
            )
            self._pumps.append(asyncio.create_task(self._pump(scanner, reader)))
        self._exit_watchers.append(asyncio.create_task(self._watch_exit(self._compiler)))

        if self._coordinator.requested:
            self.log.info("runtime_spawn_skipped", reason=self._coordinator.reason)
            return

        runtime_argv = self._settings.runtime.command(watch_settings.stamp_path, args)
        self._runtime = await self._spawn("runtime", runtime_argv, env)
        self._exit_watchers.append(asyncio.create_task(self._watch_exit(self._runtime)))

    async def _pump(self, scanner: CompilerOutputScanner, reader: asyncio.StreamReader) -> None:
        try:
            await scanner.pump(reader)
        except OSError as e:
            self.log.error("compiler_output_pump_failed", error=str(e))

    async def _watch_exit(self, handle: ProcessHandle) -> None:
        await handle.wait()
        if self._state is not SupervisorState.RUNNING:
            return

        code = handle.exit_code
        if handle.returncode is not None and -handle.returncode in SIGNAL_EXIT_CODES:
            # Terminal interrupts reach the whole process group; let our own
            # signal handler claim the shutdown first.
            await asyncio.sleep(SIGNAL_SETTLE_SECONDS)
            if self._coordinator.requested:
                return

        self.log.warning("child_exited", child=handle.name, returncode=handle.returncode)
        self._coordinator.cleanup(code if code is not None else 1, f"{handle.name}_exited")

    def _on_cleanup(self, code: int, reason: str) -> None:
        if self._state in (SupervisorState.INITIAL_BUILD, SupervisorState.RUNNING):
            self._transition(SupervisorState.SHUTTING_DOWN)
        self._debouncer.close()
        for handle in self._children():
            handle.terminate()

    def _children(self) -> list[ProcessHandle]:
        return [h for h in (self._build, self._runtime, self._compiler) if h is not None]

    async def _shutdown(self) -> int:
        """Wait out the grace period, force-kill survivors, and exit."""
        grace = self._settings.watch.shutdown_grace_seconds

        alive = [h for h in self._children() if h.alive]
        if alive:
            waits = [asyncio.create_task(h.wait()) for h in alive]
            _, pending = await asyncio.wait(waits, timeout=grace)
            if pending:
                for handle in alive:
                    if handle.alive:
                        self.log.warning("grace_period_expired", child=handle.name, grace=grace)
                        handle.kill()
                await asyncio.wait(pending)

        if self._pumps:
            _, pending_pumps = await asyncio.wait(self._pumps, timeout=grace)
            for task in pending_pumps:
                task.cancel()
            await asyncio.gather(*self._pumps, return_exceptions=True)

        await asyncio.gather(*self._exit_watchers, return_exceptions=True)

        self._coordinator.mark_done()
        self._transition(SupervisorState.EXITED)
        code = self._coordinator.exit_code
        return code if code is not None else 1

    @property
    def state(self) -> SupervisorState | None:
        return self._state

    @property
    def session(self) -> WatchSession | None:
        return self._session

    @property
    def coordinator(self) -> LifecycleCoordinator:
        return self._coordinator

    @property
    def debouncer(self) -> Debouncer:
        return self._debouncer

    @property
    def stamp(self) -> RestartStamp:
        return self._stamp

    @property
    def build(self) -> ProcessHandle | None:
        return self._build

    @property
    def compiler(self) -> ProcessHandle | None:
        return self._compiler

    @property
    def runtime(self) -> ProcessHandle | None:
        return self._runtime
