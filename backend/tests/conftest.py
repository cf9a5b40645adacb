"""
Restamp Test Configuration.

Pytest fixtures and configuration.
Requires Python 3.11+.
"""

import asyncio
import sys
import time
from collections.abc import Callable
from pathlib import Path

import pytest

from utils.config import (
    CompilerSettings,
    RuntimeSettings,
    Settings,
    WatchSettings,
)

FAKE_COMPILER = '''
import os
import signal
import sys
import time

log = os.environ["FAKE_LOG"]


def record(line):
    with open(log, "a") as f:
        f.write(line + "\\n")


if "--watch" not in sys.argv:
    record("compiler:build")
    sys.exit(int(os.environ.get("FAKE_BUILD_EXIT", "0")))


def on_term(signum, frame):
    late_output = os.environ.get("FAKE_COMPILER_TERM_OUTPUT")
    if late_output:
        sys.stdout.write(late_output + "\\n")
        sys.stdout.flush()
        time.sleep(0.5)
    record("compiler:terminated")
    sys.exit(0)


if os.environ.get("FAKE_COMPILER_IGNORE_TERM"):
    signal.signal(signal.SIGTERM, signal.SIG_IGN)
else:
    signal.signal(signal.SIGTERM, on_term)

record("compiler:watch")

for line in os.environ.get("FAKE_COMPILER_OUTPUT", "").split("|"):
    if line:
        sys.stdout.write(line + "\\n")
        sys.stdout.flush()

exit_after = float(os.environ.get("FAKE_COMPILER_EXIT_AFTER", "-1"))
if exit_after >= 0:
    time.sleep(exit_after)
    sys.exit(int(os.environ.get("FAKE_COMPILER_EXIT_CODE", "0")))

while True:
    time.sleep(0.05)
'''

FAKE_RUNTIME = '''
import os
import signal
import sys
import time

log = os.environ["FAKE_LOG"]


def record(line):
    with open(log, "a") as f:
        f.write(line + "\\n")


def on_term(signum, frame):
    record("runtime:terminated")
    sys.exit(0)


signal.signal(signal.SIGTERM, on_term)
record("runtime:start " + " ".join(sys.argv[1:]))
record("runtime:env mode=%s session=%s command=%s" % (
    os.environ.get("RESTAMP_WATCH_MODE"),
    os.environ.get("RESTAMP_WATCH_SESSION"),
    os.environ.get("RESTAMP_WATCH_COMMAND"),
))

if os.environ.get("FAKE_RUNTIME_SELF_KILL"):
    time.sleep(0.3)
    os.kill(os.getpid(), signal.SIGKILL)

exit_after = float(os.environ.get("FAKE_RUNTIME_EXIT_AFTER", "-1"))
if exit_after >= 0:
    time.sleep(exit_after)
    sys.exit(int(os.environ.get("FAKE_RUNTIME_EXIT_CODE", "0")))

while True:
    time.sleep(0.05)
'''


@pytest.fixture
def fake_log(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Log file shared by the fake compiler and runtime."""
    path = tmp_path / "children.log"
    monkeypatch.setenv("FAKE_LOG", str(path))
    monkeypatch.delenv("RESTAMP_WATCH_COMMAND", raising=False)
    return path


@pytest.fixture
def watch_settings(tmp_path: Path) -> Settings:
    """Settings pointing the supervisor at the fake children."""
    scripts = tmp_path / "scripts"
    scripts.mkdir()
    compiler = scripts / "fake_compiler.py"
    compiler.write_text(FAKE_COMPILER)
    runtime = scripts / "fake_runtime.py"
    runtime.write_text(FAKE_RUNTIME)

    return Settings(
        compiler=CompilerSettings(
            command=[sys.executable, str(compiler)],
            build_args=["--no-clean"],
            watch_args=["--watch", "--no-clean"],
        ),
        runtime=RuntimeSettings(
            executable=sys.executable,
            watch_args=[str(runtime), "--watch-path", "{stamp}"],
            entry="",
        ),
        watch=WatchSettings(
            stamp_path=Path("dist") / ".watch-restart",
            debounce_delay_ms=50,
            shutdown_grace_seconds=2.0,
        ),
    )


def read_log(path: Path) -> list[str]:
    if not path.exists():
        return []
    return path.read_text().splitlines()


async def wait_for(predicate: Callable[[], bool], timeout: float = 10.0) -> None:
    """Poll until a condition holds or fail the test."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            pytest.fail("condition not met in time")
        await asyncio.sleep(0.02)
