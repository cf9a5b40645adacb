#!/usr/bin/env python3
"""
Restamp Command Line Entry Point.

Rebuild and restart a program whenever its sources change.
Requires Python 3.11+.

Usage:
    restamp [runtime args...]
    python -m supervisor --port 1337 --bind loopback

All arguments are forwarded verbatim to the runtime. The supervisor is
configured through COMPILER_*, RUNTIME_*, WATCH_* and LOG_* environment
variables or a .env file.
"""

import asyncio
import signal
import sys
from collections.abc import Sequence

from supervisor.lifecycle import SIGNAL_EXIT_CODES
from supervisor.process_pair import ProcessPairSupervisor
from utils.config import get_settings
from utils.logger import close_logging, configure_logging, get_logger


def main(argv: Sequence[str] | None = None) -> int:
    """Run one watch session and return its exit code."""
    configure_logging()
    logger = get_logger("cli")

    args = list(sys.argv[1:] if argv is None else argv)
    settings = get_settings()
    logger.info(
        "watch_starting",
        compiler=settings.compiler.command,
        runtime=settings.runtime.executable,
        stamp=str(settings.watch.stamp_path),
        args=args,
    )

    supervisor = ProcessPairSupervisor(settings=settings)
    try:
        return asyncio.run(supervisor.run(args))
    except KeyboardInterrupt:
        # Interrupted before the loop's signal handlers were installed
        return SIGNAL_EXIT_CODES[signal.SIGINT]
    finally:
        close_logging()


if __name__ == "__main__":
    sys.exit(main())
