"""
Restamp Watcher Package.

Compiler output scanning, debouncing, and restart stamping.
Requires Python 3.11+.
"""

from watcher.debouncer import Debouncer
from watcher.line_scanner import CompilerOutputScanner, LineBuffer
from watcher.stamp import RestartStamp

__all__ = ["CompilerOutputScanner", "Debouncer", "LineBuffer", "RestartStamp"]
