"""Runtime module for child processes and the cooperative scheduler.

This module provides the child-process handle and the single-threaded
scheduler that delivers its exit notifications.
"""

from __future__ import annotations

from .child import ChildProcess
from .scheduler import Scheduler

__all__ = [
    "ChildProcess",
    "Scheduler",
]
