#!/usr/bin/env python3
"""
Progress tracking for sequential batch audits
Produces an immutable ProgressSnapshot after every URL with a running-average ETA
"""

import time
from typing import Callable, Optional

from audit_models import ProgressSnapshot
from averaging import round_half_up
from logging_config import setup_logger


class ProgressTracker:
    """Tracks elapsed time for one batch and projects the time remaining"""

    def __init__(self, total: int, clock: Callable[[], float] = time.monotonic, debug_mode: bool = False):
        self.total = total
        self.clock = clock
        self.logger = setup_logger('ProgressTracker', debug_mode)
        self.start_time: Optional[float] = None

    def start(self, current_url: Optional[str] = None) -> ProgressSnapshot:
        self.start_time = self.clock()
        self.logger.info(f"🚀 Starting batch: {self.total} URLs to audit")
        return ProgressSnapshot(completed=0, total=self.total, current_url=current_url)

    def snapshot(self, completed: int, current_url: Optional[str] = None) -> ProgressSnapshot:
        """
        Build the snapshot after `completed` URLs have finished

        ETA = URLs remaining x (elapsed / URLs completed), recomputed every
        time from scratch.
        """
        if self.start_time is None:
            self.start_time = self.clock()

        elapsed_s = max(0.0, self.clock() - self.start_time)
        remaining = max(0, self.total - completed)

        if completed > 0 and remaining > 0:
            eta_ms = round_half_up(remaining * (elapsed_s / completed) * 1000)
        else:
            eta_ms = 0

        snapshot = ProgressSnapshot(
            completed=completed,
            total=self.total,
            current_url=current_url,
            eta_ms=eta_ms,
            elapsed_ms=round_half_up(elapsed_s * 1000),
        )

        self.logger.info(
            f" Progress: {completed}/{self.total} ({snapshot.percent:.1f}%)"
            f" | ETA {eta_ms / 1000:.0f}s"
            + (f" | next: {current_url}" if current_url else "")
        )
        return snapshot
