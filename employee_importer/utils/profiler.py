"""
Profiling utilities for the Employee CSV Importer.

Measures wall-clock time and peak RSS of a block of work. The import service
wraps every ingest in `profile_block` and copies the numbers into the report.

    from employee_importer.utils.profiler import profile_block

    with profile_block("import:people.csv") as stats:
        run_import()

    print(stats.duration_seconds, stats.peak_rss_bytes)
"""

from __future__ import annotations

import contextlib
import threading
import time
from dataclasses import dataclass, field
from typing import Generator, Optional

import psutil


@dataclass
class ProfileStats:
    """
    Container for profiling measurements.
    """

    label: str
    start_ts: float = field(default=0.0)
    end_ts: float = field(default=0.0)
    duration_seconds: float = field(default=0.0)
    peak_rss_bytes: Optional[int] = field(default=None)


@contextlib.contextmanager
def profile_block(
    label: str, sample_interval_ms: int = 50, sample_memory: bool = True
) -> Generator[ProfileStats, None, None]:
    """
    Context manager to profile a block of code.

    Parameters
    ----------
    label : str
        Human-friendly label for the profiled block.
    sample_interval_ms : int
        Interval in milliseconds for RSS sampling.
    sample_memory : bool
        Whether to sample RSS in a background thread. When False only the
        end-of-block RSS is recorded.
    """
    stats = ProfileStats(label=label)
    process = psutil.Process()
    peak_rss = process.memory_info().rss
    stop_sampling = threading.Event()

    def _sample_memory() -> None:
        nonlocal peak_rss
        while not stop_sampling.is_set():
            try:
                peak_rss = max(peak_rss, process.memory_info().rss)
            except psutil.Error:
                return
            stop_sampling.wait(timeout=sample_interval_ms / 1000.0)

    sampler: Optional[threading.Thread] = None
    if sample_memory:
        sampler = threading.Thread(target=_sample_memory, daemon=True)
        sampler.start()

    stats.start_ts = time.perf_counter()
    try:
        yield stats
    finally:
        stats.end_ts = time.perf_counter()
        stats.duration_seconds = stats.end_ts - stats.start_ts

        stop_sampling.set()
        if sampler is not None:
            sampler.join(timeout=1.0)

        stats.peak_rss_bytes = max(peak_rss, process.memory_info().rss)


__all__ = ["ProfileStats", "profile_block"]
