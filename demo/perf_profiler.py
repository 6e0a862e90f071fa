#!/usr/bin/env python3
"""Timing and resource profiling for engine runs."""

from __future__ import annotations

import gc
import os
import platform
import shutil
import sys
import time
import tracemalloc
from dataclasses import dataclass
from typing import Callable, Optional

import psutil

Clock = Callable[[], int]


@dataclass
class PerfMetrics:
    """Performance metrics for a single engine call."""

    name: str
    wall_time_s: float = 0.0
    cpu_time_s: float = 0.0
    queries: int = 0
    memory_peak_mb: float = 0.0
    rss_start_mb: float = 0.0
    rss_end_mb: float = 0.0
    gc_collections: tuple[int, int, int] = (0, 0, 0)  # gen0, gen1, gen2

    @property
    def queries_per_sec(self) -> float:
        return self.queries / self.wall_time_s if self.wall_time_s > 0 else 0

    @property
    def ns_per_query(self) -> float:
        return (self.wall_time_s * 1e9) / self.queries if self.queries > 0 else 0

    @property
    def rss_delta_mb(self) -> float:
        return self.rss_end_mb - self.rss_start_mb


class PerfProfiler:
    """
    Context manager measuring one timed region.

    Captures:
    - Wall clock time (wall_clock, default perf_counter_ns)
    - CPU time (cpu_clock, default process_time_ns)
    - Peak traced allocation (tracemalloc)
    - GC collections per generation
    - Process RSS before and after (psutil)

    Clocks are injected so tests can drive the profiler deterministically.
    """

    def __init__(
        self,
        name: str,
        *,
        track_memory: bool = True,
        track_gc: bool = True,
        wall_clock: Clock = time.perf_counter_ns,
        cpu_clock: Clock = time.process_time_ns,
    ):
        self.name = name
        self.track_memory = track_memory
        self.track_gc = track_gc
        self.wall_clock = wall_clock
        self.cpu_clock = cpu_clock
        self._start_wall: int = 0
        self._start_cpu: int = 0
        self._start_gc: tuple[int, int, int] = (0, 0, 0)
        self._mem_tracking: bool = False
        self._rss_start_mb: float = 0.0
        self.metrics: Optional[PerfMetrics] = None
        self.queries: int = 0

    def __enter__(self):
        if self.track_gc:
            # Collect before measuring for consistent baselines
            gc.collect()
            self._start_gc = _gc_counts()

        if self.track_memory:
            tracemalloc.start()
            self._mem_tracking = True

        self._rss_start_mb = get_process_rss_mb()

        # Start timing last
        self._start_cpu = self.cpu_clock()
        self._start_wall = self.wall_clock()
        return self

    def __exit__(self, *args):
        end_wall = self.wall_clock()
        end_cpu = self.cpu_clock()

        peak = 0
        if self._mem_tracking:
            _, peak = tracemalloc.get_traced_memory()
            tracemalloc.stop()
            self._mem_tracking = False

        gc_delta = (0, 0, 0)
        if self.track_gc:
            end_gc = _gc_counts()
            gc_delta = tuple(e - s for e, s in zip(end_gc, self._start_gc))

        self.metrics = PerfMetrics(
            name=self.name,
            wall_time_s=(end_wall - self._start_wall) / 1e9,
            cpu_time_s=(end_cpu - self._start_cpu) / 1e9,
            queries=self.queries,
            memory_peak_mb=peak / (1024 * 1024),
            rss_start_mb=self._rss_start_mb,
            rss_end_mb=get_process_rss_mb(),
            gc_collections=gc_delta,
        )

    def set_queries(self, n: int) -> None:
        """Set query count for throughput calculations."""
        self.queries = n
        if self.metrics:
            self.metrics.queries = n

    def report(self) -> dict:
        if not self.metrics:
            return {"name": self.name, "error": "No metrics collected"}
        m = self.metrics
        return {
            "name": m.name,
            "wall_time_s": m.wall_time_s,
            "cpu_time_s": m.cpu_time_s,
            "queries": m.queries,
            "queries_per_sec": m.queries_per_sec,
            "ns_per_query": m.ns_per_query,
            "memory_peak_mb": m.memory_peak_mb,
            "rss_start_mb": m.rss_start_mb,
            "rss_end_mb": m.rss_end_mb,
            "rss_delta_mb": m.rss_delta_mb,
            "gc_gen0": m.gc_collections[0],
            "gc_gen1": m.gc_collections[1],
            "gc_gen2": m.gc_collections[2],
        }


def _gc_counts() -> tuple[int, int, int]:
    stats = gc.get_stats()
    return (
        stats[0]["collections"],
        stats[1]["collections"],
        stats[2]["collections"],
    )


def get_process_rss_mb() -> float:
    """Current process RSS in MB."""
    return psutil.Process().memory_info().rss / (1024 * 1024)


def _get_system_memory_info() -> dict:
    vm = psutil.virtual_memory()
    return {
        "mem_total_gb": round(vm.total / (1024 ** 3), 2),
        "mem_available_gb": round(vm.available / (1024 ** 3), 2),
        "mem_percent": vm.percent,
    }


def _get_disk_usage_info(path: str) -> dict:
    usage = shutil.disk_usage(path)
    return {
        "disk_total_gb": round(usage.total / (1024 ** 3), 2),
        "disk_free_gb": round(usage.free / (1024 ** 3), 2),
    }


def get_system_info() -> dict:
    """Capture system information for benchmark context."""
    info = {
        "python_version": sys.version,
        "platform": platform.platform(),
        "processor": platform.processor(),
        "cpu_count": os.cpu_count(),
        "physical_cpu_count": psutil.cpu_count(logical=False),
        "machine": platform.machine(),
        "psutil_version": psutil.__version__,
    }
    info.update(_get_system_memory_info())
    info.update(_get_disk_usage_info(os.getcwd()))
    return info
