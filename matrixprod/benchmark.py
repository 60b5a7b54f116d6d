"""
Matrix Multiplication Benchmark
===============================

Times the kernels against a NumPy baseline across matrix sizes.

Features:
- Best-of-N wall-clock timing per method
- GFLOPS and speedup relative to NumPy
- Relative error against the NumPy result
- Resident memory growth during each run
"""

import gc
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Sequence

import numpy as np
import psutil

from .buffer import MatrixBuffer, from_array, to_array
from .engine import MatrixEngine
from .variants import KernelVariant


logger = logging.getLogger(__name__)

DEFAULT_SIZES = (100, 500, 1000)
DEFAULT_METHODS = ("numpy", "naive", "blocked", "vendor", "auto")

# the naive kernel is only timed up to this size
NAIVE_MAX_SIZE = 500


@dataclass
class BenchmarkResult:
    """Results from benchmarking one method at one size."""
    size: int
    method: str
    time_ms: float
    gflops: float
    speedup: Optional[float]
    memory_mb: float
    error_vs_baseline: Optional[float] = None


def calculate_gflops(size: int, seconds: float) -> float:
    """GFLOPS for an n x n multiply: 2n^3 floating point operations."""
    return 2.0 * size ** 3 / max(seconds, 1e-12) / 1e9


@contextmanager
def _memory_tracker() -> Iterator[Dict[str, float]]:
    """Track resident memory growth (MB) over the managed block."""
    process = psutil.Process()
    usage = {'memory_mb': 0.0}
    start_memory = process.memory_info().rss / (1024 ** 2)
    try:
        yield usage
    finally:
        end_memory = process.memory_info().rss / (1024 ** 2)
        usage['memory_mb'] = end_memory - start_memory


class MatrixMultiplicationBenchmark:
    """Runs every requested method over square matrices of each size."""

    def __init__(self, engine: Optional[MatrixEngine] = None,
                 iterations: int = 3, seed: int = 42):
        if iterations < 1:
            raise ValueError("iterations must be at least 1")
        self.engine = engine or MatrixEngine()
        self.iterations = iterations
        self.seed = seed

    def _kernel(self, method: str, a: MatrixBuffer, b: MatrixBuffer) -> Callable[[], np.ndarray]:
        variant = KernelVariant.parse(method, default_block_size=self.engine.config.block_size)
        return lambda: to_array(self.engine.multiply(a, b, variant))

    def _time(self, func: Callable[[], np.ndarray]):
        times = []
        result = None
        with _memory_tracker() as usage:
            for _ in range(self.iterations):
                start_time = time.perf_counter()
                result = func()
                times.append(time.perf_counter() - start_time)
        return min(times), result, usage['memory_mb']

    def run_size(self, size: int, methods: Sequence[str]) -> List[BenchmarkResult]:
        rng = np.random.default_rng(self.seed + size)
        A = rng.standard_normal((size, size))
        B = rng.standard_normal((size, size))
        a_buf, b_buf = from_array(A), from_array(B)

        gc.collect()
        baseline_seconds, baseline, baseline_memory = self._time(lambda: np.dot(A, B))
        baseline_norm = np.linalg.norm(baseline)

        results = []
        for method in methods:
            if method == 'numpy':
                seconds, memory_mb, error = baseline_seconds, baseline_memory, 0.0
            else:
                if method == 'naive' and size > NAIVE_MAX_SIZE:
                    logger.info("Skipping naive kernel at size %d", size)
                    continue
                gc.collect()
                seconds, result, memory_mb = self._time(self._kernel(method, a_buf, b_buf))
                error = float(np.linalg.norm(result - baseline) / baseline_norm) if baseline_norm else 0.0

            results.append(BenchmarkResult(
                size=size,
                method=method,
                time_ms=seconds * 1000,
                gflops=calculate_gflops(size, seconds),
                speedup=baseline_seconds / seconds if seconds > 0 else None,
                memory_mb=memory_mb,
                error_vs_baseline=error,
            ))
            logger.info("size=%d method=%s %.2fms (%.2f GFLOPS)",
                        size, method, seconds * 1000, results[-1].gflops)
        return results

    def run(self, sizes: Sequence[int] = DEFAULT_SIZES,
            methods: Sequence[str] = DEFAULT_METHODS) -> List[BenchmarkResult]:
        for method in methods:
            if method != 'numpy':
                # reject unknown names before any timing starts
                KernelVariant.parse(method)

        results: List[BenchmarkResult] = []
        for size in sizes:
            if size < 1:
                raise ValueError(f"Benchmark sizes must be positive, got {size}")
            results.extend(self.run_size(size, methods))
        return results


def benchmark_matmul(sizes: Sequence[int] = DEFAULT_SIZES,
                     methods: Sequence[str] = DEFAULT_METHODS,
                     iterations: int = 3,
                     seed: int = 42,
                     engine: Optional[MatrixEngine] = None) -> List[BenchmarkResult]:
    """
    Run performance benchmarks for the given sizes and methods.

    Args:
        sizes: Square matrix sizes to benchmark
        methods: ``"numpy"`` plus any method name accepted by ``KernelVariant.parse``
        iterations: Runs per method; the best time is reported
        seed: Base seed for the random operands
        engine: Engine used for the kernel methods

    Returns:
        One ``BenchmarkResult`` per (size, method) that was run
    """
    benchmark = MatrixMultiplicationBenchmark(engine, iterations=iterations, seed=seed)
    return benchmark.run(sizes, methods)


def format_results(results: Sequence[BenchmarkResult]) -> str:
    """Render benchmark results as a text table."""
    if not results:
        return "No results to display"

    header = f"{'Size':<8} {'Method':<14} {'Time (ms)':<12} {'GFLOPS':<10} {'Speedup':<9} {'Error':<10}"
    lines = [header, "-" * len(header)]
    for r in results:
        speedup = f"{r.speedup:.2f}x" if r.speedup is not None else "N/A"
        error = f"{r.error_vs_baseline:.2e}" if r.error_vs_baseline is not None else "N/A"
        lines.append(f"{r.size:<8} {r.method:<14} {r.time_ms:<12.2f} {r.gflops:<10.2f} {speedup:<9} {error:<10}")
    return "\n".join(lines)
