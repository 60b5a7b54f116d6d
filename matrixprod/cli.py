#!/usr/bin/env python3
"""
matrixprod command line interface.

Usage:
    matrixprod info [--json] [--force]
    matrixprod bench [--sizes 100 500] [--methods numpy blocked] [--iterations 3]
    matrixprod multiply --size M K N [--method auto] [--seed 0]
"""

import argparse
import json
import logging
import sys
import time
from dataclasses import replace
from typing import List, Optional

import numpy as np

from .benchmark import DEFAULT_METHODS, DEFAULT_SIZES, benchmark_matmul, format_results
from .buffer import from_array, to_array
from .capabilities import format_capabilities, probe_capabilities
from .config import EngineConfig
from .engine import MatrixEngine
from .errors import MatrixProdError
from .logging_config import setup_logging


def _cmd_info(args: argparse.Namespace) -> int:
    record = probe_capabilities(force=args.force)
    if args.json:
        print(json.dumps(record.as_dict(), indent=2))
    else:
        print(format_capabilities(record))
    return 0


def _cmd_bench(args: argparse.Namespace, config: EngineConfig) -> int:
    results = benchmark_matmul(
        sizes=args.sizes,
        methods=args.methods,
        iterations=args.iterations,
        seed=args.seed,
        engine=MatrixEngine(config),
    )
    print(format_results(results))
    return 0


def _cmd_multiply(args: argparse.Namespace, config: EngineConfig) -> int:
    m, k, n = args.size
    rng = np.random.default_rng(args.seed)
    A = rng.standard_normal((m, k))
    B = rng.standard_normal((k, n))

    engine = MatrixEngine(config)
    chosen = engine.resolve_variant(m, k, n, args.method)

    start_time = time.perf_counter()
    result = to_array(engine.multiply(from_array(A), from_array(B), chosen))
    elapsed = time.perf_counter() - start_time

    reference = A @ B
    max_error = float(np.max(np.abs(result - reference))) if result.size else 0.0

    print(f"Matrix multiplication: [{m} x {k}] * [{k} x {n}]")
    print(f"Kernel: {chosen}")
    print(f"Time: {elapsed * 1000:.2f} ms")
    print(f"Max abs error vs NumPy: {max_error:.3e}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="matrixprod",
        description="Multi-backend dense matrix multiplication",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    matrixprod info                          # Hardware capability report
    matrixprod bench --sizes 100 500         # Benchmark all methods
    matrixprod multiply --size 300 300 300   # One product with automatic selection
        """
    )
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging')
    parser.add_argument('--block-size', type=int, default=None,
                        help='Tile size for the blocked kernel')
    parser.add_argument('--strict', action='store_true',
                        help='Fail instead of degrading when vendor BLAS is unavailable')

    sub = parser.add_subparsers(dest='command', required=True)

    info = sub.add_parser('info', help='Show detected hardware capabilities')
    info.add_argument('--json', action='store_true', help='Output JSON')
    info.add_argument('--force', action='store_true', help='Re-run detection')

    bench = sub.add_parser('bench', help='Benchmark kernels against NumPy')
    bench.add_argument('--sizes', type=int, nargs='+', default=list(DEFAULT_SIZES))
    bench.add_argument('--methods', nargs='+', default=list(DEFAULT_METHODS))
    bench.add_argument('--iterations', type=int, default=3)
    bench.add_argument('--seed', type=int, default=42)

    multiply = sub.add_parser('multiply', help='Multiply two random matrices')
    multiply.add_argument('--size', type=int, nargs=3, metavar=('M', 'K', 'N'), required=True)
    multiply.add_argument('--method', default='auto')
    multiply.add_argument('--seed', type=int, default=0)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        config = EngineConfig.from_env()
        if args.block_size is not None:
            config = replace(config, block_size=args.block_size)
        if args.strict:
            config = replace(config, strict_variants=True)

        if args.command == 'info':
            return _cmd_info(args)
        if args.command == 'bench':
            return _cmd_bench(args, config)
        return _cmd_multiply(args, config)
    except (MatrixProdError, ValueError, TypeError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
