#!/usr/bin/env python3
"""
vaultgraph Ingestion Benchmarks

Measures how the content graph scales with vault size: bulk ingestion, edits
to a single member, and adding an unrelated collection root. Each benchmark
grows N until one run exceeds the time limit.

Usage:
    python scripts/benchmark.py            # Run all benchmarks
    python scripts/benchmark.py --config   # Show current benchmark configuration
    python scripts/benchmark.py --verbose  # Also show vaultgraph debug logging

Configuration:
    Adjust the constants at the top of the file to change benchmark parameters.
"""

import argparse
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table, box

from vaultgraph import FileRecord, Graph, ReactiveStore

TIME_LIMIT_SECONDS = 1.0  # Maximum time allowed per operation
STARTING_N = 10  # Starting number of files
SCALE_FACTOR = 1.5  # How much to multiply N by each iteration
MEMBERS_PER_COLLECTION = 10


@dataclass
class BenchmarkResult:
    name: str
    n: int
    seconds: float

    @property
    def per_file_us(self) -> float:
        return self.seconds / self.n * 1e6


def _collection(folder: str) -> FileRecord:
    return FileRecord(
        f"{folder}/index.md",
        "1",
        "---\nkind: campaign\nironvault:\n  playset:\n    type: registry\n    key: starforged\n---\n",
    )


def _member(folder: str, i: int, level: int = 1) -> FileRecord:
    return FileRecord(
        f"{folder}/Characters/member{i}.md",
        "1",
        f"---\nkind: character\nlevel: {level}\n---\nnotes\n",
    )


def _vault(n: int) -> List[FileRecord]:
    """About ``n`` files split into collections of MEMBERS_PER_COLLECTION members."""
    files = []
    for c in range(max(1, n // (MEMBERS_PER_COLLECTION + 1))):
        folder = f"c{c}"
        files.append(_collection(folder))
        files.extend(_member(folder, i) for i in range(MEMBERS_PER_COLLECTION))
    return files


def _fresh_graph(files: List[FileRecord]) -> Graph:
    graph = Graph(store=ReactiveStore())
    for file in files:
        graph.add_or_update_file(file)
    return graph


def bench_bulk_ingest(n: int) -> float:
    files = _vault(n)
    start = time.perf_counter()
    _fresh_graph(files)
    return time.perf_counter() - start


def bench_member_edit(n: int) -> float:
    graph = _fresh_graph(_vault(n))
    start = time.perf_counter()
    for level in range(2, 12):
        graph.add_or_update_file(_member("c0", 0, level=level))
    return time.perf_counter() - start


def bench_unrelated_root(n: int) -> float:
    graph = _fresh_graph(_vault(n))
    start = time.perf_counter()
    for i in range(10):
        graph.add_or_update_file(_collection(f"extra{i}"))
    return time.perf_counter() - start


BENCHMARKS = {
    "Bulk ingest": bench_bulk_ingest,
    "Edit one member (x10)": bench_member_edit,
    "Add unrelated root (x10)": bench_unrelated_root,
}


class VaultgraphBenchmark:
    def __init__(self, quiet: bool = False):
        self.console = Console()
        self.quiet = quiet

    def scale(self, name: str, fn: Callable[[int], float]) -> Optional[BenchmarkResult]:
        """Grow N until a run exceeds TIME_LIMIT_SECONDS; return the last run."""
        n = STARTING_N
        result = None
        while True:
            seconds = fn(n)
            result = BenchmarkResult(name, len(_vault(n)), seconds)
            if not self.quiet:
                self.console.print(
                    f"  [dim]{name}[/dim] N={result.n:<7} {seconds * 1000:8.2f} ms"
                )
            if seconds >= TIME_LIMIT_SECONDS:
                return result
            n = int(n * SCALE_FACTOR) + 1

    def run_benchmarks(self) -> None:
        self.console.print(Panel("vaultgraph ingestion benchmarks", style="bold cyan"))
        results = [self.scale(name, fn) for name, fn in BENCHMARKS.items()]

        table = Table(box=box.DOUBLE, show_header=True, header_style="bold cyan")
        table.add_column("Benchmark")
        table.add_column("Files", justify="right")
        table.add_column("Time (ms)", justify="right")
        table.add_column("µs / file", justify="right")
        for result in results:
            table.add_row(
                result.name,
                str(result.n),
                f"{result.seconds * 1000:.2f}",
                f"{result.per_file_us:.2f}",
            )
        self.console.print(table)


def print_config():
    """Print the current benchmark configuration."""
    print("vaultgraph Benchmark Configuration:")
    print(f"  TIME_LIMIT_SECONDS: {TIME_LIMIT_SECONDS}")
    print(f"  STARTING_N: {STARTING_N}")
    print(f"  SCALE_FACTOR: {SCALE_FACTOR}")
    print(f"  MEMBERS_PER_COLLECTION: {MEMBERS_PER_COLLECTION}")


def main():
    """Main entry point for the benchmark script."""
    parser = argparse.ArgumentParser(description="vaultgraph Ingestion Benchmarks")
    parser.add_argument(
        "--config", action="store_true", help="Show current benchmark configuration"
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress progress output, show only final results",
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Show vaultgraph debug logging"
    )

    args = parser.parse_args()

    if args.config:
        print_config()
        return

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(show_path=False)],
    )

    if not args.quiet:
        print_config()
        print()

    VaultgraphBenchmark(quiet=args.quiet).run_benchmarks()


if __name__ == "__main__":
    main()
