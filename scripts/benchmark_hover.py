#!/usr/bin/env python
"""
Benchmark script for hover resolution.

Measures pointer-move cost (binary search) against a linear scan, to
show hover stays flat as row counts grow.
"""

import os
import random
import sys
import time
from datetime import datetime, timedelta, timezone

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from charting.hover import DISAMBIGUATING, HoverQueryEngine
from charting.scales import Layout, Margins, ScaleBuilder
from processing.records import JoinedRow


def generate_test_rows(n_points: int = 120, n_series: int = 12) -> list:
    """Generate monthly index-like rows for several regions."""
    start = datetime(1995, 1, 1, tzinfo=timezone.utc)
    levels = [100.0] * n_series
    rows = []
    for i in range(n_points):
        for s in range(n_series):
            levels[s] += random.gauss(0.2, 1.0)
        fields = {f"region_{s}": levels[s] for s in range(n_series)}
        rows.append(JoinedRow(timestamp=start + timedelta(days=30 * i), fields=fields))
    return rows


def linear_nearest(rows: list, t: datetime) -> int:
    best, best_gap = 0, None
    for i, row in enumerate(rows):
        gap = abs((row.timestamp - t).total_seconds())
        if best_gap is None or gap <= best_gap:
            best, best_gap = i, gap
    return best


def benchmark_hover():
    """Run benchmark and report results."""
    print("=" * 60)
    print("HOVER RESOLUTION BENCHMARK")
    print("=" * 60)

    sizes = [120, 480, 1200, 4800, 12000]
    moves = 500
    layout = Layout.for_width(1400, 700, Margins(t=40, r=40, b=60, l=80))
    builder = ScaleBuilder()

    for size in sizes:
        rows = generate_test_rows(size)
        keys = list(rows[0].fields)
        x = builder.temporal([r.timestamp for r in rows], layout.x_range)
        y = builder.linear([v for r in rows for v in r.fields.values()], layout.y_range)
        engine = HoverQueryEngine(rows, keys, x, y, layout, mode=DISAMBIGUATING)

        pointers = [
            (random.uniform(layout.plot_left, layout.plot_right),
             random.uniform(layout.plot_top, layout.plot_bottom))
            for _ in range(moves)
        ]

        start = time.perf_counter()
        for px, py in pointers:
            engine.move(px, py)
        end = time.perf_counter()
        engine_ms = ((end - start) / moves) * 1000

        start = time.perf_counter()
        for px, _ in pointers[:50]:
            linear_nearest(rows, x.invert(px))
        end = time.perf_counter()
        scan_ms = ((end - start) / 50) * 1000

        print(f"\n{size:5d} rows: {engine_ms:.4f} ms per move (bisect + series pick)")
        print(f"    linear scan lookup only: {scan_ms:.4f} ms per move")

    print("\n" + "=" * 60)
    print("A 60 fps pointer stream leaves ~16 ms per frame for hover + redraw.")


if __name__ == "__main__":
    benchmark_hover()
