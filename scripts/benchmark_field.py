"""
Distance Field Build Benchmark
==============================
Times the distance field build over a generated city for several voxel
sizes and worker counts, and checks that threaded builds match the
single-threaded buffer.

Usage:
    python scripts/benchmark_field.py --repeats 3
"""

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd
from tqdm import tqdm

sys.path.insert(0, str(Path(__file__).parent.parent))

from geofence_nav.environment import CityConfig, WorldConfig, generate_city
from geofence_nav.field import DistanceFieldBuilder


def run_benchmark(cell_sizes, worker_counts, repeats: int, seed: int) -> pd.DataFrame:
    city = generate_city(CityConfig(seed=seed))
    print(f"City: {len(city)} buildings")

    rows = []
    cases = [(c, w) for c in cell_sizes for w in worker_counts]
    for cell_size, workers in tqdm(cases, desc="Benchmarking"):
        config = WorldConfig.city_default()
        config.cell_size = cell_size
        builder = DistanceFieldBuilder(config)
        reference = builder.build(city, workers=1).values

        for _ in range(repeats):
            grid = builder.build(city, workers=workers)
            row = builder.last_report.to_dict()
            row['cell_size'] = cell_size
            row['matches_serial'] = bool(np.array_equal(grid.values, reference))
            rows.append(row)

    return pd.DataFrame(rows)


def main():
    parser = argparse.ArgumentParser(description="Distance field build timings")
    parser.add_argument('--cell-sizes', type=float, nargs='+', default=[4.0, 2.0, 1.0])
    parser.add_argument('--workers', type=int, nargs='+', default=[1, 2, 4])
    parser.add_argument('--repeats', type=int, default=3)
    parser.add_argument('--seed', type=int, default=42)
    parser.add_argument('--out', type=str, default='results')
    args = parser.parse_args()

    df = run_benchmark(args.cell_sizes, args.workers, args.repeats, args.seed)

    summary = (
        df.groupby(['cell_size', 'workers'])
        .agg(
            n_voxels=('n_voxels', 'first'),
            voxels_visited=('voxels_visited', 'first'),
            mean_ms=('total_ms', 'mean'),
            min_ms=('total_ms', 'min'),
            matches_serial=('matches_serial', 'all'),
        )
        .reset_index()
    )

    print("\n" + "=" * 70)
    print("DISTANCE FIELD BUILD")
    print("=" * 70)
    print(summary.to_string(index=False, float_format=lambda v: f"{v:.1f}"))

    if not summary['matches_serial'].all():
        print("\nWARNING: threaded build differs from the serial buffer")

    out_dir = Path(args.out)
    out_dir.mkdir(exist_ok=True)
    df.to_csv(out_dir / 'field_benchmark.csv', index=False)
    print(f"\nSaved raw timings to {out_dir / 'field_benchmark.csv'}")


if __name__ == "__main__":
    main()
