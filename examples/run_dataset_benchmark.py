#!/usr/bin/env python3
"""
Benchmark run: evolve a model for each toy dataset.

Trains on 80% of each dataset, reports training and held-out R-squared,
and writes one model file and one trajectory plot per dataset.

Usage:
    python examples/run_dataset_benchmark.py [options]

Options:
    --datasets D [D...] Datasets to run (default: all)
    --popsize N         Population size (default: 100)
    --maxiter N         Generations per round (default: 300)
    --workers N         Parallel workers (default: 4)
    --seed N            Random seed (default: 8888)
    --output DIR        Output directory (default: data/benchmark)
"""

import argparse
import sys
import time
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import numpy as np

from gepr import fit, score
from gepr.datasets.toy import DATASETS, get_dataset
from gepr.evolution.fitness import r_squared
from gepr.visualization.plots import plot_fitness_trajectory


def parse_args():
    parser = argparse.ArgumentParser(
        description='Evolve models for the toy regression datasets'
    )
    parser.add_argument(
        '--datasets', nargs='+', default=list(DATASETS),
        help='Datasets to run'
    )
    parser.add_argument(
        '--popsize', type=int, default=100,
        help='Population size (default: 100)'
    )
    parser.add_argument(
        '--maxiter', type=int, default=300,
        help='Generations per round (default: 300)'
    )
    parser.add_argument(
        '--workers', type=int, default=4,
        help='Number of parallel workers (default: 4)'
    )
    parser.add_argument(
        '--seed', type=int, default=8888,
        help='Random seed (default: 8888)'
    )
    parser.add_argument(
        '--output', type=str, default=str(project_root / 'data' / 'benchmark'),
        help='Output directory'
    )
    return parser.parse_args()


def run_dataset(name: str, args, output_dir: Path) -> dict:
    print(f"\n{'='*60}")
    print(f"   Dataset: {DATASETS[name]['name']} - {DATASETS[name]['description']}")
    print(f"{'='*60}")

    X, y = get_dataset(name, seed=args.seed)
    rng = np.random.default_rng(args.seed)
    order = rng.permutation(len(y))
    n_train = int(0.8 * len(y))
    train_idx, test_idx = order[:n_train], order[n_train:]

    start = time.time()
    path, result = fit(
        y[train_idx], X[train_idx],
        popsize=args.popsize,
        maxiter=args.maxiter,
        rseed=args.seed,
        nthreads=args.workers,
        goal=0.999,
        sol_file=str(output_dir / f'{name}.dat'),
    )
    elapsed = time.time() - start

    test_r2 = r_squared(y[test_idx], score(X[test_idx], path))
    fig = plot_fitness_trajectory(result.histories, goal=0.999, title=DATASETS[name]['name'])
    fig.savefig(output_dir / f'{name}_trajectory.png', dpi=100, bbox_inches='tight')

    print(f"   Train R-squared: {result.best_fitness:.4f}")
    print(f"   Test R-squared:  {test_r2:.4f}")
    print(f"   Model: {result.formula()}")
    print(f"   Time: {elapsed:.1f}s")

    return {
        'dataset': name,
        'train_r2': result.best_fitness,
        'test_r2': test_r2,
        'generations': result.generations_completed,
        'seconds': elapsed,
    }


def main():
    args = parse_args()
    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    print("=" * 70)
    print("   GEPR - Toy dataset benchmark")
    print("=" * 70)

    results = [run_dataset(name, args, output_dir) for name in args.datasets]

    print(f"\n{'='*70}")
    print(f"   {'Dataset':<20} {'Train R2':>10} {'Test R2':>10} {'Gens':>6} {'Time':>8}")
    for r in results:
        print(f"   {r['dataset']:<20} {r['train_r2']:>10.4f} {r['test_r2']:>10.4f} "
              f"{r['generations']:>6} {r['seconds']:>7.1f}s")
    print(f"{'='*70}")


if __name__ == '__main__':
    main()
