"""
Command line interface.

Usage:
    python -m gepr train DATA.csv --target-column 0 -o model.dat [options]
    python -m gepr score DATA.csv -m model.dat [-o predictions.csv]
    python -m gepr demo --dataset polynomial

Data files are plain delimited numeric tables (read with numpy.loadtxt);
use --skip-header for a header row.
"""

import argparse
import sys
from typing import List, Optional

import numpy as np

from .api import fit_config
from .config import RunConfig, validate_scoring_data, validate_training_data
from .core.persistence import load_model
from .core.scoring import predict
from .datasets.toy import DATASETS, get_dataset
from .evolution.history import save_histories
from .exceptions import GeprError


def add_config_arguments(parser: argparse.ArgumentParser) -> None:
    defaults = RunConfig.__dataclass_fields__
    for name, type_, help_text in [
        ('px1', float, 'One-point crossover rate'),
        ('px2', float, 'Two-point crossover rate'),
        ('pm', float, 'Mutation rate'),
        ('maxiter', int, 'Maximum generations per round'),
        ('headlen', int, 'Gene head length'),
        ('popsize', int, 'Population size'),
        ('eliterate', float, 'Elite fraction'),
        ('goal', float, 'Target R-squared'),
        ('rseed', int, 'Random seed'),
        ('nthreads', int, 'Worker processes'),
        ('verbose', int, 'Verbosity: 0, 1 or 2'),
        ('maxpass', int, 'Maximum independent rounds'),
        ('ngenes', int, 'Genes per chromosome'),
        ('n_constants', int, 'Size of the random constant pool'),
    ]:
        default = defaults[name].default
        parser.add_argument(
            f"--{name.replace('_', '-')}", dest=name, type=type_, default=default,
            help=f'{help_text} (default: {default})'
        )
    parser.add_argument(
        '--const-range', type=float, nargs=2, default=[-1.0, 1.0], metavar=('LOW', 'HIGH'),
        help='Range of the random constants (default: -1 1)'
    )


def add_data_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('data', help='Numeric data file (CSV by default)')
    parser.add_argument('--delimiter', default=',', help="Column delimiter (default: ',')")
    parser.add_argument(
        '--skip-header', type=int, default=0,
        help='Number of header lines to skip (default: 0)'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='python -m gepr',
        description='Gene expression programming for composite regression'
    )
    commands = parser.add_subparsers(dest='command', required=True)

    train = commands.add_parser('train', help='Evolve a model from a data file')
    add_data_arguments(train)
    train.add_argument(
        '--target-column', type=int, default=-1,
        help='Index of the response column (default: last)'
    )
    train.add_argument('-o', '--output', default='gep_sol.dat', help='Model file to write')
    add_config_arguments(train)
    train.add_argument('--plot', default=None, help='Write a fitness trajectory figure')
    train.add_argument('--history', default=None, help='Write the run history as JSON')

    score = commands.add_parser('score', help='Score a data file with a saved model')
    add_data_arguments(score)
    score.add_argument('-m', '--model', default='gep_sol.dat', help='Model file')
    score.add_argument('-o', '--output', default=None, help='Write predictions here')

    demo = commands.add_parser('demo', help='Evolve a model for a toy dataset')
    demo.add_argument(
        '--dataset', default='polynomial', choices=sorted(DATASETS),
        help='Toy dataset (default: polynomial)'
    )
    demo.add_argument('--n-samples', type=int, default=100, help='Rows to generate')
    demo.add_argument('--seed', type=int, default=42, help='Dataset seed')
    demo.add_argument('-o', '--output', default='gep_sol.dat', help='Model file to write')
    add_config_arguments(demo)
    demo.add_argument('--plot', default=None, help='Write a fitness trajectory figure')
    demo.add_argument('--history', default=None, help='Write the run history as JSON')
    return parser


def load_table(args) -> np.ndarray:
    table = np.loadtxt(args.data, delimiter=args.delimiter, skiprows=args.skip_header, ndmin=2)
    return table


def config_from_args(args) -> RunConfig:
    return RunConfig(
        px1=args.px1, px2=args.px2, pm=args.pm, maxiter=args.maxiter,
        headlen=args.headlen, popsize=args.popsize, eliterate=args.eliterate,
        goal=args.goal, rseed=args.rseed, nthreads=args.nthreads,
        verbose=args.verbose, maxpass=args.maxpass, sol_file=args.output,
        ngenes=args.ngenes, n_constants=args.n_constants,
        const_range=tuple(args.const_range),
    )


def print_banner(title: str):
    print("=" * 70)
    print(f"   GEPR - {title}")
    print("=" * 70)


def print_config(config: RunConfig, n_rows: int, n_vars: int):
    print("\nConfiguration:")
    print(f"   Rows x variables:   {n_rows} x {n_vars}")
    print(f"   Population size:    {config.popsize}")
    print(f"   Max generations:    {config.maxiter}")
    print(f"   Max rounds:         {config.maxpass}")
    print(f"   Genes / head len:   {config.ngenes} / {config.headlen}")
    print(f"   Crossover rates:    {config.px1} / {config.px2}")
    print(f"   Mutation rate:      {config.pm}")
    print(f"   Elite rate:         {config.eliterate}")
    print(f"   Goal R-squared:     {config.goal}")
    print(f"   Workers:            {config.nthreads}")
    print(f"   Seed:               {config.rseed}")


def run_training(args, X: np.ndarray, y: np.ndarray, title: str) -> int:
    config = config_from_args(args)
    X, y = validate_training_data(y, X)

    if config.verbose > 0:
        print_banner(title)
        print_config(config, X.shape[0], X.shape[1])
        print()

    path, result = fit_config(config, X, y)

    if config.verbose > 0:
        print("\nResults:")
        for line in result.summary().splitlines():
            print(f"   {line}")

    if args.history:
        save_histories(result.histories, args.history)
        if config.verbose > 0:
            print(f"History saved to {args.history}")
    if args.plot:
        from .visualization.plots import plot_fitness_trajectory
        fig = plot_fitness_trajectory(result.histories, goal=config.goal, title=title)
        fig.savefig(args.plot, dpi=100, bbox_inches='tight')
        if config.verbose > 0:
            print(f"Plot saved to {args.plot}")
    return 0


def cmd_train(args) -> int:
    table = load_table(args)
    if not -table.shape[1] <= args.target_column < table.shape[1]:
        print(f"Error: target column {args.target_column} is out of range "
              f"for {table.shape[1]} columns", file=sys.stderr)
        return 2
    y = table[:, args.target_column]
    X = np.delete(table, args.target_column % table.shape[1], axis=1)
    return run_training(args, X, y, f"Training on {args.data}")


def cmd_demo(args) -> int:
    X, y = get_dataset(args.dataset, n_samples=args.n_samples, seed=args.seed)
    return run_training(args, X, y, f"Demo: {DATASETS[args.dataset]['name']}")


def cmd_score(args) -> int:
    model = load_model(args.model)
    X = validate_scoring_data(load_table(args), model.n_variables)
    predictions = predict(model, X)
    if args.output:
        np.savetxt(args.output, predictions, delimiter=',')
        print(f"{len(predictions)} predictions saved to {args.output}")
    else:
        for value in predictions:
            print(f"{value:.10g}")
    return 0


COMMANDS = {
    'train': cmd_train,
    'score': cmd_score,
    'demo': cmd_demo,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return COMMANDS[args.command](args)
    except GeprError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
