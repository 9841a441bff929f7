"""
Population management and parallel fitness evaluation.

Handles:
- Initial population creation
- Population statistics
- A worker pool that evaluates fitness in parallel

The pool is created once per run and reused for every generation. The
training set and symbol table are sent to each worker process once, by the
pool initializer; after that only gene arrays travel to the workers and
FitnessResults travel back. Results are written into the Individuals by the
calling process only.
"""

import logging
import math
import os
from multiprocessing import Pool
from typing import Any, Dict, List, Optional

import numpy as np

from ..core.symbols import SymbolTable
from ..exceptions import ConfigurationError
from .chromosome import Individual, count_unique, create_random_individual
from .fitness import FitnessResult, compute_fitness

logger = logging.getLogger(__name__)


def create_initial_population(
    rng: np.random.Generator,
    table: SymbolTable,
    population_size: int,
    head_length: int,
    n_genes: int,
) -> List[Individual]:
    """
    Create a population of random, unevaluated individuals.

    Args:
        rng: Random generator owned by the engine
        table: Symbol table for the run
        population_size: Number of individuals
        head_length: Gene head length
        n_genes: Genes per chromosome

    Returns:
        List of Individuals
    """
    return [
        create_random_individual(rng, table, head_length, n_genes, generation=0)
        for _ in range(population_size)
    ]


def get_population_stats(population: List[Individual]) -> Dict[str, Any]:
    """
    Compute statistics about the population.

    Args:
        population: List of individuals

    Returns:
        Dictionary with population statistics
    """
    if not population:
        return {'size': 0}

    evaluated = [ind for ind in population if ind.is_evaluated]
    if evaluated:
        fitnesses = np.array([ind.fitness for ind in evaluated])
        fitness_stats = {
            'min_fitness': float(fitnesses.min()),
            'max_fitness': float(fitnesses.max()),
            'mean_fitness': float(fitnesses.mean()),
            'std_fitness': float(fitnesses.std()),
            'evaluated_count': len(evaluated),
        }
    else:
        fitness_stats = {'evaluated_count': 0}

    return {
        'size': len(population),
        'unique_chromosomes': count_unique(population),
        'n_genes': population[0].n_genes,
        'gene_length': population[0].gene_length,
        **fitness_stats,
    }


def resolve_worker_count(requested: int, strict: bool = False) -> int:
    """
    Number of worker processes to actually use.

    More workers than CPUs is pointless; the count is reduced to the CPU
    count with a warning, or a ConfigurationError is raised if strict.
    """
    available = os.cpu_count() or 1
    if requested <= available:
        return requested
    if strict:
        raise ConfigurationError(
            f"{requested} workers requested but only {available} CPUs are available",
            {'requested': requested, 'available': available},
        )
    logger.warning("Requested %d workers but only %d CPUs available; using %d",
                   requested, available, available)
    return available


# Per-process training data, set by the pool initializer
_worker_data: Dict[str, Any] = {}


def _init_worker(X: np.ndarray, y: np.ndarray, table: SymbolTable) -> None:
    _worker_data['X'] = X
    _worker_data['y'] = y
    _worker_data['table'] = table


def _evaluate_worker(genes: np.ndarray) -> FitnessResult:
    """
    Worker function for parallel fitness evaluation.

    This is a module-level function to enable pickling for multiprocessing.
    """
    return compute_fitness(genes, _worker_data['X'], _worker_data['y'], _worker_data['table'])


class PopulationEvaluator:
    """
    Evaluates unevaluated individuals, in-process or on a worker pool.

    Use as a context manager (or call close()) so the pool is shut down.
    If the pool cannot be started, evaluation continues in-process.
    """

    def __init__(
        self,
        X: np.ndarray,
        y: np.ndarray,
        table: SymbolTable,
        n_workers: int = 1,
    ):
        self.X = X
        self.y = y
        self.table = table
        self.n_workers = resolve_worker_count(n_workers)
        self._pool = None
        self._pool_failed = False

    @property
    def parallel(self) -> bool:
        return self.n_workers > 1 and not self._pool_failed

    def _get_pool(self) -> Optional[Any]:
        if not self.parallel:
            return None
        if self._pool is None:
            try:
                self._pool = Pool(
                    self.n_workers,
                    initializer=_init_worker,
                    initargs=(self.X, self.y, self.table),
                )
            except (OSError, ValueError) as e:
                logger.warning("Could not start %d worker processes (%s); "
                               "evaluating in-process", self.n_workers, e)
                self._pool_failed = True
                return None
        return self._pool

    def evaluate(self, population: List[Individual]) -> int:
        """
        Evaluate every individual without a cached fitness.

        Args:
            population: Individuals to evaluate (modified in place)

        Returns:
            Number of evaluations performed
        """
        pending = [ind for ind in population if not ind.is_evaluated]
        if not pending:
            return 0

        genes = [ind.genes for ind in pending]
        pool = self._get_pool()
        if pool is not None:
            # Contiguous blocks, one per worker
            chunksize = math.ceil(len(genes) / self.n_workers)
            results = pool.map(_evaluate_worker, genes, chunksize=chunksize)
        else:
            results = [compute_fitness(g, self.X, self.y, self.table) for g in genes]

        for ind, result in zip(pending, results):
            ind.apply_fitness(result)
        return len(pending)

    def close(self, terminate: bool = False) -> None:
        if self._pool is not None:
            if terminate:
                self._pool.terminate()
            else:
                self._pool.close()
            self._pool.join()
            self._pool = None

    def __enter__(self) -> 'PopulationEvaluator':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close(terminate=exc_type is not None)
