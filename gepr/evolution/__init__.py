"""
Gene expression programming for composite linear-nonlinear regression.

This module provides the evolutionary search: chromosomes of head/tail
genes, R-squared fitness with least-squares linking, genetic operators, a
parallel population evaluator and the engine that drives the rounds.

Key components:
- Individual: A chromosome plus its cached fitness and coefficients
- FitnessResult: Outcome of evaluating a chromosome
- EvolutionEngine: Main evolutionary optimization loop
- Operators: Selection, crossover, and mutation operations

Example usage:
    from gepr.config import RunConfig, validate_training_data
    from gepr.datasets.toy import get_dataset
    from gepr.evolution import EvolutionEngine

    X, y = get_dataset('polynomial', n_samples=200)
    X, y = validate_training_data(y, X)

    config = RunConfig(popsize=60, maxiter=200, nthreads=1, verbose=0)
    engine = EvolutionEngine(config, X, y)
    result = engine.evolve()

    print(f"Best R-squared: {result.best_fitness:.3f}")
    print(result.formula())
"""

from .chromosome import Individual, create_random_individual, count_unique
from .fitness import FitnessResult, compute_fitness, fit_coefficients, r_squared
from .operators import (
    roulette_selection,
    elitism_selection,
    one_point_crossover,
    two_point_crossover,
    point_mutation,
    breed_offspring,
)
from .population import (
    PopulationEvaluator,
    create_initial_population,
    get_population_stats,
    resolve_worker_count,
)
from .engine import EngineState, EvolutionEngine, EvolutionResult
from .history import EvolutionHistory, GenerationStats, save_histories, load_histories

__all__ = [
    # Core classes
    'Individual',
    'FitnessResult',
    'EvolutionEngine',
    'EvolutionResult',
    'EngineState',
    'EvolutionHistory',
    'GenerationStats',
    # Chromosome helpers
    'create_random_individual',
    'count_unique',
    # Fitness
    'compute_fitness',
    'fit_coefficients',
    'r_squared',
    # Operators
    'roulette_selection',
    'elitism_selection',
    'one_point_crossover',
    'two_point_crossover',
    'point_mutation',
    'breed_offspring',
    # Population
    'PopulationEvaluator',
    'create_initial_population',
    'get_population_stats',
    'resolve_worker_count',
    # History
    'save_histories',
    'load_histories',
]
