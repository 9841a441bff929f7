"""
Main evolutionary optimization engine.

Orchestrates the evolution loop:
1. Initialize population (generation 0, evaluated but not counted)
2. Select elites and roulette-wheel parents
3. Create offspring via crossover/mutation
4. Evaluate changed individuals (parallel)
5. Repeat until the goal R-squared or maxiter is reached
6. Optionally restart for up to maxpass rounds, keeping the best individual

The engine owns a single numpy Generator seeded from rseed. It is used, in
order, for the symbol table's constants, every initial population, and all
selection and variation, so a run is reproducible from its seed regardless
of how many worker processes evaluate fitness.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Any
import logging
import time

import numpy as np

from ..config import RunConfig
from ..core.symbols import SymbolTable
from .chromosome import Individual
from .fitness import compare_fitness
from .history import EvolutionHistory
from .operators import breed_offspring, elitism_selection, roulette_selection
from .population import PopulationEvaluator, create_initial_population

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    INITIALIZED = 'initialized'
    EVALUATING = 'evaluating'
    SELECTING = 'selecting'
    REPRODUCING = 'reproducing'
    CONVERGED = 'converged'
    EXHAUSTED = 'exhausted'


@dataclass
class EvolutionResult:
    """Results from an evolution run."""
    best: Individual
    best_fitness: float
    symbol_table: SymbolTable
    rounds_completed: int
    generations_completed: int
    total_evaluations: int
    converged: bool
    runtime_seconds: float
    histories: List[EvolutionHistory] = field(default_factory=list)

    @property
    def fitness_trajectory(self) -> List[float]:
        """Best fitness per generation, all rounds concatenated."""
        return [f for h in self.histories for f in h.fitness_trajectory]

    def formula(self, variable_names: Optional[List[str]] = None) -> str:
        return self.best.formula(self.symbol_table, variable_names)

    def summary(self) -> str:
        """Generate summary string."""
        lines = [
            f"Rounds: {self.rounds_completed}",
            f"Generations: {self.generations_completed}",
            f"Total evaluations: {self.total_evaluations}",
            f"Best R-squared: {self.best_fitness:.6f}",
            f"Converged: {self.converged}",
            f"Runtime: {self.runtime_seconds:.1f}s",
            f"Model: {self.formula()}",
        ]
        return '\n'.join(lines)


class EvolutionEngine:
    """
    Gene expression programming engine for composite regression.

    Typical use is evolve(), which runs all rounds and returns an
    EvolutionResult. The individual steps (initialize_population,
    run_generation, run_round) are public for finer control.
    """

    def __init__(
        self,
        config: RunConfig,
        X: np.ndarray,
        y: np.ndarray,
        progress_callback: Optional[Callable[[int, int, Dict[str, Any]], None]] = None,
    ):
        """
        Initialize evolution engine.

        Args:
            config: Validated run configuration
            X: Training inputs, shape (n_rows, n_vars), already validated
            y: Training response, shape (n_rows,), already validated
            progress_callback: Optional callback(round, generation, stats)
        """
        self.config = config
        self.X = X
        self.y = y
        self.progress_callback = progress_callback

        self.rng = np.random.default_rng(config.rseed)
        self.table = SymbolTable.create(
            n_variables=X.shape[1],
            rng=self.rng,
            n_constants=config.n_constants,
            const_range=tuple(config.const_range),
        )
        self.evaluator = PopulationEvaluator(X, y, self.table, n_workers=config.nthreads)

        self.population: List[Individual] = []
        self.state = EngineState.INITIALIZED
        self.round_index = 0
        self.generation = 0
        self.total_generations = 0
        self.total_evaluations = 0
        self.history = EvolutionHistory()
        self.histories: List[EvolutionHistory] = []
        self.best: Optional[Individual] = None

    @property
    def best_fitness(self) -> float:
        """Best fitness in the current population."""
        evaluated = [ind.fitness for ind in self.population if ind.is_evaluated]
        return max(evaluated) if evaluated else 0.0

    def current_best(self) -> Individual:
        """Best individual of the current population (lowest index on ties)."""
        return self.population[elitism_selection(self.population, 1)[0]]

    def _report(self, level: int, message: str) -> None:
        if self.config.verbose >= level:
            print(message, flush=True)

    def initialize_population(self) -> None:
        """Start a new round from a fresh random population."""
        self.round_index += 1
        self.generation = 0
        self.history = EvolutionHistory(round_index=self.round_index)
        self.histories.append(self.history)

        self.population = create_initial_population(
            self.rng,
            self.table,
            population_size=self.config.popsize,
            head_length=self.config.headlen,
            n_genes=self.config.ngenes,
        )
        self.state = EngineState.INITIALIZED
        evaluations = self.evaluate_population()
        self._record(evaluations)

    def evaluate_population(self) -> int:
        """Evaluate every individual whose genes changed since its last evaluation."""
        self.state = EngineState.EVALUATING
        evaluations = self.evaluator.evaluate(self.population)
        self.total_evaluations += evaluations
        return evaluations

    def _record(self, evaluations: int) -> None:
        stats = self.history.record_generation(self.generation, self.population, evaluations)
        self._update_best()
        self._report(2, f"   Round {self.round_index} | Gen {self.generation:4d} | "
                        f"Best R2: {stats.best_fitness:.6f} | Mean R2: {stats.mean_fitness:.6f}")
        if self.progress_callback:
            self.progress_callback(self.round_index, self.generation, stats.to_dict())

    def _update_best(self) -> None:
        candidate = self.current_best()
        if self.best is None or compare_fitness(candidate.fitness, self.best.fitness) > 0:
            self.best = candidate.copy()

    def run_generation(self) -> None:
        """Execute one generation: selection, reproduction, evaluation."""
        self.generation += 1
        self.total_generations += 1
        config = self.config

        # 1. Selection
        self.state = EngineState.SELECTING
        elite = set(elitism_selection(self.population, config.n_elite))
        slots = [i for i in range(len(self.population)) if i not in elite]
        parents = roulette_selection(self.population, len(slots), self.rng)

        # 2. Reproduction (children are built from the old population first)
        self.state = EngineState.REPRODUCING
        offspring = [
            breed_offspring(
                self.population, parent, self.table, self.rng,
                config.px1, config.px2, config.pm, self.generation,
            )
            for parent in parents
        ]
        for i in elite:
            self.population[i].origin = 'elite'
        for slot, child in zip(slots, offspring):
            self.population[slot] = child

        # 3. Evaluation
        evaluations = self.evaluate_population()
        self._record(evaluations)

    def run_round(self) -> Individual:
        """
        Run one round from a fresh population until the goal or maxiter.

        Returns:
            Best individual of the round
        """
        self.initialize_population()
        while self.generation < self.config.maxiter and self.best_fitness < self.config.goal:
            self.run_generation()

        if self.best_fitness >= self.config.goal:
            self.state = EngineState.CONVERGED
        else:
            self.state = EngineState.EXHAUSTED

        round_best = self.current_best()
        self._report(1, f"Round {self.round_index}: {self.generation} generations, "
                        f"best R-squared {round_best.fitness:.6f} ({self.state.value})")
        return round_best

    def evolve(self) -> EvolutionResult:
        """
        Run up to maxpass independent rounds.

        Later rounds restart from a fresh random population; only the best
        individual seen is carried across rounds. Stops early once a round
        reaches the goal.

        Returns:
            EvolutionResult with the best individual of the whole run
        """
        start_time = time.time()
        try:
            for _ in range(self.config.maxpass):
                self.run_round()
                if self.state is EngineState.CONVERGED:
                    break
        finally:
            self.evaluator.close()

        runtime = time.time() - start_time
        logger.debug("Evolution finished after %d rounds, %d evaluations in %.2fs",
                     self.round_index, self.total_evaluations, runtime)

        return EvolutionResult(
            best=self.best,
            best_fitness=self.best.fitness,
            symbol_table=self.table,
            rounds_completed=self.round_index,
            generations_completed=self.total_generations,
            total_evaluations=self.total_evaluations,
            converged=self.best.fitness >= self.config.goal,
            runtime_seconds=runtime,
            histories=self.histories,
        )

    def close(self) -> None:
        """Shut down worker processes (evolve() does this itself)."""
        self.evaluator.close()
