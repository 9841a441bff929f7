"""
Per-generation history of an evolutionary run.

Records, for every generation of every round, the fitness distribution of
the population, for progress reporting, plotting and post-run analysis.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import json

import numpy as np

from .chromosome import Individual, count_unique


@dataclass
class GenerationStats:
    """Statistics for a single generation."""
    round_index: int
    generation: int
    best_fitness: float
    mean_fitness: float
    min_fitness: float
    std_fitness: float
    population_size: int
    unique_chromosomes: int
    evaluations_this_gen: int
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class EvolutionHistory:
    """
    Tracks evolution progress over generations.

    One history covers one round; generation 0 is the initial population.
    """

    def __init__(self, round_index: int = 1):
        self.round_index = round_index
        self.generations: List[GenerationStats] = []
        self.best_individual_per_gen: List[Dict[str, Any]] = []
        self.fitness_trajectory: List[float] = []
        self.diversity_trajectory: List[float] = []

    def record_generation(
        self,
        generation: int,
        population: List[Individual],
        evaluations: int,
    ) -> GenerationStats:
        """
        Record statistics for a completed generation.

        Args:
            generation: Generation number (0 = initial population)
            population: Current population with fitness evaluated
            evaluations: Number of fitness evaluations this generation

        Returns:
            GenerationStats for this generation
        """
        evaluated = [ind for ind in population if ind.is_evaluated]
        fitnesses = [ind.fitness for ind in evaluated] or [0.0]

        if evaluated:
            best = max(evaluated, key=lambda ind: ind.fitness)
            self.best_individual_per_gen.append(best.to_dict())
        else:
            self.best_individual_per_gen.append(None)

        unique = count_unique(population)
        stats = GenerationStats(
            round_index=self.round_index,
            generation=generation,
            best_fitness=float(max(fitnesses)),
            mean_fitness=float(np.mean(fitnesses)),
            min_fitness=float(min(fitnesses)),
            std_fitness=float(np.std(fitnesses)),
            population_size=len(population),
            unique_chromosomes=unique,
            evaluations_this_gen=evaluations,
            timestamp=datetime.now().isoformat(),
        )

        self.generations.append(stats)
        self.fitness_trajectory.append(stats.best_fitness)
        self.diversity_trajectory.append(unique / len(population) if population else 0)

        return stats

    @property
    def best_fitness(self) -> Optional[float]:
        return max(self.fitness_trajectory) if self.fitness_trajectory else None

    @property
    def last(self) -> Optional[GenerationStats]:
        return self.generations[-1] if self.generations else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert history to dictionary for serialization."""
        return {
            'round_index': self.round_index,
            'generations': [g.to_dict() for g in self.generations],
            'best_individual_per_gen': self.best_individual_per_gen,
            'fitness_trajectory': self.fitness_trajectory,
            'diversity_trajectory': self.diversity_trajectory,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EvolutionHistory':
        """Restore history from dictionary."""
        history = cls(round_index=data.get('round_index', 1))
        history.generations = [
            GenerationStats(**g) for g in data.get('generations', [])
        ]
        history.best_individual_per_gen = data.get('best_individual_per_gen', [])
        history.fitness_trajectory = data.get('fitness_trajectory', [])
        history.diversity_trajectory = data.get('diversity_trajectory', [])
        return history


def save_histories(histories: List[EvolutionHistory], path: Union[str, Path]) -> None:
    """Save the histories of all rounds of a run to a JSON file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump({'rounds': [h.to_dict() for h in histories]}, f, indent=2)


def load_histories(path: Union[str, Path]) -> List[EvolutionHistory]:
    """Load round histories written by save_histories()."""
    with open(path, 'r') as f:
        data = json.load(f)
    return [EvolutionHistory.from_dict(r) for r in data.get('rounds', [])]
