"""
Chromosome representation for gene expression programming.

An Individual holds a chromosome (a fixed number of head/tail genes, stored
as an int array of symbol indices) together with the cached results of its
last fitness evaluation: R-squared plus the linear coefficients that combine
its genes. The cache is derived data - it is cleared whenever the genes
change and refilled by the fitness evaluator.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING

import numpy as np

from ..core.codec import chromosome_formula, gene_outputs, link, random_gene
from ..core.symbols import SymbolTable

if TYPE_CHECKING:
    from .fitness import FitnessResult


@dataclass
class Individual:
    """
    One member of the population.

    Attributes:
        genes: Symbol indices, shape (n_genes, gene_length)
        head_length: Head length shared by every gene
        fitness: R-squared on the training set (None until evaluated)
        coefficients: Per-gene linear weights (None until evaluated)
        intercept: Constant term of the linear combination
        generation: Generation in which these genes were produced
        origin: How the individual came about ('random', 'elite', 'offspring')
    """
    genes: np.ndarray
    head_length: int
    fitness: Optional[float] = None
    coefficients: Optional[np.ndarray] = None
    intercept: Optional[float] = None
    generation: int = 0
    origin: str = 'random'

    def __post_init__(self):
        self.genes = np.asarray(self.genes, dtype=np.int64)
        if self.genes.ndim != 2 or self.genes.shape[0] == 0:
            raise ValueError(f"genes must be a non-empty 2-D array, got shape {self.genes.shape}")
        if self.head_length < 1 or self.head_length >= self.genes.shape[1]:
            raise ValueError(
                f"head_length {self.head_length} does not fit gene length {self.genes.shape[1]}"
            )
        if self.coefficients is not None:
            self.coefficients = np.asarray(self.coefficients, dtype=float)

    @property
    def n_genes(self) -> int:
        return self.genes.shape[0]

    @property
    def gene_length(self) -> int:
        return self.genes.shape[1]

    @property
    def tail_length(self) -> int:
        return self.gene_length - self.head_length

    @property
    def is_evaluated(self) -> bool:
        return self.fitness is not None

    def invalidate(self) -> None:
        """Drop the cached fitness after the genes changed."""
        self.fitness = None
        self.coefficients = None
        self.intercept = None

    def apply_fitness(self, result: 'FitnessResult') -> None:
        """Store the outcome of a fitness evaluation."""
        self.fitness = float(result.fitness)
        self.coefficients = np.asarray(result.coefficients, dtype=float)
        self.intercept = float(result.intercept)

    def predict(self, X: np.ndarray, table: SymbolTable) -> np.ndarray:
        """Predict with the cached coefficients (requires a prior evaluation)."""
        if not self.is_evaluated:
            raise RuntimeError("Individual has not been evaluated yet")
        outputs = gene_outputs(self.genes, table, X)
        return link(outputs, self.coefficients, self.intercept)

    def formula(self, table: SymbolTable, variable_names: Optional[Sequence[str]] = None) -> str:
        """Human-readable formula of the linked chromosome."""
        if not self.is_evaluated:
            raise RuntimeError("Individual has not been evaluated yet")
        return chromosome_formula(self.genes, self.coefficients, self.intercept,
                                  table, variable_names)

    def same_genes(self, other: 'Individual') -> bool:
        return np.array_equal(self.genes, other.genes)

    def signature(self) -> bytes:
        """Hashable key identifying the genes (for diversity counts)."""
        return self.genes.tobytes()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            'genes': self.genes.tolist(),
            'head_length': self.head_length,
            'fitness': self.fitness,
            'coefficients': None if self.coefficients is None else self.coefficients.tolist(),
            'intercept': self.intercept,
            'generation': self.generation,
            'origin': self.origin,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Individual':
        return cls(
            genes=np.asarray(data['genes'], dtype=np.int64),
            head_length=data['head_length'],
            fitness=data.get('fitness'),
            coefficients=data.get('coefficients'),
            intercept=data.get('intercept'),
            generation=data.get('generation', 0),
            origin=data.get('origin', 'random'),
        )

    def copy(self) -> 'Individual':
        """Create a deep copy, including the fitness cache."""
        return Individual(
            genes=self.genes.copy(),
            head_length=self.head_length,
            fitness=self.fitness,
            coefficients=None if self.coefficients is None else self.coefficients.copy(),
            intercept=self.intercept,
            generation=self.generation,
            origin=self.origin,
        )

    def __repr__(self) -> str:
        fitness_str = f", fitness={self.fitness:.4f}" if self.fitness is not None else ""
        return (
            f"Individual(genes={self.n_genes}x{self.gene_length}, "
            f"head={self.head_length}, gen={self.generation}{fitness_str})"
        )


def create_random_individual(
    rng: np.random.Generator,
    table: SymbolTable,
    head_length: int,
    n_genes: int,
    generation: int = 0,
) -> Individual:
    """
    Create an individual with uniformly random genes.

    Args:
        rng: Random generator owned by the engine
        table: Symbol table for the run
        head_length: Gene head length
        n_genes: Genes per chromosome
        generation: Generation number

    Returns:
        An unevaluated Individual
    """
    genes = np.stack([random_gene(rng, head_length, table) for _ in range(n_genes)])
    return Individual(genes=genes, head_length=head_length, generation=generation)


def flatten(genes: np.ndarray) -> np.ndarray:
    """Chromosome as one symbol string (genes laid end to end)."""
    return np.asarray(genes).reshape(-1)


def unflatten(symbols: np.ndarray, n_genes: int) -> np.ndarray:
    return np.asarray(symbols).reshape(n_genes, -1)


def count_unique(population: List[Individual]) -> int:
    """Number of distinct chromosomes in a population."""
    return len({ind.signature() for ind in population})
