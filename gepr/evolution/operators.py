"""
Evolutionary operators: selection, crossover, and mutation.

All operators work on the symbol-index representation and draw randomness
from an explicit numpy Generator owned by the engine, so a run is
reproducible from its seed. Crossover and mutation never break the
head/tail layout: crossover swaps aligned positions between chromosomes of
identical shape, and mutation only puts terminals into tails.
"""

from typing import List, Tuple

import numpy as np

from ..core.symbols import SymbolTable
from .chromosome import Individual, flatten, unflatten


# =============================================================================
# Selection Operators
# =============================================================================

def _fitness_array(population: List[Individual]) -> np.ndarray:
    return np.array(
        [ind.fitness if ind.fitness is not None else 0.0 for ind in population],
        dtype=float,
    )


def elitism_selection(population: List[Individual], n_elite: int) -> List[int]:
    """
    Indices of the top n_elite individuals by fitness.

    Ties go to the lower index, so the result is deterministic.

    Args:
        population: Current population with fitness evaluated
        n_elite: Number of elite individuals to preserve

    Returns:
        Population indices, best first
    """
    if n_elite <= 0:
        return []
    fitness = _fitness_array(population)
    order = np.argsort(-fitness, kind='stable')
    return [int(i) for i in order[:n_elite]]


def roulette_selection(
    population: List[Individual],
    n_select: int,
    rng: np.random.Generator,
) -> List[int]:
    """
    Fitness-proportionate (roulette wheel) selection with replacement.

    Falls back to uniform sampling when every fitness is zero.

    Args:
        population: Current population with fitness evaluated
        n_select: Number of parents to draw
        rng: Random generator

    Returns:
        Population indices (may contain duplicates)
    """
    fitness = _fitness_array(population)
    total = fitness.sum()
    n = len(population)
    if total <= 0 or not np.isfinite(total):
        return [int(i) for i in rng.integers(0, n, size=n_select)]
    return [int(i) for i in rng.choice(n, size=n_select, replace=True, p=fitness / total)]


# =============================================================================
# Crossover Operators
# =============================================================================

def one_point_crossover(
    genes1: np.ndarray,
    genes2: np.ndarray,
    rng: np.random.Generator,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    One-point recombination.

    The two chromosomes are cut at the same random point (anywhere along the
    genes laid end to end) and the symbols after the cut are swapped.

    Example (one gene, cut after position 2):
        Parent 1: + x0 | x1 x0 x0
        Parent 2: * x1 | c0 x1 x0
        Child 1:  + x0 c0 x1 x0
        Child 2:  * x1 x1 x0 x0

    Returns:
        Two new child gene arrays
    """
    n_genes = genes1.shape[0]
    a, b = flatten(genes1).copy(), flatten(genes2).copy()
    cut = int(rng.integers(1, a.size))
    a[cut:], b[cut:] = b[cut:].copy(), a[cut:].copy()
    return unflatten(a, n_genes), unflatten(b, n_genes)


def two_point_crossover(
    genes1: np.ndarray,
    genes2: np.ndarray,
    rng: np.random.Generator,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Two-point recombination: the segment between two random cuts is swapped.

    Returns:
        Two new child gene arrays
    """
    n_genes = genes1.shape[0]
    a, b = flatten(genes1).copy(), flatten(genes2).copy()
    start, end = sorted(int(p) for p in rng.choice(np.arange(1, a.size), size=2, replace=False))
    a[start:end], b[start:end] = b[start:end].copy(), a[start:end].copy()
    return unflatten(a, n_genes), unflatten(b, n_genes)


# =============================================================================
# Mutation Operators
# =============================================================================

def point_mutation(
    genes: np.ndarray,
    head_length: int,
    table: SymbolTable,
    rng: np.random.Generator,
) -> np.ndarray:
    """
    Replace one uniformly chosen position with a new legal symbol.

    Head positions take any symbol, tail positions only terminals.

    Returns:
        New gene array (the input is not modified)
    """
    mutated = genes.copy()
    gene_index = int(rng.integers(0, mutated.shape[0]))
    position = int(rng.integers(0, mutated.shape[1]))
    if position < head_length:
        symbol = int(rng.integers(0, len(table)))
    else:
        symbol = table.n_operators + int(rng.integers(0, table.n_terminals))
    mutated[gene_index, position] = symbol
    return mutated


# =============================================================================
# Reproduction
# =============================================================================

def breed_offspring(
    population: List[Individual],
    parent_index: int,
    table: SymbolTable,
    rng: np.random.Generator,
    px1: float,
    px2: float,
    pm: float,
    generation: int,
) -> Individual:
    """
    Produce one offspring for a non-elite slot.

    The parent's genes go through, independently and in this order: one-point
    crossover with a roulette-selected mate (probability px1), two-point
    crossover with another mate (px2), and point mutation (pm). If nothing
    changed the genes, the parent's fitness cache is kept.

    Args:
        population: Current (parent) population
        parent_index: Index of the selected parent
        table: Symbol table
        rng: Random generator
        px1: One-point crossover rate
        px2: Two-point crossover rate
        pm: Mutation rate
        generation: Generation number for the child

    Returns:
        New Individual
    """
    parent = population[parent_index]
    genes = parent.genes.copy()

    if rng.random() < px1:
        mate = population[roulette_selection(population, 1, rng)[0]]
        genes, _ = one_point_crossover(genes, mate.genes, rng)

    if rng.random() < px2:
        mate = population[roulette_selection(population, 1, rng)[0]]
        genes, _ = two_point_crossover(genes, mate.genes, rng)

    if rng.random() < pm:
        genes = point_mutation(genes, parent.head_length, table, rng)

    child = parent.copy()
    child.genes = genes
    child.generation = generation
    child.origin = 'offspring'
    if not np.array_equal(genes, parent.genes):
        child.invalidate()
    return child
