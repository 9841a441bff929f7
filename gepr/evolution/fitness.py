"""
Fitness evaluation for composite linear-nonlinear regression.

Each gene of a chromosome is evaluated over the whole training table; the
resulting columns are combined by ordinary least squares (with an
intercept), and the fit is scored by the coefficient of determination:

    R^2 = 1 - SS_res / SS_tot

clamped to [0, 1] so that anything worse than predicting the mean counts as
0. Genes whose output hit the guard clamp get a zero coefficient and take no
part in the fit.

compute_fitness() is a pure function of its arguments, so it can run in
any number of worker processes at once.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Sequence, Tuple

import numpy as np

from ..core.codec import gene_outputs, is_degenerate, link
from ..core.symbols import SymbolTable


@dataclass
class FitnessResult:
    """
    Outcome of evaluating one chromosome against the training set.

    Attributes:
        fitness: Clamped R-squared in [0, 1]
        coefficients: One linear weight per gene
        intercept: Constant term
        degenerate_genes: Genes excluded from the fit
    """
    fitness: float
    coefficients: Tuple[float, ...]
    intercept: float
    degenerate_genes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d['coefficients'] = list(self.coefficients)
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FitnessResult':
        data = dict(data)
        data['coefficients'] = tuple(data['coefficients'])
        return cls(**data)

    def __repr__(self) -> str:
        return f"FitnessResult(r2={self.fitness:.4f}, degenerate={self.degenerate_genes})"


def r_squared(y: np.ndarray, predicted: np.ndarray) -> float:
    """
    Coefficient of determination, clamped to [0, 1].

    For a constant response (SS_tot == 0) the score is 1.0 if the predictions
    match it and 0.0 otherwise.
    """
    y = np.asarray(y, dtype=float)
    predicted = np.asarray(predicted, dtype=float)
    with np.errstate(all='ignore'):
        ss_res = float(np.sum((y - predicted) ** 2))
        ss_tot = float(np.sum((y - y.mean()) ** 2))

    if ss_tot == 0.0:
        return 1.0 if np.allclose(predicted, y) else 0.0
    if not np.isfinite(ss_res):
        return 0.0

    r2 = 1.0 - ss_res / ss_tot
    return float(min(max(r2, 0.0), 1.0))


def fit_coefficients(outputs: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, float, int]:
    """
    Least-squares weights for combining gene outputs.

    Columns are centred and scaled before solving, which is the same OLS
    problem with an intercept but much better conditioned when genes produce
    large values. Degenerate and constant columns get a zero weight.

    Args:
        outputs: Gene outputs, shape (n_rows, n_genes)
        y: Response, shape (n_rows,)

    Returns:
        (coefficients, intercept, n_degenerate)
    """
    outputs = np.asarray(outputs, dtype=float)
    y = np.asarray(y, dtype=float)
    n_genes = outputs.shape[1]
    coefficients = np.zeros(n_genes)
    y_mean = float(y.mean())

    degenerate = np.array([is_degenerate(outputs[:, j]) for j in range(n_genes)], dtype=bool)

    with np.errstate(all='ignore'):
        means = outputs.mean(axis=0)
        scales = outputs.std(axis=0)
    usable = ~degenerate & np.isfinite(scales) & (scales > 0)
    if not usable.any():
        return coefficients, y_mean, int(degenerate.sum())

    with np.errstate(all='ignore'):
        standardized = (outputs[:, usable] - means[usable]) / scales[usable]
        try:
            beta, *_ = np.linalg.lstsq(standardized, y - y_mean, rcond=None)
        except np.linalg.LinAlgError:
            return coefficients, y_mean, int(degenerate.sum())
        weights = beta / scales[usable]
        intercept = y_mean - float(np.dot(weights, means[usable]))

    if not (np.all(np.isfinite(weights)) and np.isfinite(intercept)):
        return coefficients, y_mean, int(degenerate.sum())

    coefficients[usable] = weights
    return coefficients, float(intercept), int(degenerate.sum())


def compute_fitness(
    genes: Sequence[Sequence[int]],
    X: np.ndarray,
    y: np.ndarray,
    table: SymbolTable,
) -> FitnessResult:
    """
    Evaluate a chromosome: gene outputs, linear fit and R-squared.

    Args:
        genes: Chromosome genes (symbol indices)
        X: Training inputs, shape (n_rows, n_vars)
        y: Training response, shape (n_rows,)
        table: Symbol table the genes refer to

    Returns:
        FitnessResult with fitness and fitted coefficients
    """
    outputs = gene_outputs(genes, table, X)
    coefficients, intercept, n_degenerate = fit_coefficients(outputs, y)
    predicted = link(outputs, coefficients, intercept)
    return FitnessResult(
        fitness=r_squared(y, predicted),
        coefficients=tuple(float(c) for c in coefficients),
        intercept=intercept,
        degenerate_genes=n_degenerate,
    )


def compare_fitness(f1: float, f2: float, tolerance: float = 1e-12) -> int:
    """
    Compare two fitness values.

    Returns:
        1 if f1 is better, -1 if f2 is better, 0 if equal within tolerance
    """
    if abs(f1 - f2) <= tolerance:
        return 0
    return 1 if f1 > f2 else -1
