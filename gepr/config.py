"""
Run configuration and input validation.

Everything here runs before the engine starts: the engine itself does no
re-checking of its inputs, so a bad parameter or a malformed table must be rejected
at this layer with a ValidationError.
"""

import math
from dataclasses import dataclass, asdict, fields
from numbers import Integral, Real
from typing import Any, Dict, Optional, Tuple

import numpy as np

from .exceptions import ValidationError


FIT_REGRESSION = 0
FIT_CLASSIFICATION = 1  # reserved, not implemented

MAX_HEAD_LENGTH = 100


def _is_int(value: Any) -> bool:
    return isinstance(value, Integral) and not isinstance(value, bool)


def _is_real(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and np.isfinite(value)


def _require(condition: bool, name: str, value: Any, message: str) -> None:
    if not condition:
        raise ValidationError(f"{name} value is invalid: {message}", {name: value})


@dataclass(frozen=True)
class RunConfig:
    """
    Immutable snapshot of all training parameters.

    Attributes:
        px1: One-point crossover rate, [0, 1]
        px2: Two-point crossover rate, [0, 1]
        pm: Mutation rate, [0, 1]
        maxiter: Maximum generations per round, > 1
        headlen: Gene head length, (0, 100]
        popsize: Individuals per generation, > 0 (ideally a multiple of nthreads)
        eliterate: Fraction of the population surviving unchanged, [0, 1]
        goal: Target R-squared; a round stops once it is reached, [0, 1]
        rseed: Random seed, integer > 0
        nthreads: Parallel fitness workers, >= 1
        verbose: 0 silent, 1 per-round summary, 2 per-generation best fitness
        fit_method: 0 regression (1, classification, is not implemented)
        maxpass: Independent restarts (rounds), >= 1
        sol_file: Where the model is written
        ngenes: Genes per chromosome, >= 1
        n_constants: Random constants added to the terminal set, >= 0
        const_range: (low, high) range the constants are drawn from
    """
    px1: float = 0.4
    px2: float = 0.1
    pm: float = 0.3
    maxiter: int = 1000
    headlen: int = 5
    popsize: int = 100
    eliterate: float = 0.1
    goal: float = 0.95
    rseed: int = 8888
    nthreads: int = 4
    verbose: int = 1
    fit_method: int = FIT_REGRESSION
    maxpass: int = 3
    sol_file: str = 'gep_sol.dat'
    ngenes: int = 3
    n_constants: int = 10
    const_range: Tuple[float, float] = (-1.0, 1.0)

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise ValidationError on the first out-of-range parameter."""
        for name in ('px1', 'px2', 'pm', 'eliterate', 'goal'):
            value = getattr(self, name)
            _require(_is_real(value) and 0.0 <= value <= 1.0, name, value,
                     'must be a number between 0 and 1')

        _require(_is_int(self.maxiter) and self.maxiter > 1, 'maxiter', self.maxiter,
                 'must be an integer greater than 1')
        _require(_is_int(self.headlen) and 0 < self.headlen <= MAX_HEAD_LENGTH,
                 'headlen', self.headlen, f'must be an integer in (0, {MAX_HEAD_LENGTH}]')
        _require(_is_int(self.popsize) and self.popsize > 0, 'popsize', self.popsize,
                 'must be a positive integer')
        _require(_is_int(self.rseed) and self.rseed > 0, 'rseed', self.rseed,
                 'must be a positive integer')
        _require(_is_int(self.nthreads) and self.nthreads >= 1, 'nthreads', self.nthreads,
                 'must be an integer >= 1')
        _require(_is_int(self.verbose) and self.verbose in (0, 1, 2), 'verbose', self.verbose,
                 'must be 0, 1 or 2')

        if self.fit_method == FIT_CLASSIFICATION and _is_int(self.fit_method):
            raise ValidationError(
                "fit_method value is invalid: classification (1) is not implemented",
                {'fit_method': self.fit_method},
            )
        _require(_is_int(self.fit_method) and self.fit_method == FIT_REGRESSION,
                 'fit_method', self.fit_method, 'must be 0 (regression)')

        _require(_is_int(self.maxpass) and self.maxpass >= 1, 'maxpass', self.maxpass,
                 'must be an integer >= 1')
        _require(isinstance(self.sol_file, str) and bool(self.sol_file.strip()),
                 'sol_file', self.sol_file, 'must be a non-empty path')
        _require(_is_int(self.ngenes) and self.ngenes >= 1, 'ngenes', self.ngenes,
                 'must be an integer >= 1')
        _require(_is_int(self.n_constants) and self.n_constants >= 0,
                 'n_constants', self.n_constants, 'must be an integer >= 0')

        valid_range = (
            isinstance(self.const_range, (tuple, list))
            and len(self.const_range) == 2
            and all(_is_real(v) for v in self.const_range)
            and self.const_range[0] < self.const_range[1]
        )
        _require(valid_range, 'const_range', self.const_range,
                 'must be a (low, high) pair with low < high')

    @property
    def n_elite(self) -> int:
        """Number of individuals carried over unchanged each generation."""
        # rounded first so 0.07 * 100 counts as 7, not 7.000000000000001
        return min(self.popsize, math.ceil(round(self.eliterate * self.popsize, 9)))

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d['const_range'] = list(self.const_range)
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RunConfig':
        """Create from a dictionary, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValidationError(f"Unknown configuration keys: {', '.join(unknown)}")
        data = dict(data)
        if 'const_range' in data and isinstance(data['const_range'], list):
            data['const_range'] = tuple(data['const_range'])
        return cls(**data)

    def replace(self, **changes) -> 'RunConfig':
        """Return a copy with some fields changed (validated again)."""
        d = self.to_dict()
        d.update(changes)
        return RunConfig.from_dict(d)


def _as_float_array(values: Any, name: str) -> np.ndarray:
    try:
        array = np.asarray(values, dtype=float)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be numeric")
    if np.isnan(array).any():
        raise ValidationError(f"{name} contains missing value")
    if not np.isfinite(array).all():
        raise ValidationError(f"{name} contains non-finite value")
    return array


def as_input_table(x: Any, name: str = 'x') -> np.ndarray:
    """Convert x to a finite 2-D float table (a 1-D input is one column)."""
    table = _as_float_array(x, name)
    if table.ndim == 1:
        table = table[:, np.newaxis]
    if table.ndim != 2:
        raise ValidationError(f"{name} must be a 2-D table, got {table.ndim} dimensions")
    if table.shape[0] == 0 or table.shape[1] == 0:
        raise ValidationError(f"{name} is empty", {'shape': table.shape})
    return table


def validate_training_data(y: Any, x: Any) -> Tuple[np.ndarray, np.ndarray]:
    """
    Check the response vector and input table for training.

    Returns:
        (X, y) as float arrays of shape (nrows, nvars) and (nrows,)
    """
    response = _as_float_array(y, 'y')
    if response.ndim == 2 and 1 in response.shape:
        response = response.ravel()
    if response.ndim != 1:
        raise ValidationError("y must be a vector", {'shape': response.shape})

    table = as_input_table(x)
    if table.shape[0] != response.shape[0]:
        raise ValidationError(
            "Lengths of x and y do not match",
            {'x_rows': table.shape[0], 'y_length': response.shape[0]},
        )
    if response.shape[0] < 2:
        raise ValidationError("At least 2 rows are required for training")
    return table, response


def validate_scoring_data(x: Any, n_variables: Optional[int] = None) -> np.ndarray:
    """Check an input table for scoring against the model's variable count."""
    table = as_input_table(x)
    if n_variables is not None and table.shape[1] != n_variables:
        raise ValidationError(
            "x must have the same number of columns as the training data",
            {'x_columns': table.shape[1], 'model_variables': n_variables},
        )
    return table


def validate_variable_names(names: Any, n_variables: int) -> Optional[Tuple[str, ...]]:
    """Check optional column names: one string per input variable."""
    if names is None:
        return None
    if isinstance(names, str) or not isinstance(names, (list, tuple)):
        raise ValidationError("variable_names must be a list of strings")
    if not all(isinstance(name, str) for name in names):
        raise ValidationError("variable_names must be a list of strings")
    if len(names) != n_variables:
        raise ValidationError(
            "variable_names must name every column of x",
            {'names': len(names), 'x_columns': n_variables},
        )
    return tuple(names)
