"""
Public entry points: train a model and score new data with it.

    >>> import numpy as np
    >>> from gepr import train, score
    >>> X = np.random.default_rng(0).uniform(-1, 1, size=(50, 2))
    >>> y = X[:, 0] ** 2 + X[:, 1]
    >>> path = train(y, X, maxiter=50, popsize=40, nthreads=1, verbose=0)
    >>> predictions = score(X, path)

Both functions validate everything up front and raise ValidationError
before any evolutionary work is started.
"""

import logging
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

import numpy as np

from .config import RunConfig, validate_training_data, validate_variable_names
from .core.persistence import PersistedModel, load_model, save_model
from .core.scoring import predict
from .evolution.engine import EvolutionEngine, EvolutionResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, Dict[str, Any]], None]


def fit(
    y: Any,
    x: Any,
    px1: float = 0.4,
    px2: float = 0.1,
    pm: float = 0.3,
    maxiter: int = 1000,
    headlen: int = 5,
    popsize: int = 100,
    eliterate: float = 0.1,
    goal: float = 0.95,
    rseed: int = 8888,
    nthreads: int = 4,
    verbose: int = 1,
    fit_method: int = 0,
    maxpass: int = 3,
    sol_file: str = 'gep_sol.dat',
    ngenes: int = 3,
    n_constants: int = 10,
    const_range: Tuple[float, float] = (-1.0, 1.0),
    progress_callback: Optional[ProgressCallback] = None,
    variable_names: Optional[Sequence[str]] = None,
) -> Tuple[str, EvolutionResult]:
    """
    Evolve a composite regression model, save it and return the run result.

    Same as train() but also returns the EvolutionResult (best individual,
    per-round history, evaluation counts).

    Returns:
        (sol_file, result)

    Raises:
        ValidationError: on any invalid argument or input table
    """
    X, response = validate_training_data(y, x)
    config = RunConfig(
        px1=px1, px2=px2, pm=pm, maxiter=maxiter, headlen=headlen,
        popsize=popsize, eliterate=eliterate, goal=goal, rseed=rseed,
        nthreads=nthreads, verbose=verbose, fit_method=fit_method,
        maxpass=maxpass, sol_file=sol_file, ngenes=ngenes,
        n_constants=n_constants, const_range=tuple(const_range),
    )
    return fit_config(config, X, response, progress_callback, variable_names)


def fit_config(
    config: RunConfig,
    X: np.ndarray,
    y: np.ndarray,
    progress_callback: Optional[ProgressCallback] = None,
    variable_names: Optional[Sequence[str]] = None,
) -> Tuple[str, EvolutionResult]:
    """fit() for an already built RunConfig and validated (X, y)."""
    variable_names = validate_variable_names(variable_names, X.shape[1])
    logger.debug("Training on %d rows x %d variables with %s", X.shape[0], X.shape[1], config)

    engine = EvolutionEngine(config, X, y, progress_callback=progress_callback)
    result = engine.evolve()

    model = PersistedModel.from_individual(
        result.best,
        result.symbol_table,
        n_rows=X.shape[0],
        variable_names=variable_names,
        config=config.to_dict(),
        generations=result.generations_completed,
        rounds=result.rounds_completed,
    )
    save_model(model, config.sol_file)
    if config.verbose > 0:
        print(f"GEP model saved to file {config.sol_file}")
    return config.sol_file, result


def train(
    y: Any,
    x: Any,
    px1: float = 0.4,
    px2: float = 0.1,
    pm: float = 0.3,
    maxiter: int = 1000,
    headlen: int = 5,
    popsize: int = 100,
    eliterate: float = 0.1,
    goal: float = 0.95,
    rseed: int = 8888,
    nthreads: int = 4,
    verbose: int = 1,
    fit_method: int = 0,
    maxpass: int = 3,
    sol_file: str = 'gep_sol.dat',
    ngenes: int = 3,
    n_constants: int = 10,
    const_range: Tuple[float, float] = (-1.0, 1.0),
    progress_callback: Optional[ProgressCallback] = None,
    variable_names: Optional[Sequence[str]] = None,
) -> str:
    """
    Train a GEP composite linear-nonlinear regression model.

    Args:
        y: Response vector, one value per row of x
        x: Input table, shape (nrows, nvars); a 1-D x is a single column
        px1: One-point crossover rate
        px2: Two-point crossover rate
        pm: Mutation rate
        maxiter: Maximum generations per round
        headlen: Gene head length
        popsize: Population size
        eliterate: Fraction of the population kept unchanged each generation
        goal: Target R-squared
        rseed: Random seed
        nthreads: Worker processes for fitness evaluation
        verbose: 0 silent, 1 per-round summary, 2 per-generation progress
        fit_method: 0 for regression (classification is not implemented)
        maxpass: Maximum number of independent rounds
        sol_file: Path the model is written to
        ngenes: Genes per chromosome
        n_constants: Size of the random constant pool
        const_range: Range the constants are drawn from
        progress_callback: Optional callback(round, generation, stats)
        variable_names: Optional column names, stored for formula rendering

    Returns:
        sol_file

    Raises:
        ValidationError: on any invalid argument or input table
    """
    path, _ = fit(
        y, x, px1=px1, px2=px2, pm=pm, maxiter=maxiter, headlen=headlen,
        popsize=popsize, eliterate=eliterate, goal=goal, rseed=rseed,
        nthreads=nthreads, verbose=verbose, fit_method=fit_method,
        maxpass=maxpass, sol_file=sol_file, ngenes=ngenes,
        n_constants=n_constants, const_range=const_range,
        progress_callback=progress_callback, variable_names=variable_names,
    )
    return path


def score(x: Any, sol_file: str = 'gep_sol.dat') -> np.ndarray:
    """
    Predict the response for each row of x with a saved model.

    Args:
        x: Input table with the same number of columns as the training data
        sol_file: Model written by train()

    Returns:
        One prediction per row

    Raises:
        FileNotFoundError: if sol_file does not exist
        FormatError: if sol_file is not a valid model
        ValidationError: if x is malformed or has the wrong number of columns
    """
    model = load_model(sol_file)
    return predict(model, x)
