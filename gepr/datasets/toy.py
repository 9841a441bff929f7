"""
Toy regression datasets for symbolic regression experiments.

These datasets are designed to:
1. Have a known closed-form target the search can rediscover
2. Cover the operator set (polynomial, trigonometric, rational, exponential)
3. Range from trivially linear to genuinely nonlinear
4. Evolve quickly on CPU

Every generator returns X of shape (n_samples, n_variables) and y of shape
(n_samples,).
"""

import numpy as np
from typing import Tuple, Dict, Optional


def linear(
    n_samples: int = 100,
    noise: float = 0.0,
    seed: Optional[int] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    y = 1 + 2 x0 - 3 x1 - a plane.

    Solved by the linear link alone; any chromosome containing x0 and x1 as
    genes reaches R-squared 1.

    Args:
        n_samples: Number of samples
        noise: Standard deviation of Gaussian noise added to y
        seed: Random seed

    Returns:
        X: Features of shape (n_samples, 2)
        y: Targets of shape (n_samples,)
    """
    rng = np.random.default_rng(seed)
    X = rng.uniform(-2, 2, size=(n_samples, 2))
    y = 1 + 2 * X[:, 0] - 3 * X[:, 1]
    if noise > 0:
        y = y + rng.normal(0, noise, n_samples)
    return X, y


def polynomial(
    n_samples: int = 100,
    noise: float = 0.0,
    seed: Optional[int] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    y = x^3 + x^2 + x - the classic quartic-style benchmark, one variable.

    Tests: Multiplicative structure, products of genes

    Args:
        n_samples: Number of samples
        noise: Standard deviation of Gaussian noise added to y
        seed: Random seed

    Returns:
        X: Features of shape (n_samples, 1)
        y: Targets of shape (n_samples,)
    """
    rng = np.random.default_rng(seed)
    x = rng.uniform(-1, 1, size=n_samples)
    y = x ** 3 + x ** 2 + x
    if noise > 0:
        y = y + rng.normal(0, noise, n_samples)
    return x[:, np.newaxis], y


def sine(
    n_samples: int = 100,
    noise: float = 0.0,
    frequency: float = 2.0,
    seed: Optional[int] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    y = sin(frequency * x) + 0.5 x.

    Tests: Trigonometric operators combined with a linear trend
    """
    rng = np.random.default_rng(seed)
    x = rng.uniform(-np.pi, np.pi, size=n_samples)
    y = np.sin(frequency * x) + 0.5 * x
    if noise > 0:
        y = y + rng.normal(0, noise, n_samples)
    return x[:, np.newaxis], y


def rational(
    n_samples: int = 100,
    noise: float = 0.0,
    seed: Optional[int] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    y = x0 / (1 + x1^2).

    Tests: Protected division, interaction between variables
    """
    rng = np.random.default_rng(seed)
    X = rng.uniform(-2, 2, size=(n_samples, 2))
    y = X[:, 0] / (1 + X[:, 1] ** 2)
    if noise > 0:
        y = y + rng.normal(0, noise, n_samples)
    return X, y


def exponential_decay(
    n_samples: int = 100,
    noise: float = 0.0,
    rate: float = 0.5,
    seed: Optional[int] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    y = 3 exp(-rate * x) on x in [0, 5].

    Tests: exp/log operators
    """
    rng = np.random.default_rng(seed)
    x = rng.uniform(0, 5, size=n_samples)
    y = 3 * np.exp(-rate * x)
    if noise > 0:
        y = y + rng.normal(0, noise, n_samples)
    return x[:, np.newaxis], y


def mixed(
    n_samples: int = 150,
    noise: float = 0.0,
    seed: Optional[int] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    y = 2 sqrt(x0) + x1 * x2 - log(x0) on positive inputs.

    Three variables and three additive terms, one per gene.
    """
    rng = np.random.default_rng(seed)
    X = rng.uniform(0.1, 4, size=(n_samples, 3))
    y = 2 * np.sqrt(X[:, 0]) + X[:, 1] * X[:, 2] - np.log(X[:, 0])
    if noise > 0:
        y = y + rng.normal(0, noise, n_samples)
    return X, y


# Dataset registry
DATASETS: Dict[str, Dict] = {
    'linear': {
        'function': linear,
        'name': 'Linear',
        'description': 'Plane in two variables - solved by the linear link alone',
        'difficulty': 'trivial',
        'n_variables': 2,
        'default_params': {'n_samples': 100, 'noise': 0.0},
    },
    'polynomial': {
        'function': polynomial,
        'name': 'Polynomial',
        'description': 'x^3 + x^2 + x on [-1, 1]',
        'difficulty': 'easy',
        'n_variables': 1,
        'default_params': {'n_samples': 100, 'noise': 0.0},
    },
    'sine': {
        'function': sine,
        'name': 'Sine',
        'description': 'sin(2x) + 0.5x on [-pi, pi]',
        'difficulty': 'medium',
        'n_variables': 1,
        'default_params': {'n_samples': 100, 'noise': 0.0, 'frequency': 2.0},
    },
    'rational': {
        'function': rational,
        'name': 'Rational',
        'description': 'x0 / (1 + x1^2) - needs division',
        'difficulty': 'medium',
        'n_variables': 2,
        'default_params': {'n_samples': 100, 'noise': 0.0},
    },
    'exponential_decay': {
        'function': exponential_decay,
        'name': 'Exponential Decay',
        'description': '3 exp(-0.5x) on [0, 5]',
        'difficulty': 'medium',
        'n_variables': 1,
        'default_params': {'n_samples': 100, 'noise': 0.0, 'rate': 0.5},
    },
    'mixed': {
        'function': mixed,
        'name': 'Mixed',
        'description': '2 sqrt(x0) + x1 x2 - log(x0) - three additive terms',
        'difficulty': 'hard',
        'n_variables': 3,
        'default_params': {'n_samples': 150, 'noise': 0.0},
    },
}


def get_dataset(
    name: str,
    **kwargs
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Get a dataset by name.

    Args:
        name: Dataset name
        **kwargs: Override default parameters

    Returns:
        X: Features
        y: Targets
    """
    if name not in DATASETS:
        available = ', '.join(DATASETS.keys())
        raise ValueError(f"Unknown dataset '{name}'. Available: {available}")

    dataset_info = DATASETS[name]
    params = dataset_info['default_params'].copy()
    params.update(kwargs)

    return dataset_info['function'](**params)


def list_datasets() -> Dict[str, Dict]:
    """List all available datasets with their metadata."""
    return {
        name: {k: v for k, v in info.items() if k != 'function'}
        for name, info in DATASETS.items()
    }
