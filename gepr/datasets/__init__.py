"""Toy regression datasets with known target formulas."""

from .toy import (
    linear,
    polynomial,
    sine,
    rational,
    exponential_decay,
    mixed,
    DATASETS,
    get_dataset,
    list_datasets,
)

__all__ = [
    'linear',
    'polynomial',
    'sine',
    'rational',
    'exponential_decay',
    'mixed',
    'DATASETS',
    'get_dataset',
    'list_datasets',
]
