"""Visualization utilities for GEP runs."""

from .plots import (
    plot_fitness_trajectory,
    plot_predictions,
    figure_to_base64,
)

__all__ = [
    'plot_fitness_trajectory',
    'plot_predictions',
    'figure_to_base64',
]
