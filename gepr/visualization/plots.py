"""
Matplotlib-based visualization for GEP runs and models.

These functions create static plots for analysis and documentation.
"""

import numpy as np
from typing import Optional, List, Tuple
import io
import base64

# Matplotlib imports with non-GUI backend
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt


def plot_fitness_trajectory(
    histories: List,
    goal: Optional[float] = None,
    figsize: Tuple[int, int] = (10, 4),
    title: Optional[str] = None
) -> plt.Figure:
    """
    Plot best and mean R-squared per generation, one line per round.

    Args:
        histories: EvolutionHistory objects (one per round)
        goal: Target R-squared, drawn as a horizontal line
        figsize: Figure size
        title: Plot title

    Returns:
        matplotlib Figure
    """
    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=figsize)

    for history in histories:
        generations = [g.generation for g in history.generations]
        label = f'Round {history.round_index}'
        ax1.plot(generations, [g.best_fitness for g in history.generations],
                 linewidth=2, label=label)
        ax1.plot(generations, [g.mean_fitness for g in history.generations],
                 linewidth=1, linestyle='--', alpha=0.6)
        ax2.plot(generations, history.diversity_trajectory, linewidth=1.5, label=label)

    if goal is not None:
        ax1.axhline(y=goal, color='red', linewidth=1, linestyle=':', label='Goal')
    ax1.set_xlabel('Generation')
    ax1.set_ylabel('R-squared')
    ax1.set_title('Best (solid) and mean (dashed) fitness')
    ax1.set_ylim(0, 1.05)
    ax1.grid(True, alpha=0.3)
    ax1.legend(fontsize=8)

    ax2.set_xlabel('Generation')
    ax2.set_ylabel('Unique chromosomes / population')
    ax2.set_title('Diversity')
    ax2.set_ylim(0, 1.05)
    ax2.grid(True, alpha=0.3)

    if title:
        fig.suptitle(title)

    plt.tight_layout()
    return fig


def plot_predictions(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    title: str = 'Predicted vs. actual',
    figsize: Tuple[int, int] = (6, 5)
) -> plt.Figure:
    """
    Scatter predictions against the observed response.

    Args:
        y_true: Observed values
        y_pred: Model predictions
        title: Plot title
        figsize: Figure size

    Returns:
        matplotlib Figure
    """
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    fig, ax = plt.subplots(figsize=figsize)

    ax.scatter(y_true, y_pred, color='steelblue', edgecolors='white', s=40, linewidths=1)
    low = float(min(y_true.min(), y_pred.min()))
    high = float(max(y_true.max(), y_pred.max()))
    ax.plot([low, high], [low, high], color='red', linewidth=1, linestyle='--')

    ax.set_xlabel('Actual')
    ax.set_ylabel('Predicted')
    ax.set_title(title)
    ax.grid(True, alpha=0.3)

    return fig


def figure_to_base64(fig: plt.Figure) -> str:
    """Convert matplotlib figure to base64 string for web display."""
    buf = io.BytesIO()
    fig.savefig(buf, format='png', dpi=100, bbox_inches='tight')
    buf.seek(0)
    img_base64 = base64.b64encode(buf.read()).decode('utf-8')
    plt.close(fig)
    return img_base64
