"""
gepr - Gene expression programming for composite linear-nonlinear regression.

Evolves a small set of expression trees (genes) whose outputs are combined
by least squares, and stores the result as a self-describing model file.

Example usage:
    from gepr import train, score

    path = train(y, x, maxiter=200, popsize=60, sol_file='model.dat')
    predictions = score(x_new, path)
"""

__version__ = '0.1.0'

from .api import fit, score, train
from .config import RunConfig
from .exceptions import ConfigurationError, FormatError, GeprError, ValidationError

__all__ = [
    'train',
    'fit',
    'score',
    'RunConfig',
    'GeprError',
    'ValidationError',
    'FormatError',
    'ConfigurationError',
]
