"""
Scoring with a persisted model.

Replays a stored chromosome on new rows: decode every gene once, evaluate
it column-wise, and combine the outputs with the stored coefficients. No
training state or random numbers are involved.
"""

from typing import Any, List

import numpy as np

from ..config import validate_scoring_data
from .codec import ExpressionNode, decode, evaluate, link
from .persistence import PersistedModel


class Scorer:
    """Decoded, ready-to-evaluate form of a PersistedModel."""

    def __init__(self, model: PersistedModel):
        self.model = model
        self.table = model.symbol_table()
        self.trees: List[ExpressionNode] = [decode(gene, self.table) for gene in model.genes]
        self.coefficients = np.asarray(model.coefficients, dtype=float)
        self.intercept = float(model.intercept)

    @property
    def n_variables(self) -> int:
        return self.model.n_variables

    def predict(self, rows: Any) -> np.ndarray:
        """
        Predict the response for each row.

        Args:
            rows: Table with one column per model variable (a 1-D input is
                treated as a single column)

        Returns:
            One prediction per row
        """
        data = validate_scoring_data(rows, self.n_variables)
        outputs = np.column_stack([evaluate(tree, data) for tree in self.trees])
        return link(outputs, self.coefficients, self.intercept)


def predict(model: PersistedModel, rows: Any) -> np.ndarray:
    """Score rows with a model (see Scorer.predict)."""
    return Scorer(model).predict(rows)
