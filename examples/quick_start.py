#!/usr/bin/env python3
"""
Quick Start - Minimal example to get started with gepr.

Run this script to watch a formula being evolved for a toy dataset.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np

from gepr import fit, score
from gepr.datasets.toy import get_dataset

print("GEPR - Quick Start")
print("="*40)

# Load a toy dataset: y = x^3 + x^2 + x
X, y = get_dataset('polynomial', seed=0)
print(f"Dataset: Polynomial ({len(y)} samples)")

# Evolve
print("\nEvolving...")
path, result = fit(
    y, X,
    popsize=60,       # 60 chromosomes per generation
    maxiter=200,      # up to 200 generations per round
    goal=0.999,       # stop once R-squared reaches 0.999
    nthreads=1,
    sol_file='quick_start_model.dat',
)

print(f"\nBest R-squared: {result.best_fitness:.4f}")
print(f"Model: {result.formula()}")

# Score new points with the saved model
x_new = np.array([[-0.5], [0.0], [0.5]])
print("\nPredictions for x = -0.5, 0, 0.5:")
for x, prediction in zip(x_new[:, 0], score(x_new, path)):
    print(f"   x = {x:5.2f}   predicted {prediction:8.4f}   actual {x**3 + x**2 + x:8.4f}")

print("\nTry another dataset, e.g. get_dataset('sine'), or change ngenes/headlen!")
