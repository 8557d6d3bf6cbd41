"""
Coverage Classification - Model Definitions

    - CoverageCNN: pairwise 1x1-conv network with dual avg/max pooling
    - EnsemblePredictor: fold-averaged scores with horizontal-flip TTA
"""

from .coverage_cnn import CoverageCNN, DualPool, create_coverage_cnn
from .ensemble import EnsemblePredictor, create_ensemble

__all__ = [
    "CoverageCNN",
    "DualPool",
    "create_coverage_cnn",
    "EnsemblePredictor",
    "create_ensemble",
]
