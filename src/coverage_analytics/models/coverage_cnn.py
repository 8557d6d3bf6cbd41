"""
Pairwise Coverage CNN for Pass-Coverage Classification

Classifies a play's coverage scheme from its (channel, defender, offender)
relative-feature tensor. The architecture follows the winning 2020 Big Data
Bowl design: 1x1 convolutions over every defender/offender pair, a
weighted average/max pool over offenders, 1-D convolutions over defenders,
a second pool over defenders and a small fully-connected head.

Architecture:
    Conv2d 1x1 (13->128->160->128) -> 0.7 avg + 0.3 max over offenders
    -> BN/Conv1d k=1 (128->160->96->96) -> 0.7 avg + 0.3 max over defenders
    -> Linear 96->96 -> Linear 96->256 -> Dropout -> Linear 256->C

Every convolution has kernel size 1 and both pools are symmetric, so the
output does not depend on the order of defender or offender slots. Zero
padded slots are safe for the same reason.

Author: NFL Big Data Bowl Coverage Analytics
"""

import torch
import torch.nn as nn

from ..config import Config


class DualPool(nn.Module):
    """Weighted sum of average and max pooling over one axis.

    Reduces ``dim`` to a single element and drops it.
    """

    def __init__(self, dim, avg_weight=Config.POOL_AVG_WEIGHT, max_weight=Config.POOL_MAX_WEIGHT):
        super().__init__()
        self.dim = dim
        self.avg_weight = avg_weight
        self.max_weight = max_weight

    def forward(self, x):
        avg = x.mean(dim=self.dim)
        mx = x.amax(dim=self.dim)
        return self.avg_weight * avg + self.max_weight * mx

    def extra_repr(self):
        return f"dim={self.dim}, avg_weight={self.avg_weight}, max_weight={self.max_weight}"


class CoverageCNN(nn.Module):
    """Permutation-invariant CNN over defender/offender pair features.

    ``model.train()`` normalizes with batch statistics; ``model.eval()``
    uses the frozen running statistics so predictions do not depend on
    batch composition.
    """

    def __init__(self, n_features=Config.N_FEATURES, n_classes=2, dropout=Config.DROPOUT):
        """
        Args:
            n_features: Number of input channels per pair (default 13).
            n_classes: Number of coverage classes.
            dropout: Dropout rate before the output layer (default 0.3).
        """
        super().__init__()

        self.n_features = n_features
        self.n_classes = n_classes

        # Stage A: per-pair channel mixing over the (defender, offender) grid
        self.pair_conv = nn.Sequential(
            nn.Conv2d(n_features, 128, kernel_size=1),
            nn.ReLU(),
            nn.Conv2d(128, 160, kernel_size=1),
            nn.ReLU(),
            nn.Conv2d(160, 128, kernel_size=1),
            nn.ReLU(),
        )
        # (B, 128, D, O) -> (B, 128, D)
        self.offender_pool = DualPool(dim=3)

        # Stage B: per-defender channel mixing
        self.defender_conv = nn.Sequential(
            nn.BatchNorm1d(128),
            nn.Conv1d(128, 160, kernel_size=1),
            nn.ReLU(),
            nn.BatchNorm1d(160),
            nn.Conv1d(160, 96, kernel_size=1),
            nn.ReLU(),
            nn.BatchNorm1d(96),
            nn.Conv1d(96, 96, kernel_size=1),
            nn.ReLU(),
            nn.BatchNorm1d(96),
        )
        # (B, 96, D) -> (B, 96)
        self.defender_pool = DualPool(dim=2)

        self.head = nn.Sequential(
            nn.Linear(96, 96),
            nn.BatchNorm1d(96),
            nn.ReLU(),
            nn.Linear(96, 256),
            nn.ReLU(),
            nn.BatchNorm1d(256),
            nn.LayerNorm(256),
            nn.Dropout(dropout),
            nn.Linear(256, n_classes),
        )

    def forward(self, x):
        """Forward pass.

        Args:
            x: Feature tensor of shape (batch, n_features, defenders, offenders).

        Returns:
            Raw class scores of shape (batch, n_classes). Softmax is left
            to the loss.
        """
        h = self.pair_conv(x)
        h = self.offender_pool(h)
        h = self.defender_conv(h)
        h = self.defender_pool(h)
        return self.head(h)


def create_coverage_cnn(n_classes, n_features=Config.N_FEATURES, dropout=Config.DROPOUT, device=None):
    """Factory function to create a CoverageCNN instance.

    Args:
        n_classes: Number of coverage classes.
        n_features: Input channels per pair (default 13).
        dropout: Dropout rate (default 0.3).
        device: Target device. If None, stays on CPU.

    Returns:
        A CoverageCNN model instance, optionally moved to ``device``.
    """
    model = CoverageCNN(n_features=n_features, n_classes=n_classes, dropout=dropout)

    if device is not None:
        model = model.to(device)

    return model
