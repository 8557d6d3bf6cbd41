import numpy as np
import pandas as pd
import pytest
import torch

from coverage_analytics.config import Config


@pytest.fixture
def make_play():
    """Factory for one play's participant rows (defense first, then offense)."""

    def _make(n_def=3, n_off=2, game_id=1, play_id=1, coverage='Cover 3 Zone', seed=0, los_x=30.0):
        rng = np.random.default_rng(seed)
        rows = []
        for side, n in (('defense', n_def), ('offense', n_off)):
            for i in range(n):
                x = los_x + (rng.uniform(1, 15) if side == 'defense' else -rng.uniform(0, 8))
                rows.append({
                    'game_id': game_id,
                    'play_id': play_id,
                    'frame_id': 11,
                    'nfl_id': (100 if side == 'defense' else 200) + i,
                    'side': side,
                    'x': x,
                    'y': rng.uniform(5, 48),
                    'vx': rng.normal(0, 2),
                    'vy': rng.normal(0, 2),
                    'ax': rng.normal(0, 1),
                    'ay': rng.normal(0, 1),
                    'facing_qb': rng.uniform(0, 1),
                    'x_from_los': x - los_x,
                    'coverage': coverage,
                })
        return pd.DataFrame(rows)

    return _make


@pytest.fixture
def cpu_config():
    return Config.override(DEVICE='cpu', LOG_INTERVAL=1000)


@pytest.fixture
def feature_batch():
    """(4, 13, 11, 5) batch with real players in the top-left block only."""
    torch.manual_seed(0)
    x = torch.zeros(4, Config.N_FEATURES, Config.MAX_DEFENDERS, Config.MAX_OFFENDERS)
    x[:, :, :7, :4] = torch.randn(4, Config.N_FEATURES, 7, 4) + 0.5
    x[:, 1, :7, :4] = torch.rand(4, 7, 4) * Config.FIELD_WIDTH
    return x
