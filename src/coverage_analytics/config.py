"""
Configuration Module

Central configuration for feature construction, the coverage classifier
and cross-validated training.

Author: NFL Big Data Bowl Coverage Analytics
"""

from pathlib import Path
import random

import numpy as np
import torch
import yaml


class Config:
    """
    Default configuration for the coverage classification pipeline.

    All stages use these default settings unless overridden.
    """

    # ========== Data Settings ==========
    DATA_DIR = Path("./data/raw")
    WEEKS = [1]
    ANCHOR_EVENT = "ball_snap"
    FRAME_OFFSET = 0  # frames after the anchor event

    # Field dimensions
    FIELD_LENGTH = 120.0  # yards
    FIELD_WIDTH = 53.3  # yards

    # ========== Tensor Settings ==========
    MAX_DEFENDERS = 11
    MAX_OFFENDERS = 5  # eligible receivers, QB excluded
    N_FEATURES = 13
    ROSTER_OVERFLOW = "raise"  # or "truncate"

    # ========== Model Settings ==========
    DROPOUT = 0.3
    POOL_AVG_WEIGHT = 0.7
    POOL_MAX_WEIGHT = 0.3

    # ========== Training Settings ==========
    TEST_SIZE = 0.2  # held-out share for the final evaluation
    N_FOLDS = 5
    BATCH_SIZE = 64
    LEARNING_RATE = 1e-3
    EPOCHS = 50
    LR_DECAY = 0.975  # ExponentialLR gamma, stepped once per epoch
    SEED = 42

    # ========== Augmentation Settings ==========
    HORIZONTAL_FLIP = True
    USE_TTA = True

    # ========== Prediction Settings ==========
    FINAL_PREDICTOR = "ensemble"  # or "full"

    # ========== Output Settings ==========
    OUTPUT_DIR = Path("./models")
    SAVE_DIR = OUTPUT_DIR  # alias

    # Logging
    LOG_INTERVAL = 10  # log every N epochs

    # ========== Device Settings ==========
    DEVICE = torch.device('cuda' if torch.cuda.is_available() else 'cpu')

    # ========== Paths ==========
    @classmethod
    def set_data_dir(cls, path):
        """Update data directory."""
        cls.DATA_DIR = Path(path)

    @classmethod
    def set_output_dir(cls, path):
        """Update output directory."""
        cls.OUTPUT_DIR = Path(path)
        cls.SAVE_DIR = cls.OUTPUT_DIR

    @classmethod
    def to_dict(cls):
        """Convert config to dictionary."""
        return {
            key: getattr(cls, key)
            for key in dir(cls)
            if key.isupper() and not callable(getattr(cls, key))
        }

    @classmethod
    def from_yaml(cls, path):
        """
        Build a Config subclass with overrides read from a YAML file.

        Keys are matched case-insensitively against the upper-case
        attributes; unknown keys raise so typos do not pass silently.

        Args:
            path: Path to a YAML mapping of overrides

        Returns:
            A new Config subclass carrying the overrides
        """
        with open(path) as f:
            overrides = yaml.safe_load(f) or {}

        return cls.override(**overrides)

    @classmethod
    def override(cls, **overrides):
        """Return a Config subclass with the given attributes replaced."""
        known = cls.to_dict()
        attrs = {}
        for key, value in overrides.items():
            name = key.upper()
            if name not in known:
                raise KeyError(f"Unknown config key: {key}")
            if name in ('DATA_DIR', 'OUTPUT_DIR', 'SAVE_DIR'):
                value = Path(value)
            elif name == 'DEVICE':
                value = torch.device(value)
            attrs[name] = value

        if 'OUTPUT_DIR' in attrs and 'SAVE_DIR' not in attrs:
            attrs['SAVE_DIR'] = attrs['OUTPUT_DIR']

        validate_choices(attrs.get('ROSTER_OVERFLOW', cls.ROSTER_OVERFLOW),
                         attrs.get('FINAL_PREDICTOR', cls.FINAL_PREDICTOR))
        return type(f"{cls.__name__}Override", (cls,), attrs)

    @classmethod
    def print_config(cls):
        """Print current configuration."""
        print("=" * 80)
        print("CONFIGURATION")
        print("=" * 80)
        print(f"\nData:")
        print(f"  DATA_DIR: {cls.DATA_DIR}")
        print(f"  WEEKS: {cls.WEEKS}")
        print(f"  ANCHOR_EVENT: {cls.ANCHOR_EVENT} (+{cls.FRAME_OFFSET} frames)")

        print(f"\nTensor:")
        print(f"  SHAPE: ({cls.N_FEATURES}, {cls.MAX_DEFENDERS}, {cls.MAX_OFFENDERS})")
        print(f"  ROSTER_OVERFLOW: {cls.ROSTER_OVERFLOW}")

        print(f"\nTraining:")
        print(f"  N_FOLDS: {cls.N_FOLDS}")
        print(f"  BATCH_SIZE: {cls.BATCH_SIZE}")
        print(f"  LEARNING_RATE: {cls.LEARNING_RATE}")
        print(f"  LR_DECAY: {cls.LR_DECAY}")
        print(f"  EPOCHS: {cls.EPOCHS}")

        print(f"\nAugmentation:")
        print(f"  HORIZONTAL_FLIP: {cls.HORIZONTAL_FLIP}")
        print(f"  USE_TTA: {cls.USE_TTA}")

        print(f"\nPrediction:")
        print(f"  FINAL_PREDICTOR: {cls.FINAL_PREDICTOR}")

        print(f"\nDevice:")
        print(f"  DEVICE: {cls.DEVICE}")
        print("=" * 80)


ROSTER_OVERFLOW_POLICIES = ("raise", "truncate")
FINAL_PREDICTORS = ("ensemble", "full")


def validate_choices(roster_overflow, final_predictor):
    """Raise ValueError for unsupported policy names."""
    if roster_overflow not in ROSTER_OVERFLOW_POLICIES:
        raise ValueError(
            f"ROSTER_OVERFLOW must be one of {ROSTER_OVERFLOW_POLICIES}, got {roster_overflow!r}"
        )
    if final_predictor not in FINAL_PREDICTORS:
        raise ValueError(
            f"FINAL_PREDICTOR must be one of {FINAL_PREDICTORS}, got {final_predictor!r}"
        )


def set_seed(seed=42):
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)
    torch.cuda.manual_seed_all(seed)
