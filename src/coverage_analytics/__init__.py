"""
NFL Big Data Bowl - Coverage Analytics

Pass-coverage classification from player-tracking data with a
permutation-invariant CNN, plus a play-by-play game excitement index.

Main modules:
    - data: Loading, relative features, tensor assembly, augmentation
    - models: CoverageCNN, EnsemblePredictor
    - training: Stratified k-fold training and checkpoints
    - excitement: Game excitement index from win probability
    - utils: Visualization

Version: 1.0.0
"""

__version__ = "1.0.0"

# Import main components for easy access
from .config import Config, set_seed

# Models
from .models.coverage_cnn import CoverageCNN, create_coverage_cnn
from .models.ensemble import EnsemblePredictor, create_ensemble

# Data processing
from .data.loading import load_week, load_weeks
from .data.preprocessing import (
    FEATURE_NAMES,
    build_play_features,
    build_relative_features,
    assemble_play_tensor,
    assemble_dataset,
    prepare_dataset,
)
from .data.augmentation import (
    flip_feature_tensor,
    augment_batch,
    apply_tta,
)

# Training
from .training.trainer import (
    FoldCheckpoint,
    make_stratified_folds,
    cross_validate,
    train_full,
    save_checkpoints,
    load_checkpoints,
)

# Game excitement
from .excitement import game_excitement_index, rank_games

__all__ = [
    # Config
    'Config',
    'set_seed',

    # Models
    'CoverageCNN',
    'create_coverage_cnn',
    'EnsemblePredictor',
    'create_ensemble',

    # Data
    'load_week',
    'load_weeks',
    'FEATURE_NAMES',
    'build_play_features',
    'build_relative_features',
    'assemble_play_tensor',
    'assemble_dataset',
    'prepare_dataset',
    'flip_feature_tensor',
    'augment_batch',
    'apply_tta',

    # Training
    'FoldCheckpoint',
    'make_stratified_folds',
    'cross_validate',
    'train_full',
    'save_checkpoints',
    'load_checkpoints',

    # Game excitement
    'game_excitement_index',
    'rank_games',
]
