"""
Training Module

Stratified k-fold training of the coverage CNN and checkpoint persistence.
"""

from .trainer import (
    FoldCheckpoint,
    make_stratified_folds,
    build_loader,
    train_one_epoch,
    evaluate_accuracy,
    train_fold,
    cross_validate,
    train_full,
    save_checkpoints,
    load_checkpoints,
)

__all__ = [
    'FoldCheckpoint',
    'make_stratified_folds',
    'build_loader',
    'train_one_epoch',
    'evaluate_accuracy',
    'train_fold',
    'cross_validate',
    'train_full',
    'save_checkpoints',
    'load_checkpoints',
]
