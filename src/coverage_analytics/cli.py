#!/usr/bin/env python3
"""
Train and evaluate the coverage classifier end to end.

Usage:
    coverage-train --data-dir data/raw --weeks 1
    coverage-train --data-dir data/raw --weeks 1 2 3 --folds 5 --epochs 50
    coverage-train --config overrides.yaml --final-predictor full

Steps:
    1. Load tracking + labels for the requested weeks
    2. Build relative features and assemble tensors
    3. Cross-validate (or train on all plays with --final-predictor full)
    4. Evaluate on a stratified held-out split and save checkpoints and figures
"""

import argparse
import logging
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
from sklearn.model_selection import train_test_split

from .config import Config
from .data.loading import load_weeks
from .data.preprocessing import prepare_dataset
from .models.ensemble import create_ensemble
from .training.trainer import cross_validate, save_checkpoints, train_full
from .utils.visualization import plot_confusion_matrix, plot_training_history, setup_style

logger = logging.getLogger(__name__)


def build_config(args):
    """Config with YAML overrides first, then command-line flags."""
    config = Config.from_yaml(args.config) if args.config else Config

    overrides = {}
    if args.data_dir:
        overrides['DATA_DIR'] = args.data_dir
    if args.weeks:
        overrides['WEEKS'] = args.weeks
    if args.folds:
        overrides['N_FOLDS'] = args.folds
    if args.epochs:
        overrides['EPOCHS'] = args.epochs
    if args.batch_size:
        overrides['BATCH_SIZE'] = args.batch_size
    if args.final_predictor:
        overrides['FINAL_PREDICTOR'] = args.final_predictor
    if args.output:
        overrides['OUTPUT_DIR'] = args.output

    return config.override(**overrides) if overrides else config


def run(config):
    """Run the pipeline and return the held-out evaluation dict."""
    config.print_config()

    # 1) load
    logger.info("[1/4] Loading tracking data and coverage labels...")
    participants = load_weeks(config.DATA_DIR, config.WEEKS, config=config)

    # 2) features
    logger.info("[2/4] Building feature tensors...")
    X, y, keys, encoder = prepare_dataset(participants, config=config)
    n_classes = len(encoder.classes_)

    train_idx, test_idx = train_test_split(
        np.arange(len(y)), test_size=config.TEST_SIZE, stratify=y, random_state=config.SEED
    )
    logger.info(f"Held out {len(test_idx):,} of {len(y):,} plays for the final evaluation")

    # 3) training
    logger.info("[3/4] Training...")
    checkpoints, history = cross_validate(X[train_idx], y[train_idx], n_classes, config=config)
    if config.FINAL_PREDICTOR == 'full':
        full_checkpoint, _ = train_full(X[train_idx], y[train_idx], n_classes, config=config)
        serving = {0: full_checkpoint}
    else:
        serving = checkpoints

    output_dir = Path(config.OUTPUT_DIR)
    save_checkpoints(serving, output_dir / config.FINAL_PREDICTOR, encoder=encoder)

    # 4) evaluation on the held-out plays
    logger.info("[4/4] Evaluating...")
    ensemble = create_ensemble(serving, device=str(config.DEVICE),
                               field_width=config.FIELD_WIDTH,
                               batch_size=config.BATCH_SIZE,
                               class_names=list(encoder.classes_))
    results = ensemble.evaluate(X[test_idx], y[test_idx], use_tta=config.USE_TTA)

    setup_style()
    fig = plot_confusion_matrix(results['confusion_matrix'], class_names=results['class_names'],
                                path=output_dir / 'figures' / 'confusion_matrix.png')
    plt.close(fig)
    fig = plot_training_history(history, path=output_dir / 'figures' / 'training_history.png')
    plt.close(fig)

    logger.info(f"Held-out accuracy ({config.FINAL_PREDICTOR}): {results['accuracy']:.4f}")
    return results


def main():
    """Main CLI function."""
    parser = argparse.ArgumentParser(
        description='Train the pass-coverage CNN with k-fold cross-validation'
    )

    parser.add_argument('--data-dir', type=str, help='Directory with tracking, plays, games and coverage CSVs')
    parser.add_argument('--weeks', type=int, nargs='+', help='Weeks to load (e.g., 1 2 3)')
    parser.add_argument('--folds', type=int, help='Number of cross-validation folds')
    parser.add_argument('--epochs', type=int, help='Epochs per fold')
    parser.add_argument('--batch-size', type=int, help='Mini-batch size before augmentation')
    parser.add_argument('--final-predictor', choices=['ensemble', 'full'],
                        help='Serve the fold ensemble or one model trained on all plays')
    parser.add_argument('--config', type=str, help='YAML file with Config overrides')
    parser.add_argument('--output', type=str, help='Output directory (default: ./models)')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )

    run(build_config(args))


if __name__ == "__main__":
    main()
