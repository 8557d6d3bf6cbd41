"""
Cross-Validated Training for the Coverage CNN

Trains one CoverageCNN per stratified fold with mirror-doubled batches,
validates with test-time augmentation and keeps the best-accuracy
parameters of every fold in memory. Checkpoints can optionally be written
to and read back from disk.

Schedule (per fold):
    Adam, lr 1e-3, ExponentialLR(gamma=0.975) stepped once per epoch,
    fixed 50-epoch budget, no early stopping.

Author: NFL Big Data Bowl Coverage Analytics
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import joblib
import numpy as np
import pandas as pd
import torch
import torch.nn as nn
from sklearn.model_selection import StratifiedKFold
from torch.utils.data import DataLoader, TensorDataset
from tqdm.auto import tqdm

from ..config import Config, set_seed
from ..data.augmentation import augment_batch
from ..models.coverage_cnn import CoverageCNN, create_coverage_cnn
from ..models.ensemble import score_model

logger = logging.getLogger(__name__)


@dataclass
class FoldCheckpoint:
    """Best-by-validation-accuracy snapshot of one fold's classifier."""

    fold: int
    epoch: int
    val_accuracy: Optional[float]
    n_classes: int
    n_features: int = Config.N_FEATURES
    state_dict: Dict[str, torch.Tensor] = field(default_factory=dict, repr=False)

    def build_model(self, device=None) -> CoverageCNN:
        """Instantiate the classifier from this snapshot, in eval mode."""
        model = create_coverage_cnn(
            n_classes=self.n_classes, n_features=self.n_features, device=device
        )
        model.load_state_dict(self.state_dict)
        model.eval()
        return model


def _snapshot(model):
    return {k: v.detach().cpu().clone() for k, v in model.state_dict().items()}


def make_stratified_folds(y, n_folds=Config.N_FOLDS, seed=Config.SEED) -> List[Tuple[np.ndarray, np.ndarray]]:
    """
    Partition play indices into stratified folds.

    Args:
        y: (N,) class indices
        n_folds: Number of folds k
        seed: Shuffle seed

    Returns:
        folds: k (train_idx, val_idx) pairs; the validation sets are
            disjoint and together cover every index
    """
    y = np.asarray(y)
    if n_folds < 2:
        raise ValueError(f"n_folds must be at least 2, got {n_folds}")
    if len(y) < n_folds:
        raise ValueError(f"Cannot split {len(y)} plays into {n_folds} folds")

    skf = StratifiedKFold(n_splits=n_folds, shuffle=True, random_state=seed)
    return [(tr, va) for tr, va in skf.split(np.zeros(len(y)), y)]


def build_loader(X, y, batch_size, shuffle=False, seed=Config.SEED):
    """Wrap arrays in a DataLoader of (features, labels) batches."""
    dataset = TensorDataset(
        torch.as_tensor(X, dtype=torch.float32),
        torch.as_tensor(y, dtype=torch.long),
    )
    generator = torch.Generator().manual_seed(seed) if shuffle else None
    return DataLoader(dataset, batch_size=batch_size, shuffle=shuffle, generator=generator)


def train_one_epoch(model, loader, optimizer, criterion, device,
                    field_width=Config.FIELD_WIDTH, augment=True):
    """
    One training pass.

    Every batch is doubled with its mirrored copy. A tail batch holding a
    single play is skipped because batch normalization needs more than
    one sample to estimate statistics.

    Returns:
        Mean training loss over the batches used
    """
    model.train()
    losses = []
    for xb, yb in loader:
        if xb.size(0) < 2:
            logger.debug("Skipping single-sample tail batch")
            continue

        xb, yb = xb.to(device), yb.to(device)
        if augment:
            xb, yb = augment_batch(xb, yb, field_width)

        loss = criterion(model(xb), yb)
        optimizer.zero_grad()
        loss.backward()
        optimizer.step()
        losses.append(loss.item())

    return float(np.mean(losses)) if losses else float('nan')


def evaluate_accuracy(model, X, y, device, batch_size=Config.BATCH_SIZE,
                      field_width=Config.FIELD_WIDTH, use_tta=True):
    """Exact-match accuracy of TTA-averaged predictions."""
    scores = score_model(model, torch.as_tensor(np.asarray(X), dtype=torch.float32),
                         device, batch_size, field_width, use_tta)
    return float(np.mean(scores.argmax(axis=1) == np.asarray(y)))


def train_fold(X_train, y_train, X_val, y_val, n_classes, config=Config, fold=0):
    """
    Train a fresh classifier on one fold.

    Args:
        X_train, y_train: Training tensors and labels
        X_val, y_val: Held-out tensors and labels
        n_classes: Number of coverage classes
        config: Config class
        fold: Fold index (also offsets the seed)

    Returns:
        checkpoint: FoldCheckpoint of the best epoch (strict improvement
            only, so ties keep the earlier epoch)
        history: list of per-epoch dicts
    """
    device = config.DEVICE
    set_seed(config.SEED + fold)

    model = create_coverage_cnn(n_classes, n_features=X_train.shape[1],
                                dropout=config.DROPOUT, device=device)
    criterion = nn.CrossEntropyLoss()
    optimizer = torch.optim.Adam(model.parameters(), lr=config.LEARNING_RATE)
    scheduler = torch.optim.lr_scheduler.ExponentialLR(optimizer, gamma=config.LR_DECAY)

    train_loader = build_loader(X_train, y_train, config.BATCH_SIZE, shuffle=True,
                                seed=config.SEED + fold)

    best = FoldCheckpoint(fold=fold, epoch=0, val_accuracy=-1.0,
                          n_classes=n_classes, n_features=X_train.shape[1])
    history = []

    for epoch in tqdm(range(1, config.EPOCHS + 1), desc=f"Fold {fold}", leave=False):
        lr = optimizer.param_groups[0]['lr']
        train_loss = train_one_epoch(model, train_loader, optimizer, criterion, device,
                                     field_width=config.FIELD_WIDTH,
                                     augment=config.HORIZONTAL_FLIP)
        val_acc = evaluate_accuracy(model, X_val, y_val, device, config.BATCH_SIZE,
                                    field_width=config.FIELD_WIDTH, use_tta=config.USE_TTA)
        scheduler.step()

        history.append({'fold': fold, 'epoch': epoch, 'lr': lr,
                        'train_loss': train_loss, 'val_accuracy': val_acc})

        if epoch % config.LOG_INTERVAL == 0:
            logger.info(f"  Epoch {epoch}: train_loss={train_loss:.4f}, val_acc={val_acc:.4f}")

        if val_acc > best.val_accuracy:
            best.epoch = epoch
            best.val_accuracy = val_acc
            best.state_dict = _snapshot(model)

    logger.info(f"Fold {fold}: best val_acc={best.val_accuracy:.4f} at epoch {best.epoch}")
    return best, history


def cross_validate(X, y, n_classes, config=Config, folds=None):
    """
    Train one classifier per stratified fold.

    Args:
        X: (N, C, D, O) feature tensors
        y: (N,) class indices
        n_classes: Number of coverage classes
        config: Config class
        folds: Optional precomputed (train_idx, val_idx) pairs

    Returns:
        checkpoints: {fold_index: FoldCheckpoint}
        history: DataFrame with one row per fold and epoch

    Example:
        >>> checkpoints, history = cross_validate(X, y, n_classes=len(encoder.classes_))
    """
    X = np.asarray(X, dtype=np.float32)
    y = np.asarray(y)
    if folds is None:
        folds = make_stratified_folds(y, config.N_FOLDS, config.SEED)

    checkpoints = {}
    histories = []
    for fold, (tr, va) in enumerate(folds):
        logger.info(f"{'-' * 60}")
        logger.info(f"Fold {fold + 1}/{len(folds)}: {len(tr)} train / {len(va)} val plays")
        logger.info(f"{'-' * 60}")

        checkpoint, history = train_fold(X[tr], y[tr], X[va], y[va], n_classes, config, fold=fold)
        checkpoints[fold] = checkpoint
        histories.extend(history)

    accs = [c.val_accuracy for c in checkpoints.values()]
    logger.info(f"CV accuracy: {np.mean(accs):.4f} ± {np.std(accs):.4f}")

    return checkpoints, pd.DataFrame(histories)


def train_full(X, y, n_classes, config=Config):
    """
    Train a single classifier on every labelled play.

    With no held-out data there is no model selection; the parameters
    after the final epoch are kept.

    Returns:
        checkpoint: FoldCheckpoint with fold 0 and no validation accuracy
        history: DataFrame of per-epoch training loss
    """
    device = config.DEVICE
    set_seed(config.SEED)

    X = np.asarray(X, dtype=np.float32)
    model = create_coverage_cnn(n_classes, n_features=X.shape[1],
                                dropout=config.DROPOUT, device=device)
    criterion = nn.CrossEntropyLoss()
    optimizer = torch.optim.Adam(model.parameters(), lr=config.LEARNING_RATE)
    scheduler = torch.optim.lr_scheduler.ExponentialLR(optimizer, gamma=config.LR_DECAY)
    loader = build_loader(X, y, config.BATCH_SIZE, shuffle=True, seed=config.SEED)

    history = []
    for epoch in tqdm(range(1, config.EPOCHS + 1), desc="Full data", leave=False):
        lr = optimizer.param_groups[0]['lr']
        train_loss = train_one_epoch(model, loader, optimizer, criterion, device,
                                     field_width=config.FIELD_WIDTH,
                                     augment=config.HORIZONTAL_FLIP)
        scheduler.step()
        history.append({'fold': 0, 'epoch': epoch, 'lr': lr, 'train_loss': train_loss})
        if epoch % config.LOG_INTERVAL == 0:
            logger.info(f"  Epoch {epoch}: train_loss={train_loss:.4f}")

    checkpoint = FoldCheckpoint(fold=0, epoch=config.EPOCHS, val_accuracy=None,
                                n_classes=n_classes, n_features=X.shape[1],
                                state_dict=_snapshot(model))
    return checkpoint, pd.DataFrame(history)


def save_checkpoints(checkpoints, base_dir, encoder=None):
    """
    Write fold checkpoints (and the label encoder) to ``base_dir``.

    Files:
        coverage_cnn_fold{k}.pt, label_encoder.pkl, cv_results.json

    Fold files from an earlier run in the same directory are removed first,
    so the directory always holds exactly one run.
    """
    base_dir = Path(base_dir)
    base_dir.mkdir(parents=True, exist_ok=True)

    stale = sorted(base_dir.glob("coverage_cnn_fold*.pt"))
    for path in stale:
        path.unlink()
    if stale:
        logger.info(f"Removed {len(stale)} checkpoints of an earlier run from {base_dir}")

    results = []
    for fold, ckpt in checkpoints.items():
        torch.save(
            {
                'fold': ckpt.fold,
                'epoch': ckpt.epoch,
                'val_accuracy': ckpt.val_accuracy,
                'n_classes': ckpt.n_classes,
                'n_features': ckpt.n_features,
                'state_dict': ckpt.state_dict,
            },
            base_dir / f"coverage_cnn_fold{fold}.pt",
        )
        results.append({'fold': fold, 'epoch': ckpt.epoch, 'val_accuracy': ckpt.val_accuracy})

    encoder_path = base_dir / "label_encoder.pkl"
    if encoder is not None:
        joblib.dump(encoder, encoder_path)
    elif encoder_path.exists():
        encoder_path.unlink()

    with open(base_dir / "cv_results.json", "w") as f:
        json.dump(results, f, indent=2)

    logger.info(f"Saved {len(checkpoints)} checkpoints to {base_dir}")


def load_checkpoints(base_dir, map_location='cpu'):
    """
    Read checkpoints written by ``save_checkpoints``.

    Returns:
        checkpoints: {fold_index: FoldCheckpoint}
        encoder: LabelEncoder, or None when none was saved
    """
    base_dir = Path(base_dir)
    paths = sorted(base_dir.glob("coverage_cnn_fold*.pt"))
    if not paths:
        raise FileNotFoundError(f"No coverage_cnn_fold*.pt checkpoints in {base_dir}")

    checkpoints = {}
    for path in paths:
        payload = torch.load(path, map_location=map_location)
        checkpoints[payload['fold']] = FoldCheckpoint(
            fold=payload['fold'],
            epoch=payload['epoch'],
            val_accuracy=payload['val_accuracy'],
            n_classes=payload['n_classes'],
            n_features=payload['n_features'],
            state_dict=payload['state_dict'],
        )

    encoder_path = base_dir / "label_encoder.pkl"
    encoder = joblib.load(encoder_path) if encoder_path.exists() else None
    return dict(sorted(checkpoints.items())), encoder
