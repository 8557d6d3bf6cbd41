"""
Figures for coverage classification and game excitement write-ups.

    - Confusion matrix heatmap
    - Single-play diagram (offense / defense with velocity arrows)
    - Per-fold training curves
    - Home win-probability chart

Every function returns the matplotlib Figure and saves it when ``path`` is
given.
"""

import logging
from pathlib import Path

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import matplotlib.patches as mpatches
import numpy as np
import seaborn as sns

from ..config import Config

logger = logging.getLogger(__name__)


# Color palette
COLORS = {
    'offense': '#1a73e8',
    'defense': '#ea4335',
    'accent': '#fbbc04',
    'home': '#34a853',
    'field': '#e8f5e9',
    'grid': '#e0e0e0',
    'text': '#202124',
    'bg': '#ffffff',
}


def setup_style():
    """Apply consistent plot style."""
    plt.rcParams.update({
        'font.family': 'sans-serif',
        'font.sans-serif': ['DejaVu Sans', 'Arial', 'Helvetica'],
        'font.size': 11,
        'axes.titlesize': 14,
        'axes.titleweight': 'bold',
        'axes.labelsize': 12,
        'axes.facecolor': COLORS['bg'],
        'figure.facecolor': COLORS['bg'],
        'axes.grid': True,
        'grid.alpha': 0.3,
        'grid.color': COLORS['grid'],
    })


def _save(fig, path):
    if path is None:
        return
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=150, bbox_inches='tight')
    logger.info(f"Saved {path}")


def plot_confusion_matrix(cm, class_names=None, normalize=False, title='Coverage Confusion Matrix', path=None):
    """Heatmap of a confusion matrix (rows = true, columns = predicted)."""
    cm = np.asarray(cm, dtype=float)
    if normalize:
        row_sums = cm.sum(axis=1, keepdims=True)
        cm = np.divide(cm, row_sums, out=np.zeros_like(cm), where=row_sums > 0)

    labels = class_names if class_names is not None else list(range(cm.shape[0]))
    size = max(5, 0.8 * len(labels) + 3)
    fig, ax = plt.subplots(figsize=(size, size * 0.85))

    sns.heatmap(
        cm, annot=True, fmt='.2f' if normalize else '.0f', cmap='Blues',
        xticklabels=labels, yticklabels=labels, cbar=False, ax=ax,
        linewidths=0.5, linecolor='white',
    )
    ax.set_xlabel('Predicted coverage')
    ax.set_ylabel('True coverage')
    ax.set_title(title, pad=15)

    plt.tight_layout()
    _save(fig, path)
    return fig


def plot_play(participants, title=None, field_width=Config.FIELD_WIDTH, arrow_scale=1.0, path=None):
    """
    Diagram one play: players as dots, velocity as arrows, scrimmage as a line.

    Args:
        participants: Rows for a single play and frame with side, x, y,
            vx, vy and, optionally, x_from_los
    """
    fig, ax = plt.subplots(figsize=(10, 6))
    ax.set_facecolor(COLORS['field'])

    for side in ('offense', 'defense'):
        rows = participants[participants['side'] == side]
        ax.scatter(rows['x'], rows['y'], s=120, color=COLORS[side],
                   edgecolor='white', linewidth=1, zorder=3)
        ax.quiver(rows['x'], rows['y'], rows['vx'] * arrow_scale, rows['vy'] * arrow_scale,
                  color=COLORS[side], angles='xy', scale_units='xy', scale=1,
                  width=0.003, zorder=2)

    if 'x_from_los' in participants.columns and len(participants):
        los = float((participants['x'] - participants['x_from_los']).iloc[0])
        ax.axvline(los, color=COLORS['accent'], linestyle='--', linewidth=1.5)

    ax.set_ylim(0, field_width)
    ax.set_xlabel('x (yards)')
    ax.set_ylabel('y (yards)')
    ax.set_aspect('equal', adjustable='datalim')
    if title:
        ax.set_title(title, pad=15)

    legend_elements = [
        mpatches.Patch(color=COLORS['offense'], label='Offense'),
        mpatches.Patch(color=COLORS['defense'], label='Defense'),
    ]
    ax.legend(handles=legend_elements, loc='upper right', fontsize=9, framealpha=0.9)

    plt.tight_layout()
    _save(fig, path)
    return fig


def plot_training_history(history, path=None):
    """Per-fold training loss and validation accuracy by epoch."""
    has_val = 'val_accuracy' in history.columns
    fig, axes = plt.subplots(1, 2 if has_val else 1, figsize=(12 if has_val else 6, 4.5))
    axes = np.atleast_1d(axes)

    for fold, rows in history.groupby('fold'):
        axes[0].plot(rows['epoch'], rows['train_loss'], label=f'Fold {fold}')
        if has_val:
            axes[1].plot(rows['epoch'], rows['val_accuracy'], label=f'Fold {fold}')

    axes[0].set_xlabel('Epoch')
    axes[0].set_ylabel('Cross-entropy loss')
    axes[0].set_title('Training loss')
    if has_val:
        axes[1].set_xlabel('Epoch')
        axes[1].set_ylabel('Accuracy')
        axes[1].set_title('Validation accuracy (TTA)')
    axes[-1].legend(fontsize=9)

    plt.tight_layout()
    _save(fig, path)
    return fig


def plot_win_probability(series, home_team='Home', away_team='Away', title=None, path=None):
    """Home win probability over elapsed game time."""
    fig, ax = plt.subplots(figsize=(10, 5))

    ax.plot(series['elapsed_minutes'], series['home_wp'], color=COLORS['home'], linewidth=2)
    ax.axhline(0.5, color=COLORS['grid'], linestyle='--', linewidth=1)
    for quarter_end in (15, 30, 45, 60):
        ax.axvline(quarter_end, color=COLORS['grid'], linewidth=0.8)

    ax.set_ylim(0, 1)
    ax.set_xlabel('Minutes elapsed')
    ax.set_ylabel(f'{home_team} win probability')
    ax.text(0.5, 0.97, home_team, transform=ax.get_yaxis_transform(), va='top', color=COLORS['text'])
    ax.text(0.5, 0.03, away_team, transform=ax.get_yaxis_transform(), va='bottom', color=COLORS['text'])
    ax.set_title(title or f'{away_team} at {home_team}', pad=15)

    plt.tight_layout()
    _save(fig, path)
    return fig
