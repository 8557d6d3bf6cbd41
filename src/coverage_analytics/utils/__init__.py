"""Plotting helpers."""

from .visualization import (
    setup_style,
    plot_confusion_matrix,
    plot_play,
    plot_training_history,
    plot_win_probability,
)

__all__ = [
    'setup_style',
    'plot_confusion_matrix',
    'plot_play',
    'plot_training_history',
    'plot_win_probability',
]
