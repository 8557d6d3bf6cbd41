"""
Data Augmentation for Coverage Feature Tensors

Mirror augmentation across the field's long axis:
    1. Horizontal Flip of feature tensors (training-time batch doubling)
    2. Test-Time Augmentation (average of original and mirrored scores)
    3. Horizontal Flip of raw tracking rows (for play diagrams)

Coverage schemes are symmetric left/right, so a mirrored play keeps its
label.

Author: NFL Big Data Bowl Coverage Analytics
"""

import numpy as np
import pandas as pd
import torch

from ..config import Config
from .preprocessing import FEATURE_NAMES


# Lateral quantities whose sign flips under the mirror
NEGATED_CHANNELS = tuple(
    FEATURE_NAMES.index(name)
    for name in ('def_vy', 'def_ay', 'rel_y', 'rel_vy', 'rel_ay')
)
# Raw lateral position, reflected about the field center
Y_POSITION_CHANNEL = FEATURE_NAMES.index('def_y')


def flip_feature_tensor(x, field_width=Config.FIELD_WIDTH, occupied=None):
    """
    Mirror a feature tensor (or batch of tensors) across the field centerline.

    Lateral velocity, acceleration and relative-position channels are
    negated and the defender y channel becomes ``field_width - y``. Empty
    slots stay zero so padding remains a neutral filler. The input is
    never modified.

    When ``occupied`` is not given, a slot counts as empty if all of its
    channels are zero. A real slot whose only non-zero value is
    ``def_y == field_width`` therefore mirrors to all zeros and is treated
    as padding afterwards; pass the mask from ``slot_mask`` to avoid that.

    Args:
        x: Tensor or ndarray of shape (..., C, D, O); the channel axis is
            ``x.ndim - 3``
        field_width: Lateral extent of the field in yards
        occupied: Optional boolean mask of shape (..., D, O) marking real
            (defender, offender) slots

    Returns:
        flipped: New tensor / array of the same type and shape

    Example:
        >>> x_flip = flip_feature_tensor(x)
        >>> torch.allclose(flip_feature_tensor(x_flip), x, atol=1e-5)  # mirroring twice
    """
    if x.ndim < 3:
        raise ValueError(f"Expected (..., C, D, O) input, got shape {tuple(x.shape)}")

    ch = x.ndim - 3
    if torch.is_tensor(x):
        flipped = x.clone()
        if occupied is None:
            occupied = (x != 0).any(dim=ch)
        else:
            occupied = torch.as_tensor(occupied, dtype=torch.bool, device=x.device)
        where = torch.where
    else:
        flipped = np.array(x, copy=True)
        if occupied is None:
            occupied = (x != 0).any(axis=ch)
        else:
            occupied = np.asarray(occupied, dtype=bool)
        where = np.where

    def channel(c):
        index = [slice(None)] * x.ndim
        index[ch] = c
        return tuple(index)

    for c in NEGATED_CHANNELS:
        flipped[channel(c)] = -flipped[channel(c)]

    y = flipped[channel(Y_POSITION_CHANNEL)]
    flipped[channel(Y_POSITION_CHANNEL)] = where(occupied, field_width - y, y)

    return flipped


def slot_mask(keys, max_defenders=Config.MAX_DEFENDERS, max_offenders=Config.MAX_OFFENDERS):
    """
    Boolean (N, max_defenders, max_offenders) mask of real slots.

    Args:
        keys: Play keys from ``assemble_dataset`` with ``n_defenders`` and
            ``n_offenders`` columns

    Returns:
        mask: True where a real (defender, offender) pair sits
    """
    n_def = np.asarray(keys['n_defenders'])
    n_off = np.asarray(keys['n_offenders'])
    rows = np.arange(max_defenders)[None, :, None] < n_def[:, None, None]
    cols = np.arange(max_offenders)[None, None, :] < n_off[:, None, None]
    return rows & cols


def augment_batch(xb, yb, field_width=Config.FIELD_WIDTH):
    """
    Double a training batch with its mirrored copy.

    Args:
        xb: (B, C, D, O) feature batch
        yb: (B,) labels

    Returns:
        xb_aug: (2B, C, D, O) original followed by mirrored
        yb_aug: (2B,) labels duplicated unchanged
    """
    xb_aug = torch.cat([xb, flip_feature_tensor(xb, field_width)], dim=0)
    yb_aug = torch.cat([yb, yb], dim=0)
    return xb_aug, yb_aug


def apply_tta(model, xb, field_width=Config.FIELD_WIDTH, use_tta=True):
    """
    Apply Test-Time Augmentation.

    Scores the original and mirrored batch and averages the raw class
    scores. The caller is responsible for putting the model in eval mode.

    Args:
        model: Coverage classifier
        xb: (B, C, D, O) feature batch on the model's device
        use_tta: If False, only the original batch is scored

    Returns:
        scores: (B, n_classes) averaged class scores

    Example:
        >>> model.eval()
        >>> with torch.no_grad():
        ...     scores = apply_tta(model, xb)
    """
    scores = model(xb)
    if use_tta:
        scores = (scores + model(flip_feature_tensor(xb, field_width))) / 2.0
    return scores


def horizontal_flip_dataframe(df, field_width=Config.FIELD_WIDTH):
    """
    Apply horizontal flip across field width to raw participant rows.

    Flips the play horizontally (left-right) by:
        - Mirroring y-coordinates
        - Negating y-velocity and y-acceleration
        - Reflecting direction and orientation angles

    Args:
        df: DataFrame with tracking or participant rows

    Returns:
        df: Horizontally flipped DataFrame
    """
    df = df.copy()

    if 'y' in df.columns:
        df['y'] = field_width - df['y']

    for col in ['vy', 'ay']:
        if col in df.columns:
            df[col] = -df[col]

    for col in ['dir', 'o']:
        if col in df.columns:
            df[col] = (180 - df[col]) % 360

    return df
