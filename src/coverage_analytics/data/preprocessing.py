"""
Relative Feature Engineering and Tensor Assembly

Turns per-player participant records into the fixed-shape input tensor of
the coverage classifier.

Features (13 per defender/offender pair, in channel order):
    - Defender: x_from_los, y, vx, vy, ax, ay, facing_qb
    - Offender minus defender: x, y, vx, vy, ax, ay

Tensor layout per play: (channel, defender slot, offender slot) =
(13, 11, 5). Slots beyond the real roster stay exactly zero.

Author: NFL Big Data Bowl Coverage Analytics
"""

import logging

import numpy as np
import pandas as pd
from sklearn.preprocessing import LabelEncoder
from tqdm.auto import tqdm

from ..config import Config

logger = logging.getLogger(__name__)


PLAY_KEY = ['game_id', 'play_id']

DEFENDER_FEATURES = ['def_x_from_los', 'def_y', 'def_vx', 'def_vy', 'def_ax', 'def_ay', 'def_facing_qb']
RELATIVE_FEATURES = ['rel_x', 'rel_y', 'rel_vx', 'rel_vy', 'rel_ax', 'rel_ay']
FEATURE_NAMES = DEFENDER_FEATURES + RELATIVE_FEATURES

# Participant columns the builder reads
_PARTICIPANT_FIELDS = ['x', 'y', 'vx', 'vy', 'ax', 'ay', 'facing_qb', 'x_from_los']


def _play_label(play_df):
    if all(k in play_df.columns for k in PLAY_KEY) and len(play_df):
        first = play_df.iloc[0]
        return f"({first['game_id']}, {first['play_id']})"
    return "(unknown play)"


def limit_roster(side_df, capacity, overflow=Config.ROSTER_OVERFLOW, what='players'):
    """
    Enforce the slot capacity of one side.

    Args:
        side_df: Participant rows for one side of one play
        capacity: Maximum number of slots
        overflow: 'raise' to fail, 'truncate' to keep the ``capacity``
            players closest to the line of scrimmage
        what: Side name for messages

    Returns:
        side_df: Rows that fit the capacity
    """
    if len(side_df) <= capacity:
        return side_df

    if overflow == 'raise':
        raise ValueError(
            f"Play {_play_label(side_df)} has {len(side_df)} {what}, "
            f"more than the {capacity} available slots"
        )
    if overflow != 'truncate':
        raise ValueError(f"Unknown roster overflow policy: {overflow!r}")

    logger.warning(
        f"Play {_play_label(side_df)}: truncating {len(side_df)} {what} to {capacity}"
    )
    order = side_df['x_from_los'].abs().sort_values(kind='mergesort').index
    return side_df.loc[order[:capacity]]


def build_play_features(
    play_df,
    max_defenders=Config.MAX_DEFENDERS,
    max_offenders=Config.MAX_OFFENDERS,
    overflow=Config.ROSTER_OVERFLOW,
):
    """
    Compute the relative feature table for one play at one frame.

    Args:
        play_df: Participant rows (one per player) with a ``side`` column
        max_defenders: Defender slot capacity
        max_offenders: Offender slot capacity
        overflow: Roster overflow policy ('raise' or 'truncate')

    Returns:
        pairs: One row per (defender, offender) pair, grouped by defender,
            with ``def_index``, ``off_index`` and FEATURE_NAMES columns

    Raises:
        ValueError: if the play has no defenders or no offenders
    """
    missing = [c for c in _PARTICIPANT_FIELDS + ['side'] if c not in play_df.columns]
    if missing:
        raise KeyError(f"Participant rows are missing required columns: {missing}")

    defense = play_df[play_df['side'] == 'defense']
    offense = play_df[play_df['side'] == 'offense']
    if defense.empty or offense.empty:
        raise ValueError(
            f"Play {_play_label(play_df)} has {len(defense)} defenders and "
            f"{len(offense)} offenders; both sides are required"
        )

    defense = limit_roster(defense, max_defenders, overflow, what='defenders')
    offense = limit_roster(offense, max_offenders, overflow, what='offenders')

    d = defense[_PARTICIPANT_FIELDS].reset_index(drop=True)
    o = offense[_PARTICIPANT_FIELDS].reset_index(drop=True)
    d['def_index'] = np.arange(len(d))
    o['off_index'] = np.arange(len(o))

    # Cross join keeps left order then right order: defender-major
    pairs = d.merge(o, how='cross', suffixes=('_def', '_off'))

    out = pd.DataFrame({
        'def_index': pairs['def_index'].to_numpy(),
        'off_index': pairs['off_index'].to_numpy(),
        'def_x_from_los': pairs['x_from_los_def'].to_numpy(),
        'def_y': pairs['y_def'].to_numpy(),
        'def_vx': pairs['vx_def'].to_numpy(),
        'def_vy': pairs['vy_def'].to_numpy(),
        'def_ax': pairs['ax_def'].to_numpy(),
        'def_ay': pairs['ay_def'].to_numpy(),
        'def_facing_qb': pairs['facing_qb_def'].to_numpy(),
    })
    for axis in ['x', 'y', 'vx', 'vy', 'ax', 'ay']:
        out[f'rel_{axis}'] = (pairs[f'{axis}_off'] - pairs[f'{axis}_def']).to_numpy()

    return out


def build_relative_features(
    participants,
    max_defenders=Config.MAX_DEFENDERS,
    max_offenders=Config.MAX_OFFENDERS,
    overflow=Config.ROSTER_OVERFLOW,
):
    """
    Relative feature tables for every (play, frame) in ``participants``.

    Returns:
        pairs: Concatenated pair tables keyed by game_id, play_id, frame_id
    """
    group_cols = PLAY_KEY + (['frame_id'] if 'frame_id' in participants.columns else [])

    tables = []
    grouped = participants.groupby(group_cols, sort=True)
    for key, play_df in tqdm(grouped, total=grouped.ngroups, desc="Building features"):
        pairs = build_play_features(play_df, max_defenders, max_offenders, overflow)
        for col, value in zip(group_cols, key):
            pairs[col] = value
        tables.append(pairs)

    if not tables:
        raise ValueError("No plays to build features for")

    out = pd.concat(tables, ignore_index=True)
    return out[group_cols + ['def_index', 'off_index'] + FEATURE_NAMES]


def assemble_play_tensor(
    pairs,
    n_defenders,
    n_offenders,
    max_defenders=Config.MAX_DEFENDERS,
    max_offenders=Config.MAX_OFFENDERS,
):
    """
    Lay one play's pair table into a zero-padded (C, max_def, max_off) array.

    Rows are ordered by (def_index, off_index) before reshaping so that
    element [c, d, o] is feature c between defender d and offender o no
    matter how the table rows were ordered.

    Args:
        pairs: Pair table for one play (``build_play_features`` output)
        n_defenders: Real defender count D
        n_offenders: Real offender count O

    Returns:
        tensor: float32 array of shape (13, max_defenders, max_offenders)
    """
    if n_defenders > max_defenders or n_offenders > max_offenders:
        raise ValueError(
            f"Roster ({n_defenders} defenders, {n_offenders} offenders) exceeds "
            f"slot capacity ({max_defenders}, {max_offenders})"
        )
    if len(pairs) != n_defenders * n_offenders:
        raise ValueError(
            f"Expected {n_defenders * n_offenders} pair rows, got {len(pairs)}"
        )

    if 'def_index' in pairs.columns and 'off_index' in pairs.columns:
        pairs = pairs.sort_values(['def_index', 'off_index'], kind='mergesort')

    values = pairs[FEATURE_NAMES].to_numpy(dtype=np.float32)
    # (D*O, C) -> (D, O, C) -> (C, D, O)
    values = values.reshape(n_defenders, n_offenders, len(FEATURE_NAMES)).transpose(2, 0, 1)

    tensor = np.zeros((len(FEATURE_NAMES), max_defenders, max_offenders), dtype=np.float32)
    tensor[:, :n_defenders, :n_offenders] = values
    return tensor


def assemble_dataset(
    pairs,
    max_defenders=Config.MAX_DEFENDERS,
    max_offenders=Config.MAX_OFFENDERS,
):
    """
    Stack every play's tensor.

    Args:
        pairs: ``build_relative_features`` output

    Returns:
        X: float32 array (N, 13, max_defenders, max_offenders)
        keys: DataFrame of play keys aligned with X, plus the real counts
    """
    group_cols = PLAY_KEY + (['frame_id'] if 'frame_id' in pairs.columns else [])

    tensors = []
    records = []
    for key, play_pairs in pairs.groupby(group_cols, sort=True):
        n_def = play_pairs['def_index'].nunique()
        n_off = play_pairs['off_index'].nunique()
        tensors.append(assemble_play_tensor(play_pairs, n_def, n_off, max_defenders, max_offenders))
        record = dict(zip(group_cols, key))
        record.update(n_defenders=n_def, n_offenders=n_off)
        records.append(record)

    X = np.stack(tensors).astype(np.float32)
    keys = pd.DataFrame.from_records(records)
    return X, keys


def encode_labels(coverage, encoder=None):
    """
    Map coverage strings to 0-based class indices.

    The class order is fixed by the fitted LabelEncoder (sorted names) and
    must be reused for every later prediction.

    Returns:
        y: int64 array of class indices
        encoder: fitted LabelEncoder
    """
    if encoder is None:
        encoder = LabelEncoder().fit(coverage)
    y = encoder.transform(coverage).astype(np.int64)
    return y, encoder


def prepare_dataset(participants, config=Config, encoder=None):
    """
    Complete feature pipeline from participant records to model inputs.

    Applies all steps in sequence:
        1. Relative features per (defender, offender) pair
        2. Tensor assembly with zero padding
        3. Label encoding

    Args:
        participants: Output of ``load_week`` (must carry ``coverage``)
        config: Config class (slot capacity and overflow policy)
        encoder: Previously fitted LabelEncoder to reuse

    Returns:
        X: (N, 13, 11, 5) float32 array
        y: (N,) int64 class indices
        keys: play keys aligned with X
        encoder: fitted LabelEncoder

    Example:
        >>> X, y, keys, encoder = prepare_dataset(participants)
    """
    logger.info("Preprocessing pipeline...")

    logger.info("  1. Building relative features...")
    pairs = build_relative_features(
        participants,
        max_defenders=config.MAX_DEFENDERS,
        max_offenders=config.MAX_OFFENDERS,
        overflow=config.ROSTER_OVERFLOW,
    )

    logger.info("  2. Assembling tensors...")
    X, keys = assemble_dataset(pairs, config.MAX_DEFENDERS, config.MAX_OFFENDERS)

    logger.info("  3. Encoding labels...")
    group_cols = [c for c in keys.columns if c in ('game_id', 'play_id', 'frame_id')]
    play_labels = participants[group_cols + ['coverage']].drop_duplicates(subset=group_cols)
    keys = keys.merge(play_labels, on=group_cols, how='left')
    y, encoder = encode_labels(keys['coverage'], encoder)

    logger.info(f"Preprocessing complete: {len(X):,} plays, tensor shape {X.shape[1:]}, "
                f"{len(encoder.classes_)} classes")

    return X, y, keys, encoder
