"""
Data Processing Module

Loading, relative feature engineering, tensor assembly and augmentation
for NFL tracking data.
"""

from .loading import (
    load_tracking,
    load_coverage_labels,
    assign_sides,
    normalize_play_direction,
    add_kinematic_components,
    select_frames,
    add_play_context,
    load_week,
    load_weeks,
)

from .preprocessing import (
    FEATURE_NAMES,
    build_play_features,
    build_relative_features,
    assemble_play_tensor,
    assemble_dataset,
    encode_labels,
    prepare_dataset,
)

from .augmentation import (
    NEGATED_CHANNELS,
    Y_POSITION_CHANNEL,
    flip_feature_tensor,
    slot_mask,
    augment_batch,
    apply_tta,
    horizontal_flip_dataframe,
)

__all__ = [
    # Loading
    'load_tracking',
    'load_coverage_labels',
    'assign_sides',
    'normalize_play_direction',
    'add_kinematic_components',
    'select_frames',
    'add_play_context',
    'load_week',
    'load_weeks',

    # Preprocessing
    'FEATURE_NAMES',
    'build_play_features',
    'build_relative_features',
    'assemble_play_tensor',
    'assemble_dataset',
    'encode_labels',
    'prepare_dataset',

    # Augmentation
    'NEGATED_CHANNELS',
    'Y_POSITION_CHANNEL',
    'flip_feature_tensor',
    'slot_mask',
    'augment_batch',
    'apply_tta',
    'horizontal_flip_dataframe',
]
