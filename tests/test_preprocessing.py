import numpy as np
import pandas as pd
import pytest

from coverage_analytics.config import Config
from coverage_analytics.data.preprocessing import (
    FEATURE_NAMES,
    assemble_dataset,
    assemble_play_tensor,
    build_play_features,
    build_relative_features,
    prepare_dataset,
)


def test_feature_names_order():
    assert len(FEATURE_NAMES) == 13
    assert FEATURE_NAMES[:7] == ['def_x_from_los', 'def_y', 'def_vx', 'def_vy', 'def_ax', 'def_ay', 'def_facing_qb']
    assert FEATURE_NAMES[7:] == ['rel_x', 'rel_y', 'rel_vx', 'rel_vy', 'rel_ax', 'rel_ay']


def test_build_play_features_is_defender_major(make_play):
    play = make_play(n_def=2, n_off=3)
    pairs = build_play_features(play)

    assert len(pairs) == 6
    assert pairs['def_index'].tolist() == [0, 0, 0, 1, 1, 1]
    assert pairs['off_index'].tolist() == [0, 1, 2, 0, 1, 2]


def test_build_play_features_values(make_play):
    play = make_play(n_def=2, n_off=3)
    defense = play[play['side'] == 'defense'].reset_index(drop=True)
    offense = play[play['side'] == 'offense'].reset_index(drop=True)
    pairs = build_play_features(play)

    row = pairs[(pairs['def_index'] == 1) & (pairs['off_index'] == 2)].iloc[0]
    d, o = defense.iloc[1], offense.iloc[2]
    assert row['def_x_from_los'] == pytest.approx(d['x_from_los'])
    assert row['def_y'] == pytest.approx(d['y'])
    assert row['def_facing_qb'] == pytest.approx(d['facing_qb'])
    for axis in ['x', 'y', 'vx', 'vy', 'ax', 'ay']:
        assert row[f'rel_{axis}'] == pytest.approx(o[axis] - d[axis])


def test_build_play_features_does_not_modify_input(make_play):
    play = make_play()
    before = play.copy()
    build_play_features(play)
    pd.testing.assert_frame_equal(play, before)


@pytest.mark.parametrize("n_def,n_off", [(0, 3), (4, 0)])
def test_empty_side_raises(make_play, n_def, n_off):
    play = make_play(n_def=n_def, n_off=n_off)
    with pytest.raises(ValueError, match="both sides are required"):
        build_play_features(play)


def test_missing_column_raises(make_play):
    play = make_play().drop(columns=['facing_qb'])
    with pytest.raises(KeyError, match="facing_qb"):
        build_play_features(play)


def test_roster_overflow_raise(make_play):
    play = make_play(n_def=12, n_off=3)
    with pytest.raises(ValueError, match="12 defenders"):
        build_play_features(play, overflow='raise')


def test_roster_overflow_truncate_keeps_closest_to_scrimmage(make_play):
    play = make_play(n_def=13, n_off=6)
    pairs = build_play_features(play, overflow='truncate')

    assert pairs['def_index'].nunique() == 11
    assert pairs['off_index'].nunique() == 5

    defense = play[play['side'] == 'defense']
    kept = set(np.round(pairs['def_x_from_los'].unique(), 9))
    expected = set(np.round(defense['x_from_los'].abs().nsmallest(11).to_numpy(), 9))
    assert kept == expected


def test_assemble_nonzero_region_and_zero_padding(make_play):
    play = make_play(n_def=3, n_off=2)
    pairs = build_play_features(play)
    tensor = assemble_play_tensor(pairs, 3, 2)

    assert tensor.shape == (13, 11, 5)
    assert tensor.dtype == np.float32
    assert np.all(tensor[:, 3:, :] == 0)
    assert np.all(tensor[:, :, 2:] == 0)
    assert not np.isnan(tensor).any()
    assert np.count_nonzero(tensor[:, :3, :2]) > 0


def test_assemble_element_mapping(make_play):
    play = make_play(n_def=4, n_off=3)
    pairs = build_play_features(play)
    tensor = assemble_play_tensor(pairs, 4, 3)

    for _, row in pairs.iterrows():
        d, o = int(row['def_index']), int(row['off_index'])
        for c, name in enumerate(FEATURE_NAMES):
            assert tensor[c, d, o] == pytest.approx(row[name], rel=1e-6)


def test_assemble_independent_of_row_order(make_play):
    play = make_play(n_def=4, n_off=3)
    pairs = build_play_features(play)
    shuffled = pairs.sample(frac=1.0, random_state=7)

    np.testing.assert_array_equal(
        assemble_play_tensor(pairs, 4, 3),
        assemble_play_tensor(shuffled, 4, 3),
    )


def test_assemble_rejects_oversize_roster(make_play):
    pairs = build_play_features(make_play(n_def=3, n_off=2))
    with pytest.raises(ValueError, match="exceeds"):
        assemble_play_tensor(pairs, 12, 2)


def test_assemble_rejects_wrong_row_count(make_play):
    pairs = build_play_features(make_play(n_def=3, n_off=2))
    with pytest.raises(ValueError, match="pair rows"):
        assemble_play_tensor(pairs.iloc[:-1], 3, 2)


def test_assemble_dataset_keys_align(make_play):
    participants = pd.concat([
        make_play(n_def=3, n_off=2, play_id=5, seed=1),
        make_play(n_def=11, n_off=5, play_id=2, seed=2),
    ], ignore_index=True)
    pairs = build_relative_features(participants)
    X, keys = assemble_dataset(pairs)

    assert X.shape == (2, 13, 11, 5)
    assert keys['play_id'].tolist() == [2, 5]
    assert keys['n_defenders'].tolist() == [11, 3]
    assert keys['n_offenders'].tolist() == [5, 2]
    assert np.all(X[1, :, 3:, :] == 0)


def test_prepare_dataset_labels(make_play):
    participants = pd.concat([
        make_play(play_id=1, coverage='Cover 1 Man', seed=1),
        make_play(play_id=2, coverage='Cover 3 Zone', seed=2),
        make_play(play_id=3, coverage='Cover 1 Man', seed=3),
    ], ignore_index=True)
    X, y, keys, encoder = prepare_dataset(participants, config=Config)

    assert X.shape == (3, 13, 11, 5)
    assert list(encoder.classes_) == ['Cover 1 Man', 'Cover 3 Zone']
    assert y.tolist() == [0, 1, 0]
    assert keys['coverage'].tolist() == ['Cover 1 Man', 'Cover 3 Zone', 'Cover 1 Man']


def test_prepare_dataset_reuses_encoder(make_play):
    train = pd.concat([
        make_play(play_id=1, coverage='Cover 2 Zone', seed=1),
        make_play(play_id=2, coverage='Quarters', seed=2),
    ], ignore_index=True)
    _, _, _, encoder = prepare_dataset(train)

    test = make_play(play_id=9, coverage='Quarters', seed=3)
    _, y, _, same = prepare_dataset(test, encoder=encoder)
    assert same is encoder
    assert y.tolist() == [1]
