import numpy as np
import pandas as pd
import pytest

from coverage_analytics.excitement import (
    game_excitement_index,
    home_win_probability,
    in_game_order,
    rank_games,
    win_probability_series,
)


def game_rows(game_id, home_wp):
    n = len(home_wp)
    df = pd.DataFrame({
        'game_id': game_id,
        'game_seconds_remaining': np.linspace(3600, 0, n),
        'home_wp': home_wp,
    })
    return df


def test_gei_sums_absolute_swings():
    game = game_rows('g1', [0.5, 0.7, 0.4, 1.0])
    assert game_excitement_index(game) == pytest.approx(0.2 + 0.3 + 0.6)


def test_gei_ignores_row_order():
    game = game_rows('g1', [0.5, 0.7, 0.4, 1.0])
    shuffled = game.sample(frac=1.0, random_state=3)
    assert game_excitement_index(shuffled) == pytest.approx(game_excitement_index(game))


def overtime_game():
    """4th quarter clock runs to 0, then overtime restarts it at 600."""
    return pd.DataFrame({
        'game_id': 'g1',
        'qtr': [4, 4, 4, 5, 5],
        'game_seconds_remaining': [500, 300, 0, 590, 100],
        'home_wp': [0.5, 0.6, 0.5, 0.9, 1.0],
    })


def test_gei_orders_overtime_after_regulation():
    game = overtime_game()
    expected = (0.1 + 0.1 + 0.4 + 0.1) * 3600 / 4200
    assert game_excitement_index(game) == pytest.approx(expected)
    assert game_excitement_index(game.iloc[::-1]) == pytest.approx(expected)


def test_gei_orders_by_play_id_without_quarter():
    game = overtime_game().drop(columns='qtr')
    game['play_id'] = [10, 20, 30, 40, 50]
    assert game_excitement_index(game.iloc[::-1]) == pytest.approx(0.1 + 0.1 + 0.4 + 0.1)


def test_in_game_order_and_elapsed_time_in_overtime():
    ordered = in_game_order(overtime_game().iloc[::-1])
    assert ordered['game_seconds_remaining'].tolist() == [500, 300, 0, 590, 100]

    series = win_probability_series(overtime_game())
    np.testing.assert_allclose(series['elapsed_minutes'] * 60, [3100, 3300, 3600, 3610, 4100])
    np.testing.assert_allclose(series['home_wp'], [0.5, 0.6, 0.5, 0.9, 1.0])


def test_home_wp_from_possession_team():
    pbp = pd.DataFrame({
        'wp': [0.6, 0.3],
        'posteam': ['KC', 'BUF'],
        'home_team': ['KC', 'KC'],
    })
    np.testing.assert_allclose(home_win_probability(pbp), [0.6, 0.7])


def test_home_wp_requires_columns():
    with pytest.raises(KeyError):
        home_win_probability(pd.DataFrame({'wp': [0.5]}))


def test_gei_needs_two_plays():
    with pytest.raises(ValueError):
        game_excitement_index(game_rows('g1', [0.5]))


def test_rank_games_most_exciting_first():
    pbp = pd.concat([
        game_rows('blowout', [0.5, 0.8, 0.95, 1.0]),
        game_rows('thriller', [0.5, 0.9, 0.2, 0.8, 0.1, 0.9]),
    ], ignore_index=True)
    ranked = rank_games(pbp)

    assert ranked['game_id'].tolist() == ['thriller', 'blowout']
    assert ranked['n_plays'].tolist() == [6, 4]
    assert ranked.loc[1, 'gei'] == pytest.approx(0.5)


def test_win_probability_series_elapsed_minutes():
    series = win_probability_series(game_rows('g1', [0.5, 0.6, 0.7]))
    np.testing.assert_allclose(series['elapsed_minutes'], [0.0, 30.0, 60.0])
    np.testing.assert_allclose(series['home_wp'], [0.5, 0.6, 0.7])
