"""
Game Excitement Index

Scores how exciting a game was from play-by-play win probability: the
total absolute swing in the home team's win probability, scaled to a
60-minute game so overtime games are not favoured just for being longer.

    GEI = (3600 / game_length_seconds) * sum(|home_wp[t] - home_wp[t-1]|)

Works on nflfastR-style play-by-play (``game_id``,
``game_seconds_remaining`` and either ``home_wp`` or ``wp`` with
``posteam`` / ``home_team``).

Author: NFL Big Data Bowl Coverage Analytics
"""

import logging

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


REGULATION_SECONDS = 3600.0
OVERTIME_SECONDS = 600.0


def home_win_probability(pbp):
    """
    Home-team win probability for every play.

    Uses ``home_wp`` when present, otherwise converts the possession team's
    ``wp`` to the home team's point of view.

    Returns:
        Series aligned with ``pbp``
    """
    if 'home_wp' in pbp.columns:
        return pbp['home_wp'].astype(float)

    missing = [c for c in ('wp', 'posteam', 'home_team') if c not in pbp.columns]
    if missing:
        raise KeyError(f"Play-by-play is missing win probability columns: {missing}")

    home_has_ball = pbp['posteam'] == pbp['home_team']
    return pd.Series(
        np.where(home_has_ball, pbp['wp'], 1.0 - pbp['wp']),
        index=pbp.index,
        dtype=float,
    )


def in_game_order(game):
    """
    Plays of one game in the order they happened.

    The clock in ``game_seconds_remaining`` restarts in overtime, so plays
    are ordered by quarter first and by remaining time within the quarter.
    Without ``qtr`` the ``play_id`` sequence is used, and without either
    the remaining time alone.
    """
    if 'qtr' in game.columns:
        return game.sort_values(['qtr', 'game_seconds_remaining'], ascending=[True, False],
                                kind='mergesort')
    if 'play_id' in game.columns:
        return game.sort_values('play_id', kind='mergesort')
    return game.sort_values('game_seconds_remaining', ascending=False, kind='mergesort')


def elapsed_seconds(game):
    """Seconds since kickoff for every play; overtime continues from 3600."""
    remaining = game['game_seconds_remaining'].astype(float)
    if 'qtr' not in game.columns:
        return REGULATION_SECONDS - remaining

    overtime_period = game['qtr'] - 4
    overtime_elapsed = (
        REGULATION_SECONDS
        + OVERTIME_SECONDS * (overtime_period - 1)
        + (OVERTIME_SECONDS - remaining)
    )
    return pd.Series(
        np.where(overtime_period > 0, overtime_elapsed, REGULATION_SECONDS - remaining),
        index=game.index,
    )


def game_length_seconds(game):
    """Regulation length plus any overtime the game reached."""
    if 'qtr' in game.columns:
        overtime_periods = max(int(game['qtr'].max()) - 4, 0)
    else:
        overtime_periods = int((game['game_seconds_remaining'] < 0).any())
    return REGULATION_SECONDS + OVERTIME_SECONDS * overtime_periods


def game_excitement_index(game):
    """
    GEI for a single game's plays.

    Args:
        game: Play-by-play rows of one game

    Returns:
        float excitement index

    Raises:
        ValueError: if fewer than two plays carry a win probability
    """
    game = in_game_order(game)
    wp = home_win_probability(game).dropna()
    if len(wp) < 2:
        raise ValueError("At least two plays with win probability are needed for an excitement index")

    swing = wp.diff().abs().sum()
    return float(REGULATION_SECONDS / game_length_seconds(game) * swing)


def rank_games(pbp):
    """
    Excitement index for every game, most exciting first.

    Returns:
        DataFrame with game_id, n_plays and gei
    """
    rows = []
    for game_id, game in pbp.groupby('game_id', sort=False):
        rows.append({
            'game_id': game_id,
            'n_plays': len(game),
            'gei': game_excitement_index(game),
        })

    ranked = pd.DataFrame(rows).sort_values('gei', ascending=False, kind='mergesort')
    logger.info(f"Ranked {len(ranked)} games by excitement")
    return ranked.reset_index(drop=True)


def win_probability_series(game):
    """
    Elapsed time and home win probability for charting one game.

    Returns:
        DataFrame with elapsed_minutes and home_wp, in game order
    """
    game = in_game_order(game)
    out = pd.DataFrame({
        'elapsed_minutes': elapsed_seconds(game) / 60.0,
        'home_wp': home_win_probability(game),
    })
    return out.dropna().reset_index(drop=True)
