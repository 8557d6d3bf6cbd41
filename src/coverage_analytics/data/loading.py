"""
Tracking Data Loading

Reads one week of Big Data Bowl player-tracking data together with plays,
games and coverage labels, and reduces it to one participant record per
player for a single frame of every labelled play.

Steps:
    1. Read tracking, plays, games and coverage labels
    2. Assign offense / defense from the possession team
    3. Normalize every play to run left to right
    4. Derive velocity and acceleration components
    5. Keep one frame per play (anchor event + offset)
    6. Add distance from scrimmage and the facing-QB measure
    7. Join labels, drop unlabelled plays and non-eligible offense

Author: NFL Big Data Bowl Coverage Analytics
"""

import logging
from pathlib import Path

import numpy as np
import pandas as pd

from ..config import Config

logger = logging.getLogger(__name__)


COLUMN_RENAMES = {
    'gameId': 'game_id',
    'playId': 'play_id',
    'frameId': 'frame_id',
    'nflId': 'nfl_id',
    'playDirection': 'play_direction',
    'possessionTeam': 'possession_team',
    'homeTeamAbbr': 'home_team_abbr',
    'visitorTeamAbbr': 'visitor_team_abbr',
    'absoluteYardlineNumber': 'los_x',
}

PLAY_KEY = ['game_id', 'play_id']

# Offensive positions that can be targeted; the QB and linemen are not offenders
ELIGIBLE_POSITIONS = {'WR', 'TE', 'RB', 'FB', 'HB'}

PARTICIPANT_COLUMNS = [
    'game_id', 'play_id', 'frame_id', 'nfl_id', 'side', 'position',
    'x', 'y', 'vx', 'vy', 'ax', 'ay', 'o', 'facing_qb', 'x_from_los',
]


def _read_csv(path):
    df = pd.read_csv(path)
    return df.rename(columns=COLUMN_RENAMES)


def require_columns(df, columns, what='DataFrame'):
    """Raise KeyError naming every required column missing from ``df``."""
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise KeyError(f"{what} is missing required columns: {missing}")


def wrap_angle_deg(s):
    # map to (-180, 180]
    return ((s + 180.0) % 360.0) - 180.0


def load_tracking(path):
    """
    Read one week of tracking data.

    Args:
        path: CSV path for a ``tracking_week_N.csv`` file

    Returns:
        df: Tracking DataFrame with snake_case identifier columns
    """
    df = _read_csv(path)
    require_columns(
        df, PLAY_KEY + ['frame_id', 'x', 'y', 's', 'a', 'o', 'dir', 'event'],
        what=f"Tracking file {path}",
    )
    logger.info(f"Loaded {len(df):,} tracking rows from {path}")
    return df


def load_coverage_labels(path):
    """
    Read coverage labels, dropping plays without a label.

    Args:
        path: CSV with game, play and coverage columns

    Returns:
        labels: DataFrame with columns game_id, play_id, coverage
    """
    labels = _read_csv(path)
    require_columns(labels, PLAY_KEY + ['coverage'], what=f"Label file {path}")

    n_before = len(labels)
    labels = labels.dropna(subset=['coverage'])
    labels = labels.drop_duplicates(subset=PLAY_KEY)
    logger.info(f"Coverage labels: {len(labels):,} of {n_before:,} plays labelled")

    return labels[PLAY_KEY + ['coverage']].reset_index(drop=True)


def assign_sides(tracking, plays, games):
    """
    Tag every player row as offense or defense and drop the football.

    The tracking ``team`` column only says home / away, so the possession
    team from ``plays`` and the home team from ``games`` decide the side.

    Args:
        tracking: Tracking DataFrame with a ``team`` column
        plays: Plays DataFrame with ``possession_team``
        games: Games DataFrame with ``home_team_abbr``

    Returns:
        df: Tracking rows with a ``side`` column ('offense' / 'defense')
    """
    require_columns(tracking, PLAY_KEY + ['team'], what='Tracking')
    require_columns(plays, PLAY_KEY + ['possession_team'], what='Plays')
    require_columns(games, ['game_id', 'home_team_abbr'], what='Games')

    df = tracking[tracking['team'] != 'football']
    df = df.merge(plays[PLAY_KEY + ['possession_team']], on=PLAY_KEY, how='inner')
    df = df.merge(games[['game_id', 'home_team_abbr']], on='game_id', how='inner')

    home_has_ball = df['possession_team'] == df['home_team_abbr']
    is_home = df['team'] == 'home'
    df['side'] = np.where(home_has_ball == is_home, 'offense', 'defense')

    return df.drop(columns=['possession_team', 'home_team_abbr'])


def normalize_play_direction(df, field_length=Config.FIELD_LENGTH, field_width=Config.FIELD_WIDTH):
    """
    Mirror right-to-left plays so every play runs left to right.

    Flips x and y about the field center and rotates direction and
    orientation angles by 180 degrees. The line of scrimmage (``los_x``)
    is flipped along with x when present.

    Args:
        df: Tracking DataFrame with ``play_direction``

    Returns:
        df: Direction-normalized copy
    """
    df = df.copy()
    if 'play_direction' not in df.columns:
        return df

    left = df['play_direction'] == 'left'
    df.loc[left, 'x'] = field_length - df.loc[left, 'x']
    df.loc[left, 'y'] = field_width - df.loc[left, 'y']
    for col in ['dir', 'o']:
        if col in df.columns:
            df.loc[left, col] = (df.loc[left, col] + 180.0) % 360.0
    if 'los_x' in df.columns:
        df.loc[left, 'los_x'] = field_length - df.loc[left, 'los_x']

    df['play_direction'] = 'right'
    return df


def add_kinematic_components(df):
    """
    Split speed and acceleration into planar components.

    Uses the NFL angle convention: 0 degrees points along +y and angles
    increase clockwise, so the x component is the sine term. Acceleration
    is assumed to act along the direction of travel.

    Features added:
        - vx, vy (from s & dir)
        - ax, ay (from a & dir)
    """
    df = df.copy()
    dir_rad = np.deg2rad(df['dir'].fillna(0))
    df['vx'] = df['s'] * np.sin(dir_rad)
    df['vy'] = df['s'] * np.cos(dir_rad)
    df['ax'] = df['a'] * np.sin(dir_rad)
    df['ay'] = df['a'] * np.cos(dir_rad)
    return df


def select_frames(df, event=Config.ANCHOR_EVENT, offset=Config.FRAME_OFFSET):
    """
    Keep exactly one frame per play: the anchor event frame plus ``offset``.

    Plays without the anchor event, or too short to reach the offset frame,
    are dropped.
    """
    anchors = (
        df.loc[df['event'] == event]
        .groupby(PLAY_KEY)['frame_id']
        .min()
        .rename('anchor_frame')
        .reset_index()
    )
    n_plays = df[PLAY_KEY].drop_duplicates().shape[0]

    out = df.merge(anchors, on=PLAY_KEY, how='inner')
    out = out[out['frame_id'] == out['anchor_frame'] + offset]
    out = out.drop(columns=['anchor_frame'])

    n_kept = out[PLAY_KEY].drop_duplicates().shape[0]
    logger.info(f"Frame selection ({event} +{offset}): {n_kept:,} of {n_plays:,} plays")
    return out.reset_index(drop=True)


def add_play_context(df, plays=None):
    """
    Add scrimmage- and quarterback-relative context.

    Features added:
        - x_from_los: x minus the line-of-scrimmage x
        - facing_qb: 1 when the player's body faces the QB, 0 when facing away

    Plays with no QB in the frame get ``facing_qb`` of 0.5 (neutral).
    """
    df = df.copy()

    if 'los_x' not in df.columns:
        if plays is None or 'los_x' not in plays.columns:
            raise KeyError("Line of scrimmage (los_x) is required to compute x_from_los")
        df = df.merge(plays[PLAY_KEY + ['los_x']], on=PLAY_KEY, how='left')
    df['x_from_los'] = df['x'] - df['los_x']

    frame_key = PLAY_KEY + ['frame_id']
    if 'position' in df.columns:
        qb = (
            df.loc[df['position'] == 'QB', frame_key + ['x', 'y']]
            .drop_duplicates(subset=frame_key)
            .rename(columns={'x': 'qb_x', 'y': 'qb_y'})
        )
        df = df.merge(qb, on=frame_key, how='left')
    else:
        df['qb_x'] = np.nan
        df['qb_y'] = np.nan

    bearing = np.degrees(np.arctan2(df['qb_x'] - df['x'], df['qb_y'] - df['y']))
    diff = wrap_angle_deg(df['o'] - bearing)
    df['facing_qb'] = (1.0 - diff.abs() / 180.0).fillna(0.5)

    return df.drop(columns=['qb_x', 'qb_y'])


def filter_labelled_plays(df, labels):
    """Inner-join coverage labels; plays absent from ``labels`` are dropped."""
    n_plays = df[PLAY_KEY].drop_duplicates().shape[0]
    out = df.merge(labels[PLAY_KEY + ['coverage']], on=PLAY_KEY, how='inner')
    n_kept = out[PLAY_KEY].drop_duplicates().shape[0]
    logger.info(f"Label join: {n_kept:,} of {n_plays:,} plays have a coverage label")
    return out


def keep_eligible_offense(df):
    """Drop the QB and any non-eligible offensive rows; defense is untouched."""
    if 'position' not in df.columns:
        return df
    offense = df['side'] == 'offense'
    eligible = df['position'].isin(ELIGIBLE_POSITIONS)
    return df[~offense | eligible].reset_index(drop=True)


def load_week(data_dir, week, config=Config, labels_path=None):
    """
    Complete loading pipeline for one week.

    Args:
        data_dir: Directory with ``tracking_week_N.csv``, ``plays.csv``,
            ``games.csv`` and ``coverages_weekN.csv``
        week: Week number
        config: Config class (frame selection and field size)
        labels_path: Override for the coverage label file

    Returns:
        participants: One row per player on each labelled play, with
            PARTICIPANT_COLUMNS plus ``coverage``

    Example:
        >>> participants = load_week('data/raw', week=1)
    """
    data_dir = Path(data_dir)
    labels_path = Path(labels_path) if labels_path else data_dir / f"coverages_week{week}.csv"

    logger.info(f"Loading week {week} from {data_dir}")
    tracking = load_tracking(data_dir / f"tracking_week_{week}.csv")
    plays = _read_csv(data_dir / 'plays.csv')
    games = _read_csv(data_dir / 'games.csv')
    labels = load_coverage_labels(labels_path)

    df = assign_sides(tracking, plays, games)
    if 'los_x' in plays.columns:
        df = df.merge(plays[PLAY_KEY + ['los_x']], on=PLAY_KEY, how='left')
    df = normalize_play_direction(df, config.FIELD_LENGTH, config.FIELD_WIDTH)
    df = add_kinematic_components(df)
    df = select_frames(df, event=config.ANCHOR_EVENT, offset=config.FRAME_OFFSET)
    df = add_play_context(df)
    df = filter_labelled_plays(df, labels)
    df = keep_eligible_offense(df)

    columns = [c for c in PARTICIPANT_COLUMNS if c in df.columns] + ['coverage']
    return df[columns]


def load_weeks(data_dir, weeks, config=Config):
    """Load and concatenate several weeks."""
    frames = [load_week(data_dir, week, config=config) for week in weeks]
    return pd.concat(frames, ignore_index=True)
