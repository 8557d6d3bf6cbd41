import matplotlib.pyplot as plt
import pandas as pd
import pytest

from coverage_analytics import cli


@pytest.fixture
def participants(make_play):
    plays = [
        make_play(play_id=i, seed=i, coverage='Cover 3 Zone' if i % 2 else 'Cover 1 Man')
        for i in range(20)
    ]
    return pd.concat(plays, ignore_index=True)


def test_run_saves_outputs_and_closes_figures(monkeypatch, tmp_path, cpu_config, participants):
    monkeypatch.setattr(cli, 'load_weeks', lambda data_dir, weeks, config: participants)
    config = cpu_config.override(EPOCHS=1, N_FOLDS=2, BATCH_SIZE=8, OUTPUT_DIR=tmp_path)
    plt.close('all')

    results = cli.run(config)

    assert plt.get_fignums() == []
    assert results['class_names'] == ['Cover 1 Man', 'Cover 3 Zone']
    assert results['confusion_matrix'].sum() == 4
    assert (tmp_path / 'figures' / 'confusion_matrix.png').exists()
    assert (tmp_path / 'figures' / 'training_history.png').exists()
    assert sorted(p.name for p in (tmp_path / 'ensemble').glob('*.pt')) == [
        'coverage_cnn_fold0.pt', 'coverage_cnn_fold1.pt',
    ]
