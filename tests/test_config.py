from pathlib import Path

import pytest
import torch

from coverage_analytics.config import Config


def test_defaults():
    assert Config.FIELD_WIDTH == pytest.approx(53.3)
    assert (Config.N_FEATURES, Config.MAX_DEFENDERS, Config.MAX_OFFENDERS) == (13, 11, 5)
    assert Config.N_FOLDS == 5
    assert Config.EPOCHS == 50
    assert Config.LR_DECAY == pytest.approx(0.975)
    assert Config.ROSTER_OVERFLOW == 'raise'
    assert Config.FINAL_PREDICTOR == 'ensemble'


def test_override_returns_subclass_without_touching_base():
    custom = Config.override(epochs=3, output_dir='out', device='cpu')

    assert issubclass(custom, Config)
    assert custom.EPOCHS == 3
    assert custom.OUTPUT_DIR == Path('out')
    assert custom.SAVE_DIR == Path('out')
    assert custom.DEVICE == torch.device('cpu')
    assert Config.EPOCHS == 50


def test_override_unknown_key():
    with pytest.raises(KeyError):
        Config.override(EPOCHZ=3)


@pytest.mark.parametrize("key,value", [("ROSTER_OVERFLOW", "drop"), ("FINAL_PREDICTOR", "best")])
def test_override_rejects_unknown_policy(key, value):
    with pytest.raises(ValueError):
        Config.override(**{key: value})


def test_from_yaml(tmp_path):
    path = tmp_path / 'overrides.yaml'
    path.write_text("n_folds: 3\nroster_overflow: truncate\nweeks: [1, 2]\n")

    custom = Config.from_yaml(path)
    assert custom.N_FOLDS == 3
    assert custom.ROSTER_OVERFLOW == 'truncate'
    assert custom.WEEKS == [1, 2]


def test_to_dict_lists_settings():
    settings = Config.to_dict()
    assert settings['BATCH_SIZE'] == Config.BATCH_SIZE
    assert 'to_dict' not in settings
