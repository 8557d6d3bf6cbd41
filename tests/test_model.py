import pytest
import torch

from coverage_analytics.models.coverage_cnn import CoverageCNN, DualPool, create_coverage_cnn


@pytest.fixture
def model():
    torch.manual_seed(0)
    m = create_coverage_cnn(n_classes=4)
    m.eval()
    return m


def test_output_shape(model, feature_batch):
    with torch.no_grad():
        out = model(feature_batch)
    assert out.shape == (4, 4)


def test_scores_are_raw_not_probabilities(model, feature_batch):
    with torch.no_grad():
        out = model(feature_batch)
    assert not torch.allclose(out.sum(dim=1), torch.ones(4))


def test_dual_pool_weights():
    x = torch.tensor([[[1.0, 2.0, 3.0, 10.0]]])
    pooled = DualPool(dim=2)(x)
    assert pooled.shape == (1, 1)
    assert pooled.item() == pytest.approx(0.7 * 4.0 + 0.3 * 10.0)


def test_defender_permutation_invariance(model, feature_batch):
    perm = torch.randperm(11, generator=torch.Generator().manual_seed(3))
    with torch.no_grad():
        base = model(feature_batch)
        permuted = model(feature_batch[:, :, perm, :])
    torch.testing.assert_close(base, permuted, rtol=1e-4, atol=1e-5)


def test_offender_permutation_invariance(model, feature_batch):
    perm = torch.tensor([3, 0, 4, 1, 2])
    with torch.no_grad():
        base = model(feature_batch)
        permuted = model(feature_batch[:, :, :, perm])
    torch.testing.assert_close(base, permuted, rtol=1e-4, atol=1e-5)


def test_eval_mode_is_independent_of_batch_composition(model, feature_batch):
    with torch.no_grad():
        together = model(feature_batch)
        alone = torch.cat([model(feature_batch[i:i + 1]) for i in range(4)])
    torch.testing.assert_close(together, alone, rtol=1e-4, atol=1e-5)


def test_train_mode_updates_batch_norm_statistics(feature_batch):
    torch.manual_seed(0)
    m = CoverageCNN(n_classes=2)
    m.train()
    bn = m.defender_conv[0]
    before = bn.running_mean.clone()
    m(feature_batch)
    assert not torch.equal(before, bn.running_mean)


def test_layer_widths():
    m = CoverageCNN(n_features=13, n_classes=7)
    convs = [layer for layer in m.pair_conv if isinstance(layer, torch.nn.Conv2d)]
    assert [(c.in_channels, c.out_channels) for c in convs] == [(13, 128), (128, 160), (160, 128)]
    assert all(c.kernel_size == (1, 1) for c in convs)

    convs1d = [layer for layer in m.defender_conv if isinstance(layer, torch.nn.Conv1d)]
    assert [(c.in_channels, c.out_channels) for c in convs1d] == [(128, 160), (160, 96), (96, 96)]

    linears = [layer for layer in m.head if isinstance(layer, torch.nn.Linear)]
    assert [(l.in_features, l.out_features) for l in linears] == [(96, 96), (96, 256), (256, 7)]
    dropout = [layer for layer in m.head if isinstance(layer, torch.nn.Dropout)][0]
    assert dropout.p == pytest.approx(0.3)
