import numpy as np
import pandas as pd
import pytest

import factor_diagnostics as fd


def _random_corr(seed, p=5, n=60):
    rng = np.random.default_rng(seed)
    latent = rng.normal(size=(n, 1))
    X = latent @ rng.uniform(0.2, 0.9, size=(1, p)) + rng.normal(size=(n, p))
    return pd.DataFrame(X).corr()


@pytest.mark.parametrize('seed', [0, 1, 2, 3])
def test_kmo_and_bartlett_bounded(seed):
    corr = _random_corr(seed)
    k = fd.kmo(corr)
    assert 0 <= k['overall'] <= 1
    assert ((k['msa'] >= 0) & (k['msa'] <= 1)).all()
    b = fd.bartlett_sphericity(corr, n=60)
    assert 0 <= b['p'] <= 1
    assert b['df'] == 10


def test_two_variable_kmo_is_half():
    corr = np.array([[1.0, 0.4], [0.4, 1.0]])
    assert fd.kmo(corr)['overall'] == pytest.approx(0.5)


def test_identity_matrix():
    eye = np.eye(4)
    assert fd.kmo(eye)['overall'] == 0.0
    b = fd.bartlett_sphericity(eye, n=100)
    assert b['chi2'] == pytest.approx(0.0)
    assert b['p'] == pytest.approx(1.0)


def test_strong_correlation_rejects_sphericity():
    corr = np.full((3, 3), 0.7)
    np.fill_diagonal(corr, 1.0)
    assert fd.bartlett_sphericity(corr, n=200)['p'] < 0.001


def test_non_positive_definite_matrix_rejected():
    corr = np.array([[1.0, 0.9, -0.9], [0.9, 1.0, 0.9], [-0.9, 0.9, 1.0]])
    with pytest.raises(ValueError, match='determinant'):
        fd.bartlett_sphericity(corr, n=50)


def test_inputs_not_modified(ctx):
    before = ctx.data.copy()
    result = fd.factor_suitability(ctx)
    pd.testing.assert_frame_equal(ctx.data, before)

    corr = result['corr']
    corr_before = corr.copy()
    fd.kmo(corr)
    fd.bartlett_sphericity(corr, n=ctx.n)
    pd.testing.assert_frame_equal(corr, corr_before)


def test_suitability_table(ctx):
    tab = fd.suitability_table(fd.factor_suitability(ctx))
    assert 'KMO (overall)' in tab.index
    assert 'MSA EO' in tab.index
    assert 0 <= tab.loc['Bartlett p', 'Value'] <= 1


def test_kmo_label():
    assert fd.kmo_label(0.95) == 'marvelous'
    assert fd.kmo_label(0.4) == 'unacceptable'
