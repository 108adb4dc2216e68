import numpy as np
import pandas as pd
import pytest

from analysis_config import CONSTRUCTS
from survey_data_loader import make_context

EO_ITEMS = CONSTRUCTS['EO']['cols']
RP_ITEMS = CONSTRUCTS['RP']['cols']


def make_survey(n=50, seed=11, missing=True) -> pd.DataFrame:
    """Likert-style synthetic survey with ENT, EO/RP items, DEPNDT and demographics."""
    rng = np.random.default_rng(seed)
    ent = rng.integers(1, 6, n).astype(float)
    eo_latent = 2.0 + 0.5 * ent + rng.normal(0, 0.6, n)
    rp_latent = 4.5 - 0.4 * ent + rng.normal(0, 0.6, n)

    items = {}
    for col in EO_ITEMS:
        items[col] = np.clip(np.round(eo_latent + rng.normal(0, 0.7, n)), 1, 7)
    for col in RP_ITEMS:
        items[col] = np.clip(np.round(rp_latent + rng.normal(0, 0.7, n)), 1, 7)
    df = pd.DataFrame(items)
    df['ENT'] = ent

    eo = df[EO_ITEMS].mean(axis=1)
    rp = df[RP_ITEMS].mean(axis=1)
    df['DEPNDT'] = 1.0 + 0.3 * ent + 0.5 * eo - 0.4 * rp + rng.normal(0, 0.5, n)
    df['BIZDEG'] = np.clip(np.round(ent + rng.normal(0, 1, n)), 1, 5)
    df['TENURE'] = rng.integers(0, 20, n)
    df['EDU'] = rng.integers(1, 6, n)
    df['FRMSIZ'] = rng.integers(1, 5, n)

    if missing:
        df.loc[[3, 7], 'EO2'] = np.nan
        df.loc[10, 'RP5'] = np.nan
        df.loc[20, 'BIZDEG'] = np.nan
    return df


def make_path_data(n=400, seed=3) -> pd.DataFrame:
    """Continuous data following the mediation model with small noise."""
    rng = np.random.default_rng(seed)
    ent = rng.normal(0, 1, n)
    eo = 0.8 * ent + rng.normal(0, 0.3, n)
    rp = -0.5 * ent + rng.normal(0, 0.3, n)
    dep = 0.2 * ent + 0.6 * eo + 0.4 * rp + rng.normal(0, 0.3, n)
    return pd.DataFrame({'ENT': ent, 'EO': eo, 'RP': rp, 'DEPNDT': dep})


@pytest.fixture
def survey():
    return make_survey()


@pytest.fixture
def ctx(survey, tmp_path):
    return make_context(survey, out_dir=tmp_path / 'reports', chart_dir=tmp_path / 'charts',
                        n_bootstrap=40, seed=5)


@pytest.fixture(scope='module')
def fitted():
    """One bootstrap fit of the mediation model, shared by the extractor tests."""
    from sem_analysis import fit_mediation
    from survey_data_loader import AnalysisContext
    ctx = AnalysisContext(data=make_path_data(n=200, seed=8), n_bootstrap=60, seed=5)
    return fit_mediation(ctx)
