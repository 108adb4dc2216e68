"""
factor_diagnostics.py
=====================
Factorability checks on a correlation matrix.

- KMO:      Kaiser-Meyer-Olkin sampling adequacy, overall and per variable (MSA)
            KMO = Σr² / (Σr² + Σq²) over off-diagonal cells, q = partial correlation
- Bartlett: sphericity test, H0: correlation matrix = identity
            χ² = -(n - 1 - (2p + 5) / 6) · ln|R|,  df = p(p - 1) / 2

Both are read-only; the input matrix is never modified.
"""

import logging

import numpy as np
import pandas as pd
from scipy import stats

from analysis_config import FACTOR_VARS
from hypothesis_tests import correlation_matrix

logger = logging.getLogger(__name__)


def _as_array(corr) -> np.ndarray:
    R = np.array(corr, dtype=float, copy=True)
    if R.ndim != 2 or R.shape[0] != R.shape[1]:
        raise ValueError(f"correlation matrix must be square, got shape {R.shape}")
    if np.isnan(R).any():
        raise ValueError("correlation matrix contains NaN")
    return R


def partial_correlations(corr) -> np.ndarray:
    """Anti-image (partial) correlations from the inverse correlation matrix."""
    R = _as_array(corr)
    try:
        inv = np.linalg.inv(R)
    except np.linalg.LinAlgError:
        logger.warning("correlation matrix is singular, using pseudo-inverse")
        inv = np.linalg.pinv(R)
    d = np.sqrt(np.abs(np.diag(inv)))
    Q = -inv / np.outer(d, d)
    np.fill_diagonal(Q, 1.0)
    return Q


def kmo(corr) -> dict:
    """Overall KMO index and per-variable MSA, both in [0, 1]."""
    R = _as_array(corr)
    Q = partial_correlations(R)
    off = ~np.eye(R.shape[0], dtype=bool)
    r2 = np.where(off, R ** 2, 0.0)
    q2 = np.where(off, Q ** 2, 0.0)

    # identity matrix: no shared variance at all, reported as 0
    denom = r2.sum() + q2.sum()
    overall = r2.sum() / denom if denom > 0 else 0.0
    col_denom = r2.sum(axis=0) + q2.sum(axis=0)
    msa = np.divide(r2.sum(axis=0), col_denom,
                    out=np.zeros(R.shape[0]), where=col_denom > 0)

    index = corr.columns if isinstance(corr, pd.DataFrame) else range(R.shape[0])
    return {'overall': float(overall), 'msa': pd.Series(msa, index=index, name='MSA')}


def bartlett_sphericity(corr, n: int) -> dict:
    """Bartlett's test of sphericity for a p x p correlation matrix and sample size n."""
    R = _as_array(corr)
    p = R.shape[0]
    det = np.linalg.det(R)
    if det <= 0:
        raise ValueError(f"correlation matrix determinant is {det:.3g}, "
                         "Bartlett's test needs a positive definite matrix")
    chi2 = -(n - 1 - (2 * p + 5) / 6) * np.log(det)
    df = p * (p - 1) / 2
    pval = stats.chi2.sf(chi2, df)
    return {'chi2': float(chi2), 'df': int(df), 'p': float(pval), 'n': int(n)}


def kmo_label(value: float) -> str:
    """Kaiser's verbal scale."""
    if value >= 0.9: return 'marvelous'
    if value >= 0.8: return 'meritorious'
    if value >= 0.7: return 'middling'
    if value >= 0.6: return 'mediocre'
    if value >= 0.5: return 'miserable'
    return 'unacceptable'


def factor_suitability(ctx, cols=None) -> dict:
    """KMO and Bartlett over the pairwise correlation of `cols` (default EO, RP, ENT, DEPNDT)."""
    cols = list(cols or FACTOR_VARS)
    corr = correlation_matrix(ctx.data, cols)
    k = kmo(corr)
    b = bartlett_sphericity(corr, n=ctx.n)
    logger.info(f"KMO = {k['overall']:.3f} ({kmo_label(k['overall'])}), "
                f"Bartlett χ²({b['df']}) = {b['chi2']:.3f}, p = {b['p']:.4g}")
    return {'corr': corr, 'kmo': k, 'bartlett': b}


def suitability_table(result: dict) -> pd.DataFrame:
    k, b = result['kmo'], result['bartlett']
    rows = {'KMO (overall)': k['overall']}
    for var, v in k['msa'].items():
        rows[f'MSA {var}'] = v
    rows['Bartlett χ²'] = b['chi2']
    rows['Bartlett df'] = b['df']
    rows['Bartlett p'] = b['p']
    return pd.DataFrame({'Value': pd.Series(rows)})
