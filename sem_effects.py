"""
Direct, indirect and total effects from a fitted mediation SEM.

Each row carries the point estimate, bootstrap SE, z statistic, two-sided
p-value, percentile bootstrap CI and the fully standardized estimate:

    effect  se  t  p  llci  ulci  c_cs
"""

import logging

import numpy as np
import pandas as pd
from scipy import stats

from sem_analysis import EffectLabel, MediationFit

logger = logging.getLogger(__name__)

EFFECT_COLUMNS = ['effect', 'se', 't', 'p', 'llci', 'ulci', 'c_cs']

# Four-row report: direct, both indirect paths, total
REPORT_LABELS = [EffectLabel.C, EffectLabel.IND1, EffectLabel.IND2, EffectLabel.TOTAL]


class UnknownEffectError(KeyError):
    """Requested effect label does not exist in the fitted model."""


def _label(label) -> EffectLabel:
    if isinstance(label, EffectLabel):
        return label
    try:
        return EffectLabel(label)
    except ValueError:
        valid = ', '.join(l.value for l in EffectLabel)
        raise UnknownEffectError(f"unknown effect label {label!r} (valid: {valid})") from None


def display_names(fit: MediationFit) -> dict:
    s = fit.spec
    return {
        EffectLabel.C:    f'Direct effect of {s.x} on {s.y}',
        EffectLabel.A1:   f'{s.x} → {s.m1}',
        EffectLabel.A2:   f'{s.x} → {s.m2}',
        EffectLabel.B1:   f'{s.m1} → {s.y}',
        EffectLabel.B2:   f'{s.m2} → {s.y}',
        EffectLabel.IND1: f'{s.x} → {s.m1} → {s.y}',
        EffectLabel.IND2: f'{s.x} → {s.m2} → {s.y}',
        EffectLabel.TOTAL_INDIRECT: 'Total Indirect Effect',
        EffectLabel.TOTAL: f'Total Effect of {s.x} on {s.y}',
    }


def effect_row(fit: MediationFit, label) -> dict:
    """One fully populated result row for `label`."""
    lbl = _label(label)
    if lbl not in fit.estimates or lbl.value not in fit.boot.columns:
        raise UnknownEffectError(f"effect {lbl.value!r} not in fitted model")

    est = fit.estimates[lbl]
    draws = fit.boot[lbl.value].dropna().to_numpy(dtype=float)
    if len(draws) < 2:
        raise ValueError(f"effect {lbl.value!r}: {len(draws)} bootstrap draws, need at least 2")

    se = draws.std(ddof=1)
    z = est / se if se > 0 else np.nan
    p = 2 * stats.norm.sf(abs(z)) if se > 0 else np.nan
    alpha = 1 - fit.ci_level
    llci, ulci = np.quantile(draws, [alpha / 2, 1 - alpha / 2])
    return {
        'effect': float(est),
        'se':     float(se),
        't':      float(z),
        'p':      float(p),
        'llci':   float(llci),
        'ulci':   float(ulci),
        'c_cs':   float(fit.std_estimates[lbl]),
    }


def extract_effects(fit: MediationFit, labels) -> pd.DataFrame:
    """Rows for `labels` in the order given, indexed by the raw label."""
    lbls = [_label(l) for l in labels]
    rows = {l.value: effect_row(fit, l) for l in lbls}
    return pd.DataFrame.from_dict(rows, orient='index', columns=EFFECT_COLUMNS)


def name_rows(table: pd.DataFrame, names: list) -> pd.DataFrame:
    """
    Replace the index with `names` when the row count matches; otherwise keep
    the raw labels so no row is given the wrong name.
    """
    out = table.copy()
    if len(out) == len(names):
        out.index = names
    else:
        logger.warning(f"expected {len(names)} rows, got {len(out)}; keeping raw labels")
    return out


def mediation_effects(fit: MediationFit) -> pd.DataFrame:
    """Direct, ind1, ind2 and total effect rows with display names."""
    names = display_names(fit)
    table = extract_effects(fit, REPORT_LABELS)
    return name_rows(table, [names[l] for l in REPORT_LABELS])


def mediation_summary(fit: MediationFit) -> dict:
    """Effect tables grouped as direct / indirect / total indirect / total."""
    names = display_names(fit)
    groups = {
        'direct':         [EffectLabel.C],
        'indirect':       [EffectLabel.IND1, EffectLabel.IND2],
        'total_indirect': [EffectLabel.TOTAL_INDIRECT],
        'total':          [EffectLabel.TOTAL],
    }
    out = {}
    for key, lbls in groups.items():
        table = extract_effects(fit, lbls)
        out[key] = name_rows(table, [names[l] for l in lbls])
    return out
