"""
sem_analysis.py
===============
Parallel two-mediator SEM (semopy), fitted as one model, with
nonparametric bootstrap inference for the indirect effects.

    ENT ──c──────────────────▶ DEPNDT
     │ ╲                         ▲  ▲
     a1  a2                     b1  b2
     ▼     ▼                     │  │
     EO    RP ───────────────────┘  │
     └──────────────────────────────┘

  ind1 = a1·b1    ind2 = a2·b2
  total_indirect = ind1 + ind2
  total = c + ind1 + ind2

Public interface
----------------
MediationSpec          variables + semopy description
check_identification() moments vs free parameters
check_covariance()     sample covariance matrix is not singular
fit_mediation(ctx)     → MediationFit
path_table(fit)        structural paths with normal-theory SE from semopy
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np
import pandas as pd
from semopy import Model, calc_stats

from analysis_config import (MEDIATION_X, MEDIATION_MEDIATORS, MEDIATION_Y,
                             SEM_SOLVER, SEM_MAX_ITER, COLLINEARITY_TOL)

logger = logging.getLogger(__name__)


class IdentificationError(ValueError):
    """More free parameters than observed moments, or a singular sample covariance."""


class ConvergenceError(RuntimeError):
    """The optimiser, or too many bootstrap refits, did not converge."""


class EffectLabel(str, Enum):
    C = 'c'
    A1 = 'a1'
    A2 = 'a2'
    B1 = 'b1'
    B2 = 'b2'
    IND1 = 'ind1'
    IND2 = 'ind2'
    TOTAL_INDIRECT = 'total_indirect'
    TOTAL = 'total'


PATH_LABELS = (EffectLabel.C, EffectLabel.A1, EffectLabel.A2, EffectLabel.B1, EffectLabel.B2)
DERIVED_LABELS = (EffectLabel.IND1, EffectLabel.IND2,
                  EffectLabel.TOTAL_INDIRECT, EffectLabel.TOTAL)


# ══════════════════════════════════════════════════════════════════════════════
# ── Model specification ───────────────────────────────────────────────────────
# ══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class MediationSpec:
    x: str = MEDIATION_X
    m1: str = MEDIATION_MEDIATORS[0]
    m2: str = MEDIATION_MEDIATORS[1]
    y: str = MEDIATION_Y
    covariances: tuple = ()     # extra free (residual) covariances, pairs of names

    def __post_init__(self):
        if len(set(self.observed)) != 4:
            raise ValueError(f"mediation variables must be distinct: {self.observed}")
        for pair in self.covariances:
            unknown = [v for v in pair if v not in self.observed]
            if len(pair) != 2 or unknown:
                raise ValueError(f"bad covariance {pair}")

    @property
    def observed(self) -> list:
        return [self.x, self.m1, self.m2, self.y]

    @property
    def endogenous(self) -> list:
        return [self.m1, self.m2, self.y]

    def paths(self) -> dict:
        """label → (lval, rval), i.e. (outcome, predictor)."""
        return {
            EffectLabel.C:  (self.y,  self.x),
            EffectLabel.A1: (self.m1, self.x),
            EffectLabel.A2: (self.m2, self.x),
            EffectLabel.B1: (self.y,  self.m1),
            EffectLabel.B2: (self.y,  self.m2),
        }

    def description(self) -> str:
        lines = [
            f'{self.y} ~ {self.x} + {self.m1} + {self.m2}',
            f'{self.m1} ~ {self.x}',
            f'{self.m2} ~ {self.x}',
        ]
        lines += [f'{a} ~~ {b}' for a, b in self.covariances]
        return '\n'.join(lines)

    def n_moments(self) -> int:
        p = len(self.observed)
        return p * (p + 1) // 2

    def free_parameters(self) -> list:
        """Regressions, residual variances of endogenous vars, variance of X, extra covariances."""
        params = [lbl.value for lbl in PATH_LABELS]
        params += [f'{v} ~~ {v}' for v in self.endogenous]
        params.append(f'{self.x} ~~ {self.x}')
        params += [f'{a} ~~ {b}' for a, b in self.covariances]
        return params


def check_identification(spec: MediationSpec) -> int:
    """Return the model degrees of freedom, raise IdentificationError if negative."""
    free = spec.free_parameters()
    moments = spec.n_moments()
    dof = moments - len(free)
    if dof < 0:
        raise IdentificationError(
            f"model not identified: {len(free)} free parameters "
            f"({', '.join(free)}) but only {moments} observed moments "
            f"for {', '.join(spec.observed)}")
    return dof


def check_covariance(data: pd.DataFrame, spec: MediationSpec,
                     tol: float = COLLINEARITY_TOL) -> None:
    """
    Raise IdentificationError if the sample covariance matrix of the model
    variables is singular. semopy would otherwise smooth it to a nearby PD
    matrix and return biased estimates.
    """
    obs = data[spec.observed]
    n_free = len(spec.free_parameters())
    sd = obs.std()
    constant = [c for c in spec.observed if not sd[c] > 0]
    if constant:
        raise IdentificationError(
            f"model not identified from data: {', '.join(constant)} has zero variance, "
            f"{n_free} free parameters cannot be estimated")

    eigval, eigvec = np.linalg.eigh(obs.corr().values)
    if eigval[0] > tol * eigval[-1]:
        return
    null = eigvec[:, 0]
    involved = [v for v, w in zip(spec.observed, null) if abs(w) > 1e-3 * np.abs(null).max()]
    raise IdentificationError(
        f"model not identified from data: sample covariance matrix is singular, "
        f"{', '.join(involved)} are linearly dependent "
        f"(smallest eigenvalue {eigval[0]:.2e}); "
        f"{n_free} free parameters cannot be estimated")


# ══════════════════════════════════════════════════════════════════════════════
# ── Fitted model ──────────────────────────────────────────────────────────────
# ══════════════════════════════════════════════════════════════════════════════

@dataclass
class MediationFit:
    spec: MediationSpec
    estimates: dict                 # EffectLabel → float
    std_estimates: dict             # EffectLabel → float (fully standardized)
    boot: pd.DataFrame              # successful resamples × label values
    n_obs: int
    n_bootstrap: int
    n_failed: int
    ci_level: float
    seed: Optional[int] = None
    fit_summary: dict = field(default_factory=dict)
    r2: dict = field(default_factory=dict)
    inspect: Optional[pd.DataFrame] = None
    model: object = None


def _flt(v):
    try:
        return float(v)
    except (TypeError, ValueError):
        return np.nan


def _fit_once(desc: str, data: pd.DataFrame, max_iter: int = SEM_MAX_ITER):
    """Fit one semopy model, return (model, solver result)."""
    mod = Model(desc)
    res = mod.fit(data, solver=SEM_SOLVER, options={'maxiter': max_iter})
    return mod, res


def _converged(res) -> bool:
    return bool(getattr(res, 'success', True))


def _path_values(inspect_df: pd.DataFrame, spec: MediationSpec, column: str) -> dict:
    struct = inspect_df[inspect_df['op'] == '~']
    out = {}
    for label, (lval, rval) in spec.paths().items():
        match = struct[(struct['lval'] == lval) & (struct['rval'] == rval)]
        if len(match) != 1:
            raise IdentificationError(
                f"path {label.value} ({rval} → {lval}) not found in fitted model")
        out[label] = _flt(match.iloc[0][column])
    return out


def derive_effects(paths: dict) -> dict:
    """Add ind1, ind2, total_indirect and total to the five path coefficients."""
    c, a1, a2 = paths[EffectLabel.C], paths[EffectLabel.A1], paths[EffectLabel.A2]
    b1, b2 = paths[EffectLabel.B1], paths[EffectLabel.B2]
    out = {lbl: paths[lbl] for lbl in PATH_LABELS}
    out[EffectLabel.IND1] = a1 * b1
    out[EffectLabel.IND2] = a2 * b2
    out[EffectLabel.TOTAL_INDIRECT] = out[EffectLabel.IND1] + out[EffectLabel.IND2]
    out[EffectLabel.TOTAL] = c + out[EffectLabel.IND1] + out[EffectLabel.IND2]
    return out


def _get_fit_summary(model) -> dict:
    """Key fit indices from semopy calc_stats."""
    try:
        s = calc_stats(model).iloc[0]
    except Exception as e:
        logger.warning(f"calc_stats failed, fit indices unavailable: {e}")
        s = pd.Series(dtype=float)

    def _g(key):
        return _flt(s[key]) if key in s.index else np.nan

    return {
        'χ²':    _g('chi2'),
        'df':    _g('DoF'),
        'p(χ²)': _g('chi2 p-value'),
        'CFI':   _g('CFI'),
        'TLI':   _g('TLI'),
        'RMSEA': _g('RMSEA'),
        'AIC':   _g('AIC'),
        'BIC':   _g('BIC'),
    }


def _get_r2(data: pd.DataFrame, spec: MediationSpec, est: dict) -> dict:
    """R² of each endogenous variable from the fitted path coefficients."""
    d = data - data.mean()
    preds = {
        spec.m1: est[EffectLabel.A1] * d[spec.x],
        spec.m2: est[EffectLabel.A2] * d[spec.x],
        spec.y:  (est[EffectLabel.C] * d[spec.x] + est[EffectLabel.B1] * d[spec.m1]
                  + est[EffectLabel.B2] * d[spec.m2]),
    }
    r2 = {}
    for var, pred in preds.items():
        total = (d[var] ** 2).sum()
        r2[var] = float(1 - ((d[var] - pred) ** 2).sum() / total) if total > 0 else np.nan
    return r2


def _bootstrap(desc: str, data: pd.DataFrame, spec: MediationSpec, n_bootstrap: int,
               rng: np.random.Generator, max_failure_rate: float, max_iter: int):
    """
    Refit on `n_bootstrap` row resamples. All resample indices are drawn up
    front from `rng`, so results do not depend on evaluation order. A resample
    with a singular covariance matrix counts as a failed refit.
    """
    n = len(data)
    indices = rng.integers(0, n, size=(n_bootstrap, n))

    rows, n_failed = [], 0
    for i, idx in enumerate(indices, start=1):
        sample = data.iloc[idx].reset_index(drop=True)
        try:
            check_covariance(sample, spec)
            mod, res = _fit_once(desc, sample, max_iter)
            if not _converged(res):
                n_failed += 1
                continue
            inspect = mod.inspect(mode='list', what='est')
            effects = derive_effects(_path_values(inspect, spec, 'Estimate'))
        except (np.linalg.LinAlgError, ValueError, RuntimeError) as e:
            logger.debug(f"bootstrap resample {i} failed: {e}")
            n_failed += 1
            continue
        rows.append({lbl.value: v for lbl, v in effects.items()})
        if i % 500 == 0:
            logger.info(f"  bootstrap {i}/{n_bootstrap} ({n_failed} failed)")

    rate = n_failed / n_bootstrap
    if rate > max_failure_rate:
        raise ConvergenceError(
            f"{n_failed}/{n_bootstrap} bootstrap refits failed "
            f"({rate:.1%} > limit {max_failure_rate:.1%})")
    if n_failed:
        logger.warning(f"{n_failed}/{n_bootstrap} bootstrap refits failed and were dropped")
    boot = pd.DataFrame(rows, columns=[lbl.value for lbl in EffectLabel])
    return boot, n_failed


def fit_mediation(ctx, spec: Optional[MediationSpec] = None) -> MediationFit:
    """
    Fit the mediation SEM on ctx.data and bootstrap it ctx.n_bootstrap times.
    Rows missing any model variable are excluded (listwise).
    """
    spec = spec or MediationSpec()
    dof = check_identification(spec)

    missing = [c for c in spec.observed if c not in ctx.data.columns]
    if missing:
        raise KeyError(f"mediation variables not in data: {', '.join(missing)}")
    if ctx.n_bootstrap < 2:
        raise ValueError(f"n_bootstrap must be at least 2, got {ctx.n_bootstrap}")

    data = ctx.data[spec.observed].dropna().reset_index(drop=True)
    dropped = ctx.n - len(data)
    if dropped:
        logger.warning(f"mediation: {dropped} rows with missing values excluded")
    if len(data) <= len(spec.observed):
        raise ValueError(f"mediation: only {len(data)} complete rows")

    check_covariance(data, spec)

    desc = spec.description()
    logger.info(f"fitting mediation SEM (N = {len(data)}, df = {dof})")
    mod, res = _fit_once(desc, data, ctx.max_iter)
    if not _converged(res):
        raise ConvergenceError(
            f"SEM optimisation did not converge within {ctx.max_iter} iterations: "
            f"{getattr(res, 'message', '')} "
            f"(free parameters: {', '.join(spec.free_parameters())})")

    inspect = mod.inspect(mode='list', what='est', std_est=True)
    estimates = derive_effects(_path_values(inspect, spec, 'Estimate'))
    std_estimates = derive_effects(_path_values(inspect, spec, 'Est. Std'))

    logger.info(f"bootstrapping {ctx.n_bootstrap} resamples (seed = {ctx.seed})")
    boot, n_failed = _bootstrap(desc, data, spec, ctx.n_bootstrap, ctx.rng(),
                                ctx.max_failure_rate, ctx.max_iter)

    return MediationFit(
        spec=spec, estimates=estimates, std_estimates=std_estimates, boot=boot,
        n_obs=len(data), n_bootstrap=ctx.n_bootstrap, n_failed=n_failed,
        ci_level=ctx.ci_level, seed=ctx.seed,
        fit_summary=_get_fit_summary(mod), r2=_get_r2(data, spec, estimates),
        inspect=inspect, model=mod,
    )


def path_table(fit: MediationFit) -> pd.DataFrame:
    """Structural paths with semopy's normal-theory SE, z and p, plus significance stars."""
    struct = fit.inspect[fit.inspect['op'] == '~']
    rows = []
    for label, (lval, rval) in fit.spec.paths().items():
        r = struct[(struct['lval'] == lval) & (struct['rval'] == rval)].iloc[0]
        pval = _flt(r.get('p-value', np.nan))
        sig = ('***' if pval < 0.001 else ('**' if pval < 0.01
               else ('*' if pval < 0.05 else 'n.s.'))) if not np.isnan(pval) else 'fixed'
        rows.append({
            'Label':    label.value,
            'Path':     f'{rval} → {lval}',
            'Estimate': _flt(r.get('Estimate', np.nan)),
            'Std. Est': _flt(r.get('Est. Std', np.nan)),
            'SE':       _flt(r.get('Std. Err', np.nan)),
            'z':        _flt(r.get('z-value', np.nan)),
            'p':        pval,
            'Sig.':     sig,
        })
    return pd.DataFrame(rows).set_index('Label')
