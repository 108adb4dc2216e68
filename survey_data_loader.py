"""
Survey data loading, schema validation and composite scores.
Used by hypothesis_tests.py, factor_diagnostics.py, sem_analysis.py and run_analysis.py.
Accepts CSV or Excel files with one row per respondent.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from analysis_config import (CONSTRUCTS, SCORED_COLS, DEMO_COLS, OUTPUT_DIR,
                             CHART_DIR, N_BOOTSTRAP, CI_LEVEL, MAX_FAILURE_RATE,
                             SEM_MAX_ITER)

logger = logging.getLogger(__name__)


class SchemaError(ValueError):
    """Dataset does not match the declared survey schema."""


@dataclass(frozen=True)
class Column:
    name: str
    label: str = ''
    required: bool = True
    dtype: str = 'numeric'


@dataclass(frozen=True)
class SurveySchema:
    columns: tuple

    @property
    def names(self) -> list:
        return [c.name for c in self.columns]

    @property
    def required(self) -> list:
        return [c.name for c in self.columns if c.required]

    def numeric(self, present: Optional[list] = None) -> list:
        cols = [c.name for c in self.columns if c.dtype == 'numeric']
        if present is None:
            return cols
        return [c for c in cols if c in present]


def default_schema() -> SurveySchema:
    """Item columns of every construct, scored variables and demographics."""
    cols = []
    for key, info in CONSTRUCTS.items():
        for item in info['cols']:
            cols.append(Column(item, f"{key} item"))
    for name, info in SCORED_COLS.items():
        cols.append(Column(name, info['label'], required=info['required']))
    for name, label in DEMO_COLS.items():
        cols.append(Column(name, label, required=False))
    return SurveySchema(tuple(cols))


def validate_frame(df: pd.DataFrame, schema: SurveySchema) -> pd.DataFrame:
    """
    Check required columns once and coerce numeric columns.
    Non-numeric cells become NaN. Returns a new frame; the input is untouched.
    """
    missing = [c for c in schema.required if c not in df.columns]
    if missing:
        raise SchemaError(f"missing required columns: {', '.join(missing)}")

    out = df.copy()
    numeric = schema.numeric(present=list(out.columns))
    out[numeric] = out[numeric].apply(pd.to_numeric, errors='coerce')

    absent = [c for c in schema.names if c not in df.columns]
    if absent:
        logger.info(f"optional columns not present: {', '.join(absent)}")
    return out


def load_data(file_path, schema: Optional[SurveySchema] = None) -> pd.DataFrame:
    """Read a survey CSV/XLSX and validate it against the schema."""
    path = Path(file_path)
    if path.suffix.lower() in ('.xlsx', '.xls'):
        df = pd.read_excel(path)
    else:
        df = pd.read_csv(path, encoding='utf-8-sig')
    logger.info(f"loaded {path}: {len(df)} rows x {len(df.columns)} columns")
    return validate_frame(df, schema or default_schema())


def build_composites(data: pd.DataFrame, constructs: Optional[dict] = None) -> pd.DataFrame:
    """
    Append one composite per construct: row mean of the present items.
    A row with every item missing gets NaN, not 0.
    """
    constructs = constructs or CONSTRUCTS
    out = data.copy()
    for key, info in constructs.items():
        cols = info['cols']
        missing = [c for c in cols if c not in out.columns]
        if missing:
            raise SchemaError(f"{key}: item columns not found: {', '.join(missing)}")
        out[key] = out[cols].mean(axis=1, skipna=True)
        n_nan = int(out[key].isna().sum())
        if n_nan:
            logger.warning(f"{key}: {n_nan} rows have no items answered, composite is NaN")
    return out


# ══════════════════════════════════════════════════════════════════════════════
# ── Analysis context ──────────────────────────────────────────────────────────
# ══════════════════════════════════════════════════════════════════════════════

@dataclass
class AnalysisContext:
    """Everything an analysis step needs, passed explicitly."""
    data: pd.DataFrame
    schema: SurveySchema = field(default_factory=default_schema)
    out_dir: Path = OUTPUT_DIR
    chart_dir: Path = CHART_DIR
    n_bootstrap: int = N_BOOTSTRAP
    ci_level: float = CI_LEVEL
    max_failure_rate: float = MAX_FAILURE_RATE
    seed: Optional[int] = None
    max_iter: int = SEM_MAX_ITER

    @property
    def n(self) -> int:
        return len(self.data)

    def has(self, *cols) -> bool:
        return all(c in self.data.columns for c in cols)

    def rng(self) -> np.random.Generator:
        return np.random.default_rng(self.seed)


def make_context(data: pd.DataFrame, schema: Optional[SurveySchema] = None,
                 constructs: Optional[dict] = None, **settings) -> AnalysisContext:
    """Validate, append composites and wrap the frame in a context."""
    schema = schema or default_schema()
    scored = build_composites(validate_frame(data, schema), constructs)
    return AnalysisContext(data=scored, schema=schema, **settings)
