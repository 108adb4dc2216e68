"""
analysis_config.py
==================
Fixed analysis constants: construct item groups, hypothesis list,
correlation sets, mediation variables and bootstrap defaults.
run_analysis.py overrides the run-time values from the command line.
"""

from pathlib import Path

# ── Constructs (composite = row mean of its items) ───────────────────────────
CONSTRUCTS = {
    'EO': {'label': 'Entrepreneurial Orientation',
           'cols': ['EO1', 'EO2', 'EO3', 'EO4', 'EO5',
                    'EO6', 'EO7', 'EO8', 'EO9', 'EO10']},
    'RP': {'label': 'Risk Perception',
           'cols': ['RP1', 'RP2', 'RP5', 'RP6', 'RP7', 'RP8']},
}

# Respondent-level scored variables
SCORED_COLS = {
    'ENT':    {'label': 'Entrepreneurial attitude',    'required': True},
    'DEPNDT': {'label': 'Resource decision (outcome)', 'required': True},
    'BIZDEG': {'label': 'Degree of business orientation', 'required': False},
}

DEMO_COLS = {
    'TENURE': 'Years with firm',
    'EDU':    'Education',
    'FRMSIZ': 'Firm size',
}

# ── Hypotheses ───────────────────────────────────────────────────────────────
# (id, dependent, predictor, description)
REGRESSION_HYPOTHESES = [
    ('H1A', 'DEPNDT', 'ENT',    'ENT → DEPNDT'),
    ('H1B', 'DEPNDT', 'BIZDEG', 'BIZDEG → DEPNDT'),
    ('H4A', 'ENT',    'EO',     'EO → ENT'),
    ('H4B', 'BIZDEG', 'EO',     'EO → BIZDEG'),
    ('H5A', 'ENT',    'RP',     'RP → ENT'),
    ('H5B', 'BIZDEG', 'RP',     'RP → BIZDEG'),
]

# (id, subset column, columns); rows are restricted to those with the subset column present
CORRELATION_SETS = [
    ('H2A', 'ENT',    ['DEPNDT'] + CONSTRUCTS['RP']['cols']),
    ('H2B', 'BIZDEG', ['DEPNDT'] + CONSTRUCTS['RP']['cols']),
    ('H3A', 'ENT',    ['DEPNDT'] + CONSTRUCTS['EO']['cols']),
    ('H3B', 'BIZDEG', ['DEPNDT'] + CONSTRUCTS['EO']['cols']),
]

FACTOR_VARS = ['EO', 'RP', 'ENT', 'DEPNDT']

# Variables for one-sample z tests of the mean
Z_TEST_VARS = ['DEPNDT', 'EO', 'RP', 'TENURE', 'EDU', 'FRMSIZ']
Z_TEST_POP_SD = 1.0

# ── Mediation ────────────────────────────────────────────────────────────────
MEDIATION_X = 'ENT'
MEDIATION_MEDIATORS = ('EO', 'RP')
MEDIATION_Y = 'DEPNDT'

N_BOOTSTRAP = 5000
CI_LEVEL = 0.95
MAX_FAILURE_RATE = 0.05

SEM_SOLVER = 'SLSQP'
SEM_MAX_ITER = 1000
# smallest / largest eigenvalue of the correlation matrix below this → singular
COLLINEARITY_TOL = 1e-8

# ── Group comparisons ────────────────────────────────────────────────────────
MAX_GROUP_LEVELS = 10
N_QUANTILE_GROUPS = 4

# ── Output ───────────────────────────────────────────────────────────────────
OUTPUT_DIR = Path('reports')
CHART_DIR = Path('charts')
