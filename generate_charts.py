"""
generate_charts.py
==================
Descriptive charts, saved as <chart_dir>/<name>.png:

  boxplot_by_group()         DEPNDT by a grouping column, box + jittered points
  histogram()                distribution of one variable (e.g. TENURE, bin width 1)
  composite_distribution()   violin + box profile of the composite scores
"""

import logging
from pathlib import Path

import numpy as np
import pandas as pd
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import seaborn as sns
from matplotlib import rcParams

from analysis_config import CONSTRUCTS, CHART_DIR

logger = logging.getLogger(__name__)

# ── Style ────────────────────────────────────────────────────────────────────
rcParams['font.family'] = ['DejaVu Sans']
rcParams['axes.unicode_minus'] = False

C_BLUE   = '#2E4057'
C_AMBER  = '#F4A261'
C_ORANGE = '#E76F51'
C_GRAY   = '#8D99AE'
C_TEAL   = '#048A81'
C_SKY    = '#87CEEB'

PALETTE = [C_BLUE, C_TEAL, C_AMBER, C_ORANGE, C_GRAY]


def save(fig, name, chart_dir=CHART_DIR, dpi=220) -> Path:
    chart_dir = Path(chart_dir)
    chart_dir.mkdir(parents=True, exist_ok=True)
    path = chart_dir / f'{name}.png'
    fig.savefig(path, dpi=dpi, bbox_inches='tight', facecolor='white')
    plt.close(fig)
    logger.info(f'  saved: {path}')
    return path


def boxplot_by_group(df: pd.DataFrame, x: str, y: str, name: str,
                     chart_dir=CHART_DIR) -> Path:
    """One box of `y` per level of `x`, with jittered raw points."""
    d = df[[x, y]].dropna()
    order = sorted(d[x].unique())
    width = min(14, max(6, 0.6 * len(order)))
    fig, ax = plt.subplots(figsize=(width, 5))
    sns.boxplot(data=d, x=x, y=y, order=order, color=C_SKY,
                fliersize=0, linewidth=1.2, ax=ax)
    sns.stripplot(data=d, x=x, y=y, order=order, color=C_BLUE,
                  size=3.5, alpha=0.6, jitter=0.2, ax=ax)
    ax.set_title(f'{y} by {x}', fontsize=13, fontweight='bold', pad=10)
    ax.set_xlabel(x, fontsize=11)
    ax.set_ylabel(y, fontsize=11)
    if len(order) > 10:
        plt.setp(ax.get_xticklabels(), rotation=45, ha='right', fontsize=8)
    ax.spines[['top', 'right']].set_visible(False)
    plt.tight_layout()
    return save(fig, name, chart_dir)


def histogram(df: pd.DataFrame, col: str, name: str, chart_dir=CHART_DIR,
              binwidth=1, title=None, xlabel=None) -> Path:
    x = df[col].dropna()
    if x.empty:
        raise ValueError(f'{col}: no observations to plot')
    lo, hi = np.floor(x.min()), np.ceil(x.max())
    bins = np.arange(lo, hi + binwidth + 1e-9, binwidth)
    fig, ax = plt.subplots(figsize=(8, 5))
    ax.hist(x, bins=bins, color=C_SKY, edgecolor='black')
    ax.set_title(title or f'{col} Distribution', fontsize=13, fontweight='bold', pad=10)
    ax.set_xlabel(xlabel or col, fontsize=11)
    ax.set_ylabel('Frequency', fontsize=11)
    ax.spines[['top', 'right']].set_visible(False)
    plt.tight_layout()
    return save(fig, name, chart_dir)


def composite_distribution(df: pd.DataFrame, keys=None, name='Composite_Distribution',
                           chart_dir=CHART_DIR) -> Path:
    """Violin + box per composite score, mean marked and labelled."""
    keys = [k for k in (keys or list(CONSTRUCTS)) if k in df.columns]
    plot_data = [df[k].dropna().values for k in keys]

    fig, ax = plt.subplots(figsize=(max(6, 2.2 * len(keys)), 5.5))
    vp = ax.violinplot(plot_data, positions=range(len(keys)),
                       showmedians=False, showextrema=False, widths=0.75)
    for body, color in zip(vp['bodies'], PALETTE):
        body.set_facecolor(color)
        body.set_edgecolor('white')
        body.set_alpha(0.7)

    ax.boxplot(plot_data, positions=range(len(keys)), widths=0.15,
               patch_artist=True,
               medianprops=dict(color='white', linewidth=2.5),
               boxprops=dict(facecolor='none', edgecolor='#333', linewidth=1.5),
               whiskerprops=dict(color='#555', linewidth=1.2),
               capprops=dict(color='#555', linewidth=1.5),
               flierprops=dict(marker='o', color='#999', markersize=3, alpha=0.6))

    for i, vals in enumerate(plot_data):
        m = vals.mean()
        ax.plot(i, m, 'D', color='white', markersize=7, zorder=5,
                markeredgecolor='#333', markeredgewidth=1.5)
        ax.annotate(f'{m:.2f}', (i, m), textcoords='offset points', xytext=(18, 0),
                    fontsize=9, fontweight='bold', color=PALETTE[i % len(PALETTE)])

    ax.set_xticks(range(len(keys)))
    ax.set_xticklabels([CONSTRUCTS.get(k, {}).get('label', k) for k in keys], fontsize=10)
    ax.set_ylabel('Composite score', fontsize=11)
    ax.set_title('Composite score distributions (violin + box)', fontsize=13,
                 fontweight='bold', pad=10)
    ax.spines[['top', 'right']].set_visible(False)
    plt.tight_layout()
    return save(fig, name, chart_dir)
