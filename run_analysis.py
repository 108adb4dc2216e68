"""
Private lending decision survey — full analysis run
====================================================
Runs every analysis once on a cleaned survey file and writes the .docx
tables and .png charts.

Usage:
    python run_analysis.py --data survey_clean.csv

    # reproducible bootstrap, fewer resamples for a quick check
    python run_analysis.py --data survey_clean.xlsx --n-bootstrap 500 --seed 42

    python run_analysis.py \\
        --data survey_clean.csv \\
        --out-dir reports \\
        --chart-dir charts \\
        --n-bootstrap 5000 \\
        --ci-level 0.95 \\
        --seed 2026
"""

import argparse
import logging

import pandas as pd

import analysis_config as cfg
import factor_diagnostics as fd
import generate_charts as charts
import hypothesis_tests as ht
from sem_analysis import fit_mediation, path_table
from sem_effects import mediation_effects, mediation_summary
from survey_data_loader import load_data, make_context, AnalysisContext
from write_reports import export_table, export_tables

logger = logging.getLogger(__name__)


# ============================================================
# § Steps
# ============================================================

def run_descriptives(ctx: AnalysisContext) -> pd.DataFrame:
    cols = [c for c in ['DEPNDT', 'ENT', 'BIZDEG', *cfg.CONSTRUCTS, *cfg.DEMO_COLS]
            if c in ctx.data.columns]
    table = ht.describe(ctx.data, cols)
    export_table(table, 'Descriptive Statistics', 'Descriptive_Statistics_Summary', ctx.out_dir)
    return table


def run_regressions(ctx: AnalysisContext) -> dict:
    results = {}
    for h_id, y, x, desc in cfg.REGRESSION_HYPOTHESES:
        if not ctx.has(y, x):
            logger.warning(f"{h_id} ({desc}) skipped: column not present")
            continue
        r = ht.run_regression(ctx, y, x)
        logger.info(f"{h_id} {desc}: b = {r['coef']:.3f}, p = {r['p']:.4f}, R² = {r['r2']:.3f}")
        export_tables(
            {'Coefficients': ht.regression_table(r), 'Model fit': ht.fit_statistics_table(r)},
            f'Regression Model Summary ({h_id})', f'Model_{h_id}_Summary', ctx.out_dir)
        results[h_id] = r
    return results


def run_correlations(ctx: AnalysisContext) -> dict:
    results = {}
    for h_id, subset_col, cols in cfg.CORRELATION_SETS:
        if not ctx.has(subset_col, *cols):
            logger.warning(f"{h_id} correlation skipped: column not present")
            continue
        corr = ht.correlation_matrix(ht.subset_present(ctx.data, subset_col), cols)
        export_table(corr, f'Correlation Matrix ({h_id})', f'Correlation_{h_id}_Results', ctx.out_dir)
        results[h_id] = corr
    return results


def grouping_frame(ctx: AnalysisContext) -> pd.DataFrame:
    """Explicit group factors derived from the scored variables; ctx.data is left as is."""
    groups = ctx.data.copy()
    groups['ENT_BIN'] = ht.recode_binary(ctx.data['ENT'])
    for key in cfg.CONSTRUCTS:
        col = ht.quantile_groups(ctx.data[key])
        groups[col.name] = col
    return groups


def run_group_tests(ctx: AnalysisContext, groups: pd.DataFrame) -> dict:
    results = {}
    group_cols = ['ENT_BIN'] + [f'{k}_Q{cfg.N_QUANTILE_GROUPS}' for k in cfg.CONSTRUCTS]
    for g in group_cols:
        r = ht.compare_groups(groups, 'DEPNDT', g)
        prefix = 'TTest' if r['test'] == 't-test' else 'ANOVA'
        export_table(ht.group_test_table(r), f"{r['test']}: DEPNDT by {g}",
                     f'{prefix}_Results_{g}', ctx.out_dir)
        results[g] = r
    return results


def run_factor_suitability(ctx: AnalysisContext) -> dict:
    result = fd.factor_suitability(ctx, cfg.FACTOR_VARS)
    export_table(fd.suitability_table(result), 'KMO and Bartlett Tests',
                 'KMO_Bartlett_Results', ctx.out_dir)
    return result


def run_mediation(ctx: AnalysisContext) -> dict:
    fit = fit_mediation(ctx)
    effects = mediation_effects(fit)
    summary = mediation_summary(fit)
    logger.info('\n' + effects.to_string(float_format='{:.3f}'.format))

    export_table(effects, 'Direct, Indirect and Total Effects',
                 'Mediation_Effects_Summary', ctx.out_dir)
    fit_tab = pd.DataFrame({'Value': pd.Series(fit.fit_summary)})
    r2_tab = pd.DataFrame({'R²': pd.Series(fit.r2)})
    export_tables(
        {'Structural paths': path_table(fit),
         'Direct effect': summary['direct'],
         'Indirect effects': summary['indirect'],
         'Total indirect effect': summary['total_indirect'],
         'Total effect': summary['total'],
         'Fit indices': fit_tab,
         'R²': r2_tab},
        f'Mediation Model (N = {fit.n_obs}, {len(fit.boot)} bootstrap resamples)',
        'Mediation_Model_Summary', ctx.out_dir)
    return {'fit': fit, 'effects': effects, 'summary': summary}


def run_charts(ctx: AnalysisContext, groups: pd.DataFrame) -> list:
    paths = []
    for g in ['ENT', 'ENT_BIN'] + [f'{k}_Q{cfg.N_QUANTILE_GROUPS}' for k in cfg.CONSTRUCTS]:
        paths.append(charts.boxplot_by_group(groups, g, 'DEPNDT',
                                             f'Boxplot_DEPNDT_by_{g}', ctx.chart_dir))
    if ctx.has('TENURE') and ctx.data['TENURE'].notna().any():
        paths.append(charts.histogram(ctx.data, 'TENURE', 'Histogram_TENURE', ctx.chart_dir,
                                      title='Employee Tenure Distribution',
                                      xlabel='Years with Firm'))
    paths.append(charts.composite_distribution(ctx.data, chart_dir=ctx.chart_dir))
    return paths


def run_z_tests(ctx: AnalysisContext) -> pd.DataFrame:
    table = ht.z_tests(ctx.data, cfg.Z_TEST_VARS)
    export_table(table, f'One-sample Z Tests (population SD = {cfg.Z_TEST_POP_SD})',
                 'ZTest_Results', ctx.out_dir)
    return table


def run_all(ctx: AnalysisContext) -> dict:
    logger.info(f"analysis start | N = {ctx.n} | bootstrap = {ctx.n_bootstrap} | seed = {ctx.seed}")
    logger.info("-" * 60)
    groups = grouping_frame(ctx)
    results = {
        'descriptives': run_descriptives(ctx),
        'regressions':  run_regressions(ctx),
        'correlations': run_correlations(ctx),
        'group_tests':  run_group_tests(ctx, groups),
        'factor':       run_factor_suitability(ctx),
        'mediation':    run_mediation(ctx),
        'z_tests':      run_z_tests(ctx),
        'charts':       run_charts(ctx, groups),
    }
    logger.info("-" * 60)
    logger.info(f"done | reports: {ctx.out_dir} | charts: {ctx.chart_dir}")
    return results


# ============================================================
# § CLI
# ============================================================

def main(argv=None) -> None:
    parser = argparse.ArgumentParser(
        description="Private lending decision survey — regression, correlation, "
                    "group tests, KMO/Bartlett and bootstrap mediation SEM",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--data",        type=str,   required=True,
                        help="cleaned survey file (.csv or .xlsx)")
    parser.add_argument("--out-dir",     type=str,   default=str(cfg.OUTPUT_DIR),
                        help="directory for .docx tables")
    parser.add_argument("--chart-dir",   type=str,   default=str(cfg.CHART_DIR),
                        help="directory for .png charts")
    parser.add_argument("--n-bootstrap", type=int,   default=cfg.N_BOOTSTRAP,
                        help="bootstrap resamples for the mediation SEM")
    parser.add_argument("--ci-level",    type=float, default=cfg.CI_LEVEL,
                        help="bootstrap confidence level")
    parser.add_argument("--max-iter",    type=int,   default=cfg.SEM_MAX_ITER,
                        help="optimiser iteration limit for each SEM fit")
    parser.add_argument("--seed",        type=int,   default=None,
                        help="bootstrap random seed (set for reproducible intervals)")
    parser.add_argument("--log-level",   type=str,   default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.seed is None:
        logger.warning("no --seed given, bootstrap intervals will differ between runs")

    raw = load_data(args.data)
    ctx = make_context(raw, out_dir=args.out_dir, chart_dir=args.chart_dir,
                       n_bootstrap=args.n_bootstrap, ci_level=args.ci_level,
                       max_iter=args.max_iter, seed=args.seed)
    run_all(ctx)


if __name__ == "__main__":
    main()
