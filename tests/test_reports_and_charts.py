import numpy as np
import pandas as pd
import pytest
from docx import Document

import generate_charts as charts
from write_reports import export_table, export_tables, fmt, fmt_p


def test_export_table_writes_heading_and_table(tmp_path):
    table = pd.DataFrame({'Value': [812.4567, 820.1]},
                         index=pd.Index(['AIC', 'BIC'], name='Statistic'))
    path = export_table(table, 'Regression Model Summary (H1A)', 'Model_H1A_Summary', tmp_path)
    assert path == tmp_path / 'Model_H1A_Summary.docx'

    doc = Document(str(path))
    assert doc.paragraphs[0].text == 'Regression Model Summary (H1A)'
    assert len(doc.tables) == 1
    cells = [[c.text for c in row.cells] for row in doc.tables[0].rows]
    assert cells[0] == ['Statistic', 'Value']
    assert cells[1] == ['AIC', '812.457']


def test_p_values_formatted(tmp_path):
    table = pd.DataFrame({'effect': [0.5], 'p': [0.00001]}, index=['c'])
    doc = Document(str(export_table(table, 'Effects', 'Effects', tmp_path)))
    assert doc.tables[0].rows[1].cells[2].text == '<.001'


def test_export_tables_one_table_per_section(tmp_path):
    tables = {'A': pd.DataFrame({'x': [1.0]}), 'B': pd.DataFrame({'y': [2.0]})}
    doc = Document(str(export_tables(tables, 'Both', 'Both_Summary', tmp_path)))
    assert len(doc.tables) == 2


def test_formatters():
    assert fmt(1.23456) == '1.235'
    assert fmt(np.nan) == ''
    assert fmt(7) == '7'
    assert fmt_p(0.0456) == '0.046'


def test_boxplot_and_histogram(ctx):
    box = charts.boxplot_by_group(ctx.data, 'ENT', 'DEPNDT', 'Boxplot_DEPNDT_by_ENT', ctx.chart_dir)
    hist = charts.histogram(ctx.data, 'TENURE', 'Histogram_TENURE', ctx.chart_dir)
    dist = charts.composite_distribution(ctx.data, chart_dir=ctx.chart_dir)
    for p in (box, hist, dist):
        assert p.exists() and p.suffix == '.png'
    assert box.name == 'Boxplot_DEPNDT_by_ENT.png'


def test_histogram_of_empty_column_fails(ctx, tmp_path):
    df = pd.DataFrame({'TENURE': [np.nan, np.nan]})
    with pytest.raises(ValueError):
        charts.histogram(df, 'TENURE', 'empty', tmp_path)
