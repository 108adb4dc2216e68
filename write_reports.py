"""
write_reports.py
================
Write result tables to Word documents (python-docx), one analysis per file:
a level-1 heading followed by one bordered table.

    Model_H1A_Summary.docx, TTest_Results_ENT_BIN.docx, ANOVA_Results_RP_Q4.docx,
    Correlation_H2A_Results.docx, KMO_Bartlett_Results.docx,
    Mediation_Effects_Summary.docx, ...
"""

import logging
from pathlib import Path

import numpy as np
import pandas as pd
from docx import Document
from docx.shared import Inches, Pt
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.enum.table import WD_TABLE_ALIGNMENT
from docx.oxml.ns import qn
from docx.oxml import OxmlElement

logger = logging.getLogger(__name__)

P_COLUMNS = {'p', 'p-value', 'p(χ²)', 'Bartlett p', 'f_p'}


# ── Helpers ──────────────────────────────────────────────────────────────────
def fmt(v, n=3):
    if v is None or (isinstance(v, float) and np.isnan(v)):
        return ''
    if isinstance(v, (int, np.integer)):
        return str(v)
    try: return f'{float(v):.{n}f}'
    except (TypeError, ValueError): return str(v)


def fmt_p(v):
    try: v = float(v)
    except (TypeError, ValueError): return str(v)
    if np.isnan(v): return ''
    return '<.001' if v < 0.001 else f'{v:.3f}'


def add_borders(tbl, color='AAAAAA'):
    tblPr = tbl._tbl.tblPr
    tblBorders = OxmlElement('w:tblBorders')
    for bn in ('top', 'left', 'bottom', 'right', 'insideH', 'insideV'):
        b = OxmlElement(f'w:{bn}'); b.set(qn('w:val'), 'single')
        b.set(qn('w:sz'), '4'); b.set(qn('w:space'), '0')
        b.set(qn('w:color'), color); tblBorders.append(b)
    tblPr.append(tblBorders)


def add_table(doc, headers, rows, col_widths=None):
    table = doc.add_table(rows=1, cols=len(headers))
    table.alignment = WD_TABLE_ALIGNMENT.CENTER
    add_borders(table)
    hdr = table.rows[0].cells
    for i, h in enumerate(headers):
        hdr[i].text = str(h)
        for run in hdr[i].paragraphs[0].runs:
            run.bold = True; run.font.size = Pt(10)
        hdr[i].paragraphs[0].alignment = WD_ALIGN_PARAGRAPH.CENTER
        if col_widths: hdr[i].width = Inches(col_widths[i])
    for row_data in rows:
        rc = table.add_row().cells
        for j, val in enumerate(row_data):
            rc[j].text = str(val)
            for run in rc[j].paragraphs[0].runs: run.font.size = Pt(10)
            rc[j].paragraphs[0].alignment = WD_ALIGN_PARAGRAPH.CENTER
            if col_widths: rc[j].width = Inches(col_widths[j])
    return table


def table_rows(table: pd.DataFrame) -> tuple:
    """Headers and formatted rows, index first."""
    index_name = table.index.name or ''
    headers = [index_name] + [str(c) for c in table.columns]
    rows = []
    for idx, r in table.iterrows():
        cells = [str(idx)]
        for col, v in r.items():
            cells.append(fmt_p(v) if col in P_COLUMNS else fmt(v))
        rows.append(cells)
    return headers, rows


# ── Public interface ─────────────────────────────────────────────────────────
def export_table(table: pd.DataFrame, title: str, name: str, out_dir) -> Path:
    """Write `table` under heading `title` to <out_dir>/<name>.docx."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / f'{name}.docx'

    doc = Document()
    doc.add_heading(title, level=1)
    headers, rows = table_rows(table)
    add_table(doc, headers, rows)
    doc.save(str(path))
    logger.info(f'  saved: {path}')
    return path


def export_tables(tables: dict, title: str, name: str, out_dir) -> Path:
    """Several tables in one document, each under a level-2 heading."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / f'{name}.docx'

    doc = Document()
    doc.add_heading(title, level=1)
    for sub, table in tables.items():
        doc.add_heading(sub, level=2)
        headers, rows = table_rows(table)
        add_table(doc, headers, rows)
        doc.add_paragraph()
    doc.save(str(path))
    logger.info(f'  saved: {path}')
    return path
