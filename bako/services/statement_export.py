"""
Export Excel (openpyxl) du relevé importé et du journal CMI.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple, Union

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from bako.models.cmi import CMIJournalEntry
from bako.models.common import fr_date, round2, to_float
from bako.models.statement import (
    NumberCell,
    StatementRow,
    cell_amount,
    cell_date,
    cell_display,
    is_amount_header,
    is_date_header,
    is_label_header,
)

logger = logging.getLogger(__name__)

SHEET_TITLE = "Données"
TOTAL_LABEL = "TOTAUX"
POINTAGE = "Pointage"
DROPPED_KEYWORDS = ("détail", "detail", "valeur")
CMI_HEADERS = ["Date", "CMI Brut", "Commission", "TVA", "CMI Net", POINTAGE]

HEADER_FILL = PatternFill(start_color="F2F2F2", end_color="F2F2F2", fill_type="solid")
HEADER_FONT = Font(bold=True, size=12, color="000000")
_thin = Side(style="thin", color="000000")
_medium = Side(style="medium", color="000000")
THIN_BORDER = Border(top=_thin, bottom=_thin, left=_thin, right=_thin)
MEDIUM_BORDER = Border(top=_medium, bottom=_medium, left=_medium, right=_medium)

Table = Tuple[List[str], List[List[Any]]]


def _num_or_empty(value: float) -> Optional[float]:
    return None if value == 0 else value


def _is_credit(header: str) -> bool:
    h = header.lower()
    return "crédit" in h or "credit" in h


def column_width(header: str) -> int:
    h = header.lower()
    if "date" in h:
        return 18
    if is_label_header(header):
        return 45
    if any(kw in h for kw in ("débit", "debit", "crédit", "credit", "montant")):
        return 20
    if "pointage" in h:
        return 10
    return 25


# ---------------- Tables ---------------- #

def _export_value(header: str, cell) -> Any:
    if is_date_header(header):
        d = cell_date(cell)
        return d.strftime("%d/%m/%Y") if d else cell_display(cell)
    if is_amount_header(header):
        return _num_or_empty(cell_amount(cell))
    if isinstance(cell, NumberCell):
        return cell.value
    return cell_display(cell)


def statement_table(rows: Sequence[StatementRow], headers: Sequence[str]) -> Table:
    """En-têtes exportés (sans détail/valeur, + Pointage) et lignes, pied TOTAUX compris."""
    kept = [h for h in headers if not any(kw in h.lower() for kw in DROPPED_KEYWORDS)]
    out_headers: List[str] = []
    for h in kept:
        out_headers.append(h)
        if _is_credit(h) and POINTAGE not in out_headers:
            out_headers.append(POINTAGE)
    if POINTAGE not in out_headers:
        out_headers.append(POINTAGE)

    body: List[List[Any]] = []
    for row in rows:
        body.append([None if h == POINTAGE else _export_value(h, row.get(h)) for h in out_headers])

    amount_cols = [h for h in kept[1:] if is_amount_header(h)]
    if amount_cols:
        footer: List[Any] = []
        for idx, h in enumerate(out_headers):
            if idx == 0:
                footer.append(TOTAL_LABEL)
            elif h in amount_cols:
                footer.append(_num_or_empty(round2(sum(cell_amount(r.get(h)) for r in rows))))
            else:
                footer.append(None)
        body.append(footer)
    return out_headers, body


def cmi_table(entries: Sequence[CMIJournalEntry]) -> Table:
    body: List[List[Any]] = []
    totals = [0.0, 0.0, 0.0, 0.0]
    for e in entries:
        values = [to_float(e.brut), to_float(e.commission), to_float(e.tva), to_float(e.net)]
        totals = [t + v for t, v in zip(totals, values)]
        body.append([fr_date(e.date)] + [_num_or_empty(v) for v in values] + [None])
    body.append([TOTAL_LABEL] + [_num_or_empty(round2(t)) for t in totals] + [None])
    return list(CMI_HEADERS), body


# ---------------- Écriture ---------------- #

def write_table(table: Table, path: Union[str, Path]) -> Path:
    headers, body = table
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE
    ws.append(headers)
    for values in body:
        ws.append(values)

    for col_idx, header in enumerate(headers, start=1):
        ws.column_dimensions[get_column_letter(col_idx)].width = column_width(header)

    for row in ws.iter_rows(min_row=1, max_row=ws.max_row, max_col=len(headers)):
        is_header = row[0].row == 1
        is_footer = TOTAL_LABEL in str(row[0].value or "")
        for cell in row:
            if is_header or is_footer:
                cell.fill = HEADER_FILL
                cell.font = HEADER_FONT
                cell.border = MEDIUM_BORDER
                if is_header:
                    cell.alignment = Alignment(horizontal="center", vertical="center")
            else:
                cell.border = THIN_BORDER
            if isinstance(cell.value, (int, float)) and not isinstance(cell.value, bool):
                cell.number_format = "0.00"

    wb.save(path)
    logger.info("Export Excel : %s (%d lignes)", path, len(body))
    return path


def export_statement(
    rows: Sequence[StatementRow],
    headers: Sequence[str],
    dest_dir: Union[str, Path],
    sheet_name: Optional[str] = None,
) -> Path:
    filename = f"Bako_Releve_{sheet_name or 'Import'}.xlsx"
    return write_table(statement_table(rows, headers), Path(dest_dir) / filename)


def export_cmi_journal(entries: Sequence[CMIJournalEntry], month: str, dest_dir: Union[str, Path]) -> Path:
    return write_table(cmi_table(entries), Path(dest_dir) / f"Bako_CMI_{month}.xlsx")
