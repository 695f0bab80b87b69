"""
Import de relevés bancaires (xlsx) et compression des lignes TPE.

Pipeline en mémoire uniquement : lecture du classeur, choix de la feuille,
normalisation des cellules, compression optionnelle. Rien n'est écrit dans
le journal de banque.
"""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Union

from openpyxl import load_workbook

from bako.models.common import round2
from bako.models.statement import (
    NumberCell,
    StatementRow,
    StatementSheet,
    StatementWorkbook,
    TextCell,
    cell_amount,
    cell_display,
    cell_raw_text,
    cell_sort_key,
    is_amount_header,
    is_date_header,
    is_label_header,
    to_cell,
)

logger = logging.getLogger(__name__)

EMPTY_HEADER = "__EMPTY"
TPE_TOKEN = "TPE"

_INTERNAL_DATE = re.compile(r"(\d{2}/\d{2}/\d{2})")
_TERMINAL_ID = re.compile(r"(\d{8,12})")


# ---------------- Lecture du classeur ---------------- #

def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def make_headers(raw: Sequence[Any]) -> List[str]:
    """En-têtes uniques : vide -> __EMPTY, doublons suffixés _1, _2..."""
    seen: Dict[str, int] = {}
    used: Set[str] = set()
    out: List[str] = []
    for value in raw:
        base = EMPTY_HEADER if _is_blank(value) else str(value).strip()
        n = seen.get(base, 0)
        name = base if n == 0 else f"{base}_{n}"
        # un en-tête réel peut déjà porter le nom suffixé ("A", "A", "A_1")
        while name in used:
            n += 1
            name = f"{base}_{n}"
        seen[base] = n + 1
        used.add(name)
        out.append(name)
    return out


def parse_sheet(name: str, grid: Sequence[Sequence[Any]]) -> StatementSheet:
    it = iter(grid)
    header_row = next(it, None)
    if header_row is None:
        return StatementSheet(name=name)
    headers = make_headers(header_row)

    rows: List[StatementRow] = []
    for raw in it:
        if all(_is_blank(v) for v in raw):
            continue
        values = list(raw) + [None] * (len(headers) - len(raw))
        rows.append(StatementRow(cells={h: to_cell(v, h) for h, v in zip(headers, values)}))
    return StatementSheet(name=name, headers=headers, rows=rows)


def parse_workbook(grids: Mapping[str, Sequence[Sequence[Any]]]) -> StatementWorkbook:
    """{nom de feuille: grille de valeurs brutes} -> StatementWorkbook"""
    return StatementWorkbook(sheets=[parse_sheet(name, grid) for name, grid in grids.items()])


def read_workbook(path: Union[str, Path]) -> StatementWorkbook:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Relevé introuvable : {path}")

    wb = load_workbook(filename=path, read_only=True, data_only=True)
    try:
        grids = {ws.title: [list(r) for r in ws.iter_rows(values_only=True)] for ws in wb.worksheets}
    finally:
        wb.close()
    book = parse_workbook(grids)
    logger.info("Relevé %s : %d feuille(s)", path.name, len(book.sheets))
    return book


def load(sheet: StatementSheet) -> List[StatementRow]:
    return [r.model_copy(deep=True) for r in sheet.rows]


# ---------------- Compression TPE ---------------- #

def _summary_label(internal_date: str, terminal_id: str) -> str:
    return f"{internal_date} Cumul TPE {terminal_id}" if internal_date else f"Cumul TPE {terminal_id}"


def sort_rows(rows: List[StatementRow], headers: Sequence[str]) -> List[StatementRow]:
    """Tri stable croissant sur la première colonne "date" (date illisible = epoch)."""
    date_header = next((h for h in headers if is_date_header(h)), None)
    if date_header is None:
        return list(rows)
    return sorted(rows, key=lambda r: cell_sort_key(r.get(date_header)))


def compress(rows: Sequence[StatementRow], headers: Sequence[str]) -> List[StatementRow]:
    """
    Regroupe les lignes TPE par (date banque, date interne JJ/MM/AA, n° terminal).
    Colonnes montant : sommées (arrondi 2 décimales à chaque ajout).
    Colonnes descriptives : "<date interne> Cumul TPE <terminal>".
    Les autres lignes passent telles quelles.
    """
    date_header = next((h for h in headers if is_date_header(h)), None)
    grouped: Dict[tuple, StatementRow] = {}
    others: List[StatementRow] = []

    for row in rows:
        text = row.text()
        if TPE_TOKEN not in text:
            others.append(row)
            continue

        bank_date = cell_display(row.get(date_header)) if date_header else ""
        m_date = _INTERNAL_DATE.search(text)
        m_term = _TERMINAL_ID.search(text)
        internal_date = m_date.group(1) if m_date else ""
        terminal_id = m_term.group(1) if m_term else TPE_TOKEN
        key = (bank_date, internal_date, terminal_id)

        group = grouped.get(key)
        if group is None:
            cells = dict(row.cells)
            for h, cell in row.cells.items():
                if is_amount_header(h):
                    cells[h] = NumberCell(value=round2(cell_amount(cell)))
                elif TPE_TOKEN in cell_raw_text(cell).upper() or is_label_header(h):
                    cells[h] = TextCell(value=_summary_label(internal_date, terminal_id))
            grouped[key] = StatementRow(cells=cells)
            continue

        for h, cell in row.cells.items():
            if is_amount_header(h):
                group.cells[h] = NumberCell(value=round2(cell_amount(group.get(h)) + cell_amount(cell)))

    if grouped:
        logger.debug("Compression TPE : %d ligne(s) -> %d", len(rows) - len(others), len(grouped))
    return sort_rows(others + list(grouped.values()), headers)


def statement_totals(rows: Sequence[StatementRow], headers: Sequence[str]) -> Dict[str, float]:
    totals = {h: 0.0 for h in headers if is_amount_header(h)}
    for row in rows:
        for h in totals:
            totals[h] = round2(totals[h] + cell_amount(row.get(h)))
    return totals


# ---------------- Session d'import ---------------- #

class ImportSession:
    """État d'un import de relevé : classeur, feuille choisie, lignes, compression."""

    def __init__(self) -> None:
        self.workbook: Optional[StatementWorkbook] = None
        self.sheet: Optional[StatementSheet] = None
        self.loaded: List[StatementRow] = []
        self.compressed = False

    def open(self, path: Union[str, Path]) -> StatementWorkbook:
        return self.set_workbook(read_workbook(path))

    def set_workbook(self, workbook: StatementWorkbook) -> StatementWorkbook:
        self.clear()
        self.workbook = workbook
        # une seule feuille : sélection automatique
        if len(workbook.sheets) == 1:
            self.select_sheet(workbook.sheets[0].name)
        return workbook

    @property
    def needs_selection(self) -> bool:
        return self.workbook is not None and self.sheet is None

    @property
    def headers(self) -> List[str]:
        return list(self.sheet.headers) if self.sheet else []

    def select_sheet(self, name: str) -> List[StatementRow]:
        if self.workbook is None:
            raise ValueError("Aucun relevé importé")
        self.sheet = self.workbook.sheet(name)
        self.loaded = load(self.sheet)
        return self.loaded

    def rows(self) -> List[StatementRow]:
        if self.compressed:
            return compress(self.loaded, self.headers)
        return list(self.loaded)

    def totals(self) -> Dict[str, float]:
        return statement_totals(self.rows(), self.headers)

    def clear(self) -> None:
        self.workbook = None
        self.sheet = None
        self.loaded = []
        self.compressed = False
