"""
Lignes de relevé bancaire importées d'un tableur.

Chaque cellule est résolue une seule fois à l'import en DateCell, NumberCell
ou TextCell. Les fonctions ``cell_date`` / ``cell_amount`` / ``cell_display``
sont les seuls points de lecture des dates et montants (tri, cumul, export).
"""
from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from bako.errors import UnparsableAmount, UnparsableDate
from bako.models.common import normalize_decimal

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1)
SERIAL_MIN, SERIAL_MAX = 40000, 60000
SERIAL_EPOCH_OFFSET = 25569  # 1970-01-01 en numéro de série Excel

AMOUNT_KEYWORDS = ("débit", "debit", "crédit", "credit", "montant", "euro")
LABEL_KEYWORDS = ("détail", "detail", "libellé", "libelle")

_DMY = re.compile(r"^(\d{1,2})[/.-](\d{1,2})[/.-](\d{2,4})(?:\s|$)")
_ISO = re.compile(r"^\d{4}-\d{2}-\d{2}")


# ---------------- Types de cellule ---------------- #

class DateCell(BaseModel):
    kind: Literal["date"] = "date"
    value: datetime


class NumberCell(BaseModel):
    kind: Literal["number"] = "number"
    value: float


class TextCell(BaseModel):
    kind: Literal["text"] = "text"
    value: str = ""


CellValue = Annotated[Union[DateCell, NumberCell, TextCell], Field(discriminator="kind")]


# ---------------- En-têtes ---------------- #

def is_date_header(header: str) -> bool:
    return "date" in header.lower()


def is_amount_header(header: str) -> bool:
    h = header.lower()
    return any(kw in h for kw in AMOUNT_KEYWORDS)


def is_label_header(header: str) -> bool:
    h = header.lower()
    return any(kw in h for kw in LABEL_KEYWORDS)


# ---------------- Normalisation ---------------- #

def is_excel_serial(value: float) -> bool:
    return float(value).is_integer() and SERIAL_MIN <= value <= SERIAL_MAX


def serial_to_datetime(value: float) -> datetime:
    return EPOCH + timedelta(seconds=(value - SERIAL_EPOCH_OFFSET) * 86400)


def parse_text_date(text: str) -> datetime:
    """JJ/MM/AAAA, JJ/MM/AA (années < 100 -> 20xx) ou ISO."""
    s = (text or "").strip()
    m = _DMY.match(s)
    try:
        if m:
            day, month, year = (int(g) for g in m.groups())
            if year < 100:
                year += 2000
            return datetime(year, month, day)
        if _ISO.match(s):
            return datetime.fromisoformat(s[:10])
    except ValueError as e:
        raise UnparsableDate(text) from e
    raise UnparsableDate(text)


def parse_fr_amount(text: str) -> float:
    """'1 234,56' -> 1234.56 ; '1.234,56' -> 1234.56 ; '-12.5' -> -12.5"""
    s = normalize_decimal(re.sub(r"[^0-9,.\-]", "", str(text or "")))
    try:
        return float(s)
    except ValueError as e:
        raise UnparsableAmount(text) from e


def to_cell(raw: Any, header: str = "") -> Union[DateCell, NumberCell, TextCell]:
    if raw is None:
        return TextCell(value="")
    if isinstance(raw, datetime):
        return DateCell(value=raw)
    if isinstance(raw, date):
        return DateCell(value=datetime(raw.year, raw.month, raw.day))
    if isinstance(raw, bool):
        return TextCell(value=str(raw))
    if isinstance(raw, (int, float)):
        if is_date_header(header) and is_excel_serial(raw):
            return DateCell(value=serial_to_datetime(raw))
        return NumberCell(value=float(raw))

    text = str(raw).strip()
    if not text:
        return TextCell(value="")
    if is_date_header(header):
        try:
            return DateCell(value=parse_text_date(text))
        except UnparsableDate:
            logger.debug("Date illisible conservée en texte (%s): %r", header, text)
    elif is_amount_header(header):
        try:
            return NumberCell(value=parse_fr_amount(text))
        except UnparsableAmount:
            logger.debug("Montant illisible conservé en texte (%s): %r", header, text)
    return TextCell(value=text)


def cell_date(cell: Optional[CellValue]) -> Optional[datetime]:
    if isinstance(cell, DateCell):
        return cell.value
    if isinstance(cell, NumberCell):
        return serial_to_datetime(cell.value) if is_excel_serial(cell.value) else None
    if isinstance(cell, TextCell) and cell.value:
        try:
            return parse_text_date(cell.value)
        except UnparsableDate:
            return None
    return None


def cell_sort_key(cell: Optional[CellValue]) -> datetime:
    # date illisible -> epoch (trié en premier)
    return cell_date(cell) or EPOCH


def cell_amount(cell: Optional[CellValue]) -> float:
    if isinstance(cell, NumberCell):
        return cell.value
    if isinstance(cell, TextCell) and cell.value:
        try:
            return parse_fr_amount(cell.value)
        except UnparsableAmount:
            logger.debug("Montant illisible compté à 0: %r", cell.value)
    return 0.0


def _number_text(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(value)


def cell_raw_text(cell: Optional[CellValue]) -> str:
    """Texte brut utilisé pour la recherche de motifs (TPE, dates internes)."""
    if isinstance(cell, DateCell):
        return cell.value.date().isoformat()
    if isinstance(cell, NumberCell):
        return _number_text(cell.value)
    if isinstance(cell, TextCell):
        return cell.value
    return ""


def format_fr_number(value: float) -> str:
    s = f"{value:,.2f}"
    return s.replace(",", "\u202f").replace(".", ",")


def cell_display(cell: Optional[CellValue]) -> str:
    if isinstance(cell, DateCell):
        return cell.value.strftime("%d/%m/%Y")
    if isinstance(cell, NumberCell):
        if cell.value == 0:
            return ""
        if is_excel_serial(cell.value):
            return serial_to_datetime(cell.value).strftime("%d/%m/%Y")
        return format_fr_number(cell.value)
    if isinstance(cell, TextCell):
        return cell.value
    return ""


# ---------------- Lignes / feuilles ---------------- #

class StatementRow(BaseModel):
    cells: Dict[str, CellValue] = Field(default_factory=dict)

    def get(self, header: str) -> Optional[CellValue]:
        return self.cells.get(header)

    def text(self) -> str:
        return " ".join(cell_raw_text(c) for c in self.cells.values()).upper()


class StatementSheet(BaseModel):
    name: str
    headers: List[str] = Field(default_factory=list)
    rows: List[StatementRow] = Field(default_factory=list)

    def date_header(self) -> Optional[str]:
        return next((h for h in self.headers if is_date_header(h)), None)

    def amount_headers(self) -> List[str]:
        return [h for h in self.headers if is_amount_header(h)]


class StatementWorkbook(BaseModel):
    sheets: List[StatementSheet] = Field(default_factory=list)

    @property
    def sheet_names(self) -> List[str]:
        return [s.name for s in self.sheets]

    def sheet(self, name: str) -> StatementSheet:
        for s in self.sheets:
            if s.name == name:
                return s
        raise ValueError(f"Feuille '{name}' introuvable dans le classeur")
