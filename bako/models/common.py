from __future__ import annotations

import calendar
import math
import re
import uuid
from datetime import date, datetime, timezone
from typing import Any, List

from bako.errors import InvalidAmount

_NON_NUMERIC = re.compile(r"[^0-9,.\-]")
_SPACES = re.compile(r"[\s\u00a0\u202f]")
_DECIMAL_TEXT = re.compile(r"^[-+]?[0-9.,]+$")


def gen_id() -> str:
    return str(uuid.uuid4())


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------- Montants ---------- #

def normalize_decimal(text: str) -> str:
    """
    '1 234,56' / '1.234,56' / '1,234.56' -> '1234.56'.
    Si ',' et '.' sont présents, le dernier des deux est le séparateur décimal.
    """
    s = _SPACES.sub("", text)
    if "," in s and "." in s:
        if s.rfind(",") > s.rfind("."):
            return s.replace(".", "").replace(",", ".")
        return s.replace(",", "")
    return s.replace(",", ".")


def parse_amount(val: Any) -> float:
    """
    Lecture stricte d'un montant saisi ("1000", "12,50", "1.234,56", 12.5).
    Lève InvalidAmount si illisible (lettres, exposant...), non fini ou négatif.
    """
    if val is None or (isinstance(val, str) and not val.strip()):
        return 0.0
    if isinstance(val, bool):
        raise InvalidAmount(val)
    if isinstance(val, (int, float)):
        out = float(val)
    else:
        s = normalize_decimal(str(val))
        if not _DECIMAL_TEXT.match(s):
            raise InvalidAmount(val)
        try:
            out = float(s)
        except ValueError as e:
            raise InvalidAmount(val) from e
    if not math.isfinite(out) or out < 0:
        raise InvalidAmount(val)
    return out


def to_float(val: Any) -> float:
    """Lecture souple : tout ce qui n'est pas lisible vaut 0 (les négatifs sont conservés)."""
    if val is None or val == "" or isinstance(val, bool):
        return 0.0
    if isinstance(val, (int, float)):
        return float(val) if math.isfinite(val) else 0.0
    s = normalize_decimal(_NON_NUMERIC.sub("", str(val)))
    try:
        out = float(s)
    except ValueError:
        return 0.0
    return out if math.isfinite(out) else 0.0


def round2(value: float) -> float:
    # arrondi "demi vers le haut" (pas l'arrondi bancaire de round())
    return math.floor(value * 100 + 0.5) / 100


def fmt2(value: float) -> str:
    out = f"{value:.2f}"
    return "0.00" if out == "-0.00" else out


# ---------- Dates ---------- #

def date_key(d: date) -> str:
    return d.strftime("%Y-%m-%d")


def parse_date_key(key: str) -> date:
    try:
        return datetime.strptime(key, "%Y-%m-%d").date()
    except (TypeError, ValueError) as e:
        raise ValueError(f"Clé de date invalide (AAAA-MM-JJ attendu) : {key!r}") from e


def month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def month_days(year: int, month: int) -> List[str]:
    last = calendar.monthrange(year, month)[1]
    return [date_key(date(year, month, d)) for d in range(1, last + 1)]


def fr_date(key: str) -> str:
    """'2024-03-05' -> '05/03/2024'"""
    return parse_date_key(key).strftime("%d/%m/%Y")
