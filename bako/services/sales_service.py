from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Sequence

from bako.models.common import fmt2, month_days, parse_date_key, to_float
from bako.models.day_sales import DaySalesView
from bako.services.derivation import apply_coefficient_override, apply_glovo_edit, compute_sales_figures, derive_declared
from bako.services.settings import EngineSettings
from bako.storage.day_store import DayStore

logger = logging.getLogger(__name__)

Period = Literal["FULL", "Q1", "Q2"]
TotalsMode = Literal["saisie", "compta"]

WEEKDAYS_FR = ("Lun", "Mar", "Mer", "Jeu", "Ven", "Sam", "Dim")
ZERO = "0.00"


@dataclass
class ComptaFigures:
    exo: str = ZERO
    imp_ht: str = ZERO
    tot_ht: str = ZERO
    ttc: str = ZERO
    glovo_exo: str = ZERO
    glovo_imp: str = ZERO


@dataclass
class JournalRow:
    date: str
    label: str
    status: Optional[str] = None
    exo: str = ZERO
    imp_ht: str = ZERO
    tot_ht: str = ZERO
    ttc: str = ZERO
    cmi: str = ZERO
    chq: str = ZERO
    glovo: str = ZERO
    esp: str = ZERO
    declared_ttc: str = ZERO
    declared_esp: str = ZERO
    coeff_imp: str = "0.60"
    glovo_brut: str = "0"
    glovo_incid: str = "0"
    glovo_cash: str = "0"
    compta: ComptaFigures = field(default_factory=ComptaFigures)


def day_label(date_key: str) -> str:
    """'2024-03-05' -> 'Mar 05/03/24'"""
    d = parse_date_key(date_key)
    return f"{WEEKDAYS_FR[d.weekday()]} {d.strftime('%d/%m/%y')}"


def period_days(year: int, month: int, period: Period = "FULL") -> List[str]:
    days = month_days(year, month)
    if period == "Q1":
        return days[:15]
    if period == "Q2":
        return days[15:]
    if period != "FULL":
        raise ValueError(f"Période inconnue : {period!r}")
    return days


class SalesJournalService:
    """Journal mensuel des ventes : lignes par jour, totaux, saisies en ligne."""

    def __init__(self, days: DayStore, settings: Optional[EngineSettings] = None) -> None:
        self.days = days
        self.settings = settings or EngineSettings()

    # ----- Saisies en ligne ----- #

    def _views(self, date_key: str):
        record = self.days.get(date_key)
        real = (record.real if record else None) or DaySalesView()
        declared = (record.declared if record else None) or DaySalesView()
        return real, declared

    def update_glovo(self, date_key: str, field_name: str, value: str) -> DaySalesView:
        """Modifie un champ Glovo du réel, recalcule le net puis la vue déclarée."""
        real, declared = self._views(date_key)
        real = apply_glovo_edit(real, field_name, value, self.settings)
        declared = derive_declared(real, declared, self.settings)
        self.days.put(date_key, "real", real)
        self.days.put(date_key, "declared", declared)
        return real

    def update_coefficients(
        self, date_key: str, coeff_exo: Optional[str] = None, coeff_imp: Optional[str] = None
    ) -> DaySalesView:
        real, declared = self._views(date_key)
        declared = apply_coefficient_override(
            real, declared, coeff_exo=coeff_exo, coeff_imp=coeff_imp, settings=self.settings
        )
        self.days.put(date_key, "declared", declared)
        logger.debug("%s: coefficients exo=%s imp=%s", date_key, declared.coeff_exo, declared.coeff_imp)
        return declared

    # ----- Lignes du journal ----- #

    def _compta(self, declared: Optional[DaySalesView]) -> ComptaFigures:
        if declared is None:
            return ComptaFigures()
        # ventes déclarées déjà redressées : coefficients à 1
        fig = compute_sales_figures(declared.sales, settings=self.settings)
        return ComptaFigures(
            exo=fmt2(fig.val_exo),
            imp_ht=fmt2(fig.val_imp_ht),
            tot_ht=fmt2(fig.total_ht),
            ttc=fmt2(fig.total_ttc),
            glovo_exo=declared.glovo.brut_exo or ZERO,
            glovo_imp=declared.glovo.brut_imp or ZERO,
        )

    def month_rows(self, year: int, month: int, period: Period = "FULL") -> List[JournalRow]:
        keys = period_days(year, month, period)
        records = self.days.list_range(keys[0], keys[-1])
        rows: List[JournalRow] = []
        for key in keys:
            record = records.get(key)
            real = record.real if record else None
            declared = record.declared if record else None
            row = JournalRow(date=key, label=day_label(key), compta=self._compta(declared))
            if real is not None:
                c = real.calculated
                row.status = real.status
                row.exo, row.imp_ht, row.tot_ht, row.ttc = c.exo, c.imp_ht, c.tot_ht, c.ttc
                row.cmi, row.chq, row.glovo, row.esp = c.cmi, c.chq, c.glovo, c.esp
                row.glovo_brut = real.glovo.brut or "0"
                row.glovo_incid = real.glovo.incid or "0"
                row.glovo_cash = real.glovo.cash or "0"
            if declared is not None:
                row.declared_ttc = declared.calculated.ttc
                row.declared_esp = declared.calculated.esp
                row.coeff_imp = declared.coeff_imp or "0.60"
            rows.append(row)
        return rows


def period_totals(rows: Sequence[JournalRow], mode: TotalsMode = "saisie") -> Dict[str, float]:
    """Totaux de la période ; mode "compta" = chiffres recalculés du déclaré."""
    keys = (
        "exo", "imp_ht", "tot_ht", "ttc", "cmi", "chq", "glovo", "esp",
        "declared_ttc", "declared_esp", "glovo_exo", "glovo_imp",
        "glovo_brut", "glovo_incid", "glovo_cash",
    )
    totals = {k: 0.0 for k in keys}
    for row in rows:
        if mode == "compta":
            for k in ("exo", "imp_ht", "tot_ht", "ttc", "glovo_exo", "glovo_imp"):
                totals[k] += to_float(getattr(row.compta, k))
        else:
            for k in ("exo", "imp_ht", "tot_ht", "ttc"):
                totals[k] += to_float(getattr(row, k))
        for k in ("cmi", "chq", "glovo", "esp", "declared_ttc", "declared_esp",
                  "glovo_brut", "glovo_incid", "glovo_cash"):
            totals[k] += to_float(getattr(row, k))
    return totals
