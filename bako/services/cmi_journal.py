from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import ValidationError

from bako.models.cmi import NET_INPUTS, CMIJournalEntry
from bako.models.common import month_days, month_key, parse_date_key, round2
from bako.services.settings import resolve_data_dir
from bako.storage.json_repo import JsonRepository

logger = logging.getLogger(__name__)

CMI_FILE = "cmi_entries.json"
EDITABLE_FIELDS = NET_INPUTS + ("date",)


class CMIJournalService:
    """
    Journal des remises CMI, découpé par mois (AAAA-MM).
    Chaque modification réécrit immédiatement le mois complet.
    """

    def __init__(self, repo: Optional[JsonRepository] = None, data_dir: Optional[Union[str, Path]] = None) -> None:
        self.repo = repo or JsonRepository(
            resolve_data_dir(data_dir) / CMI_FILE, entity_name="cmi_entry", key="id"
        )

    # ----- Lecture ----- #

    def list_all(self) -> List[CMIJournalEntry]:
        out: List[CMIJournalEntry] = []
        for d in self.repo.list_all():
            try:
                out.append(CMIJournalEntry.model_validate(d))
            except ValidationError:
                logger.warning("Ligne CMI illisible ignorée: %s", d.get("id"))
        return out

    def list_month(self, year: int, month: int) -> List[CMIJournalEntry]:
        mk = month_key(year, month)
        return [e for e in self.list_all() if e.month_key == mk]

    def get(self, entry_id: str) -> Optional[CMIJournalEntry]:
        return next((e for e in self.list_all() if e.id == entry_id), None)

    def entry_for_date(self, date_key: str) -> Optional[CMIJournalEntry]:
        """Première ligne saisie pour la date."""
        return next((e for e in self.list_all() if e.date == date_key), None)

    # ----- Écriture ----- #

    def _save_month(self, mk: str, entries: List[CMIJournalEntry]) -> None:
        others = [e for e in self.list_all() if e.month_key != mk]
        self.repo.replace_all(others + entries)

    def ensure_month(self, year: int, month: int) -> List[CMIJournalEntry]:
        """Crée une ligne vide par jour si le mois n'a encore aucune ligne."""
        existing = self.list_month(year, month)
        if existing:
            return existing
        entries = [CMIJournalEntry(date=d) for d in month_days(year, month)]
        self._save_month(month_key(year, month), entries)
        logger.info("Journal CMI %s initialisé (%d jours)", month_key(year, month), len(entries))
        return entries

    def update_entry(self, entry_id: str, field: str, value: str) -> CMIJournalEntry:
        if field not in EDITABLE_FIELDS:
            raise ValueError(f"Champ CMI non modifiable : {field!r}")
        entry = self.get(entry_id)
        if entry is None:
            raise KeyError(f"Ligne CMI {entry_id} introuvable")

        if field == "date":
            parse_date_key(value)
        setattr(entry, field, value)
        if field in NET_INPUTS:
            entry.recompute_net()

        # toutes les lignes dans un seul fichier : changer de mois revient à remplacer la ligne
        self.repo.replace_all([entry if e.id == entry_id else e for e in self.list_all()])
        return entry

    def add_row(self, year: int, month: int) -> CMIJournalEntry:
        """Ligne libre (plusieurs remises le même jour), datée du 1er du mois."""
        entry = CMIJournalEntry(date=f"{month_key(year, month)}-01")
        self._save_month(month_key(year, month), self.list_month(year, month) + [entry])
        return entry

    def remove_row(self, entry_id: str) -> bool:
        entry = self.get(entry_id)
        if entry is None:
            return False
        mk = entry.month_key
        self._save_month(mk, [e for e in self.list_all() if e.month_key == mk and e.id != entry_id])
        return True

    # ----- Totaux ----- #

    def month_totals(self, year: int, month: int) -> Dict[str, float]:
        totals = {"brut": 0.0, "commission": 0.0, "tva": 0.0, "net": 0.0}
        for e in self.list_month(year, month):
            for k in totals:
                totals[k] += e.field_value(k)
        return {k: round2(v) for k, v in totals.items()}

