from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Union

from pydantic import ValidationError

from bako.models.common import parse_date_key
from bako.models.day_sales import DayRecord, DaySalesView, ViewKind
from bako.services.settings import resolve_data_dir
from bako.storage.json_repo import JsonRepository

logger = logging.getLogger(__name__)

DAILY_SALES_FILE = "daily_sales.json"


class DayStore:
    """
    Ventes journalières indexées par date (AAAA-MM-JJ).
    Un enregistrement est créé au premier put sur une date, jamais supprimé.
    """

    def __init__(self, repo: Optional[JsonRepository] = None, data_dir: Optional[Union[str, Path]] = None) -> None:
        self.repo = repo or JsonRepository(
            resolve_data_dir(data_dir) / DAILY_SALES_FILE, entity_name="day", key="date"
        )

    def get(self, date_key: str) -> Optional[DayRecord]:
        parse_date_key(date_key)
        d = self.repo.get(date_key)
        if d is None:
            return None
        try:
            return DayRecord.model_validate(d)
        except ValidationError as e:
            logger.warning("Journée %s illisible, ignorée: %s", date_key, e)
            return None

    def put(self, date_key: str, view: ViewKind, data: DaySalesView) -> DayRecord:
        parse_date_key(date_key)
        if view not in ("real", "declared"):
            raise ValueError(f"Vue inconnue : {view!r}")
        record = self.get(date_key) or DayRecord(date=date_key)
        setattr(record, view, data.model_copy(deep=True))
        self.repo.upsert(record)
        return record

    def list_range(self, start_key: str, end_key: str) -> Dict[str, DayRecord]:
        """Journées entre deux dates incluses, triées."""
        out: Dict[str, DayRecord] = {}
        for d in sorted(self.repo.find(lambda r: start_key <= str(r.get("date", "")) <= end_key),
                        key=lambda r: r["date"]):
            try:
                out[d["date"]] = DayRecord.model_validate(d)
            except ValidationError as e:
                logger.warning("Journée %s illisible, ignorée: %s", d.get("date"), e)
        return out
