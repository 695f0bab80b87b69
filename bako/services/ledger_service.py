from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from bako.models.ledger import AccountType, BankLedgerEntry
from bako.services.settings import resolve_data_dir
from bako.storage.json_repo import JsonRepository

logger = logging.getLogger(__name__)

TRANSACTIONS_FILE = "finance_transactions.json"


class BankLedgerService:
    """Journal de trésorerie (Banque / Caisse / Coffre)."""

    def __init__(self, repo: Optional[JsonRepository] = None, data_dir: Optional[Union[str, Path]] = None) -> None:
        self.repo = repo or JsonRepository(
            resolve_data_dir(data_dir) / TRANSACTIONS_FILE, entity_name="transaction", key="id"
        )

    def list_entries(self) -> List[BankLedgerEntry]:
        out: List[BankLedgerEntry] = []
        for d in self.repo.list_all():
            try:
                out.append(BankLedgerEntry.model_validate(d))
            except ValidationError:
                logger.warning("Écriture illisible ignorée: %s", d.get("id"))
                continue
        return out

    def get_by_id(self, entry_id: Optional[str]) -> Optional[BankLedgerEntry]:
        if not entry_id:
            return None
        d = self.repo.get(entry_id)
        if d is None:
            return None
        try:
            return BankLedgerEntry.model_validate(d)
        except ValidationError:
            return None

    def find_entries(
        self,
        *,
        date: Optional[str] = None,
        month: Optional[str] = None,
        account: Optional[AccountType] = None,
        tier: Optional[str] = None,
        label_contains: Optional[str] = None,
    ) -> List[BankLedgerEntry]:
        needle = label_contains.lower() if label_contains else None
        out = []
        for e in self.list_entries():
            if date is not None and e.date != date:
                continue
            if month is not None and not e.in_month(month):
                continue
            if account is not None and e.account != account:
                continue
            if tier is not None and e.tier != tier:
                continue
            if needle is not None and needle not in (e.label or "").lower():
                continue
            out.append(e)
        return out

    def add_entry(self, e: BankLedgerEntry) -> BankLedgerEntry:
        self.repo.add(e)
        return e

    def upsert(self, e: BankLedgerEntry) -> BankLedgerEntry:
        self.repo.upsert(e)
        return e
