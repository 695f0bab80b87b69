from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from bako.errors import AlreadyReconciled, InvalidAmount, NoMatchingEntry
from bako.models.cmi import CMIJournalEntry
from bako.models.common import month_key, round2
from bako.models.ledger import BankLedgerEntry
from bako.services.cmi_journal import CMIJournalService
from bako.services.ledger_service import BankLedgerService
from bako.services.settings import EngineSettings

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationRow:
    date: str
    cmi_entry: Optional[CMIJournalEntry]
    bank_entries: List[BankLedgerEntry] = field(default_factory=list)
    total_bank_amount: float = 0.0
    display_amount: float = 0.0
    is_reconciled: bool = False

    @property
    def cmi_net(self) -> float:
        return self.cmi_entry.net_value if self.cmi_entry else 0.0


class ReconciliationService:
    """
    Rapprochement CMI : journal CMI <-> écritures "Enc. CMI" du compte Banque.

    L'ensemble des dates rapprochées est local au service (recalculé par
    ``refresh`` à chaque ``build_view``) ; le drapeau ``is_reconciled`` des
    écritures reste réservé au pointage bancaire manuel.
    """

    def __init__(
        self,
        cmi: CMIJournalService,
        ledger: BankLedgerService,
        settings: Optional[EngineSettings] = None,
    ) -> None:
        self.cmi = cmi
        self.ledger = ledger
        self.settings = settings or EngineSettings()
        self.reconciled_dates: Set[str] = set()

    def _cmi_bank_entries(self) -> List[BankLedgerEntry]:
        return [e for e in self.ledger.list_entries() if e.is_cmi_settlement(self.settings.cmi_tier)]

    def refresh(self) -> Set[str]:
        """Dates dont le montant banque égale déjà le net CMI (à la tolérance près)."""
        cmi_entries = self.cmi.list_all()
        reconciled: Set[str] = set()
        for tx in self._cmi_bank_entries():
            entry = next((e for e in cmi_entries if e.date == tx.date), None)
            if entry is None or entry.net_value <= 0:
                continue
            if abs(tx.amount - entry.net_value) < self.settings.reconcile_tolerance:
                reconciled.add(tx.date)
        self.reconciled_dates = reconciled
        return reconciled

    def build_view(self, year: int, month: int) -> List[ReconciliationRow]:
        # le journal CMI et la banque peuvent avoir changé depuis le dernier appel
        self.refresh()
        mk = month_key(year, month)

        cmi_by_date: Dict[str, CMIJournalEntry] = {}
        for e in self.cmi.list_month(year, month):
            if e.brut_value > 0:
                cmi_by_date[e.date] = e

        bank_by_date: Dict[str, List[BankLedgerEntry]] = {}
        for tx in self._cmi_bank_entries():
            if tx.in_month(mk):
                bank_by_date.setdefault(tx.date, []).append(tx)

        rows: List[ReconciliationRow] = []
        for d in sorted(set(cmi_by_date) | set(bank_by_date)):
            entry = cmi_by_date.get(d)
            txs = bank_by_date.get(d, [])
            total = sum(tx.amount for tx in txs)
            reconciled = d in self.reconciled_dates
            display = entry.net_value if reconciled and entry and entry.net_value > 0 else total
            rows.append(
                ReconciliationRow(
                    date=d,
                    cmi_entry=entry,
                    bank_entries=txs,
                    total_bank_amount=total,
                    display_amount=display,
                    is_reconciled=reconciled,
                )
            )
        return rows

    def reconcile(self, date_key: str, cmi_net: float) -> List[BankLedgerEntry]:
        """Aligne toutes les écritures CMI du jour sur le net CMI."""
        if cmi_net is None or cmi_net <= 0:
            raise InvalidAmount(cmi_net)

        targets = [e for e in self._cmi_bank_entries() if e.date == date_key]
        if not targets:
            raise NoMatchingEntry(date_key)
        locked = next((e for e in targets if e.is_reconciled), None)
        if locked is not None:
            raise AlreadyReconciled(date_key, locked.id)

        amount = round2(cmi_net)
        updated = [self.ledger.upsert(e.model_copy(update={"amount": amount})) for e in targets]
        self.reconciled_dates.add(date_key)
        logger.info("Rapprochement CMI %s : %d écriture(s) -> %.2f", date_key, len(updated), amount)
        return updated

    def month_summary(self, year: int, month: int) -> Dict[str, float]:
        rows = self.build_view(year, month)
        return {
            "cmi_net": round2(sum(r.cmi_net for r in rows)),
            "bank": round2(sum(r.display_amount for r in rows)),
        }
