from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from bako.errors import AlreadyReconciled, InvalidAmount
from bako.models.common import fr_date, gen_id, now_iso, parse_amount, round2
from bako.models.day_sales import DaySalesView, ViewKind
from bako.models.ledger import BankLedgerEntry
from bako.services.derivation import apply_coefficient_override, compute_real_calculated, derive_declared
from bako.services.ledger_service import BankLedgerService
from bako.services.settings import EngineSettings
from bako.storage.day_store import DayStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommissionBreakdown:
    amount: float
    comm_ht: float
    tva_comm: float
    net_bank: float


@dataclass
class SyncResult:
    real: Optional[DaySalesView]
    declared: Optional[DaySalesView]
    bank_entry: Optional[BankLedgerEntry] = None


def commission_breakdown(amount: float, settings: Optional[EngineSettings] = None) -> CommissionBreakdown:
    """Montant CMI encaissé en banque : brut - commission HT - TVA sur commission."""
    cfg = settings or EngineSettings()
    comm_ht = amount * cfg.cmi_commission_rate
    tva_comm = comm_ht * cfg.cmi_commission_vat
    return CommissionBreakdown(amount=amount, comm_ht=comm_ht, tva_comm=tva_comm, net_bank=amount - comm_ht - tva_comm)


class SalesSyncService:
    """
    Validation d'une journée de ventes :
    - brouillon : statut seulement
    - validation : statut + écriture "Enc. CMI" en banque (vue réelle, CB > 0)
    - désynchronisation : retour en brouillon, l'écriture bancaire reste
    La vue déclarée est toujours recalculée à partir du réel avant enregistrement.
    """

    def __init__(
        self,
        days: DayStore,
        ledger: BankLedgerService,
        settings: Optional[EngineSettings] = None,
    ) -> None:
        self.days = days
        self.ledger = ledger
        self.settings = settings or EngineSettings()

    # ----- Résolution de l'écriture CMI ----- #

    def _is_sync_entry(self, e: BankLedgerEntry, date_key: str) -> bool:
        cfg = self.settings
        return e.date == date_key and (e.tier == cfg.cmi_tier or cfg.cmi_label_prefix in (e.label or ""))

    def resolve_bank_entry(self, date_key: str, bank_entry_id: Optional[str]) -> Optional[BankLedgerEntry]:
        """1) lien direct par id  2) recherche date + tiers CMI, hors écritures rapprochées."""
        entry = self.ledger.get_by_id(bank_entry_id)
        if entry is not None:
            return entry
        for e in self.ledger.list_entries():
            if self._is_sync_entry(e, date_key) and not e.is_reconciled:
                return e
        return None

    def upsert_bank_entry(
        self, date_key: str, amount: float, bank_entry_id: Optional[str] = None
    ) -> BankLedgerEntry:
        cfg = self.settings
        net = commission_breakdown(amount, cfg).net_bank
        existing = self.resolve_bank_entry(date_key, bank_entry_id)
        if existing is not None and existing.is_reconciled:
            raise AlreadyReconciled(date_key, existing.id)

        fields = {
            "date": date_key,
            "label": f"{cfg.cmi_label_prefix} {fr_date(date_key)}",
            "amount": round2(net),
            "type": "Recette",
            "category": "Vente",
            "account": "Banque",
            "tier": cfg.cmi_tier,
            "piece_number": cfg.cmi_piece_number,
            "is_reconciled": False,
        }
        if existing is not None:
            entry = existing.model_copy(update=fields)
            logger.info("Mise à jour écriture CMI %s (%s): %.2f", entry.id, date_key, entry.amount)
        else:
            entry = BankLedgerEntry(id=f"tx-cmi-{gen_id()}", **fields)
            logger.info("Création écriture CMI %s (%s): %.2f", entry.id, date_key, entry.amount)
        return self.ledger.upsert(entry)

    # ----- Sauvegarde / validation ----- #

    def sync(self, view: ViewKind, data: DaySalesView, date_key: str, *, draft: bool = False) -> SyncResult:
        updated = data.model_copy(deep=True)
        bank_entry: Optional[BankLedgerEntry] = None

        if draft:
            updated.status = "draft"
        else:
            updated.status = "synced"
            updated.last_sync_at = now_iso()
            if view == "real":
                try:
                    mt_cmi = parse_amount(updated.payments.mt_cmi)
                except InvalidAmount as e:
                    logger.warning("%s: montant CMI ignoré (%s)", date_key, e.message)
                    mt_cmi = 0.0
                if mt_cmi > 0:
                    # lève AlreadyReconciled avant toute écriture
                    bank_entry = self.upsert_bank_entry(date_key, mt_cmi, updated.bank_entry_id)
                    updated.bank_entry_id = bank_entry.id

        record = self.days.get(date_key)
        stored_real = record.real if record else None
        stored_declared = (record.declared if record else None) or DaySalesView()

        if view == "real":
            real = compute_real_calculated(updated, self.settings)
            declared = derive_declared(real, stored_declared, self.settings)
            self.days.put(date_key, "real", real)
            self.days.put(date_key, "declared", declared)
            return SyncResult(real=real, declared=declared, bank_entry=bank_entry)

        # vue déclarée : seuls les coefficients et le statut saisis sont retenus
        declared = apply_coefficient_override(
            stored_real or DaySalesView(),
            stored_declared,
            coeff_exo=updated.coeff_exo,
            coeff_imp=updated.coeff_imp,
            settings=self.settings,
        )
        declared.status = updated.status
        declared.last_sync_at = updated.last_sync_at if not draft else stored_declared.last_sync_at
        self.days.put(date_key, "declared", declared)
        return SyncResult(real=stored_real, declared=declared)

    def save_draft(self, view: ViewKind, data: DaySalesView, date_key: str) -> SyncResult:
        return self.sync(view, data, date_key, draft=True)

    # ----- Désynchronisation ----- #

    def linked_entries(self, date_key: str, data: DaySalesView) -> List[BankLedgerEntry]:
        out: List[BankLedgerEntry] = []
        linked = self.ledger.get_by_id(data.bank_entry_id)
        if linked is not None:
            out.append(linked)
        for e in self.ledger.find_entries(date=date_key):
            if e.piece_number == self.settings.cmi_piece_number and all(e.id != o.id for o in out):
                out.append(e)
        return out

    def desync(self, view: ViewKind, date_key: str) -> DaySalesView:
        """Retour en brouillon ; l'écriture bancaire déjà créée n'est pas touchée."""
        record = self.days.get(date_key)
        data = record.view(view) if record else None
        if data is None:
            raise LookupError(f"Aucune saisie '{view}' pour le {date_key}")

        for e in self.linked_entries(date_key, data):
            if e.is_reconciled:
                raise AlreadyReconciled(date_key, e.id)

        updated = data.model_copy(update={"status": "draft", "last_sync_at": None}, deep=True)
        self.days.put(date_key, view, updated)
        return updated
