from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from .common import gen_id

TransactionType = Literal["Depense", "Recette"]
AccountType = Literal["Banque", "Caisse", "Coffre"]

CMI_TIER = "CMI"


class BankLedgerEntry(BaseModel):
    id: str = Field(default_factory=gen_id)
    date: str  # AAAA-MM-JJ
    label: str = ""
    amount: float = 0.0
    type: TransactionType = "Recette"
    category: str = ""
    account: AccountType = "Banque"
    tier: Optional[str] = None
    piece_number: Optional[str] = None
    invoice_id: Optional[str] = None  # lien facture (synchro des règlements)
    is_reconciled: bool = False
    reconciled_date: Optional[str] = None

    def is_cmi_settlement(self, tier: str = CMI_TIER) -> bool:
        """Écriture de banque correspondant à un encaissement CMI."""
        if self.account != "Banque":
            return False
        return "cmi" in (self.label or "").lower() or self.tier == tier

    def in_month(self, month_key: str) -> bool:
        return (self.date or "").startswith(month_key)
