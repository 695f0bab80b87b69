from __future__ import annotations

from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SyncStatus = Literal["draft", "synced"]
ViewKind = Literal["real", "declared"]


class Payments(BaseModel):
    model_config = ConfigDict(extra="allow")

    nb_cmi: str = ""
    mt_cmi: str = ""
    nb_chq: str = ""
    mt_chq: str = ""
    especes: str = ""


class GlovoBreakdown(BaseModel):
    model_config = ConfigDict(extra="allow")

    brut: str = "0"
    brut_imp: str = ""
    brut_exo: str = ""
    incid: str = "0"
    cash: str = "0"


class CalculatedFigures(BaseModel):
    """Sorties dérivées, toujours en chaînes à 2 décimales."""

    model_config = ConfigDict(extra="allow")

    exo: str = "0.00"
    imp_ht: str = "0.00"
    tot_ht: str = "0.00"
    ttc: str = "0.00"
    esp: str = "0.00"
    cmi: str = "0.00"
    chq: str = "0.00"
    glovo: str = "0.00"


class DaySalesView(BaseModel):
    # les clés inconnues (supplements, hours...) sont conservées telles quelles
    model_config = ConfigDict(extra="allow")

    status: Optional[SyncStatus] = None
    last_sync_at: Optional[str] = None
    bank_entry_id: Optional[str] = None

    sales: Dict[str, str] = Field(default_factory=dict)
    payments: Payments = Field(default_factory=Payments)
    glovo: GlovoBreakdown = Field(default_factory=GlovoBreakdown)
    nb_tickets: str = ""

    # vue déclarée uniquement
    coeff_exo: Optional[str] = None
    coeff_imp: Optional[str] = None

    calculated: CalculatedFigures = Field(default_factory=CalculatedFigures)

    @property
    def is_synced(self) -> bool:
        return self.status == "synced"


class DayRecord(BaseModel):
    date: str
    real: Optional[DaySalesView] = None
    declared: Optional[DaySalesView] = None

    def view(self, kind: ViewKind) -> Optional[DaySalesView]:
        return self.real if kind == "real" else self.declared
