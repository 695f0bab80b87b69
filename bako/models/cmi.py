from __future__ import annotations

from pydantic import BaseModel, Field

from .common import fmt2, gen_id, to_float

NET_INPUTS = ("brut", "commission", "tva")


class CMIJournalEntry(BaseModel):
    """Relevé de remise CMI saisi à la main (une ligne par jour par défaut)."""

    id: str = Field(default_factory=gen_id)
    date: str
    brut: str = ""
    commission: str = ""
    tva: str = ""
    net: str = "0.00"

    @property
    def brut_value(self) -> float:
        return to_float(self.brut)

    @property
    def net_value(self) -> float:
        return to_float(self.net)

    @property
    def month_key(self) -> str:
        return self.date[:7]

    def recompute_net(self) -> None:
        self.net = fmt2(to_float(self.brut) - to_float(self.commission) - to_float(self.tva))

    def field_value(self, field: str) -> float:
        return to_float(getattr(self, field))
