"""
Dérivation de la vue "déclarée" d'une journée à partir de la vue "réelle".

Fonctions pures : aucune lecture ni écriture, recalcul complet à chaque appel.
La vue déclarée ne se modifie que par ``derive_declared`` (recalcul depuis le
réel) ou ``apply_coefficient_override`` (nouveaux coefficients puis recalcul).
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from bako.models.common import fmt2, to_float
from bako.models.day_sales import CalculatedFigures, DaySalesView, GlovoBreakdown
from bako.services.settings import EngineSettings

GLOVO_FIELDS = ("brut", "incid", "cash")


@dataclass(frozen=True)
class SalesFigures:
    sales: Dict[str, str]
    val_exo: float
    sum_others_ttc: float
    val_imp_ht: float
    total_ht: float
    total_ttc: float


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def resolve_coefficient(raw: Optional[str], default: float) -> float:
    """Coefficient saisi, ou valeur par défaut s'il est vide, illisible ou nul."""
    if raw in (None, ""):
        return default
    return to_float(raw) or default


def compute_sales_figures(
    sales: Mapping[str, str],
    *,
    coeff_exo: float = 1.0,
    coeff_imp: float = 1.0,
    settings: Optional[EngineSettings] = None,
) -> SalesFigures:
    cfg = settings or EngineSettings()
    scaled: Dict[str, str] = {}
    val_exo = 0.0
    sum_others = 0.0
    for key, raw in sales.items():
        amount = to_float(raw)
        if key == cfg.exempt_category:
            calc = amount * coeff_exo
            val_exo = calc
        else:
            calc = amount * coeff_imp
            sum_others += calc
        scaled[key] = fmt2(calc)

    val_imp_ht = sum_others / (1 + cfg.vat_rate)
    return SalesFigures(
        sales=scaled,
        val_exo=val_exo,
        sum_others_ttc=sum_others,
        val_imp_ht=val_imp_ht,
        total_ht=val_imp_ht + val_exo,
        total_ttc=val_exo + sum_others,
    )


def glovo_net(glovo: GlovoBreakdown, settings: Optional[EngineSettings] = None) -> float:
    """Net Glovo : brut moins frais plateforme forfaitaires, incidents et cash encaissé."""
    cfg = settings or EngineSettings()
    return to_float(glovo.brut) * (1 - cfg.glovo_fee_rate) - to_float(glovo.incid) - to_float(glovo.cash)


def glovo_split(brut: float, settings: Optional[EngineSettings] = None) -> tuple[float, float]:
    """Règle 10/90 -> (part imposable HT, part exonérée)."""
    cfg = settings or EngineSettings()
    imp_ht = brut * cfg.glovo_imposable_share / (1 + cfg.vat_rate)
    exo = brut * (1 - cfg.glovo_imposable_share)
    return imp_ht, exo


def compute_real_calculated(real: DaySalesView, settings: Optional[EngineSettings] = None) -> DaySalesView:
    """Totaux de la vue réelle (coefficients à 1, espèces = espèces saisies)."""
    cfg = settings or EngineSettings()
    fig = compute_sales_figures(real.sales, settings=cfg)
    out = real.model_copy(deep=True)
    out.calculated = CalculatedFigures(
        exo=fmt2(fig.val_exo),
        imp_ht=fmt2(fig.val_imp_ht),
        tot_ht=fmt2(fig.total_ht),
        ttc=fmt2(fig.total_ttc),
        esp=fmt2(to_float(real.payments.especes)),
        cmi=fmt2(to_float(real.payments.mt_cmi)),
        chq=fmt2(to_float(real.payments.mt_chq)),
        glovo=fmt2(glovo_net(real.glovo, cfg)),
    )
    return out


def derive_declared(
    real: DaySalesView,
    declared_base: DaySalesView,
    settings: Optional[EngineSettings] = None,
) -> DaySalesView:
    cfg = settings or EngineSettings()
    c_exo = resolve_coefficient(declared_base.coeff_exo, cfg.default_coeff_exo)
    c_imp = resolve_coefficient(declared_base.coeff_imp, cfg.default_coeff_imp)

    fig = compute_sales_figures(real.sales, coeff_exo=c_exo, coeff_imp=c_imp, settings=cfg)

    real_tickets = to_float(real.nb_tickets)
    declared_tickets = _round_half_up(real_tickets * c_imp)

    # les encaissements ne sont pas redressés
    payments = real.payments.model_copy(deep=True)
    mt_cmi = to_float(payments.mt_cmi)
    mt_chq = to_float(payments.mt_chq)

    glovo_brut = to_float(real.glovo.brut)
    g_imp, g_exo = glovo_split(glovo_brut, cfg)
    declared_glovo = real.glovo.model_copy(update={"brut_imp": fmt2(g_imp), "brut_exo": fmt2(g_exo)}, deep=True)
    glovo_cash = to_float(real.glovo.cash)

    # espèces = solde : CA TTC moins les autres moyens, le brut Glovo ne passe pas en caisse
    esp = fig.total_ttc - mt_cmi - mt_chq - glovo_brut + glovo_cash

    return declared_base.model_copy(
        deep=True,
        update={
            "sales": fig.sales,
            "payments": payments,
            "glovo": declared_glovo,
            "nb_tickets": str(declared_tickets),
            "coeff_exo": _coeff_str(c_exo),
            "coeff_imp": _coeff_str(c_imp),
            "calculated": CalculatedFigures(
                exo=fmt2(fig.val_exo),
                imp_ht=fmt2(fig.val_imp_ht),
                tot_ht=fmt2(fig.total_ht),
                ttc=fmt2(fig.total_ttc),
                esp=fmt2(esp),
                cmi=fmt2(mt_cmi),
                chq=fmt2(mt_chq),
                glovo=fmt2(glovo_net(real.glovo, cfg)),
            ),
        },
    )


def _coeff_str(value: float) -> str:
    # 0.6 -> "0.6", 1.0 -> "1"
    return repr(value)[:-2] if value.is_integer() else repr(value)


def apply_coefficient_override(
    real: DaySalesView,
    declared: DaySalesView,
    *,
    coeff_exo: Optional[str] = None,
    coeff_imp: Optional[str] = None,
    settings: Optional[EngineSettings] = None,
) -> DaySalesView:
    update = {}
    if coeff_exo is not None:
        update["coeff_exo"] = coeff_exo
    if coeff_imp is not None:
        update["coeff_imp"] = coeff_imp
    return derive_declared(real, declared.model_copy(update=update), settings)


def apply_glovo_edit(
    real: DaySalesView,
    field: str,
    value: str,
    settings: Optional[EngineSettings] = None,
) -> DaySalesView:
    """Saisie en ligne d'un champ Glovo sur la vue réelle (net recalculé)."""
    if field not in GLOVO_FIELDS:
        raise ValueError(f"Champ Glovo inconnu : {field!r}")
    glovo = real.glovo.model_copy(update={field: value})
    for f in GLOVO_FIELDS:
        if not getattr(glovo, f):
            setattr(glovo, f, "0")
    out = real.model_copy(deep=True)
    out.glovo = glovo
    out.calculated = out.calculated.model_copy(update={"glovo": fmt2(glovo_net(glovo, settings))})
    return out
