from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

ROOT_DIR = Path(__file__).resolve().parents[2]
SETTINGS_FILE = "settings.json"
SETTINGS_SECTION = "ventes"


class EngineSettings(BaseModel):
    exempt_category: str = "BOULANGERIE"
    default_coeff_exo: float = 1.11
    default_coeff_imp: float = 0.60
    vat_rate: float = 0.20

    # commission CMI : 1 % HT + 10 % de TVA sur la commission
    cmi_commission_rate: float = 0.01
    cmi_commission_vat: float = 0.10

    # Glovo : 18 % de frais plateforme, CA réparti 90 % imposable / 10 % exonéré
    glovo_fee_rate: float = 0.18
    glovo_imposable_share: float = 0.90

    cmi_tier: str = "CMI"
    cmi_label_prefix: str = "Enc. CMI"
    cmi_piece_number: str = "AUTO-CMI"
    reconcile_tolerance: float = 0.01


def resolve_data_dir(data_dir: Optional[Union[str, Path]] = None) -> Path:
    """data_dir explicite, sinon $BAKO_DATA_DIR, sinon <racine projet>/data."""
    base = Path(data_dir) if data_dir else Path(os.environ.get("BAKO_DATA_DIR") or ROOT_DIR / "data")
    base.mkdir(parents=True, exist_ok=True)
    return base


def _load_json(path: Path) -> Any:
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Lecture de %s impossible: %s", path, e)
        return None


def load_settings(data_dir: Optional[Union[str, Path]] = None) -> EngineSettings:
    """
    Lit la section "ventes" de settings.json.
    Fichier absent, illisible ou valeurs invalides -> valeurs par défaut.
    """
    s = _load_json(resolve_data_dir(data_dir) / SETTINGS_FILE) or {}
    section = s.get(SETTINGS_SECTION) if isinstance(s, dict) else None
    if not isinstance(section, dict):
        return EngineSettings()
    try:
        return EngineSettings.model_validate(section)
    except ValidationError as e:
        logger.warning("Paramètres '%s' invalides, valeurs par défaut: %s", SETTINGS_SECTION, e)
        return EngineSettings()
