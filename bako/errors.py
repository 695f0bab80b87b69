from __future__ import annotations

from typing import Optional


class EngineError(Exception):
    """Erreur métier remontée telle quelle à l'utilisateur."""

    default_message = "Erreur inattendue."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AlreadyReconciled(EngineError):
    default_message = "L'écriture bancaire est déjà rapprochée pour cette date."

    def __init__(self, date: str, entry_id: Optional[str] = None, message: Optional[str] = None) -> None:
        self.date = date
        self.entry_id = entry_id
        super().__init__(message)


class InvalidAmount(EngineError, ValueError):
    default_message = "Montant invalide."

    def __init__(self, raw: object = None, message: Optional[str] = None) -> None:
        self.raw = raw
        super().__init__(message or f"Montant invalide : {raw!r}")


class NoMatchingEntry(EngineError, LookupError):
    default_message = "Aucune transaction CMI trouvée pour cette date dans le journal de banque."

    def __init__(self, date: str, message: Optional[str] = None) -> None:
        self.date = date
        super().__init__(message)


class UnparsableDate(EngineError, ValueError):
    def __init__(self, raw: object = None) -> None:
        self.raw = raw
        super().__init__(f"Date illisible : {raw!r}")


class UnparsableAmount(EngineError, ValueError):
    def __init__(self, raw: object = None) -> None:
        self.raw = raw
        super().__init__(f"Montant illisible : {raw!r}")
