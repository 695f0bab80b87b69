from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import threading
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
Item = Union[BaseModel, Mapping[str, Any]]


def _json_default(o: Any) -> Any:
    if isinstance(o, (date, datetime)):
        return o.isoformat()
    return str(o)


def _dump(records: Iterable[Mapping[str, Any]]) -> str:
    return json.dumps(list(records), ensure_ascii=False, indent=2, default=_json_default)


class JsonRepository:
    """
    Collection JSON (liste d'objets) avec clé primaire configurable.
    - Écriture complète du fichier à chaque mutation (dernier écrit gagne),
      via un fichier temporaire renommé : jamais de fichier à moitié écrit
    - N'écrit pas si le contenu ne change pas
    - Copies ``<nom>.<horodatage>.bak.json`` avant écriture, les
      ``backup_keep`` plus récentes sont gardées
    - Un fichier illisible est mis de côté en ``<nom>.corrupt.json``
    """

    def __init__(
        self,
        filepath: Union[str, Path],
        entity_name: str = "entity",
        key: str = "id",
        *,
        backup_enabled: bool = True,
        backup_keep: int = 5,
    ) -> None:
        self.filepath = Path(filepath)
        self.entity_name = entity_name
        self.key = key
        self.backup_enabled = backup_enabled
        self.backup_keep = max(0, int(backup_keep))
        self._lock = threading.Lock()

        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        if not self.filepath.exists():
            self._write_raw([])

    # ---------------- Fichiers annexes ---------------- #

    def _sibling(self, tag: str) -> Path:
        return self.filepath.with_name(f"{self.filepath.stem}.{tag}.json")

    def _quarantine(self) -> None:
        target = self._sibling("corrupt")
        logger.warning("%s: JSON illisible, copie dans %s", self.filepath, target.name)
        try:
            shutil.copy2(self.filepath, target)
        except OSError as e:
            logger.warning("Copie du fichier corrompu impossible: %s", e)

    def _snapshot(self) -> None:
        if not (self.backup_enabled and self.backup_keep > 0 and self.filepath.exists()):
            return
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
        try:
            shutil.copy2(self.filepath, self._sibling(f"{stamp}.bak"))
        except OSError as e:
            logger.warning("Backup de %s impossible: %s", self.filepath, e)
            return
        # l'horodatage trie les copies de la plus ancienne à la plus récente
        snapshots = sorted(self.filepath.parent.glob(f"{self.filepath.stem}.*.bak.json"))
        for old in snapshots[: -self.backup_keep]:
            try:
                old.unlink()
            except OSError as e:
                logger.warning("Suppression du backup %s impossible: %s", old.name, e)

    # ---------------- Lecture / écriture ---------------- #

    def _read_raw(self) -> List[Record]:
        try:
            text = self.filepath.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            self._quarantine()
            return []
        return data if isinstance(data, list) else []

    def _write_raw(self, data: Iterable[Mapping[str, Any]]) -> None:
        text = _dump(data)
        with self._lock:
            try:
                if self.filepath.read_text(encoding="utf-8") == text:
                    return
            except OSError:
                pass  # absent ou illisible : on écrit

            self._snapshot()
            fd, tmp = tempfile.mkstemp(dir=self.filepath.parent, prefix=f".{self.filepath.stem}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(text)
                os.replace(tmp, self.filepath)
            except Exception:
                Path(tmp).unlink(missing_ok=True)
                raise

    @staticmethod
    def _to_dict(item: Item) -> Record:
        if isinstance(item, BaseModel):
            return item.model_dump(mode="json")
        return dict(item)

    def _same_key(self, record: Mapping[str, Any], key_value: Any) -> bool:
        return str(record.get(self.key)) == str(key_value)

    # ---------------- CRUD ---------------- #

    def list_all(self) -> List[Record]:
        return self._read_raw()

    def get(self, key_value: Any) -> Optional[Record]:
        for it in self._read_raw():
            if self._same_key(it, key_value):
                return it
        return None

    def add(self, item: Item) -> Record:
        record = self._to_dict(item)
        k = self.key
        if not record.get(k):
            raise ValueError(f"Cannot add {self.entity_name} without '{k}'")
        data = self._read_raw()
        if any(self._same_key(d, record[k]) for d in data):
            raise ValueError(f"{self.entity_name} with {k}={record[k]} already exists")
        data.append(record)
        self._write_raw(data)
        return record

    def update(self, item: Item) -> Record:
        """Remplace l'objet complet (pas de fusion champ à champ)."""
        record = self._to_dict(item)
        obj_id = record.get(self.key)
        if not obj_id:
            raise ValueError(f"Cannot update {self.entity_name} without '{self.key}'")
        data = self._read_raw()
        for idx, existing in enumerate(data):
            if self._same_key(existing, obj_id):
                data[idx] = record
                self._write_raw(data)
                return record
        raise KeyError(f"{self.entity_name} with {self.key}={obj_id} not found")

    def upsert(self, item: Item) -> Record:
        try:
            return self.update(item)
        except KeyError:
            return self.add(item)

    def delete(self, key_value: Any) -> bool:
        data = self._read_raw()
        new_data = [d for d in data if not self._same_key(d, key_value)]
        changed = len(new_data) != len(data)
        if changed:
            self._write_raw(new_data)
        return changed

    def replace_all(self, items: Iterable[Item]) -> None:
        self._write_raw([self._to_dict(it) for it in items])

    # ---------------- Recherches ---------------- #

    def find(self, predicate: Callable[[Record], bool]) -> List[Record]:
        return [r for r in self._read_raw() if predicate(r)]

    def find_one(self, predicate: Callable[[Record], bool]) -> Optional[Record]:
        for r in self._read_raw():
            if predicate(r):
                return r
        return None
