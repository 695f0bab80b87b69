"""Persistance JSON, magasin des journées et paramètres."""

import json
import os

import pytest

from bako.models.day_sales import DaySalesView
from bako.services.settings import EngineSettings, load_settings, resolve_data_dir
from bako.storage.day_store import DayStore
from bako.storage.json_repo import JsonRepository


# ---------- JsonRepository ----------

def test_repository_crud(tmp_path):
    repo = JsonRepository(tmp_path / "items.json", entity_name="item")
    repo.add({"id": "a", "v": 1})
    repo.add({"id": "b", "v": 2})

    with pytest.raises(ValueError):
        repo.add({"id": "a", "v": 3})
    with pytest.raises(ValueError):
        repo.add({"v": 3})

    repo.update({"id": "a", "v": 10})
    assert repo.get("a") == {"id": "a", "v": 10}
    with pytest.raises(KeyError):
        repo.update({"id": "zz", "v": 0})

    repo.upsert({"id": "c", "v": 5})
    assert [r["id"] for r in repo.list_all()] == ["a", "b", "c"]
    assert repo.find_one(lambda r: r["v"] == 5)["id"] == "c"
    assert len(repo.find(lambda r: r["v"] > 1)) == 3

    assert repo.delete("b") is True
    assert repo.delete("b") is False


def test_repository_custom_key(tmp_path):
    repo = JsonRepository(tmp_path / "days.json", key="date")
    repo.upsert({"date": "2024-03-05", "x": 1})
    repo.upsert({"date": "2024-03-05", "x": 2})
    assert repo.list_all() == [{"date": "2024-03-05", "x": 2}]


def test_repository_skips_unchanged_write(tmp_path):
    path = tmp_path / "items.json"
    repo = JsonRepository(path, backup_enabled=False)
    repo.replace_all([{"id": "a"}])
    os.utime(path, (1_000_000, 1_000_000))

    repo.replace_all([{"id": "a"}])
    assert os.path.getmtime(path) == 1_000_000


def test_repository_keeps_backups(tmp_path):
    path = tmp_path / "items.json"
    repo = JsonRepository(path, backup_keep=2)
    repo.add({"id": "a"})
    backups = list(tmp_path.glob("items.*.bak.json"))
    assert 1 <= len(backups) <= 2


def test_repository_prunes_old_backups(tmp_path):
    path = tmp_path / "items.json"
    repo = JsonRepository(path, backup_keep=2)
    for i in range(5):
        repo.upsert({"id": "a", "v": i})

    backups = sorted(tmp_path.glob("items.*.bak.json"))
    assert len(backups) == 2
    # la plus récente est l'avant-dernier état
    assert json.loads(backups[-1].read_text(encoding="utf-8")) == [{"id": "a", "v": 3}]


def test_repository_write_leaves_no_temporary_file(tmp_path):
    repo = JsonRepository(tmp_path / "items.json", backup_enabled=False)
    repo.add({"id": "a"})
    assert sorted(p.name for p in tmp_path.iterdir()) == ["items.json"]
    assert json.loads((tmp_path / "items.json").read_text(encoding="utf-8")) == [{"id": "a"}]


def test_repository_recovers_from_corrupt_file(tmp_path):
    path = tmp_path / "items.json"
    path.write_text("{ pas du json", encoding="utf-8")
    repo = JsonRepository(path)

    assert repo.list_all() == []
    assert (tmp_path / "items.corrupt.json").exists()

    repo.add({"id": "a"})
    assert repo.list_all() == [{"id": "a"}]


# ---------- DayStore ----------

def test_day_store_put_and_get(days):
    assert days.get("2024-03-05") is None

    days.put("2024-03-05", "real", DaySalesView(nb_tickets="10", hours="7h-20h"))
    record = days.put("2024-03-05", "declared", DaySalesView(nb_tickets="6"))

    assert record.real.nb_tickets == "10"
    stored = days.get("2024-03-05")
    assert stored.real.model_extra["hours"] == "7h-20h"
    assert stored.declared.nb_tickets == "6"


def test_day_store_rejects_bad_keys(days):
    with pytest.raises(ValueError):
        days.get("05/03/2024")
    with pytest.raises(ValueError):
        days.put("2024-03-05", "other", DaySalesView())


def test_day_store_list_range(days):
    for d in ("2024-03-10", "2024-03-01", "2024-04-01", "2024-02-29"):
        days.put(d, "real", DaySalesView())
    assert list(days.list_range("2024-03-01", "2024-03-31")) == ["2024-03-01", "2024-03-10"]


def test_day_store_ignores_invalid_record(tmp_path):
    (tmp_path / "daily_sales.json").write_text(
        json.dumps([{"date": "2024-03-05", "real": {"status": "inconnu"}}]), encoding="utf-8"
    )
    assert DayStore(data_dir=tmp_path).get("2024-03-05") is None


# ---------- Paramètres ----------

def test_settings_defaults_without_file(tmp_path):
    assert load_settings(tmp_path) == EngineSettings()


def test_settings_read_from_ventes_section(tmp_path):
    (tmp_path / "settings.json").write_text(
        json.dumps({"ventes": {"default_coeff_imp": 0.5, "cmi_tier": "CMI-MA"}, "autre": {}}),
        encoding="utf-8",
    )
    s = load_settings(tmp_path)
    assert s.default_coeff_imp == 0.5
    assert s.cmi_tier == "CMI-MA"
    assert s.default_coeff_exo == 1.11


@pytest.mark.parametrize("content", ["{ corrompu", json.dumps({"ventes": {"vat_rate": "abc"}}), "[]"])
def test_settings_fall_back_to_defaults(tmp_path, content):
    (tmp_path / "settings.json").write_text(content, encoding="utf-8")
    assert load_settings(tmp_path) == EngineSettings()


def test_data_dir_from_environment(tmp_path, monkeypatch):
    target = tmp_path / "donnees"
    monkeypatch.setenv("BAKO_DATA_DIR", str(target))
    assert resolve_data_dir() == target
    assert target.is_dir()
