"""Journal mensuel des ventes et saisies en ligne."""

import pytest

from bako.models.day_sales import DaySalesView
from bako.services.sales_service import SalesJournalService, day_label, period_days, period_totals
from bako.services.sync_service import SalesSyncService

DAY = "2024-03-05"


@pytest.fixture
def journal(days):
    return SalesJournalService(days)


@pytest.fixture
def synced_day(days, ledger, real_day):
    SalesSyncService(days, ledger).sync("real", real_day, DAY)
    return DAY


def test_day_label():
    assert day_label(DAY) == "Mar 05/03/24"
    assert day_label("2024-03-10") == "Dim 10/03/24"


@pytest.mark.parametrize("period, count, first, last", [
    ("FULL", 29, "2024-02-01", "2024-02-29"),
    ("Q1", 15, "2024-02-01", "2024-02-15"),
    ("Q2", 14, "2024-02-16", "2024-02-29"),
])
def test_period_days(period, count, first, last):
    keys = period_days(2024, 2, period)
    assert (len(keys), keys[0], keys[-1]) == (count, first, last)


def test_period_days_unknown():
    with pytest.raises(ValueError):
        period_days(2024, 2, "Q3")


def test_update_glovo_rederives_declared(journal, days, synced_day):
    real = journal.update_glovo(synced_day, "brut", "300")
    assert real.glovo.brut == "300"
    # 300 * 0.82 - 0 - 20
    assert real.calculated.glovo == "226.00"

    declared = days.get(synced_day).declared
    assert declared.glovo.brut_imp == "225.00"
    assert declared.glovo.brut_exo == "30.00"
    # 1410 - 1000 - 100 - 300 + 20
    assert declared.calculated.esp == "30.00"


def test_update_glovo_blank_becomes_zero(journal, synced_day):
    real = journal.update_glovo(synced_day, "cash", "")
    assert real.glovo.cash == "0"
    assert real.calculated.glovo == "164.00"


def test_update_coefficients(journal, days, synced_day):
    declared = journal.update_coefficients(synced_day, coeff_imp="0.5")
    assert declared.coeff_imp == "0.5"
    assert declared.calculated.ttc == "1360.00"
    assert days.get(synced_day).declared.nb_tickets == "50"
    # le réel n'est pas touché
    assert days.get(synced_day).real.calculated.ttc == "1500.00"


def test_month_rows(journal, synced_day):
    rows = journal.month_rows(2024, 3)
    assert len(rows) == 31

    row = rows[4]
    assert row.date == synced_day
    assert row.status == "synced"
    assert row.ttc == "1500.00"
    assert row.cmi == "1000.00"
    assert row.declared_ttc == "1410.00"
    assert row.coeff_imp == "0.6"
    assert row.compta.exo == "1110.00"
    assert row.compta.imp_ht == "250.00"
    assert row.compta.glovo_imp == "150.00"

    empty = rows[0]
    assert empty.status is None
    assert empty.ttc == "0.00"
    assert empty.coeff_imp == "0.60"


def test_period_totals_modes(journal, days, synced_day):
    other = DaySalesView(sales={"BOULANGERIE": "100"}, nb_tickets="10")
    journal.update_coefficients("2024-03-20")  # journée sans saisie réelle
    days.put("2024-03-21", "real", other)

    rows = journal.month_rows(2024, 3, "FULL")
    saisie = period_totals(rows, "saisie")
    compta = period_totals(rows, "compta")

    assert saisie["ttc"] == pytest.approx(1500.0)
    assert compta["ttc"] == pytest.approx(1410.0)
    assert compta["exo"] == pytest.approx(1110.0)
    assert saisie["declared_ttc"] == pytest.approx(1410.0)
    assert saisie["glovo_brut"] == pytest.approx(200.0)
    assert saisie["glovo_cash"] == pytest.approx(20.0)
    assert compta["cmi"] == saisie["cmi"] == pytest.approx(1000.0)
