"""Export Excel du relevé et du journal CMI."""

from datetime import datetime

import pytest
from openpyxl import load_workbook

from bako.models.cmi import CMIJournalEntry
from bako.services.statement_export import (
    CMI_HEADERS,
    export_cmi_journal,
    export_statement,
    statement_table,
)
from bako.services.statement_service import parse_workbook

HEADERS = ["Date", "Libellé", "Détail", "Valeur", "Débit", "Crédit", "Réf"]


@pytest.fixture
def sheet():
    return parse_workbook({
        "Mars": [
            HEADERS,
            [datetime(2024, 3, 5), "VIREMENT", "x", "y", 800, 0, "R1"],
            [datetime(2024, 3, 6), "REMISE TPE", "x", "y", None, "1 234,50", "R2"],
        ]
    }).sheet("Mars")


def test_statement_table_columns_and_footer(sheet):
    headers, body = statement_table(sheet.rows, sheet.headers)

    assert headers == ["Date", "Libellé", "Débit", "Crédit", "Pointage", "Réf"]
    assert body[0] == ["05/03/2024", "VIREMENT", 800.0, None, None, "R1"]
    assert body[1] == ["06/03/2024", "REMISE TPE", None, 1234.5, None, "R2"]
    assert body[2] == ["TOTAUX", None, 800.0, 1234.5, None, None]


def test_statement_table_pointage_at_end_without_credit():
    sheet = parse_workbook({"S": [["Date", "Montant"], [datetime(2024, 3, 5), 10]]}).sheet("S")
    headers, body = statement_table(sheet.rows, sheet.headers)
    assert headers == ["Date", "Montant", "Pointage"]
    assert body[-1] == ["TOTAUX", 10.0, None]


def test_export_statement_styling(tmp_path, sheet):
    path = export_statement(sheet.rows, sheet.headers, tmp_path, sheet_name="Mars")
    assert path.name == "Bako_Releve_Mars.xlsx"

    wb = load_workbook(path)
    ws = wb["Données"]
    assert [c.value for c in ws[1]] == ["Date", "Libellé", "Débit", "Crédit", "Pointage", "Réf"]

    header = ws["A1"]
    assert header.font.bold
    assert header.font.size == 12
    assert header.fill.start_color.rgb.endswith("F2F2F2")
    assert header.border.top.style == "medium"

    assert ws["A2"].border.top.style == "thin"
    assert ws["C2"].number_format == "0.00"

    footer = ws["A4"]
    assert footer.value == "TOTAUX"
    assert footer.font.bold
    assert footer.border.bottom.style == "medium"

    assert ws.column_dimensions["A"].width == 18
    assert ws.column_dimensions["B"].width == 45
    assert ws.column_dimensions["C"].width == 20
    assert ws.column_dimensions["E"].width == 10
    assert ws.column_dimensions["F"].width == 25


def test_export_cmi_journal(tmp_path):
    entries = [
        CMIJournalEntry(date="2024-03-01", brut="1000", commission="10", tva="1", net="989.00"),
        CMIJournalEntry(date="2024-03-02"),
        CMIJournalEntry(date="2024-03-03", brut="500", commission="5", tva="0.5", net="494.50"),
    ]
    path = export_cmi_journal(entries, "2024-03", tmp_path)
    assert path.name == "Bako_CMI_2024-03.xlsx"

    ws = load_workbook(path)["Données"]
    rows = [[c.value for c in r] for r in ws.iter_rows()]
    assert rows[0] == CMI_HEADERS
    assert rows[1] == ["01/03/2024", 1000, 10, 1, 989, None]
    assert rows[2] == ["02/03/2024", None, None, None, None, None]
    assert rows[-1] == ["TOTAUX", 1500, 15, 1.5, 1483.5, None]
