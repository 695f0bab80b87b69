import pytest

from bako.models.day_sales import DaySalesView, GlovoBreakdown, Payments
from bako.services.cmi_journal import CMIJournalService
from bako.services.ledger_service import BankLedgerService
from bako.storage.day_store import DayStore


@pytest.fixture
def days(tmp_path):
    return DayStore(data_dir=tmp_path)


@pytest.fixture
def ledger(tmp_path):
    return BankLedgerService(data_dir=tmp_path)


@pytest.fixture
def cmi(tmp_path):
    return CMIJournalService(data_dir=tmp_path)


@pytest.fixture
def real_day():
    """Journée type : 1000 de boulangerie, 500 de viennoiserie, 100 tickets."""
    return DaySalesView(
        sales={"BOULANGERIE": "1000.00", "VIENNOISERIE": "500.00"},
        payments=Payments(nb_cmi="12", mt_cmi="1000", nb_chq="1", mt_chq="100", especes="400"),
        glovo=GlovoBreakdown(brut="200", incid="0", cash="20"),
        nb_tickets="100",
    )
