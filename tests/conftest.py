import pytest
from fastapi.testclient import TestClient

from billtracker.db import BillStore
from billtracker.main import create_app
from billtracker.service import BillService


@pytest.fixture
def store(tmp_path):
    s = BillStore.open(str(tmp_path / "bills.sqlite3"), max_size=3, timeout=1)
    s.init_db()
    yield s
    s.close()


@pytest.fixture
def service(store):
    return BillService(store)


@pytest.fixture
def client(tmp_path):
    app = create_app(BillStore.open(str(tmp_path / "api.sqlite3"), max_size=3, timeout=1))
    with TestClient(app) as c:
        yield c
