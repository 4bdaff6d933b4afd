"""
HTTP tests through FastAPI's TestClient.
"""

from billtracker.db import BillStore
from billtracker.errors import StoreError
from billtracker.main import create_app

DOCTOR = {
    "billfrom": "Primary Care Doctor",
    "billType": "Medical",
    "amountDue": 56.15,
    "dueDate": "2025-09-15",
}


def _add(client, body=None):
    resp = client.post("/addbill", json=body or DOCTOR)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestHealth:

    def test_health(self, client):
        for path in ("/", "/health"):
            resp = client.get(path)
            assert resp.status_code == 200
            assert resp.json()["ok"] is True


class TestBillsApi:

    def test_add_returns_created_bill(self, client):
        bill = _add(client)
        assert bill["billid"] >= 1
        assert bill["billfrom"] == "Primary Care Doctor"
        assert bill["amountDue"] == 56.15
        assert bill["dueDate"] == "2025-09-15"
        assert bill["isPaid"] is False
        assert bill["paidInFull"] is False
        assert bill["amountPaid"] == 0
        assert bill["datePaid"] == "9999-01-01"
        assert bill["paidBy"] == ""

    def test_add_ignores_derived_flags(self, client):
        body = dict(DOCTOR, isPaid=True, paidInFull=True, amountPaid=0.0, datePaid="9999-01-01", paidBy="")
        bill = _add(client, body)
        assert bill["isPaid"] is False
        assert bill["paidInFull"] is False

    def test_add_missing_field(self, client):
        body = {k: v for k, v in DOCTOR.items() if k != "amountDue"}
        resp = client.post("/addbill", json=body)
        assert resp.status_code == 400
        assert resp.json()["fields"] == ["amountDue"]
        assert client.get("/bills").json() == []

    def test_add_unknown_field(self, client):
        resp = client.post("/addbill", json=dict(DOCTOR, color="blue"))
        assert resp.status_code == 400
        assert "color" in resp.json()["fields"]

    def test_list_and_get(self, client):
        first = _add(client)
        second = _add(client, dict(DOCTOR, billfrom="Gas Co", billType="Utility"))
        listed = client.get("/bills").json()
        assert [b["billid"] for b in listed] == [first["billid"], second["billid"]]
        one = client.get(f"/bills/{second['billid']}")
        assert one.status_code == 200
        assert one.json()["billfrom"] == "Gas Co"

    def test_list_filters(self, client):
        _add(client)
        gas = _add(client, dict(DOCTOR, billfrom="Gas Co", billType="Utility"))
        assert [b["billid"] for b in client.get("/bills", params={"q": "utility"}).json()] == [gas["billid"]]
        assert client.get("/bills", params={"status": "paid"}).json() == []
        assert client.get("/bills", params={"status": "void"}).status_code == 400

    def test_pay_in_full(self, client):
        bill = _add(client)
        resp = client.patch(
            f"/paybill/{bill['billid']}",
            json={"amountDue": 56.15, "amountPaid": 56.15, "datePaid": "2025-08-12", "paidBy": "Visa", "isPaid": False},
        )
        assert resp.status_code == 200
        assert resp.text == f"The bills table has been updated successfully for payment of the billId: {bill['billid']}"
        stored = client.get(f"/bills/{bill['billid']}").json()
        assert stored["isPaid"] is True
        assert stored["paidInFull"] is True
        assert stored["datePaid"] == "2025-08-12"

    def test_pay_partial_and_amount_paid(self, client):
        bill = _add(client)
        resp = client.patch(
            f"/paybill/{bill['billid']}",
            json={"amountDue": 56.15, "amountPaid": 15.57, "datePaid": "2025-08-10", "paidBy": "Visa"},
        )
        assert resp.status_code == 200
        stored = client.get(f"/bills/{bill['billid']}").json()
        assert (stored["isPaid"], stored["paidInFull"]) == (True, False)
        assert client.get(f"/bills/amountPaid/{bill['billid']}").json() == {"amountPaid": 15.57}

    def test_pay_missing_fields(self, client):
        bill = _add(client)
        resp = client.patch(f"/paybill/{bill['billid']}", json={"amountDue": 56.15, "amountPaid": 10})
        assert resp.status_code == 400
        assert resp.json()["fields"] == ["datePaid", "paidBy"]

    def test_pay_not_found(self, client):
        resp = client.patch("/paybill/77", json={"amountPaid": 10, "datePaid": "2025-08-10", "paidBy": "Cash"})
        assert resp.status_code == 404

    def test_update(self, client):
        bill = _add(client)
        body = dict(DOCTOR, amountDue=70, amountPaid=70, datePaid="2025-09-01", paidBy="Cash", paidInFull=False)
        resp = client.patch(f"/updatebill/{bill['billid']}", json=body)
        assert resp.status_code == 200
        stored = client.get(f"/bills/{bill['billid']}").json()
        assert stored["amountDue"] == 70
        assert stored["paidInFull"] is True

    def test_update_missing_required(self, client):
        bill = _add(client)
        resp = client.patch(f"/updatebill/{bill['billid']}", json={"billfrom": "X"})
        assert resp.status_code == 400
        assert resp.json()["fields"] == ["billType", "amountDue", "dueDate"]

    def test_delete(self, client):
        bill = _add(client)
        resp = client.delete(f"/bills/{bill['billid']}")
        assert resp.status_code == 200
        assert resp.text == f"Successfully deleted the bill with the billId: {bill['billid']}"
        assert client.get(f"/bills/{bill['billid']}").status_code == 404
        assert client.delete(f"/bills/{bill['billid']}").status_code == 404

    def test_non_numeric_id_rejected(self, client):
        for method, path in (("get", "/bills/abc"), ("delete", "/bills/1.5"), ("get", "/bills/amountPaid/x")):
            resp = getattr(client, method)(path)
            assert resp.status_code == 400
            assert resp.json()["fields"] == ["billId"]

    def test_id_beyond_sqlite_integer(self, client):
        for method, path in (("get", "/bills/99999999999999999999"), ("delete", f"/bills/{2 ** 63}")):
            resp = getattr(client, method)(path)
            assert resp.status_code == 400
            assert resp.json()["fields"] == ["billId"]
        resp = client.patch(f"/paybill/{2 ** 64}", json={"amountPaid": 1, "datePaid": "2025-08-10", "paidBy": "Cash"})
        assert resp.status_code == 400

    def test_amount_too_large(self, client):
        resp = client.post("/addbill", json=dict(DOCTOR, amountDue=1e17))
        assert resp.status_code == 400
        assert resp.json()["fields"] == ["amountDue"]
        assert client.get("/bills").json() == []

    def test_negative_amount(self, client):
        bill = _add(client)
        resp = client.patch(
            f"/updatebill/{bill['billid']}",
            json=dict(DOCTOR, amountPaid=-5),
        )
        assert resp.status_code == 400
        assert resp.json()["fields"] == ["amountPaid"]

    def test_pay_ignores_malformed_client_amount_due(self, client):
        bill = _add(client)
        resp = client.patch(
            f"/paybill/{bill['billid']}",
            json={"amountDue": "56.155", "amountPaid": 56.15, "datePaid": "2025-08-12", "paidBy": "Visa"},
        )
        assert resp.status_code == 200
        assert client.get(f"/bills/{bill['billid']}").json()["paidInFull"] is True

    def test_missing_bill_reads_are_404(self, client):
        for path in ("/bills/5", "/bills/amountPaid/5"):
            resp = client.get(path)
            assert resp.status_code == 404
            assert resp.json() == {"detail": "Bill 5 not found"}

    def test_too_many_decimals(self, client):
        resp = client.post("/addbill", json=dict(DOCTOR, amountDue="56.155"))
        assert resp.status_code == 400
        assert resp.json()["fields"] == ["amountDue"]


class _BrokenStore(BillStore):
    def select_all(self):
        raise StoreError("disk on fire")


def test_store_error_is_opaque(tmp_path):
    from fastapi.testclient import TestClient

    store = _BrokenStore.open(str(tmp_path / "broken.sqlite3"), max_size=1)
    with TestClient(create_app(store)) as client:
        resp = client.get("/bills")
    assert resp.status_code == 500
    assert resp.json() == {"detail": "Bill store unavailable"}
