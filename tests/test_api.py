import pytest
from fastapi.testclient import TestClient

from api.main import app

CSV = (
    "Campaign Name,Sent,Delivered,Opened,% Opened\n"
    "Spring,1000,900,90,10%\n"
    "Summer,8000,7000,2100,30%\n"
).encode("utf-8")


@pytest.fixture
def client():
    c = TestClient(app)
    c.post("/reset")
    yield c
    c.post("/reset")


def _upload(client, name="campaigns.csv", content=CSV):
    return client.post("/upload", params={"filename": name}, content=content)


def test_upload_and_columns(client):
    r = _upload(client)
    assert r.status_code == 200
    body = r.json()
    assert body["rows"] == 2
    assert body["columns"][-1] == "Volume Group"

    meta = client.get("/meta/columns").json()
    assert "Sent" in meta["numeric_columns"]
    assert "Campaign Name" not in meta["numeric_columns"]


def test_failed_upload_keeps_previous_data(client):
    _upload(client)
    r = _upload(client, name="bad.xlsx", content=b"garbage")
    assert r.status_code == 400
    assert r.json()["type"] == "UploadParseError"
    assert "Sent" in client.get("/meta/columns").json()["columns"]


def test_overview(client):
    _upload(client)
    payload = {
        "columns": {"Sent": {"min": 5000}},
        "audit": {"enabled": True, "mode": "OR", "rules": {"% Opened": {"op": ">", "threshold": 0.2}}},
    }
    body = client.post("/overview", json=payload).json()
    assert body["row_count"] == 1
    assert body["rows"][0]["Campaign Name"] == "Summer"
    assert body["audit_flags"] == [True]
    assert body["comparison"] is None


def test_overview_without_upload(client):
    body = client.post("/overview", json={}).json()
    assert body["row_count"] == 0
    assert body["metrics"] == []


def test_invalid_audit_operator_is_rejected(client):
    r = client.post("/overview", json={"audit": {"rules": {"Sent": {"op": "=="}}}})
    assert r.status_code == 422


def test_export_and_reset(client):
    _upload(client)
    r = client.post("/export", json={"columns": {"Campaign Name": {"equals": "Spring"}}})
    assert r.status_code == 200
    lines = r.text.strip().splitlines()
    assert lines[0].startswith("Campaign Name,Sent")
    assert len(lines) == 2

    client.post("/reset")
    assert client.get("/meta/columns").json()["columns"] == []


def test_debug(client):
    _upload(client)
    body = client.post("/debug", json={}).json()
    assert body["row_counts"]["normalized_rows"] == 2
    assert body["volume_column"] == "Sent"


def test_numeric_equals_is_accepted(client):
    _upload(client)
    r = client.post("/overview", json={"columns": {"Sent": {"equals": 8000}}})
    assert r.status_code == 200
    assert r.json()["rows"][0]["Campaign Name"] == "Summer"
