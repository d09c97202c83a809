"""api.main: FastAPI endpoints against an in-memory dataset."""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

import api.main as api_main
from api.main import app
import salesdash.store as store_module
from salesdash.export import BOM
from salesdash.store import DatasetStore

FULL_RANGE = {"start_year": 2022, "start_month": 1, "end_year": 2023, "end_month": 12}


@pytest.fixture
def client(monkeypatch, sample_raw):
    store = DatasetStore()
    store.replace(sample_raw, source="fixture")
    monkeypatch.setattr(store_module, "_store", store)
    return TestClient(app)


def _login(client, username, password):
    resp = client.post("/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return {"X-Session-Token": resp.json()["token"]}


@pytest.fixture
def admin(client):
    return _login(client, "admin", "admin")


@pytest.fixture
def dept_a(client):
    return _login(client, "Sales-A", "abcd1234")


class TestAuth:
    def test_bad_login(self, client) -> None:
        resp = client.post("/login", json={"username": "admin", "password": "x"})
        assert resp.status_code == 401
        assert resp.json()["type"] == "AuthenticationError"

    def test_login_returns_default_filters(self, client) -> None:
        body = client.post("/login", json={"username": "Sales-A", "password": "abcd1234"}).json()
        assert body["session"]["department"] == "Sales-A"
        assert body["filters"]["department"] == "Sales-A"
        assert body["filters"]["start_year"] == 2023

    def test_requires_session(self, client) -> None:
        assert client.get("/meta/years").status_code == 401

    def test_logout(self, client, admin) -> None:
        client.post("/logout", headers=admin)
        assert client.get("/meta/years", headers=admin).status_code == 401


class TestDashboard:
    def test_meta(self, client, admin) -> None:
        assert client.get("/meta/years", headers=admin).json() == {"years": [2022, 2023]}
        assert client.get("/meta/dataset", headers=admin).json()["records"] == 6

    def test_options_scoped(self, client, dept_a) -> None:
        assert client.get("/meta/options", headers=dept_a).json()["department"] == ["Sales-A"]

    def test_admin_dashboard(self, client, admin) -> None:
        body = client.post("/dashboard", json=FULL_RANGE, headers=admin).json()
        assert body["kpis"]["record_count"] == 6
        assert [p["name"] for p in body["stats"]["department"]] == ["Sales-A", "Sales-B"]
        assert len(body["trend"]["points"]) == 12

    def test_department_constraint_not_widened(self, client, dept_a) -> None:
        body = client.post("/dashboard", json={**FULL_RANGE, "department": "Sales-B"}, headers=dept_a).json()
        assert body["kpis"]["record_count"] == 0

    def test_default_filters_use_latest_year(self, client, admin) -> None:
        body = client.post("/dashboard", json={}, headers=admin).json()
        assert body["filters"]["start_year"] == 2023
        assert body["kpis"]["record_count"] == 5

    def test_ranking_page(self, client, admin) -> None:
        body = client.post("/ranking/salesperson?page=1&page_size=2", json=FULL_RANGE, headers=admin).json()
        assert body["total_items"] == 3
        assert body["total_pages"] == 2
        assert [r["rank"] for r in body["rows"]] == [1, 2]

    def test_ranking_unknown_field(self, client, dept_a) -> None:
        assert client.post("/ranking/department", json=FULL_RANGE, headers=dept_a).status_code == 400

    def test_trend(self, client, admin) -> None:
        body = client.post("/trend", json=FULL_RANGE, headers=admin).json()
        assert body["years"] == ["2022", "2023"]
        assert body["points"][2]["values"] == {"2022": 80.0, "2023": 300.0}


class TestAdminOperations:
    def test_export(self, client, admin) -> None:
        resp = client.post("/export/summary", json=FULL_RANGE, headers=admin)
        assert resp.status_code == 200
        assert "attachment; filename=sales_summary_report_" in resp.headers["content-disposition"]
        text = resp.content.decode("utf-8")
        assert text.startswith(BOM + "部门销售占比\n")

    def test_export_forbidden_for_department(self, client, dept_a) -> None:
        assert client.post("/export/summary", json=FULL_RANGE, headers=dept_a).status_code == 403

    def test_import_replaces_dataset(self, client, admin) -> None:
        payload = json.dumps([{"单品名称": "花生油", "发货日期": "2019-09-09", "amount": 12}]).encode("utf-8")
        resp = client.post("/import", files={"file": ("new.json", payload, "application/json")}, headers=admin)
        assert resp.status_code == 200, resp.text
        assert resp.json()["records"] == 1
        assert client.get("/meta/years", headers=admin).json() == {"years": [2019]}

    def test_bad_import_keeps_dataset(self, client, admin) -> None:
        resp = client.post("/import", files={"file": ("bad.json", b'{"a": 1}', "application/json")}, headers=admin)
        assert resp.status_code == 400
        assert client.get("/meta/dataset", headers=admin).json()["records"] == 6

    def test_import_forbidden_for_department(self, client, dept_a) -> None:
        resp = client.post("/import", files={"file": ("x.json", b"[]", "application/json")}, headers=dept_a)
        assert resp.status_code == 403

    def test_reset(self, client, admin) -> None:
        resp = client.post("/reset", headers=admin)
        assert resp.status_code == 200
        assert resp.json()["is_custom"] is False


def test_main_serves_app_with_configured_address(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(api_main.uvicorn, "run", lambda target, **kwargs: calls.append((target, kwargs)))
    api_main.main()
    assert calls == [
        (app, {"host": api_main.settings.host, "port": api_main.settings.port, "log_level": api_main.settings.log_level.lower()})
    ]
