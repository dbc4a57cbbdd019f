# Overview: Pytest coverage for the HTTP API (auth, reports, contacts, signing, uploads).

import io
from urllib.parse import unquote

import httpx
import pytest

from laborslip.extensions import db
from laborslip.models import ContactProfile, IncomeRecord
from laborslip.services import notification_service
from conftest import TEST_PASSWORD, auth_headers


REPORT_BODY = {
    "payee_name": "林講師",
    "income_type": "9A",
    "gross_amount": 50000,
    "payment_date": "2026-03-15",
}


def _create(client, headers, **overrides):
    body = dict(REPORT_BODY, **overrides)
    return client.post("/api/reports", json=body, headers=headers)


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/reports"),
            ("POST", "/api/reports"),
            ("GET", "/api/reports/1"),
            ("POST", "/api/reports/1/cancel"),
            ("POST", "/api/reports/batch-delete"),
            ("GET", "/api/reports/export"),
            ("GET", "/api/contacts"),
            ("GET", "/api/contacts/lookup"),
            ("GET", "/api/companies"),
            ("GET", "/api/line/groups"),
            ("POST", "/api/line/send"),
            ("POST", "/api/uploads"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"


# =============================================================================
# AUTH
# =============================================================================


class TestAuth:

    def test_login_returns_token_and_companies(self, client, user_a, company_a):
        resp = client.post("/api/auth/login", json={"username": "user_a", "password": TEST_PASSWORD})
        assert resp.status_code == 200
        assert resp.json["token"]
        assert [c["id"] for c in resp.json["companies"]] == [company_a.id]

    def test_login_by_email(self, client, user_a):
        resp = client.post("/api/auth/login", json={"email": "user_a@example.com", "password": TEST_PASSWORD})
        assert resp.status_code == 200

    def test_wrong_password(self, client, user_a):
        resp = client.post("/api/auth/login", json={"username": "user_a", "password": "wrong-pass1"})
        assert resp.status_code == 401

    def test_missing_credentials(self, client, db_session):
        assert client.post("/api/auth/login", json={}).status_code == 400

    def test_validate_and_logout(self, client, token_a):
        headers = auth_headers(token_a)
        assert client.post("/api/auth/validate", headers=headers).status_code == 200
        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.post("/api/auth/validate", headers=headers).status_code == 401

    def test_companies(self, client, token_a, company_a):
        resp = client.get("/api/companies", headers=auth_headers(token_a))
        assert resp.status_code == 200
        assert resp.json["companies"][0]["name"] == company_a.name


# =============================================================================
# REPORTS
# =============================================================================


class TestReportsApi:

    def test_create_and_get(self, client, headers_a):
        resp = _create(client, headers_a, income_tax=1, net_amount=999999)
        assert resp.status_code == 201
        report = resp.json["report"]
        assert report["status"] == "pending"
        # Client-supplied amounts are ignored
        assert (report["income_tax"], report["health_insurance"], report["net_amount"]) == (5000, 1055, 43945)
        assert report["sign_url"] == f"https://slips.example.com/sign/{report['sign_token']}"
        assert resp.json["notified"] is False

        resp = client.get(f"/api/reports/{report['id']}", headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["report"]["report_number"] == report["report_number"]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"income_type": "A"},
            {"gross_amount": -100},
            {"gross_amount": "12.5"},
            {"payment_date": "15/03/2026"},
            {"payee_name": ""},
        ],
    )
    def test_create_validation(self, client, headers_a, overrides):
        resp = _create(client, headers_a, **overrides)
        assert resp.status_code == 400
        assert resp.json["error"]

    def test_notification_failure_does_not_fail_create(self, client, app, headers_a, monkeypatch):
        monkeypatch.setitem(app.config, "LINE_CHANNEL_ACCESS_TOKEN", "test-channel-token")

        def broken_post(url, **kwargs):
            raise httpx.ConnectTimeout("timed out", request=httpx.Request("POST", url))

        monkeypatch.setattr(notification_service.httpx, "post", broken_post)

        resp = _create(client, headers_a, line_group_id="Cgroup1")
        assert resp.status_code == 201
        assert resp.json["notified"] is False
        assert db.session.query(IncomeRecord).count() == 1

    def test_notification_sent_on_create(self, client, app, headers_a, monkeypatch):
        monkeypatch.setitem(app.config, "LINE_CHANNEL_ACCESS_TOKEN", "test-channel-token")
        pushed = []

        def fake_post(url, headers=None, json=None, timeout=None):
            pushed.append(json)
            return httpx.Response(200, json={}, request=httpx.Request("POST", url))

        monkeypatch.setattr(notification_service.httpx, "post", fake_post)

        resp = _create(client, headers_a, line_group_id="Cgroup1")
        assert resp.json["notified"] is True
        assert resp.json["report"]["sign_token"] in pushed[0]["messages"][0]["text"]

    def test_list_filters(self, client, headers_a):
        _create(client, headers_a)
        second = _create(client, headers_a, payee_name="王小姐").json["report"]
        client.post(f"/api/reports/{second['id']}/cancel", headers=headers_a)

        resp = client.get("/api/reports?status=pending", headers=headers_a)
        assert [r["payee_name"] for r in resp.json["reports"]] == ["林講師"]
        assert client.get("/api/reports?status=bogus", headers=headers_a).status_code == 400
        assert client.get("/api/reports?start_date=nope", headers=headers_a).status_code == 400

    def test_update_pending(self, client, headers_a):
        report = _create(client, headers_a).json["report"]
        resp = client.put(f"/api/reports/{report['id']}", json={"gross_amount": 20000}, headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["report"]["net_amount"] == 19578
        assert resp.json["report"]["income_tax"] == 0
        assert resp.json["report"]["health_insurance"] == 422

    def test_signed_report_locked(self, client, headers_a, sign_payload):
        report = _create(client, headers_a).json["report"]
        client.post(f"/api/sign/{report['sign_token']}", json=sign_payload())

        resp = client.put(f"/api/reports/{report['id']}", json={"gross_amount": 1}, headers=headers_a)
        assert resp.status_code == 409
        assert resp.json["code"] == "RECORD_LOCKED"

        resp = client.post(f"/api/reports/{report['id']}/cancel", headers=headers_a)
        assert resp.status_code == 409

        # Delete-and-recreate remains possible
        assert client.delete(f"/api/reports/{report['id']}", headers=headers_a).status_code == 200

    def test_batch_delete(self, client, headers_a):
        ids = [_create(client, headers_a).json["report"]["id"] for _ in range(3)]
        resp = client.post("/api/reports/batch-delete", json={"ids": ids[:2]}, headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["deleted"] == 2
        assert client.post("/api/reports/batch-delete", json={"ids": []}, headers=headers_a).status_code == 400

    def test_export_csv(self, client, headers_a):
        _create(client, headers_a)
        resp = client.get("/api/reports/export?start_date=2026-03-01&end_date=2026-03-31", headers=headers_a)

        assert resp.status_code == 200
        assert resp.headers["Content-Type"].startswith("text/csv")
        disposition = unquote(resp.headers["Content-Disposition"])
        assert "勞報單_甲公司_20260301_20260331.csv" in disposition

        body = resp.get_data(as_text=True)
        assert body.startswith("\ufeff")
        assert len(body.strip().splitlines()) == 2

    def test_export_single(self, client, headers_a):
        report = _create(client, headers_a).json["report"]
        resp = client.get(f"/api/reports/{report['id']}/export", headers=headers_a)
        assert resp.status_code == 200
        assert f"{report['report_number']}.csv" in unquote(resp.headers["Content-Disposition"])


# =============================================================================
# PUBLIC SIGNING
# =============================================================================


class TestSigningApi:

    def test_resolve(self, client, pending_report):
        resp = client.get(f"/api/sign/{pending_report.sign_token}")
        assert resp.status_code == 200
        assert resp.json["report"]["has_complete_data"] is False
        assert resp.json["report"]["company_name"] == "甲公司股份有限公司"

    def test_unknown_token(self, client, db_session):
        resp = client.get("/api/sign/not-a-real-token")
        assert resp.status_code == 404
        assert resp.json["error"] == "找不到此勞報單或連結已失效"

    def test_sign_once(self, client, pending_report, sign_payload):
        url = f"/api/sign/{pending_report.sign_token}"
        resp = client.post(url, json=sign_payload(), headers={"X-Forwarded-For": "198.51.100.7, 10.0.0.1"})
        assert resp.status_code == 200
        assert resp.json["report_number"] == pending_report.report_number

        report = db.session.get(IncomeRecord, pending_report.id)
        assert report.signed_ip == "198.51.100.7"

        resp = client.post(url, json=sign_payload())
        assert resp.status_code == 409
        assert resp.json["code"] == "ALREADY_SIGNED"
        assert client.get(url).status_code == 409

    def test_sign_validation(self, client, pending_report, sign_payload):
        payload = sign_payload()
        payload.pop("bank_account")
        resp = client.post(f"/api/sign/{pending_report.sign_token}", json=payload)
        assert resp.status_code == 400
        assert db.session.query(ContactProfile).count() == 0

    def test_cancelled_link(self, client, headers_a, pending_report, sign_payload):
        client.post(f"/api/reports/{pending_report.id}/cancel", headers=headers_a)
        resp = client.post(f"/api/sign/{pending_report.sign_token}", json=sign_payload())
        assert resp.status_code == 409
        assert resp.json["code"] == "CANCELLED"


# =============================================================================
# CONTACTS
# =============================================================================


class TestContactsApi:

    def test_crud_and_lookup(self, client, headers_a):
        resp = client.post("/api/contacts", json={"name": "黃先生", "id_number": "g123456789"}, headers=headers_a)
        assert resp.status_code == 201
        contact = resp.json["contact"]
        assert contact["id_number"] == "G123456789"
        assert contact["is_complete"] is False

        dup = client.post("/api/contacts", json={"name": "另一位", "id_number": "G123456789"}, headers=headers_a)
        assert dup.status_code == 409

        found = client.get("/api/contacts/lookup?id_number=G123456789", headers=headers_a)
        assert found.json["found"] is True
        missing = client.get("/api/contacts/lookup?id_number=Z999999999", headers=headers_a)
        assert missing.json["found"] is False
        assert client.get("/api/contacts/lookup", headers=headers_a).status_code == 400

        resp = client.put(f"/api/contacts/{contact['id']}", json={"phone": "0911000111"}, headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["contact"]["phone"] == "0911000111"

        listing = client.get("/api/contacts", headers=headers_a).json["contacts"]
        assert listing[0]["id_number_masked"] == "G123****89"

        assert client.delete(f"/api/contacts/{contact['id']}", headers=headers_a).status_code == 200
        assert client.delete(f"/api/contacts/{contact['id']}", headers=headers_a).status_code == 404

    def test_create_requires_name(self, client, headers_a):
        assert client.post("/api/contacts", json={"id_number": "H123456789"}, headers=headers_a).status_code == 400


# =============================================================================
# UPLOADS / PUBLIC UTILITIES
# =============================================================================


class TestUploadsApi:

    def _upload(self, client, **form):
        data = {"file": (io.BytesIO(b"\xff\xd8\xff fake jpeg"), "front.jpg"), "type": "id_card_front"}
        data.update(form)
        return client.post("/api/uploads", data=data, content_type="multipart/form-data")

    def test_upload_with_sign_token(self, client, pending_report):
        resp = self._upload(client, sign_token=pending_report.sign_token)
        assert resp.status_code == 201
        assert resp.json["url"].startswith("https://slips.example.com/files/attachments/id_card_front_")

        served = client.get(f"/files/{resp.json['path']}")
        assert served.status_code == 200
        assert served.data == b"\xff\xd8\xff fake jpeg"

    def test_upload_with_session(self, client, token_a):
        headers = auth_headers(token_a)
        data = {"file": (io.BytesIO(b"%PDF-1.4"), "book.pdf"), "type": "bank_book"}
        resp = client.post("/api/uploads", data=data, headers=headers, content_type="multipart/form-data")
        assert resp.status_code == 201

    def test_upload_rejects_signed_token(self, client, pending_report, sign_payload):
        client.post(f"/api/sign/{pending_report.sign_token}", json=sign_payload())
        assert self._upload(client, sign_token=pending_report.sign_token).status_code == 401

    def test_upload_rejects_unknown_type(self, client, pending_report):
        resp = self._upload(client, sign_token=pending_report.sign_token, type="selfie")
        assert resp.status_code == 400

    def test_upload_requires_file(self, client, pending_report):
        resp = client.post(
            "/api/uploads",
            data={"type": "id_card_front", "sign_token": pending_report.sign_token},
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400


class TestPublicUtilities:

    def test_calculate(self, client):
        resp = client.post("/api/calculate", json={"gross_amount": 50000, "income_type": "9A", "is_union_member": True})
        assert resp.status_code == 200
        assert resp.json["net_amount"] == 45000

    def test_calculate_invalid(self, client):
        assert client.post("/api/calculate", json={"gross_amount": 100, "income_type": "X"}).status_code == 400
        assert client.post("/api/calculate", json={"gross_amount": -1, "income_type": "50"}).status_code == 400

    def test_income_types(self, client):
        codes = [t["code"] for t in client.get("/api/income-types").json["income_types"]]
        assert codes == ["50", "9A", "9B", "92"]

    def test_health(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["database"]["status"] == "healthy"
        assert resp.json["checks"]["line"]["status"] == "degraded"

    def test_webhook_always_ok(self, client, db_session):
        assert client.get("/api/line/webhook").status_code == 200
        resp = client.post("/api/line/webhook", json={"events": [{"type": "follow"}]})
        assert resp.status_code == 200
        assert resp.json["handled"] == 0

    def test_line_send_reports_failure(self, client, headers_a):
        resp = client.post("/api/line/send", json={
            "group_id": "Cgroup1",
            "payee_name": "林講師",
            "gross_amount": 50000,
            "net_amount": 43945,
            "sign_link": "https://slips.example.com/sign/abc",
        }, headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["success"] is False
