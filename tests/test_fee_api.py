import datetime as dt
from decimal import Decimal

from fastapi.testclient import TestClient

from libs.event_contracts.ledger_v1 import PaymentRecorded
from libs.security.jwt import create_access_token
from fee_service.app import repository
from fee_service.app.cache import DASHBOARD_STATS
from fee_service.app.db import session_scope
from fee_service.app.session import auth_events

from conftest import make_token


def _add_student(client, headers, **overrides):
    body = {"student_name": "Amina Njoroge", "class_name": "Grade 5A", "total_fees": 500}
    body.update(overrides)
    resp = client.post("/api/students", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def _pay(client, headers, student_id, amount, **extra):
    return client.post(f"/api/students/{student_id}/payments", json={"amount": amount, **extra}, headers=headers)


def test_reads_and_writes_need_a_session(client):
    assert client.get("/api/students").status_code == 401
    assert client.get("/api/dashboard/stats").status_code == 401
    resp = client.post("/api/students", json={"student_name": "A", "class_name": "B", "total_fees": 1})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Missing bearer token"


def test_bad_tokens_rejected(client):
    resp = client.get("/api/students", headers={"Authorization": "Bearer not.a.token"})
    assert resp.status_code == 401

    resp = client.get("/api/students", headers={"Authorization": "Bearer W10.e30.abc"})
    assert resp.status_code == 401

    foreign = create_access_token("someone", key="another-secret")
    resp = client.get("/api/students", headers={"Authorization": f"Bearer {foreign}"})
    assert resp.status_code == 401

    expired = make_token(expires_min=-1)
    resp = client.get("/api/students", headers={"Authorization": f"Bearer {expired}"})
    assert resp.status_code == 401


def test_add_student_defaults(client, auth_headers):
    student = _add_student(client, auth_headers, parent_name=" Grace ", parent_contact="")
    assert student["status"] == "active"
    assert student["total_fees"] == 500.0
    assert student["parent_name"] == "Grace"
    assert student["parent_contact"] is None
    assert student["created_by"] == "11111111-1111-1111-1111-111111111111"


def test_add_student_validation_message(client, auth_headers):
    resp = client.post(
        "/api/students",
        json={"student_name": "", "class_name": "Grade 1", "total_fees": 100},
        headers=auth_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Student name is required"


def test_payment_flow_against_balance(client, auth_headers):
    student = _add_student(client, auth_headers)
    sid = student["id"]

    assert _pay(client, auth_headers, sid, 200).status_code == 201
    info = client.get(f"/api/students/{sid}", headers=auth_headers).json()
    assert info["total_paid"] == 200.0
    assert info["balance"] == 300.0
    assert info["balance_status"] == "Pending"

    resp = _pay(client, auth_headers, sid, 350)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Amount exceeds remaining balance."

    resp = _pay(client, auth_headers, sid, 300, payment_method="Cash", notes="Term 3")
    assert resp.status_code == 201
    payment = resp.json()
    assert payment["amount"] == 300.0
    assert payment["payment_date"] == dt.date.today().isoformat()

    info = client.get(f"/api/students/{sid}", headers=auth_headers).json()
    assert info["balance"] == 0.0
    assert info["balance_status"] == "Paid"


def test_payment_validation(client, auth_headers):
    sid = _add_student(client, auth_headers)["id"]
    tomorrow = (dt.date.today() + dt.timedelta(days=1)).isoformat()

    assert _pay(client, auth_headers, sid, 0).json()["detail"] == "Amount must be positive"
    assert _pay(client, auth_headers, sid, -5).json()["detail"] == "Amount must be positive"
    assert _pay(client, auth_headers, sid, 100001).json()["detail"] == "Amount exceeds maximum"
    resp = _pay(client, auth_headers, sid, 10, payment_date=tomorrow)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Cannot use future dates"


def test_payment_for_missing_student(client, auth_headers):
    resp = _pay(client, auth_headers, "does-not-exist", 10)
    assert resp.status_code == 404


def test_student_list_search_and_labels(client, auth_headers):
    a = _add_student(client, auth_headers, student_name="Brian Otieno", total_fees=500)
    b = _add_student(client, auth_headers, student_name="Amina Njoroge", total_fees=150)
    _pay(client, auth_headers, b["id"], 100)

    rows = client.get("/api/students", headers=auth_headers).json()
    assert [r["student_name"] for r in rows] == ["Amina Njoroge", "Brian Otieno"]
    assert rows[0]["balance_status"] == "Almost Paid"
    assert rows[1]["balance_status"] == "Pending"

    rows = client.get("/api/students", params={"search": "OTI"}, headers=auth_headers).json()
    assert [r["id"] for r in rows] == [a["id"]]

    rows = client.get("/api/students", params={"search": "%"}, headers=auth_headers).json()
    assert rows == []


def test_details_list_payments_newest_first(client, auth_headers):
    sid = _add_student(client, auth_headers)["id"]
    today = dt.date.today()
    _pay(client, auth_headers, sid, 10, payment_date=(today - dt.timedelta(days=20)).isoformat())
    _pay(client, auth_headers, sid, 20, payment_date=today.isoformat())
    _pay(client, auth_headers, sid, 30, payment_date=(today - dt.timedelta(days=5)).isoformat())

    details = client.get(f"/api/students/{sid}/details", headers=auth_headers).json()
    assert [p["amount"] for p in details["payments"]] == [20.0, 30.0, 10.0]
    assert details["balance"] == 440.0


def test_class_summary_endpoint(client, auth_headers):
    for cls, fees in [("Grade 5A", 500), ("Grade 10", 400), ("Grade 2", 300)]:
        _add_student(client, auth_headers, class_name=cls, total_fees=fees)

    rows = client.get("/api/dashboard/class-summary", headers=auth_headers).json()
    assert [r["class_name"] for r in rows] == ["Grade 10", "Grade 2", "Grade 5A"]
    assert all(r["collection_percent"] == 0.0 for r in rows)


def test_writes_refresh_cached_aggregates(client, auth_headers):
    sid = _add_student(client, auth_headers)["id"]
    stats = client.get("/api/dashboard/stats", headers=auth_headers).json()
    assert stats["total_paid"] == 0.0
    assert stats["pending_students"] == 1

    _pay(client, auth_headers, sid, 500)

    stats = client.get("/api/dashboard/stats", headers=auth_headers).json()
    assert stats["total_paid"] == 500.0
    assert stats["total_pending"] == 0.0
    assert stats["pending_students"] == 0


def test_cached_reads_until_invalidated(client, fee_app, auth_headers, ctx):
    sid = _add_student(client, auth_headers)["id"]
    assert client.get("/api/dashboard/stats", headers=auth_headers).json()["total_paid"] == 0.0

    # Write behind the API's back: cache still serves the old figure
    with session_scope() as db:
        row = repository.insert_payment(
            db, ctx, student_id=sid, amount=Decimal("120"),
            payment_date=dt.date.today(), payment_method=None, notes=None,
        )
    assert client.get("/api/dashboard/stats", headers=auth_headers).json()["total_paid"] == 0.0

    fee_app.state.query_cache.apply(PaymentRecorded(
        payment_id=row["id"], student_id=sid, amount=row["amount"],
        payment_date=row["payment_date"], created_by=ctx.user_id,
    ))
    assert client.get("/api/dashboard/stats", headers=auth_headers).json()["total_paid"] == 120.0


def test_dashboard_redirects_without_session(client):
    resp = client.get("/dashboard", follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/auth"


def test_dashboard_overview(client, auth_headers):
    _add_student(client, auth_headers)
    resp = client.get("/dashboard", headers=auth_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["stats"]["total_students"] == 1
    assert body["class_summary"][0]["class_name"] == "Grade 5A"


def test_cookie_session_and_signout(client, fee_app, token):
    resp = client.post("/auth/session", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.json()["signed_in"] is True

    # cookie alone is enough now
    assert client.get("/api/dashboard/stats").status_code == 200
    assert fee_app.state.query_cache.backend.get((DASHBOARD_STATS,)) is not None

    resp = client.post("/auth/signout", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.json()["signed_in"] is False

    # listener registered at startup dropped the cached results
    assert fee_app.state.query_cache.backend.get((DASHBOARD_STATS,)) is None

    headers = {"Authorization": f"Bearer {token}"}
    assert client.get("/api/students", headers=headers).status_code == 401
    resp = client.get("/dashboard", headers=headers, follow_redirects=False)
    assert resp.status_code == 303


def test_auth_listener_removed_on_shutdown(fee_app):
    before = len(auth_events)
    with TestClient(fee_app):
        assert len(auth_events) == before + 1
    assert len(auth_events) == before
