import os
import uuid
from datetime import date, timedelta

from sqlmodel import Session, select
from starlette.testclient import TestClient

import resort.api.billings as billings_api
import resort.notifications as notifications
from resort.auth import get_password_hash
from resort.db import engine
from resort.main import app
from resort.models import AppSettings, Billing, Occupancy, User

CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}


def make_user(username, password, role="staff"):
    with Session(engine) as s:
        existing = s.exec(select(User).where(User.username == username)).first()
        if existing:
            return existing
        u = User(username=username, password_hash=get_password_hash(password), role=role)
        s.add(u)
        s.commit()
        s.refresh(u)
        return u


def get_token(client, username, password):
    r = client.post("/api/auth/token", data={"username": username, "password": password})
    assert r.status_code == 200
    return r.json()["access_token"]


def auth_headers(client, role):
    username = f"api-{role}"
    make_user(username, "s3cret", role)
    return {"Authorization": f"Bearer {get_token(client, username, 's3cret')}"}


def create_room(client, headers, rate):
    uniq = uuid.uuid4().hex[:8]
    r = client.post("/api/rooms", json={"unit_number": f"U-{uniq}", "monthly_rate": rate}, headers=headers)
    assert r.status_code == 201
    return r.json()


def create_resident(client, headers, **fields):
    payload = {"full_name": "Tan Ah Kow", "ic_number": f"IC-{uuid.uuid4().hex[:10]}"}
    payload.update(fields)
    r = client.post("/api/residents", json=payload, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def test_requires_auth():
    client = TestClient(app)
    assert client.get("/api/residents").status_code == 401
    r = client.post("/api/billings/generate")
    assert r.status_code == 401
    assert "error" in r.json()


def test_bad_login():
    client = TestClient(app)
    r = client.post("/api/auth/token", data={"username": "nobody", "password": "x"})
    assert r.status_code == 400


def test_health():
    client = TestClient(app)
    assert client.get("/api/health").json() == {"status": "ok"}


def test_validation_error_shape():
    client = TestClient(app)
    headers = auth_headers(client, "staff")
    r = client.post("/api/rooms", json={"unit_number": "X-1", "monthly_rate": -5}, headers=headers)
    assert r.status_code == 400
    body = r.json()
    assert body["message"] == "Validation failed"
    assert body["details"]


def test_resident_lifecycle_over_api():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    admin = auth_headers(client, "admin")
    room_a = create_room(client, staff, 800)
    room_b = create_room(client, staff, 1200)

    resident = create_resident(client, staff, room_id=room_a["id"])
    assert resident["room_id"] == room_a["id"]
    assert resident["active_occupancy"]["room_id"] == room_a["id"]
    assert client.get(f"/api/rooms/{room_a['id']}", headers=staff).json()["status"] == "occupied"

    r = client.put(f"/api/residents/{resident['id']}", json={"room_id": room_b["id"]}, headers=staff)
    assert r.status_code == 200
    assert r.json()["active_occupancy"]["room_id"] == room_b["id"]
    occ_a = client.get(f"/api/rooms/{room_a['id']}/occupancy", headers=staff).json()
    occ_b = client.get(f"/api/rooms/{room_b['id']}/occupancy", headers=staff).json()
    assert occ_a["active_occupancy_count"] == 0
    assert occ_b["active_occupancy_count"] == 1
    assert client.get(f"/api/rooms/{room_a['id']}", headers=staff).json()["status"] == "vacant"

    # staff may not delete
    r = client.delete(f"/api/residents/{resident['id']}", headers=staff)
    assert r.status_code == 403
    assert r.json() == {"error": "Insufficient privileges"}

    r = client.delete(f"/api/residents/{resident['id']}", headers=admin)
    assert r.status_code == 200
    assert client.get(f"/api/residents/{resident['id']}", headers=staff).status_code == 404
    assert client.get(f"/api/rooms/{room_b['id']}", headers=staff).json()["status"] == "vacant"
    with Session(engine) as s:
        left = s.exec(select(Occupancy).where(Occupancy.resident_id == resident["id"])).all()
        assert left == []


def test_update_with_null_room_moves_out():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    room = create_room(client, staff, 900)
    resident = create_resident(client, staff, room_id=room["id"])

    r = client.put(f"/api/residents/{resident['id']}", json={"room_id": None}, headers=staff)

    assert r.status_code == 200
    assert r.json()["room_id"] is None
    assert r.json()["active_occupancy"] is None
    assert client.get(f"/api/rooms/{room['id']}", headers=staff).json()["status"] == "vacant"


def test_create_resident_unknown_room():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    r = client.post(
        "/api/residents",
        json={"full_name": "Nobody Home", "ic_number": f"IC-{uuid.uuid4().hex}", "room_id": 999999},
        headers=staff,
    )
    assert r.status_code == 404


def test_manual_status_cannot_claim_occupied():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    room = create_room(client, staff, 700)
    r = client.put(f"/api/rooms/{room['id']}", json={"status": "occupied"}, headers=staff)
    assert r.status_code == 400
    r = client.put(f"/api/rooms/{room['id']}", json={"status": "maintenance"}, headers=staff)
    assert r.status_code == 200
    assert r.json()["status"] == "maintenance"


def test_generate_with_cron_secret_is_idempotent():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    room = create_room(client, staff, 950)
    resident = create_resident(client, staff, room_id=room["id"], billing_date=date.today().day)

    first = client.post("/api/billings/generate", headers=CRON_HEADERS)
    assert first.status_code == 200
    body = first.json()
    assert body["date"] == date.today().isoformat()
    assert body["results"]["generated"] >= 1

    second = client.post("/api/billings/generate", headers=CRON_HEADERS)
    assert second.json()["results"]["generated"] == 0

    with Session(engine) as s:
        bills = s.exec(select(Billing).where(Billing.resident_id == resident["id"])).all()
        assert len(bills) == 1
        assert bills[0].amount == 950


def test_generate_rejects_plain_user():
    client = TestClient(app)
    headers = auth_headers(client, "user")
    r = client.post("/api/billings/generate", headers=headers)
    assert r.status_code == 403


def test_mark_paid_needs_pdf_receipt():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    resident = create_resident(client, staff)
    r = client.post(
        "/api/billings",
        json={"resident_id": resident["id"], "amount": 500, "due_date": "2026-01-05"},
        headers=staff,
    )
    assert r.status_code == 201
    billing_id = r.json()["id"]

    r = client.put(f"/api/billings/{billing_id}", json={"status": "paid"}, headers=staff)
    assert r.status_code == 400

    r = client.post(
        f"/api/billings/{billing_id}/mark-paid",
        files={"receipt": ("r.txt", b"hello", "text/plain")},
        headers=staff,
    )
    assert r.status_code == 400

    r = client.post(
        f"/api/billings/{billing_id}/mark-paid",
        files={"receipt": ("r.pdf", b"%PDF-1.4 test", "application/pdf")},
        headers=staff,
    )
    assert r.status_code == 200
    assert r.json()["status"] == "paid"
    assert r.json()["invoice_file"].startswith("/uploads/receipts/")


def test_duplicate_manual_billing_rejected():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    resident = create_resident(client, staff)
    payload = {"resident_id": resident["id"], "amount": 500, "due_date": "2026-02-05"}
    assert client.post("/api/billings", json=payload, headers=staff).status_code == 201
    assert client.post("/api/billings", json=payload, headers=staff).status_code == 400


def register_public(client, visit_date):
    r = client.post(
        "/api/public/visitor-registration",
        json={
            "full_name": "Siti Aminah",
            "email": "siti@example.com",
            "phone": "0123456789",
            "visit_date": visit_date.isoformat(),
            "visit_time": "10:00",
            "number_of_visitors": 1,
            "purpose": "Site Visit",
        },
    )
    assert r.status_code == 201
    return r.json()["visitor"]["id"]


def test_visitor_approval_and_verification():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    visitor_id = register_public(client, date.today() + timedelta(days=1))

    r = client.post(f"/api/visitors/{visitor_id}/approve", headers=staff)
    assert r.status_code == 200
    token = r.json()["qr_code"]
    assert token

    r = client.post(f"/api/visitors/{visitor_id}/approve", headers=staff)
    assert r.status_code == 400

    r = client.post(f"/api/public/visitors/verify/{token}")
    assert r.status_code == 200
    assert r.json()["visitor"]["status"] == "approved"

    assert client.post("/api/public/visitors/verify/not-a-token").status_code == 404


def test_verify_past_visit_reports_expired():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    visitor_id = register_public(client, date.today() - timedelta(days=1))
    token = client.post(f"/api/visitors/{visitor_id}/approve", headers=staff).json()["qr_code"]

    r = client.post(f"/api/public/visitors/verify/{token}")

    assert r.status_code == 400
    assert r.json()["visitor"]["status"] == "expired"


def test_reject_over_api_mints_no_token():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    visitor_id = register_public(client, date.today())
    r = client.post(f"/api/visitors/{visitor_id}/reject", headers=staff)
    assert r.status_code == 200
    assert r.json()["qr_code"] is None


def test_public_registration_other_without_detail():
    client = TestClient(app)
    r = client.post(
        "/api/public/visitor-registration",
        json={
            "full_name": "Siti Aminah",
            "email": "siti@example.com",
            "phone": "0123456789",
            "visit_date": date.today().isoformat(),
            "visit_time": "10:00",
            "number_of_visitors": 1,
            "purpose": "Other",
        },
    )
    assert r.status_code == 400


def test_approval_survives_notification_failure(monkeypatch):
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    visitor_id = register_public(client, date.today() + timedelta(days=2))

    def enabled_settings(session):
        return AppSettings(wabot_enabled=True, wabot_instance_id="inst", wabot_access_token="tok")

    def gateway_down(*args):
        raise notifications.NotificationError("gateway down")

    monkeypatch.setattr(notifications, "load_settings", enabled_settings)
    monkeypatch.setattr(notifications, "send_whatsapp_message", gateway_down)

    r = client.post(f"/api/visitors/{visitor_id}/approve", headers=staff)

    assert r.status_code == 200
    assert r.json()["status"] == "approved"


def test_settings_admin_only_and_masks_token():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    admin = auth_headers(client, "admin")
    assert client.get("/api/settings", headers=staff).status_code == 403

    r = client.put("/api/settings", json={"wabot_access_token": "secret-token"}, headers=admin)
    assert r.status_code == 200
    assert r.json()["wabot_access_token"] == "********"

    r = client.put("/api/settings", json={"wabot_access_token": None}, headers=admin)
    assert r.json()["wabot_access_token"] is None


def test_admin_creates_staff_user():
    client = TestClient(app)
    admin = auth_headers(client, "admin")
    staff = auth_headers(client, "staff")
    username = f"clerk-{uuid.uuid4().hex[:8]}"
    payload = {"username": username, "password": "pa55word", "role": "staff"}

    assert client.post("/api/users", json=payload, headers=staff).status_code == 403
    r = client.post("/api/users", json=payload, headers=admin)
    assert r.status_code == 201
    assert client.post("/api/users", json=payload, headers=admin).status_code == 400
    bad_role = dict(payload, username=f"{username}-x", role="janitor")
    assert client.post("/api/users", json=bad_role, headers=admin).status_code == 400

    token = get_token(client, username, "pa55word")
    me = client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"}).json()
    assert me["username"] == username
    assert me["role"] == "staff"


def make_billing(client, headers, due_date="2026-03-05", **resident_fields):
    resident = create_resident(client, headers, **resident_fields)
    r = client.post(
        "/api/billings",
        json={"resident_id": resident["id"], "amount": 500, "due_date": due_date},
        headers=headers,
    )
    assert r.status_code == 201
    return r.json()


def upload_receipt(client, headers, billing_id):
    return client.post(
        f"/api/billings/{billing_id}/mark-paid",
        files={"receipt": ("r.pdf", b"%PDF-1.4 receipt", "application/pdf")},
        headers=headers,
    )


def test_paid_billing_cannot_drop_its_receipt():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    billing = make_billing(client, staff)
    assert upload_receipt(client, staff, billing["id"]).status_code == 200

    r = client.put(f"/api/billings/{billing['id']}", json={"invoice_file": None}, headers=staff)
    assert r.status_code == 400

    after = client.get(f"/api/billings/{billing['id']}", headers=staff).json()
    assert after["status"] == "paid"
    assert after["invoice_file"].startswith("/uploads/receipts/")

    # reopening the bill may drop the receipt
    r = client.put(
        f"/api/billings/{billing['id']}", json={"status": "pending", "invoice_file": None}, headers=staff
    )
    assert r.status_code == 200
    assert r.json()["invoice_file"] is None


def test_billing_update_rejects_nulls():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    billing = make_billing(client, staff)
    for field in ("amount", "due_date", "status"):
        r = client.put(f"/api/billings/{billing['id']}", json={field: None}, headers=staff)
        assert r.status_code == 400, field
        assert r.json()["message"] == "Validation failed"
    assert client.get(f"/api/billings/{billing['id']}", headers=staff).json()["amount"] == 500


def test_receipt_download():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    billing = make_billing(client, staff)
    assert client.get(f"/api/billings/{billing['id']}/receipt", headers=staff).status_code == 404

    upload_receipt(client, staff, billing["id"])
    r = client.get(f"/api/billings/{billing['id']}/receipt", headers=staff)

    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert r.content == b"%PDF-1.4 receipt"


def test_receipt_outside_upload_dir_is_not_served():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    billing = make_billing(client, staff)
    with Session(engine) as s:
        row = s.get(Billing, billing["id"])
        row.invoice_file = "/uploads/../../pyproject.toml"
        s.add(row)
        s.commit()

    r = client.get(f"/api/billings/{billing['id']}/receipt", headers=staff)
    assert r.status_code == 404


def test_failed_mark_paid_removes_uploaded_file(monkeypatch):
    client = TestClient(app, raise_server_exceptions=False)
    staff = auth_headers(client, "staff")
    billing = make_billing(client, staff)

    def broken(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(billings_api, "mark_paid", broken)
    r = upload_receipt(client, staff, billing["id"])

    assert r.status_code == 500
    receipts = os.path.join(os.environ["UPLOAD_DIR"], "receipts")
    leftovers = [f for f in os.listdir(receipts) if f.startswith(f"receipt-{billing['id']}-")]
    assert leftovers == []


def test_room_flag_can_be_cleared():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    room = create_room(client, staff, 700)
    assert client.put(f"/api/rooms/{room['id']}", json={"status": "reserved"}, headers=staff).status_code == 200

    r = client.put(f"/api/rooms/{room['id']}", json={"status": "vacant"}, headers=staff)

    assert r.status_code == 200
    assert r.json()["status"] == "vacant"


def test_clearing_flag_on_occupied_room_keeps_it_occupied():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    room = create_room(client, staff, 700)
    create_resident(client, staff, room_id=room["id"])

    r = client.put(f"/api/rooms/{room['id']}", json={"status": "vacant"}, headers=staff)

    assert r.status_code == 200
    assert r.json()["status"] == "occupied"


def test_room_update_null_and_duplicate_unit():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    room = create_room(client, staff, 700)
    other = create_room(client, staff, 800)

    r = client.put(f"/api/rooms/{room['id']}", json={"status": None}, headers=staff)
    assert r.status_code == 400
    assert r.json()["message"] == "Validation failed"

    r = client.put(f"/api/rooms/{room['id']}", json={"unit_number": other["unit_number"]}, headers=staff)
    assert r.status_code == 400
    assert r.json() == {"error": "Unit number already exists"}

    # keeping its own unit number is not a collision
    r = client.put(f"/api/rooms/{room['id']}", json={"unit_number": room["unit_number"]}, headers=staff)
    assert r.status_code == 200


def test_resident_update_rejects_nulls_and_duplicate_ic():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    resident = create_resident(client, staff)
    other = create_resident(client, staff)

    for field in ("billing_date", "full_name", "ic_number"):
        r = client.put(f"/api/residents/{resident['id']}", json={field: None}, headers=staff)
        assert r.status_code == 400, field
        assert r.json()["message"] == "Validation failed"

    r = client.put(f"/api/residents/{resident['id']}", json={"ic_number": other["ic_number"]}, headers=staff)
    assert r.status_code == 400
    assert r.json() == {"error": "Resident with this IC number already exists"}

    r = client.put(f"/api/residents/{resident['id']}", json={"ic_number": resident["ic_number"]}, headers=staff)
    assert r.status_code == 200


def test_dashboard_stats():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    room = create_room(client, staff, 700)
    create_resident(client, staff, room_id=room["id"])
    register_public(client, date.today() + timedelta(days=3))

    assert client.get("/api/dashboard/stats").status_code == 401
    stats = client.get("/api/dashboard/stats", headers=staff).json()

    assert stats["resident_count"] >= 1
    assert stats["occupied_rooms"] >= 1
    assert 0 <= stats["occupancy_rate"] <= 100
    assert stats["visitor_requests"] >= 1
    assert stats["pending_renewals"] >= 0


def test_upcoming_uses_reminder_window():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    admin = auth_headers(client, "admin")
    soon = (date.today() + timedelta(days=2)).isoformat()
    later = (date.today() + timedelta(days=20)).isoformat()
    near = make_billing(client, staff, due_date=soon)
    far = make_billing(client, staff, due_date=later)

    client.put("/api/settings", json={"billing_reminder_days": 5}, headers=admin)
    try:
        body = client.get("/api/billings/upcoming", headers=staff).json()
    finally:
        client.put("/api/settings", json={"billing_reminder_days": 7}, headers=admin)

    ids = {b["id"] for b in body["billings"]}
    assert body["days"] == 5
    assert near["id"] in ids
    assert far["id"] not in ids


def test_send_reminder(monkeypatch):
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    billing = make_billing(client, staff, phone="0123456789")
    sent = []

    # notifications disabled by default
    r = client.post(f"/api/billings/{billing['id']}/send-reminder", headers=staff)
    assert r.status_code == 400

    monkeypatch.setattr(
        notifications,
        "load_settings",
        lambda session: AppSettings(wabot_enabled=True, wabot_instance_id="inst", wabot_access_token="tok"),
    )
    monkeypatch.setattr(notifications, "send_whatsapp_message", lambda phone, message, creds: sent.append(message))

    r = client.post(f"/api/billings/{billing['id']}/send-reminder", headers=staff)

    assert r.status_code == 200
    assert r.json()["recipient_phone"] == "0123456789"
    assert "2026-03-05" in sent[0]


def test_send_reminder_gateway_failure(monkeypatch):
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    billing = make_billing(client, staff, phone="0123456789")

    def gateway_down(*args):
        raise notifications.GatewayError("Wabot API returned status 503")

    monkeypatch.setattr(
        notifications,
        "load_settings",
        lambda session: AppSettings(wabot_enabled=True, wabot_instance_id="inst", wabot_access_token="tok"),
    )
    monkeypatch.setattr(notifications, "send_whatsapp_message", gateway_down)

    r = client.post(f"/api/billings/{billing['id']}/send-reminder", headers=staff)
    assert r.status_code == 502


def test_verify_link_opens_with_get():
    client = TestClient(app)
    staff = auth_headers(client, "staff")
    visitor_id = register_public(client, date.today() + timedelta(days=1))
    token = client.post(f"/api/visitors/{visitor_id}/approve", headers=staff).json()["qr_code"]

    r = client.get(f"/api/public/visitors/verify/{token}")

    assert r.status_code == 200
    assert r.json()["success"] is True
