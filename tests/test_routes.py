from twilio.request_validator import RequestValidator

from models import db
from models.audit_log import AuditLog
from models.booking import STATUS_CANCELLED, Booking
from tests.conftest import LOCAL_PHONE, PHONE, make_booking, make_user

WEBHOOK_URL = "http://localhost/webhooks/sms"


def send_code(client, sender, phone=LOCAL_PHONE):
    resp = client.post("/verification/send", json={"phone": phone})
    assert resp.status_code == 200
    return sender.last_code()


def post_booking(client, code, **overrides):
    payload = {
        "phone": LOCAL_PHONE,
        "code": code,
        "customer_name": "Dana",
        "booking_date": "2026-03-12",
        "booking_time": "14:00",
    }
    payload.update(overrides)
    return client.post("/bookings", json=payload)


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


# ---------- verification ----------

def test_send_and_verify_code(client, sender):
    code = send_code(client, sender)

    resp = client.post("/verification/verify", json={"phone": "+972541234567", "code": code})
    assert resp.status_code == 200
    assert resp.get_json() == {"success": True}

    again = client.post("/verification/verify", json={"phone": LOCAL_PHONE, "code": code})
    assert again.status_code == 400
    assert again.get_json()["code"] == "invalid_or_expired_code"
    assert AuditLog.query.filter_by(action="CODE_VERIFY_FAIL").count() == 1


def test_send_code_rate_limit_has_retry_after(client, sender):
    for _ in range(3):
        send_code(client, sender)

    resp = client.post("/verification/send", json={"phone": LOCAL_PHONE})

    assert resp.status_code == 429
    body = resp.get_json()
    assert body["code"] == "rate_limited"
    assert body["retry_after_seconds"] == 3600
    assert resp.headers["Retry-After"] == "3600"


def test_send_code_invalid_phone_message(client):
    resp = client.post("/verification/send", json={"phone": "123"})
    assert resp.status_code == 400
    assert resp.get_json() == {"success": False, "error": "מספר טלפון לא תקין", "code": "validation_error"}


def test_send_code_without_body(client):
    resp = client.post("/verification/send", data="not json")
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "חסרים שדות חובה"


# ---------- booking ----------

def test_book_end_to_end(client, sender):
    code = send_code(client, sender)

    resp = post_booking(client, code)

    assert resp.status_code == 201
    booking = resp.get_json()["booking"]
    assert booking["customer_phone"] == PHONE
    assert booking["status"] == "confirmed"
    assert [kind for _, kind, _ in sender.sent] == ["verification", "booking_confirmation"]
    assert AuditLog.query.filter_by(action="BOOKING_CREATE").count() == 1


def test_double_booking_gets_409(client, sender):
    make_booking("2026-03-12", "14:00", phone="+972521111111")
    code = send_code(client, sender)

    resp = post_booking(client, code)

    assert resp.status_code == 409
    assert resp.get_json()["code"] == "slot_unavailable"
    assert AuditLog.query.filter_by(action="BOOKING_FAIL_SLOT_UNAVAILABLE").count() == 1


def test_booking_with_bad_code_and_bad_date(client, sender):
    send_code(client, sender)

    assert post_booking(client, "000000").status_code == 400
    resp = post_booking(client, "000000", booking_date="2026-01-01")
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "invalid_date"


def test_booking_lockout_returns_429(client, sender):
    send_code(client, sender)
    for _ in range(5):
        post_booking(client, "000000")

    resp = post_booking(client, sender.last_code())
    assert resp.status_code == 429
    assert resp.get_json()["code"] == "locked_out"
    assert int(resp.headers["Retry-After"]) > 0


def test_slots_overview(client):
    make_booking("2026-03-12", "14:00")

    resp = client.get("/slots?date=2026-03-12")

    assert resp.status_code == 200
    assert resp.get_json()["taken_times"] == ["14:00"]
    assert "customer_phone" not in resp.get_data(as_text=True)
    assert client.get("/slots?date=tomorrow").status_code == 400


def test_unexpected_error_is_sanitized(app, client, monkeypatch):
    def broken(day):
        raise RuntimeError("connection string postgres://secret")

    monkeypatch.setattr(app.extensions["booking_service"].slots, "day_overview", broken)

    resp = client.get("/slots?date=2026-03-12")

    assert resp.status_code == 500
    assert resp.get_json()["code"] == "internal_error"
    assert "secret" not in resp.get_data(as_text=True)


# ---------- auth + admin ----------

def test_login_rejects_bad_credentials(client, admin_user):
    resp = client.post("/auth/login", json={"email": "owner@barber.test", "password": "wrong"})
    assert resp.status_code == 401


def test_login_lockout(client, admin_user):
    for _ in range(5):
        client.post("/auth/login", json={"email": "owner@barber.test", "password": "wrong"})

    resp = client.post("/auth/login", json={"email": "owner@barber.test", "password": "S3cret-pass!"})
    assert resp.status_code == 429
    assert resp.get_json()["retry_after_seconds"] > 0


def test_me_and_logout(client, admin_headers):
    me = client.get("/auth/me", headers=admin_headers)
    assert me.status_code == 200
    assert me.get_json()["roles"] == ["ADMIN"]

    assert client.post("/auth/logout", headers=admin_headers).status_code == 200
    assert client.get("/auth/me", headers=admin_headers).status_code == 401


def test_admin_booking_auth_statuses(client, admin_headers):
    payload = {"customer_name": "Dana", "customer_phone": LOCAL_PHONE,
               "booking_date": "2026-03-12", "booking_time": "14:00"}

    assert client.post("/admin/bookings", json=payload).status_code == 401

    make_user("clerk@barber.test")
    login = client.post("/auth/login", json={"email": "clerk@barber.test", "password": "S3cret-pass!"})
    clerk_headers = {"Authorization": f"Bearer {login.get_json()['token']}"}
    assert client.post("/admin/bookings", json=payload, headers=clerk_headers).status_code == 403

    resp = client.post("/admin/bookings", json=payload, headers=admin_headers)
    assert resp.status_code == 201
    assert resp.get_json()["booking"]["customer_phone"] == PHONE


def test_admin_lists_and_cancels(client, admin_headers, sender):
    booking = make_booking("2026-03-12", "14:00")
    make_booking("2026-03-13", "10:00")

    listed = client.get("/admin/bookings?date=2026-03-12", headers=admin_headers)
    assert [b["id"] for b in listed.get_json()] == [booking.id]

    resp = client.post(f"/admin/bookings/{booking.id}/cancel", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json()["booking"]["status"] == STATUS_CANCELLED
    assert sender.sent[-1][1] == "booking_cancelled"

    assert client.post(f"/admin/bookings/{booking.id}/cancel", headers=admin_headers).status_code == 400
    assert client.post("/admin/bookings/999/cancel", headers=admin_headers).status_code == 404


def test_admin_list_requires_admin(client):
    assert client.get("/admin/bookings").status_code == 401


def test_closed_slot_blocks_public_booking(client, admin_headers, sender):
    resp = client.post("/admin/closed-slots", headers=admin_headers,
                       json={"closed_date": "2026-03-12", "closed_time": "14:00", "reason": "Training"})
    assert resp.status_code == 201
    closed_id = resp.get_json()["id"]

    assert client.get("/slots?date=2026-03-12").get_json()["closed_times"] == ["14:00"]
    assert post_booking(client, send_code(client, sender)).status_code == 409

    assert client.delete(f"/admin/closed-slots/{closed_id}", headers=admin_headers).status_code == 200
    assert post_booking(client, send_code(client, sender)).status_code == 201


def test_admin_audit_log(client, admin_headers):
    resp = client.get("/admin/audit-logs?action=LOGIN_SUCCESS", headers=admin_headers)
    assert resp.status_code == 200
    assert len(resp.get_json()) == 1


# ---------- SMS webhook ----------

def test_webhook_cancels_booking(client):
    booking = make_booking("2026-03-12", "14:00")

    resp = client.post("/webhooks/sms", data={"From": PHONE, "Body": "0"})

    assert resp.status_code == 200
    assert resp.mimetype == "application/xml"
    text = resp.get_data(as_text=True)
    assert "<Response><Message>" in text
    assert "בוטל בהצלחה" in text
    assert db.session.get(Booking, booking.id).status == STATUS_CANCELLED


def test_webhook_not_cancellable_reply(client):
    make_booking("2026-03-10", "10:00")

    resp = client.post("/webhooks/sms", data={"From": PHONE, "Body": "0"})

    assert "לפחות 3 שעות" in resp.get_data(as_text=True)


def test_webhook_help_and_empty_replies(client):
    help_reply = client.post("/webhooks/sms", data={"From": PHONE, "Body": "hi"})
    assert "לשליחת ביטול תשלח 0" in help_reply.get_data(as_text=True)

    empty = client.post("/webhooks/sms", data={"From": PHONE})
    assert "לא התקבלה הודעה תקינה" in empty.get_data(as_text=True)


def test_webhook_signature_enforced(app, client):
    app.config["TWILIO_VALIDATE_SIGNATURE"] = True
    app.config["TWILIO_AUTH_TOKEN"] = "test-auth-token"
    params = {"From": PHONE, "Body": "hi"}

    assert client.post("/webhooks/sms", data=params).status_code == 403

    signature = RequestValidator("test-auth-token").compute_signature(WEBHOOK_URL, params)
    resp = client.post("/webhooks/sms", data=params, headers={"X-Twilio-Signature": signature})
    assert resp.status_code == 200


def test_webhook_refuses_when_token_missing(app, client):
    app.config["TWILIO_VALIDATE_SIGNATURE"] = True
    assert client.post("/webhooks/sms", data={"From": PHONE, "Body": "0"}).status_code == 403


# ---------- CORS ----------

def test_cors_echoes_allowed_origin_only(client):
    allowed = client.get("/health", headers={"Origin": "https://www.mea-barber.com"})
    assert allowed.headers["Access-Control-Allow-Origin"] == "https://www.mea-barber.com"

    other = client.get("/health", headers={"Origin": "https://evil.example"})
    assert other.headers["Access-Control-Allow-Origin"] == "https://mea-barber.com"
