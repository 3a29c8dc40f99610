from concurrent.futures import Future
from datetime import date, datetime, timedelta

import pytest

from app import create_app
from config import Config
from models import db
from models.booking import STATUS_CONFIRMED, Booking
from models.user import ADMIN_ROLE, Role, User
from utils.seed import seed_roles

START = datetime(2026, 3, 10, 9, 0, 0)  # naive UTC, a Tuesday
PHONE = "+972541234567"
LOCAL_PHONE = "0541234567"


class SuiteConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SEED_ON_STARTUP = False
    TWILIO_VALIDATE_SIGNATURE = False
    TWILIO_AUTH_TOKEN = None
    BUSINESS_TIMEZONE = "UTC"
    CORS_ALLOWED_ORIGINS = ["https://mea-barber.com", "https://www.mea-barber.com"]
    LOG_LEVEL = "DEBUG"


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingSender:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, local_phone, kind, data):
        if self.fail:
            raise RuntimeError("sms gateway down")
        self.sent.append((local_phone, kind, data))
        return True

    def last_code(self):
        codes = [data["code"] for _, kind, data in self.sent if kind == "verification"]
        return codes[-1] if codes else None


class InlineExecutor:
    """Runs submitted work immediately so tests can assert on deliveries."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future

    def shutdown(self, wait=True):
        pass


def build_app(config, clock, sender):
    app = create_app(config, notification_sender=sender, clock=clock)
    app.extensions["notification_dispatcher"].executor = InlineExecutor()
    return app


@pytest.fixture
def clock():
    return FakeClock(START)


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def app(clock, sender):
    app = build_app(SuiteConfig, clock, sender)
    with app.app_context():
        db.create_all()
        seed_roles()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def booking_service(app):
    return app.extensions["booking_service"]


@pytest.fixture
def cancellation_service(app):
    return app.extensions["cancellation_service"]


@pytest.fixture
def file_app(tmp_path, clock, sender):
    """App on a file-backed SQLite DB so worker threads get their own connections."""

    class FileConfig(SuiteConfig):
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + str(tmp_path / "race.db")
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30}}

    app = build_app(FileConfig, clock, sender)
    with app.app_context():
        db.create_all()
        seed_roles()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def make_user(email, password="S3cret-pass!", admin=False):
    user = User(email=email)
    user.set_password(password)
    if admin:
        user.roles.append(Role.query.filter_by(name=ADMIN_ROLE).one())
    db.session.add(user)
    db.session.commit()
    return user


def make_booking(booking_date, booking_time, phone=PHONE, name="Dana", status=STATUS_CONFIRMED):
    if isinstance(booking_date, str):
        booking_date = date.fromisoformat(booking_date)
    booking = Booking(
        customer_name=name,
        customer_phone=phone,
        booking_date=booking_date,
        booking_time=booking_time,
        status=status,
    )
    db.session.add(booking)
    db.session.commit()
    return booking


@pytest.fixture
def admin_user(app):
    return make_user("owner@barber.test", admin=True)


@pytest.fixture
def admin_headers(client, admin_user):
    resp = client.post("/auth/login", json={"email": "owner@barber.test", "password": "S3cret-pass!"})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.get_json()['token']}"}
