from models.rate_limit import RateLimitRecord
from models.user import User
from security.rate_limit import ActionKind


def test_make_admin_creates_and_promotes(app):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["make-admin", "Boss@Barber.test", "pw-123456"])

    assert result.exit_code == 0
    assert "boss@barber.test is ADMIN" in result.output
    user = User.query.filter_by(email="boss@barber.test").one()
    assert user.role_names == {"ADMIN"}
    assert user.check_password("pw-123456")

    # second run only resets the password
    runner.invoke(args=["make-admin", "boss@barber.test", "new-pass"])
    assert User.query.count() == 1
    assert User.query.one().check_password("new-pass")


def test_purge_rate_limits(app, clock):
    limiter = app.extensions["booking_service"].limiter
    limiter.record("+972541234567", ActionKind.SMS_SEND)
    clock.advance(minutes=61)
    limiter.record("+972541234567", ActionKind.SMS_SEND)

    result = app.test_cli_runner().invoke(args=["purge-rate-limits"])

    assert "Deleted 1 stale rate-limit records" in result.output
    assert RateLimitRecord.query.count() == 1
    assert RateLimitRecord.query.one().created_at == clock.now
