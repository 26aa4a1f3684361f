from datetime import datetime, timedelta, timezone

from core.access import UserRecord, validate_access

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def test_guest_denied():
    decision = validate_access(None, now=NOW)
    assert not decision.allowed
    assert decision.reason == "guest"


def test_admin_always_allowed():
    assert validate_access(UserRecord(role="admin"), now=NOW).allowed


def test_vip_with_future_expiry():
    user = UserRecord(role="vip", vip_expiry=NOW + timedelta(days=1))
    assert validate_access(user, now=NOW).allowed


def test_vip_expired_or_without_expiry():
    expired = UserRecord(role="vip", vip_expiry=NOW - timedelta(seconds=1))
    assert validate_access(expired, now=NOW).reason == "expired"
    assert validate_access(UserRecord(role="vip"), now=NOW).reason == "expired"


def test_plain_user_not_vip():
    decision = validate_access(UserRecord(role="user"), now=NOW)
    assert not decision.allowed
    assert decision.reason == "not_vip"


def test_from_dict_parses_iso_expiry():
    user = UserRecord.from_dict({"role": "vip", "vipExpiry": "2026-12-31T00:00:00Z"})
    assert user.vip_expiry == datetime(2026, 12, 31, tzinfo=timezone.utc)
    assert validate_access(user, now=NOW).allowed


def test_from_dict_naive_expiry_treated_as_utc():
    user = UserRecord.from_dict({"role": "vip", "vipExpiry": "2026-10-19T11:00:00"})
    assert not validate_access(user, now=NOW).allowed


def test_from_dict_bad_expiry():
    user = UserRecord.from_dict({"role": "vip", "vipExpiry": "domani"})
    assert user.vip_expiry is None
    assert UserRecord.from_dict({}).role == "user"
