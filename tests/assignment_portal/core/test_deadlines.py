from datetime import datetime, timedelta, timezone

from assignment_portal.core.deadlines import is_deadline_passed, to_naive_utc, utcnow


def test_deadline_in_future_is_open() -> None:
    assert is_deadline_passed(utcnow() + timedelta(minutes=5)) is False


def test_deadline_in_past_is_closed() -> None:
    assert is_deadline_passed(utcnow() - timedelta(seconds=1)) is True


def test_deadline_equal_to_now_is_still_open() -> None:
    moment = datetime(2026, 3, 1, 12, 0)

    assert is_deadline_passed(moment, now=moment) is False
    assert is_deadline_passed(moment, now=moment + timedelta(microseconds=1)) is True


def test_aware_deadlines_are_compared_in_utc() -> None:
    taipei = timezone(timedelta(hours=8))
    deadline = datetime(2026, 3, 1, 20, 0, tzinfo=taipei)  # 12:00 UTC

    assert is_deadline_passed(deadline, now=datetime(2026, 3, 1, 11, 59)) is False
    assert is_deadline_passed(deadline, now=datetime(2026, 3, 1, 12, 1)) is True


def test_to_naive_utc() -> None:
    aware = datetime(2026, 3, 1, 8, 30, tzinfo=timezone(timedelta(hours=-5)))

    assert to_naive_utc(aware) == datetime(2026, 3, 1, 13, 30)
    assert to_naive_utc(datetime(2026, 3, 1, 8, 30)) == datetime(2026, 3, 1, 8, 30)
