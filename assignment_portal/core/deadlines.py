from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as naive UTC, matching how timestamps are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def is_deadline_passed(deadline: datetime, now: datetime | None = None) -> bool:
    current = to_naive_utc(now) if now is not None else utcnow()
    return current > to_naive_utc(deadline)
