from datetime import date, datetime, time, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def parse_datetime(value):
    """Parse ISO strings and epoch milliseconds; None and blanks pass through."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, date):
        return start_of_day(value)
    if isinstance(value, bool):
        raise ValueError(f"Invalid datetime: {value!r}")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        value_text = value.strip()
        if not value_text:
            return None
        if value_text.endswith("Z"):
            value_text = value_text[:-1] + "+00:00"
        try:
            return to_utc(datetime.fromisoformat(value_text))
        except ValueError:
            raise ValueError(f"Invalid datetime: {value!r}") from None
    raise ValueError(f"Invalid datetime: {value!r}")


def isoformat(value):
    if value is None:
        return None
    return to_utc(value).isoformat()
