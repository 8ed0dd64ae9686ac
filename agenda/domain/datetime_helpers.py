import datetime as dt


def as_utc(value: dt.datetime) -> dt.datetime:
    """Normalize a datetime to an aware UTC instant.

    Naive values are taken to already be UTC; aware values are converted.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def day_bounds(date: dt.date) -> tuple[dt.datetime, dt.datetime]:
    """Return ``[00:00, next day 00:00)`` for ``date`` as UTC instants."""
    start = dt.datetime.combine(date, dt.time.min, tzinfo=dt.timezone.utc)
    return start, start + dt.timedelta(days=1)


def at_hour(date: dt.date, hour: int, minute: int = 0) -> dt.datetime:
    """Return the UTC instant at ``hour:minute`` on ``date``.

    ``hour`` may be 24 to mean midnight at the end of the day.
    """
    start, _ = day_bounds(date)
    return start + dt.timedelta(hours=hour, minutes=minute)

