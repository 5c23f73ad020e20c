from datetime import date, datetime


def utc_now() -> datetime:
    """Naive UTC timestamp, the same clock the database columns are written with."""
    return datetime.utcnow()


def today() -> date:
    """Calendar day for every expiry comparison: badges, entity status and alert sweeps."""
    return utc_now().date()
