import datetime


def get_utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


def get_utc_iso_now() -> str:
    return get_utc_now().isoformat()


def get_unix_timestamp() -> int:
    """Whole seconds since the epoch, the unit stored on awarded items and events."""
    return int(get_utc_now().timestamp())
