"""Time helpers. Everything is stored and compared as timezone-aware UTC."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(moment: datetime) -> datetime:
    """SQLite hands back naive datetimes. Treat those as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def elapsed_ms(started_at: datetime, finished_at: datetime) -> int:
    return int((as_utc(finished_at) - as_utc(started_at)).total_seconds() * 1000)


def format_elapsed(ms: int) -> str:
    """Render a duration as MM:SS.cc (centiseconds), e.g. 83456 -> '01:23.45'."""
    total_seconds = ms // 1000
    minutes = total_seconds // 60
    seconds = total_seconds % 60
    centiseconds = (ms % 1000) // 10
    return f"{minutes:02d}:{seconds:02d}.{centiseconds:02d}"
