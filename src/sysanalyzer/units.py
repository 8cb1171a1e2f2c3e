"""Shared numeric and formatting helpers."""

from datetime import timedelta


def clamp_percent(value: float) -> float:
    """Clamp a percentage into the 0-100 range."""
    return max(0.0, min(100.0, float(value)))


def round1(value: float) -> float:
    """Round to one decimal place."""
    return round(float(value), 1)


def format_bytes(size: float) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{int(size):5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def format_duration(duration: timedelta) -> str:
    """Format a duration as ``[N days, ]HH:MM:SS``."""
    total = int(max(duration.total_seconds(), 0))
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    if days > 0:
        return f"{days} days, {hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
