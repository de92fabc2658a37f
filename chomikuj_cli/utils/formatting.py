"""
Helper functions for formatting sizes, durations and URLs for display.
"""

_SIZE_UNITS = ("KB", "MB", "GB", "TB")


def format_size(bytes_size: float) -> str:
    """Formats a byte count with binary units (e.g., '512 B', '145.3 MB')."""
    if bytes_size < 1024:
        return f"{max(int(bytes_size), 0)} B"
    value = float(bytes_size)
    for unit in _SIZE_UNITS:
        value /= 1024
        if value < 1024 or unit == _SIZE_UNITS[-1]:
            break
    return f"{value:.1f} {unit}"


def format_speed(bytes_per_second: float) -> str:
    return f"{format_size(bytes_per_second)}/s"


def format_duration(seconds: float) -> str:
    """Formats seconds as e.g. '2h 34m 12s'; zero-valued leading units are dropped."""
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    parts = [f"{value}{unit}" for value, unit in ((hours, "h"), (minutes, "m")) if value]
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def shorten_url(url: str, limit: int = 80) -> str:
    """Shortens a long signed URL for display, keeping its head and tail."""
    if len(url) <= limit:
        return url
    return f"{url[:20]}...{url[-(limit - 20):]}"
