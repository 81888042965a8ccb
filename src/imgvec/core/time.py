from __future__ import annotations


def format_duration(seconds: float) -> str:
    """Render a duration as ``1h 2m 3s`` / ``2m 3s`` / ``3.4s``."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    whole = int(seconds)
    hours, remainder = divmod(whole, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    return f"{minutes}m {secs}s"
