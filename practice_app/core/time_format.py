"""Formatting helpers for clock displays and time summaries."""

from __future__ import annotations


def format_clock(total_seconds: int) -> str:
    """Render ``MM:SS``, or ``H:MM:SS`` once an hour has passed."""
    total_seconds = max(0, int(total_seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"


def format_hhmmss(total_seconds: int) -> str:
    if total_seconds < 0:
        return "00:00:00"
    hours, remainder = divmod(int(total_seconds), 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_human_readable(total_seconds: int) -> str:
    """Render e.g. ``1h 5m 3s``; zero components are omitted except a lone ``0s``."""
    if total_seconds < 0:
        return "0s"
    hours, remainder = divmod(int(total_seconds), 3600)
    minutes, seconds = divmod(remainder, 60)

    parts: list[str] = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if seconds > 0 or not parts:
        parts.append(f"{seconds}s")
    return " ".join(parts)
