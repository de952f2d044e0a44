"""String helpers for terminal output."""
from __future__ import annotations
import unicodedata


def display_width(s: str) -> int:
    """Number of terminal cells needed to show s (wide East Asian chars count 2)."""
    width = 0
    for ch in s:
        if unicodedata.combining(ch):
            continue
        width += 2 if unicodedata.east_asian_width(ch) in ('F', 'W') else 1
    return width


def pad_right(s: str, width: int) -> str:
    extra = width - display_width(s)
    return s + ' ' * extra if extra > 0 else s


def pad_left(s: str, width: int) -> str:
    extra = width - display_width(s)
    return ' ' * extra + s if extra > 0 else s


def format_bytes(num: float) -> str:
    """Format byte size to human-readable format."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if num < 1024:
            return f"{num:.1f}{unit}"
        num /= 1024
    return f"{num:.1f}PB"


def truncate_string(s: str, max_length: int = 50, suffix: str = '...') -> str:
    """Truncate a string to specified maximum length."""
    if not s or len(s) <= max_length:
        return s
    truncated_length = max_length - len(suffix)
    if truncated_length <= 0:
        return suffix
    return s[:truncated_length] + suffix
