"""ANSI colour helpers for terminal renderings."""

from __future__ import annotations

_RESET = "\033[0m"

_COLORS = {
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "magenta": "\033[35m",
    "cyan": "\033[36m",
    "white": "\033[37m",
    "gray": "\033[90m",
}


def colorize(text: str, color: str, *, enabled: bool = True) -> str:
    """Wrap ``text`` in the escape code for ``color`` when enabled."""
    if not enabled:
        return text
    code = _COLORS.get(color)
    if code is None:
        return text
    return f"{code}{text}{_RESET}"


__all__ = ["colorize"]
