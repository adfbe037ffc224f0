"""Exceptions raised by the media analysis core."""

from __future__ import annotations

from typing import Optional


class MediaCoreError(Exception):
    pass


class ToolError(MediaCoreError):
    """An ffmpeg/ffprobe invocation could not produce a usable result."""

    def __init__(self, message: str, *, output: str = "", returncode: Optional[int] = None) -> None:
        super().__init__(message)
        self.output = output
        self.returncode = returncode


class ToolNotFoundError(ToolError):
    pass


class ToolTimeoutError(ToolError):
    pass


class AnalysisError(MediaCoreError):
    """Neither measurement strategy could be executed."""

    def __init__(self, message: str, *, excerpt: str = "") -> None:
        super().__init__(message)
        self.excerpt = excerpt


def tail_excerpt(text: Optional[str], limit: int = 2000) -> str:
    """Last ``limit`` characters of tool output; ffmpeg reports errors at the end."""
    if not text:
        return ""
    text = text.strip()
    if limit <= 0 or len(text) <= limit:
        return text
    return "..." + text[-limit:]


__all__ = [
    "AnalysisError",
    "MediaCoreError",
    "ToolError",
    "ToolNotFoundError",
    "ToolTimeoutError",
    "tail_excerpt",
]
