from __future__ import annotations

import os
import re
import stat
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote

from ..schemas import MountConfig

_BAD_ESCAPE = re.compile(r'%(?![0-9A-Fa-f]{2})')
_RESERVED_SEGMENTS = {'', '.', '..'}
_FORBIDDEN_CHARS = ('/', '\\', ':', '\x00')


class InvalidPathError(Exception):
    status_code = 400

    def __init__(self, detail: str = 'Invalid path for static directory listing'):
        super().__init__(detail)
        self.detail = detail


@dataclass(frozen=True)
class SanitizeResult:
    ok: bool
    segments: tuple[str, ...] = ()
    error: str = ''


def match_mount(at: tuple[str, ...], segments: tuple[str, ...]) -> tuple[str, ...] | None:
    """Strip the mount prefix; None when the request is outside the mount."""
    if len(segments) < len(at):
        return None
    for expected, actual in zip(at, segments):
        if expected != actual:
            return None
    return tuple(segments[len(at):])


def is_allowed(config: MountConfig, subpath: tuple[str, ...] | None) -> bool:
    if subpath is None:
        return False
    if config.allow_all:
        return True
    if not subpath:
        return False

    head = subpath[0]
    if head in config.only:
        return True
    return any(head.startswith(prefix) for prefix in config.only_matching)


def decode_segment(segment: str) -> str:
    if _BAD_ESCAPE.search(segment):
        raise ValueError(f'Malformed escape in path segment: {segment!r}')
    return unquote(segment, errors='strict')


def invalid_segment(segment: str) -> bool:
    if segment in _RESERVED_SEGMENTS:
        return True
    return any(char in segment for char in _FORBIDDEN_CHARS)


def sanitize(segments: tuple[str, ...]) -> SanitizeResult:
    decoded: list[str] = []
    for raw in segments:
        try:
            segment = decode_segment(raw)
        except ValueError:
            return SanitizeResult(False, error=f'Cannot decode path segment {raw!r}')
        if invalid_segment(segment):
            return SanitizeResult(False, error=f'Forbidden path segment {raw!r}')
        decoded.append(segment)
    return SanitizeResult(True, tuple(decoded))


def resolve_directory(root: Path, segments: tuple[str, ...]) -> Path | None:
    """Join segments onto root; None unless the result is an existing directory.

    Symlinks are followed, so a link pointing at a directory resolves.
    """
    target = root.joinpath(*segments)
    try:
        info = os.stat(target)
    except (OSError, ValueError):
        return None
    if not stat.S_ISDIR(info.st_mode):
        return None
    return target
