from __future__ import annotations

import logging
import os
import posixpath
import stat
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from urllib.parse import quote

from fastapi.templating import Jinja2Templates

from ..schemas import EntryKind, SortKey

logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / 'templates'))

TIME_FORMAT = '%Y-%m-%d %H:%M:%S'
SORT_COLUMNS = ('name', 'mtime', 'size')


@dataclass(frozen=True)
class DirEntry:
    name: str
    kind: EntryKind
    mtime: datetime
    size: int = 0
    stat_error: bool = False

    @property
    def sort_size(self) -> int:
        return self.size if self.kind is EntryKind.REGULAR else 0


_SORT_FIELDS = {
    'name': lambda entry: entry.name,
    'mtime': lambda entry: (entry.mtime, entry.name),
    'size': lambda entry: (entry.sort_size, entry.name),
}


def _entry_kind(mode: int) -> EntryKind:
    if stat.S_ISREG(mode):
        return EntryKind.REGULAR
    if stat.S_ISDIR(mode):
        return EntryKind.DIRECTORY
    if stat.S_ISLNK(mode):
        return EntryKind.SYMLINK
    return EntryKind.OTHER


def read_entry(directory: Path, name: str) -> DirEntry:
    try:
        info = os.lstat(directory / name)
        mtime = datetime.fromtimestamp(int(info.st_mtime))
    except (OSError, OverflowError, ValueError) as exc:
        logger.debug('Skipping %s in %s: %s', name, directory, exc)
        return DirEntry(name, EntryKind.OTHER, datetime.min, stat_error=True)

    kind = _entry_kind(info.st_mode)
    size = info.st_size if kind is EntryKind.REGULAR else 0
    return DirEntry(name, kind, mtime, size)


def enumerate_entries(directory: Path) -> list[DirEntry]:
    with os.scandir(directory) as it:
        names = [entry.name for entry in it]
    return [read_entry(directory, name) for name in names]


def sort_entries(entries: list[DirEntry], sort_key: SortKey) -> list[DirEntry]:
    """Drop entries without metadata and order the rest by sort_key.

    Names are unique within a directory, so every key is a total order and the
    _rev keys give the exact reverse sequence.
    """
    visible = [entry for entry in entries if not entry.stat_error]
    return sorted(visible, key=_SORT_FIELDS[sort_key.column], reverse=sort_key.reverse)


def sort_links(current: SortKey) -> dict[str, str]:
    links: dict[str, str] = {}
    for column in SORT_COLUMNS:
        if current.column == column and not current.reverse:
            links[column] = f'{column}_rev'
        else:
            links[column] = column
    return links


def logical_basepath(at: tuple[str, ...], segments: tuple[str, ...]) -> str:
    return '/' + '/'.join((*at, *segments))


def display_name(name: str) -> str:
    return name.encode('utf-8', 'surrogateescape').decode('utf-8', 'replace')


def entry_href(base_href: str, entry: DirEntry) -> str:
    prefix = base_href if base_href.endswith('/') else base_href + '/'
    href = prefix + quote(entry.name, errors='surrogateescape')
    if entry.kind is EntryKind.DIRECTORY:
        href += '/'
    return href


def parent_href(base_href: str) -> str | None:
    if base_href == '/':
        return None
    parent = posixpath.dirname(base_href.rstrip('/'))
    return parent if parent.endswith('/') else parent + '/'


def _format_row(entry: DirEntry, base_href: str) -> dict:
    is_dir = entry.kind is EntryKind.DIRECTORY
    return {
        'href': entry_href(base_href, entry),
        'name': display_name(entry.name) + ('/' if is_dir else ''),
        'mtime': entry.mtime.strftime(TIME_FORMAT),
        'size': str(entry.size) if entry.kind is EntryKind.REGULAR else '',
        'kind': entry.kind.value,
    }


def render_listing(
    directory: Path,
    basepath: str,
    host: str,
    sort_key: SortKey,
    base_href: str | None = None,
) -> bytes:
    if base_href is None:
        base_href = quote(basepath)
    entries = sort_entries(enumerate_entries(directory), sort_key)

    header = templates.get_template('header.html').render(
        basepath=basepath,
        parent_href=parent_href(base_href),
        sort_links=sort_links(sort_key),
        sort_key=sort_key.value,
    )
    direntry = templates.get_template('direntry.html')
    rows = [direntry.render(**_format_row(entry, base_href)) for entry in entries]
    footer = templates.get_template('footer.html').render(host=host)

    return ''.join([header, *rows, footer]).encode('utf-8')
