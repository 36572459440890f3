from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator


class SortKey(str, Enum):
    NAME = 'name'
    NAME_REV = 'name_rev'
    MTIME = 'mtime'
    MTIME_REV = 'mtime_rev'
    SIZE = 'size'
    SIZE_REV = 'size_rev'

    @classmethod
    def parse(cls, value: Optional[str]) -> 'SortKey':
        try:
            return cls(value)
        except ValueError:
            return cls.NAME

    @property
    def column(self) -> str:
        return self.value.removesuffix('_rev')

    @property
    def reverse(self) -> bool:
        return self.value.endswith('_rev')


class EntryKind(str, Enum):
    REGULAR = 'regular'
    DIRECTORY = 'directory'
    SYMLINK = 'symlink'
    OTHER = 'other'


class MountConfig(BaseModel):
    """Per-mount settings, built once at startup and shared by every request."""

    model_config = ConfigDict(frozen=True)

    at: tuple[str, ...] = ()
    root: Path
    only: frozenset[str] = frozenset()
    only_matching: frozenset[str] = frozenset()
    allow_all: bool = False

    @model_validator(mode='after')
    def check_allow_all(self) -> 'MountConfig':
        if self.allow_all and (self.only or self.only_matching):
            raise ValueError('allow_all cannot be combined with only/only_matching')
        return self
