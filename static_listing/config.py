from __future__ import annotations

from importlib.util import find_spec
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .schemas import MountConfig


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8')

    app_name: str = 'Static Listing'
    app_host: str = '0.0.0.0'
    app_port: int = 8080
    log_level: str = 'info'
    mount_at: str = '/static'
    static_root: str = 'static'
    static_package: str | None = None
    static_subdir: str = 'static'
    only: list[str] = Field(default_factory=list)
    only_matching: list[str] = Field(default_factory=list)
    allow_all: bool = False


def split_path(path: str) -> tuple[str, ...]:
    return tuple(segment for segment in path.split('/') if segment)


def package_root(package: str, subdir: str) -> Path:
    try:
        spec = find_spec(package)
    except ModuleNotFoundError:
        spec = None
    if spec is None or not spec.submodule_search_locations:
        raise ValueError(f'Unknown package for static root: {package}')
    base = Path(next(iter(spec.submodule_search_locations)))
    return base.joinpath(*split_path(subdir))


def build_mount_config(settings: Settings) -> MountConfig:
    if settings.static_package:
        root = package_root(settings.static_package, settings.static_subdir)
    elif settings.static_root:
        root = Path(settings.static_root)
    else:
        raise ValueError('Either static_root or static_package must be set')

    return MountConfig(
        at=split_path(settings.mount_at),
        root=root.resolve(strict=False),
        only=frozenset(settings.only),
        only_matching=frozenset(settings.only_matching),
        allow_all=settings.allow_all,
    )


settings = Settings()
