from __future__ import annotations

import os
from urllib.parse import quote

import pytest

from static_listing.schemas import MountConfig
from static_listing.services import paths


def _config(tmp_path, **kwargs) -> MountConfig:
    return MountConfig(at=('assets',), root=tmp_path, **kwargs)


def test_match_mount_returns_remaining_segments():
    assert paths.match_mount(('assets',), ('assets', 'images', 'logo')) == ('images', 'logo')


def test_match_mount_distinguishes_no_match_from_mount_root():
    assert paths.match_mount(('assets',), ('assets',)) == ()
    assert paths.match_mount(('assets',), ('scripts',)) is None
    assert paths.match_mount(('assets', 'public'), ('assets',)) is None


def test_match_mount_compares_whole_segments():
    assert paths.match_mount(('assets',), ('assets2', 'images')) is None


def test_match_mount_at_root_matches_everything():
    assert paths.match_mount((), ()) == ()
    assert paths.match_mount((), ('a', 'b')) == ('a', 'b')


def test_is_allowed_rejects_unmatched_request(tmp_path):
    assert paths.is_allowed(_config(tmp_path, allow_all=True), None) is False


def test_is_allowed_exact_and_prefix(tmp_path):
    config = _config(tmp_path, only=frozenset({'images'}), only_matching=frozenset({'logos'}))

    assert paths.is_allowed(config, ('images',)) is True
    assert paths.is_allowed(config, ('images', 'sub')) is True
    assert paths.is_allowed(config, ('images-high',)) is False
    assert paths.is_allowed(config, ('logos-high',)) is True
    assert paths.is_allowed(config, ('scripts',)) is False


def test_is_allowed_rejects_mount_root_with_allow_list(tmp_path):
    config = _config(tmp_path, only=frozenset({'images'}))

    assert paths.is_allowed(config, ()) is False


def test_is_allowed_denies_by_default(tmp_path):
    config = _config(tmp_path)

    assert paths.is_allowed(config, ('images',)) is False
    assert paths.is_allowed(config, ()) is False


def test_is_allowed_allow_all_includes_mount_root(tmp_path):
    config = _config(tmp_path, allow_all=True)

    assert paths.is_allowed(config, ()) is True
    assert paths.is_allowed(config, ('anything',)) is True


def test_sanitize_decodes_segments():
    result = paths.sanitize(('images', 'my%20photos', 'caf%C3%A9'))

    assert result.ok
    assert result.segments == ('images', 'my photos', 'café')


@pytest.mark.parametrize(
    'segment',
    ['%2e%2e', '..', '.', '%2E', 'a%2Fb', 'a%5Cb', 'c%3A', 'c:', 'nul%00byte', ''],
)
def test_sanitize_rejects_traversal_and_forbidden_chars(segment):
    result = paths.sanitize(('images', segment))

    assert result.ok is False
    assert result.segments == ()


@pytest.mark.parametrize('segment', ['%zz', '%2', 'bad%', '%ff', '%C3'])
def test_sanitize_rejects_malformed_escapes(segment):
    assert paths.sanitize((segment,)).ok is False


def test_sanitize_checks_every_segment():
    assert paths.sanitize(('images', 'ok', '..', 'deeper')).ok is False


@pytest.mark.parametrize('name', ['plain', 'with space', 'café', 'percent%sign', 'a+b&c=d', '日本語'])
def test_sanitize_round_trips_encoded_segments(name):
    result = paths.sanitize((quote(name, safe=''),))

    assert result.ok
    assert result.segments == (name,)


def test_resolve_directory_finds_nested_directory(tmp_path):
    (tmp_path / 'images' / 'icons').mkdir(parents=True)

    resolved = paths.resolve_directory(tmp_path, ('images', 'icons'))

    assert resolved == tmp_path / 'images' / 'icons'


def test_resolve_directory_returns_none_for_files_and_missing(tmp_path):
    (tmp_path / 'robots.txt').write_text('User-agent: *')

    assert paths.resolve_directory(tmp_path, ('robots.txt',)) is None
    assert paths.resolve_directory(tmp_path, ('missing',)) is None


def test_resolve_directory_follows_directory_symlink(tmp_path):
    (tmp_path / 'real').mkdir()
    os.symlink(tmp_path / 'real', tmp_path / 'alias')

    assert paths.resolve_directory(tmp_path, ('alias',)) == tmp_path / 'alias'


def test_invalid_path_error_carries_client_status():
    exc = paths.InvalidPathError()

    assert exc.status_code == 400
    assert 'Invalid path' in exc.detail
