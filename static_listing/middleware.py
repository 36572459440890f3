from __future__ import annotations

import logging
from urllib.parse import quote

from fastapi import Request
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from .config import split_path
from .schemas import MountConfig, SortKey
from .services.listing import display_name, logical_basepath, render_listing
from .services.paths import InvalidPathError, is_allowed, match_mount, resolve_directory, sanitize

logger = logging.getLogger(__name__)

_ALLOWED_METHODS = {'GET', 'HEAD'}


def request_segments(request: Request) -> tuple[str, ...]:
    raw_path = request.scope.get('raw_path')
    if raw_path:
        return split_path(raw_path.decode('utf-8', 'surrogateescape'))
    return split_path(quote(request.url.path))


def listing_segments(config: MountConfig, request: Request) -> tuple[str, ...] | None:
    """Return the sanitized segments to list, or None if this request is not ours.

    Raises InvalidPathError for eligible requests whose path fails sanitization.
    """
    subpath = match_mount(config.at, request_segments(request))
    if not is_allowed(config, subpath):
        return None

    result = sanitize(subpath)
    if not result.ok:
        logger.warning('Rejected listing path %s: %s', request.url.path, result.error)
        raise InvalidPathError()
    return result.segments


def build_listing(config: MountConfig, segments: tuple[str, ...], host: str, sort_key: SortKey) -> bytes | None:
    directory = resolve_directory(config.root, segments)
    if directory is None:
        return None

    basepath = display_name(logical_basepath(config.at, segments))
    base_href = '/' + '/'.join(quote(segment, errors='surrogateescape') for segment in (*config.at, *segments))
    try:
        return render_listing(directory, basepath, host, sort_key, base_href=base_href)
    except OSError as exc:
        logger.warning('Cannot list %s: %s', directory, exc)
        return None


class StaticListingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, config: MountConfig):
        super().__init__(app)
        self.config = config

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method not in _ALLOWED_METHODS:
            return await call_next(request)

        try:
            segments = listing_segments(self.config, request)
        except InvalidPathError as exc:
            return JSONResponse({'detail': exc.detail}, status_code=exc.status_code)
        if segments is None:
            return await call_next(request)

        sort_key = SortKey.parse(request.query_params.get('sort'))
        host = request.url.hostname or ''
        body = await run_in_threadpool(build_listing, self.config, segments, host, sort_key)
        if body is None:
            return await call_next(request)

        logger.info('Serving directory listing for %s', request.url.path)
        return HTMLResponse(body, status_code=200)
