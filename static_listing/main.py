from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.staticfiles import StaticFiles

from .config import Settings, build_mount_config, settings
from .middleware import StaticListingMiddleware

logger = logging.getLogger(__name__)

_SECURITY_HEADERS = {
    'Content-Security-Policy': "default-src 'self'",
    'X-Frame-Options': 'DENY',
    'X-Content-Type-Options': 'nosniff',
    'Referrer-Policy': 'strict-origin-when-cross-origin',
}


def _apply_security_headers(response):
    for key, value in _SECURITY_HEADERS.items():
        response.headers[key] = value
    return response


async def security_middleware(request: Request, call_next):
    response = await call_next(request)
    return _apply_security_headers(response)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


def create_app(app_settings: Settings | None = None) -> FastAPI:
    app_settings = app_settings or settings
    _configure_logging(app_settings.log_level)

    mount = build_mount_config(app_settings)
    if not mount.root.is_dir():
        logger.warning('Static root %s does not exist yet', mount.root)

    app = FastAPI(title=app_settings.app_name)

    @app.get('/healthz')
    def healthz():
        return {'ok': True}

    mount_path = '/' + '/'.join(mount.at)
    app.mount(mount_path, StaticFiles(directory=str(mount.root), check_dir=False), name='static')

    app.add_middleware(StaticListingMiddleware, config=mount)
    # Registered last so it wraps the listing responses too.
    app.middleware('http')(security_middleware)

    logger.info('Listing %s at %s', mount.root, mount_path)
    return app


app = create_app()
