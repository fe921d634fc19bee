from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.templating import Jinja2Templates

from .config import Settings
from .limits import InflightTracker, RequestLimitsMiddleware
from .routers import files
from .services.file_ops import FileOps

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / 'templates'

_SECURITY_HEADERS = {
    'X-Content-Type-Options': 'nosniff',
    'X-Frame-Options': 'DENY',
    'X-XSS-Protection': '1; mode=block',
    'Referrer-Policy': 'strict-origin-when-cross-origin',
}

_ALLOWED_METHODS = 'GET, POST, DELETE'


def _apply_security_headers(response):
    for key, value in _SECURITY_HEADERS.items():
        response.headers[key] = value
    return response


def _is_cross_origin(request: Request) -> bool:
    origin = request.headers.get('origin', '')
    if not origin:
        return False
    # Substring match: 'http://host:8080' contains 'host:8080'.
    return request.headers.get('host', '') not in origin


async def security_middleware(request: Request, call_next):
    if request.method == 'OPTIONS':
        return _apply_security_headers(Response(status_code=204, headers={'Allow': _ALLOWED_METHODS}))

    if _is_cross_origin(request):
        logger.warning('Rejected cross-origin %s %s from %s', request.method, request.url.path, request.headers.get('origin'))
        return _apply_security_headers(
            JSONResponse({'detail': 'Forbidden: Cross-origin request denied'}, status_code=403)
        )

    response = await call_next(request)
    return _apply_security_headers(response)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse({'detail': 'Bad Request'}, status_code=400)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception('Unhandled error on %s %s', request.method, request.url.path, exc_info=exc)
    # Runs in ServerErrorMiddleware, outside security_middleware.
    if 'text/html' in request.headers.get('accept', ''):
        return _apply_security_headers(
            HTMLResponse('<h1>Unexpected error</h1><p>Please try again.</p>', status_code=500)
        )
    return _apply_security_headers(JSONResponse({'detail': 'Internal Server Error'}, status_code=500))


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    Path(settings.root_dir).mkdir(parents=True, exist_ok=True)
    logger.info('Serving %s', settings.root_dir)
    yield
    logger.info('Shutting down server...')


def create_app(settings: Settings) -> FastAPI:
    app = FastAPI(title=settings.app_name, lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

    templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
    templates.env.globals['app_name'] = settings.app_name

    app.state.settings = settings
    app.state.file_ops = FileOps(settings.root_dir, confine_symlinks=settings.confine_symlinks)
    app.state.templates = templates
    app.state.inflight = InflightTracker()

    app.add_middleware(
        RequestLimitsMiddleware,
        max_body_bytes=settings.max_upload_bytes,
        read_timeout=settings.read_timeout_sec,
        write_timeout=settings.write_timeout_sec,
        tracker=app.state.inflight,
    )
    # Added last so it runs first: origin checks precede any body handling.
    app.middleware('http')(security_middleware)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(files.router)
    return app
