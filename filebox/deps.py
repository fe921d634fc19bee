from __future__ import annotations

from fastapi import Request
from fastapi.templating import Jinja2Templates

from .services.file_ops import FileOps


def get_file_ops(request: Request) -> FileOps:
    return request.app.state.file_ops


def get_templates(request: Request) -> Jinja2Templates:
    return request.app.state.templates
