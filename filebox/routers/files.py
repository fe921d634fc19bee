from __future__ import annotations

import logging
import os
from typing import BinaryIO, Iterator
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse, StreamingResponse
from fastapi.templating import Jinja2Templates
from starlette.concurrency import run_in_threadpool

from ..deps import get_file_ops, get_templates
from ..services.file_ops import FileOps, InvalidFileName, client_base_name

logger = logging.getLogger(__name__)

router = APIRouter(tags=['files'])

_INTERNAL_ERROR = 'Internal Server Error'
_READ_CHUNK = 64 * 1024


def _attachment(name: str) -> str:
    quoted = quote(name)
    if quoted != name:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{name}"'


def _iter_file(handle: BinaryIO) -> Iterator[bytes]:
    with handle:
        while chunk := handle.read(_READ_CHUNK):
            yield chunk


@router.get('/', response_class=HTMLResponse)
def index(
    request: Request,
    ops: FileOps = Depends(get_file_ops),
    templates: Jinja2Templates = Depends(get_templates),
):
    try:
        files = ops.list_files()
    except OSError as exc:
        logger.error('Error reading directory %s: %s', ops.root, exc)
        raise HTTPException(status_code=500, detail=_INTERNAL_ERROR)

    return templates.TemplateResponse(request, 'index.html', {'files': files, 'file_count': len(files)})


@router.post('/upload')
async def upload(file: UploadFile = File(...), ops: FileOps = Depends(get_file_ops)):
    name = client_base_name(file.filename or '')
    try:
        await run_in_threadpool(ops.create, name, file.file)
    except InvalidFileName:
        raise HTTPException(status_code=400, detail='Invalid filename')
    except FileExistsError:
        raise HTTPException(status_code=409, detail='File already exists')
    except OSError as exc:
        logger.error('Save file error for %r: %s', name, exc)
        raise HTTPException(status_code=500, detail=_INTERNAL_ERROR)
    finally:
        await file.close()

    logger.info('Uploaded: %s', name)
    return RedirectResponse('/', status_code=303)


@router.get('/download/{name:path}')
def download(name: str, ops: FileOps = Depends(get_file_ops)):
    try:
        handle = ops.open_for_read(name)
    except InvalidFileName:
        raise HTTPException(status_code=400, detail='Invalid filename')
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail='File not found')
    except OSError as exc:
        logger.error('Read error for %r: %s', name, exc)
        raise HTTPException(status_code=500, detail=_INTERNAL_ERROR)

    headers = {
        'Content-Disposition': _attachment(name),
        'Content-Length': str(os.fstat(handle.fileno()).st_size),
    }
    return StreamingResponse(_iter_file(handle), media_type='application/octet-stream', headers=headers)


@router.post('/delete/{name:path}')
def delete(
    name: str,
    method_override: str = Form(default='', alias='_method'),
    ops: FileOps = Depends(get_file_ops),
):
    # HTML forms cannot send DELETE, so the verb travels in the body.
    if method_override != 'DELETE':
        raise HTTPException(status_code=400, detail='Bad Request')

    try:
        ops.delete(name)
    except InvalidFileName:
        raise HTTPException(status_code=400, detail='Invalid filename')
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail='File not found')
    except OSError as exc:
        logger.error('Delete error for %r: %s', name, exc)
        raise HTTPException(status_code=500, detail=_INTERNAL_ERROR)

    logger.info('Deleted: %s', name)
    return RedirectResponse('/', status_code=303)
