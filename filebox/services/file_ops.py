from __future__ import annotations

import os
import shutil
import stat
from pathlib import Path
from typing import BinaryIO

from ..schemas import FileRecord
from . import catalog

_COPY_CHUNK = 1024 * 1024
_SEPARATORS = ('/', '\\')


class InvalidFileName(ValueError):
    pass


def validate_name(name: str, root: Path) -> Path:
    if name in ('', '.', '..') or any(sep in name for sep in _SEPARATORS) or '\x00' in name:
        raise InvalidFileName('Invalid filename')

    candidate = Path(os.path.normpath(os.path.join(root, name)))
    if root not in candidate.parents:
        raise InvalidFileName('Path escapes root directory')
    return candidate


def client_base_name(filename: str) -> str:
    """Last path component of a client-declared upload filename."""
    return filename.replace('\\', '/').rstrip('/').rsplit('/', 1)[-1]


class FileOps:
    def __init__(self, root: str | Path, *, confine_symlinks: bool = False):
        self.root = Path(os.path.abspath(root))
        self.confine_symlinks = confine_symlinks

    def safe_path(self, name: str) -> Path:
        target = validate_name(name, self.root)
        if self.confine_symlinks and target.resolve(strict=False).parent != self.root.resolve():
            raise InvalidFileName('Path escapes root directory')
        return target

    def list_files(self) -> list[FileRecord]:
        return catalog.list_files(self.root)

    def create(self, name: str, source: BinaryIO) -> Path:
        target = self.safe_path(name)
        # 'x' fails with FileExistsError instead of truncating an existing file.
        with target.open('xb') as f:
            shutil.copyfileobj(source, f, _COPY_CHUNK)
            f.flush()
            os.fsync(f.fileno())
        return target

    def open_for_read(self, name: str) -> BinaryIO:
        """Open a regular file for download.

        The open handle keeps the bytes readable even if the name is
        deleted before the response finishes streaming.
        """
        target = self.safe_path(name)
        if not target.is_file():
            raise FileNotFoundError(f'No such file: {name}')

        handle = target.open('rb')
        if not stat.S_ISREG(os.fstat(handle.fileno()).st_mode):
            handle.close()
            raise FileNotFoundError(f'No such file: {name}')
        return handle

    def delete(self, name: str):
        target = self.safe_path(name)
        if target.is_dir():
            raise FileNotFoundError(f'No such file: {name}')
        target.unlink(missing_ok=False)
