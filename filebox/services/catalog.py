from __future__ import annotations

import os
from pathlib import Path

from ..schemas import FileRecord

_UNIT = 1024
_SUFFIXES = 'KMGTPE'


def format_size(num_bytes: int) -> str:
    """Render a byte count with base-1024 units, e.g. ``1536 -> '1.5 KB'``."""
    if num_bytes < _UNIT:
        return f'{num_bytes} B'

    div, exp = _UNIT, 0
    n = num_bytes // _UNIT
    while n >= _UNIT:
        div *= _UNIT
        exp += 1
        n //= _UNIT
    return f'{num_bytes / div:.1f} {_SUFFIXES[exp]}B'


def list_files(root: Path) -> list[FileRecord]:
    """Regular files directly inside ``root``, in directory order.

    Entries that vanish or cannot be stat'ed mid-listing are skipped. An
    unreadable ``root`` raises ``OSError``.
    """
    records: list[FileRecord] = []
    with os.scandir(root) as entries:
        for entry in entries:
            try:
                if not entry.is_file():
                    continue
                size = entry.stat().st_size
            except OSError:
                continue
            records.append(FileRecord(name=entry.name, size=format_size(size), size_bytes=size))
    return records
