from __future__ import annotations

from pydantic import BaseModel


class FileRecord(BaseModel):
    name: str
    size: str
    size_bytes: int
