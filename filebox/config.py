from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix='FILEBOX_', env_file='.env', env_file_encoding='utf-8', extra='ignore')

    app_name: str = 'File Manager'
    root_dir: Path
    app_host: str = '0.0.0.0'
    app_port: int = Field(default=8080, ge=1, le=65535)
    max_upload_bytes: int = Field(default=500 * 1024 * 1024, ge=1)
    read_timeout_sec: float = Field(default=5.0, gt=0)
    write_timeout_sec: float = Field(default=10.0, gt=0)
    idle_timeout_sec: int = Field(default=120, ge=1)
    shutdown_grace_sec: int = Field(default=10, ge=1)
    confine_symlinks: bool = False
    log_level: str = Field(default='info', pattern='^(critical|error|warning|info|debug)$')

    @field_validator('root_dir')
    @classmethod
    def _absolute_root(cls, value: Path) -> Path:
        # Lexical only: symlinks in the root path are kept as given.
        return Path(os.path.abspath(value))

    @field_validator('log_level', mode='before')
    @classmethod
    def _lower_log_level(cls, value):
        return value.lower() if isinstance(value, str) else value
