from __future__ import annotations

import argparse
import logging
from typing import Optional, Sequence

from pydantic import ValidationError

from .config import Settings
from .lifecycle import serve


def _port(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f'invalid port: {value!r}')
    if not 1 <= port <= 65535:
        raise argparse.ArgumentTypeError(f'port must be between 1 and 65535, got {port}')
    return port


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='filebox', description='Serve one directory as a browser file manager.')
    parser.add_argument('directory', help='directory to expose (created if missing)')
    parser.add_argument('port', type=_port, help='TCP port to listen on (1-65535)')
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = Settings(root_dir=args.directory, app_port=args.port)
    except ValidationError as exc:
        parser.error(str(exc))

    logging.basicConfig(
        level=settings.log_level.upper(),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    return serve(settings)
