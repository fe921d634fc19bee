from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send


class RequestBodyTooLarge(Exception):
    pass


@dataclass
class InflightTracker:
    """Requests in progress, and how many were cut off by shutdown."""

    active: int = 0
    cancelled: int = 0


def _declared_length(scope: Scope) -> Optional[int]:
    for key, value in scope.get('headers', []):
        if key == b'content-length':
            try:
                return int(value)
            except ValueError:
                return None
    return None


class RequestLimitsMiddleware:
    """Caps request bodies and bounds each body read and response write.

    The read timeout only applies until the final body chunk has arrived, so
    later disconnect listeners (streamed downloads) wait freely. Errors raised
    from ``receive`` surface as 400 through FastAPI's body parsing.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        max_body_bytes: int,
        read_timeout: float,
        write_timeout: float,
        tracker: InflightTracker,
    ):
        self.app = app
        self.max_body_bytes = max_body_bytes
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self.tracker = tracker

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope['type'] != 'http':
            await self.app(scope, receive, send)
            return

        declared = _declared_length(scope)
        if declared is not None and declared > self.max_body_bytes:
            response = JSONResponse({'detail': 'Request body too large'}, status_code=400)
            await response(scope, receive, send)
            return

        received = 0
        body_done = False

        async def limited_receive() -> Message:
            nonlocal received, body_done
            if body_done:
                return await receive()

            message = await asyncio.wait_for(receive(), self.read_timeout)
            if message['type'] == 'http.request':
                received += len(message.get('body', b''))
                if received > self.max_body_bytes:
                    raise RequestBodyTooLarge(f'Request body exceeds {self.max_body_bytes} bytes')
                if not message.get('more_body', False):
                    body_done = True
            return message

        async def timed_send(message: Message):
            await asyncio.wait_for(send(message), self.write_timeout)

        self.tracker.active += 1
        try:
            await self.app(scope, limited_receive, timed_send)
        except asyncio.CancelledError:
            self.tracker.cancelled += 1
            raise
        finally:
            self.tracker.active -= 1
