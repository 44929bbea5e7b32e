"""Correlation ids for log lines: one per HTTP request or worker job."""
from __future__ import annotations

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

correlation_id_ctx: ContextVar[str] = ContextVar("correlation_id", default="")

HEADER = "X-Request-ID"


def new_correlation_id() -> str:
    return uuid.uuid4().hex


@contextmanager
def bind_correlation_id(value: str | None = None) -> Iterator[str]:
    cid = value or new_correlation_id()
    token = correlation_id_ctx.set(cid)
    try:
        yield cid
    finally:
        correlation_id_ctx.reset(token)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        with bind_correlation_id(request.headers.get(HEADER)) as cid:
            response = await call_next(request)
            response.headers[HEADER] = cid
            return response
