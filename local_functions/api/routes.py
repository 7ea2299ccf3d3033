"""
FastAPI request dispatcher for the emulator.

A single catch-all route receives every request:

  /<package>/<action>[/anything][?query]  → invoke that action

The first registered route whose path prefixes the request path handles it.
The JSON body (or {} when empty) becomes the function's params, and the
function's {statusCode, body} result becomes the response.

Every failure (no matching route, a body that is not JSON, a dropped
connection, a function that crashed or printed no result) is logged and
answered with the same plain 500. Clients never see internal detail.
"""
import json
import logging
import time
from typing import Any

from fastapi import APIRouter, Request, Response
from fastapi.responses import PlainTextResponse
from starlette.background import BackgroundTask
from starlette.requests import ClientDisconnect

from local_functions.errors import InvalidBody, TransportError
from local_functions.models import InvocationResult
from local_functions.registry import find_route

logger = logging.getLogger(__name__)

router = APIRouter()

METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

async def read_params(request: Request) -> Any:
    """
    Read the whole body and decode it as the invocation params.

    Raises:
        TransportError — the client went away mid-body
        InvalidBody    — a non-empty body that is not JSON
    """
    chunks = []
    try:
        async for chunk in request.stream():
            chunks.append(chunk)
    except ClientDisconnect as e:
        raise TransportError("client disconnected while sending the body") from e

    body = b"".join(chunks)
    if not body:
        return {}
    try:
        return json.loads(body)
    except ValueError as e:
        raise InvalidBody(f"request body is not valid JSON: {e}") from e


def log_duration(start: float) -> None:
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info("Duration: %.3f ms", elapsed_ms)


# Statuses that must not carry a payload.
_NO_BODY_STATUSES = frozenset({204, 304})


def to_response(result: InvocationResult) -> Response:
    if result.has_body and result.http_status not in _NO_BODY_STATUSES:
        content = json.dumps(result.body)
    else:
        content = b""
    return Response(
        content=content,
        status_code=result.http_status,
        media_type="application/json",
    )


# ------------------------------------------------------------------
# Catch-all dispatch
# ------------------------------------------------------------------

@router.api_route("/{path:path}", methods=METHODS)
async def dispatch(request: Request) -> Response:
    """
    Resolve the route, read params, invoke, and translate the result.

    The duration line is logged after the response has been sent, for
    every attempt including failures. The access log line comes from uvicorn.
    """
    start = time.perf_counter()
    state = request.app.state
    path = request.url.path

    try:
        route = find_route(state.routes, path)
        params = await read_params(request)
        result = await state.invoke(route, params)
        response = to_response(result)
    except Exception:
        logger.exception("request %s %s failed", request.method, path)
        response = PlainTextResponse("Internal server error", status_code=500)

    response.background = BackgroundTask(log_duration, start)
    return response
