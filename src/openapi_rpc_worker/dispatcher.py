"""Per-route request dispatch: payload extraction, validation and invocation."""

from __future__ import annotations

import inspect
import json
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import structlog
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from .coercion import payload_from_query_params
from .context import Context
from .error_payloads import exception_message, invalid_payload_body
from .model_types import BODY_METHODS, MissingHandlerError
from .schema_adapter import OpenShape, QueryShape, ValidationIssue

if TYPE_CHECKING:
    from .route import BoundHandler, Route

logger = structlog.get_logger(__name__)

type Endpoint = Callable[[Request], Awaitable[Response]]

_FORWARDED_HEADER_EXCLUDES = frozenset({b"content-length", b"content-type"})


class MalformedBodyError(ValueError):
    """Raised when a request body is not valid JSON."""


def build_endpoint(route: Route[Any, Any]) -> Endpoint:
    """Create the Starlette endpoint serving ``route``.

    Args:
        route (Route[Any, Any]): The route as stored in its registry slot.

    Returns:
        Endpoint: Coroutine function taking the request and producing the
        response. It raises :class:`MissingHandlerError` when the route has
        no handler.
    """
    config = route.config
    handler = route.handler
    expects_payload = not config.input.is_null
    reads_body = config.method in BODY_METHODS
    query_shape: QueryShape = OpenShape()
    if expects_payload and not reads_body:
        query_shape = config.input.query_shape()

    async def endpoint(request: Request) -> Response:
        if handler is None:
            raise MissingHandlerError(f"No handler attached to operation {config.op_id!r}")

        payload: Any = None
        if expects_payload:
            if reads_body:
                try:
                    payload = await read_json_body(request)
                except MalformedBodyError as exc:
                    issue = ValidationIssue(message=str(exc), path=(), code="json_invalid")
                    return JSONResponse(invalid_payload_body((issue,)), status_code=400)
            else:
                payload = payload_from_query_params(request.query_params, query_shape)

        outcome = config.input.validate(payload)
        if not outcome.ok:
            logger.info(
                "dispatch.validation_failed",
                op_id=config.op_id,
                issue_count=len(outcome.issues),
            )
            return JSONResponse(invalid_payload_body(outcome.issues), status_code=400)

        stub = Response()
        context = Context(request, stub)
        try:
            result = await call_handler(handler, context, outcome.value)
            if config.output.is_null:
                response = Response(status_code=204)
            else:
                response = JSONResponse(config.output.dump(result))
        except Exception as exc:  # handler failures become 500 answers
            logger.exception("dispatch.handler_failed", op_id=config.op_id)
            return JSONResponse({"message": exception_message(exc)}, status_code=500)

        return forward_headers(stub, response)

    return endpoint


async def call_handler(handler: BoundHandler, context: Context, payload: Any) -> Any:
    """Invoke a bound handler, awaiting coroutines and off-loading sync code."""
    args = (context, payload) if handler.takes_context else (payload,)
    if handler.is_async:
        return await handler.func(*args)
    result = await run_in_threadpool(handler.func, *args)
    if inspect.isawaitable(result):
        result = await result
    return result


async def read_json_body(request: Request) -> Any:
    """Decode a JSON request body; an empty body reads as ``{}``."""
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedBodyError(f"Malformed JSON body: {exc}") from exc


def forward_headers(stub: Response, response: Response) -> Response:
    """Copy headers a handler set on the context response onto ``response``."""
    for name, value in stub.raw_headers:
        if name.lower() in _FORWARDED_HEADER_EXCLUDES:
            continue
        response.raw_headers.append((name, value))
    return response
