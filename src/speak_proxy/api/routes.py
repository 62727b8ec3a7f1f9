"""
speak-proxy API Routes.

Endpoints:
    POST /speak    - Synthesize speech (returns audio/mpeg)
    GET  /health   - Liveness and configuration summary
    GET  /metrics  - Prometheus metrics

Request Flow (/speak):
    1. Assign a request id for log correlation
    2. Resolve the client identity (X-Forwarded-For, else peer address)
    3. Decode the JSON body; invalid JSON counts as empty, any other failure
       while reading (nesting too deep, client gone) is answered as "exception"
    4. SpeakService.handle() runs rate limit → normalize → provider call
    5. Send the audio or the JSON error
    6. Write the access log line as a background task, after the response
       (or when sending fails, since background tasks are then skipped)

Error Handling:
    Every failure is a JSON body of the form {"error": "<message>"}:
        - bad_request   -> 400 Bad Request
        - rate_limited  -> 429 Too Many Requests (+ Retry-After)
        - gateway_error -> 500 Internal Server Error
        - exception     -> 500 Internal Server Error

Example Usage:
    >>> import httpx
    >>> r = httpx.post("http://localhost:3000/speak", json={"text": "Привет"})
    >>> open("out.mp3", "wb").write(r.content)
"""
from __future__ import annotations

import uuid
from functools import partial
from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from starlette.background import BackgroundTask
from starlette.types import Receive, Scope, Send

from speak_proxy.api.dependencies import get_speak_service
from speak_proxy.api.schemas import ErrorResponse, SpeakRequest
from speak_proxy.core.logging import get_logger, set_request_id, verbose
from speak_proxy.core.metrics import metrics
from speak_proxy.services.rate_limiter import client_identity
from speak_proxy.services.request_log import RequestStatus
from speak_proxy.services.speak_service import SpeakResult, SpeakService

router = APIRouter()

_LOG = get_logger("speak-proxy.api")

_STATUS_CODES = {
    RequestStatus.OK: 200,
    RequestStatus.BAD_REQUEST: 400,
    RequestStatus.RATE_LIMITED: 429,
    RequestStatus.GATEWAY_ERROR: 500,
    RequestStatus.EXCEPTION: 500,
}


def status_code_for(status: RequestStatus) -> int:
    return _STATUS_CODES.get(status, 500)


async def _read_body(request: Request) -> Any:
    """Decoded JSON body, or None when it is absent or not valid JSON."""
    try:
        return await request.json()
    except ValueError:
        # json.JSONDecodeError and UnicodeDecodeError are both ValueErrors
        return None


class _CompletingResponse(Response):
    """
    Response that runs ``on_complete`` even when sending fails.

    The access log is normally written by the background task once the body
    is out. Starlette skips background tasks when ``send`` raises (client
    gone mid-response), so the callback runs again from ``finally``;
    SpeakService.complete() only logs once.
    """
    on_complete: Optional[Callable[[], None]] = None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            if self.on_complete is not None:
                self.on_complete()


class AudioResponse(_CompletingResponse):
    pass


class ErrorJSONResponse(_CompletingResponse, JSONResponse):
    pass


def _to_response(result: SpeakResult, rid: str, service: SpeakService) -> Response:
    headers = dict(result.headers)
    headers["X-Request-Id"] = rid
    on_complete = partial(service.complete, result)
    background = BackgroundTask(on_complete)

    response: _CompletingResponse
    if result.ok and result.audio is not None:
        response = AudioResponse(
            content=result.audio.data,
            media_type=result.audio.mime,
            headers=headers,
            background=background,
        )
    else:
        response = ErrorJSONResponse(
            status_code=status_code_for(result.status),
            content={"error": result.error or ""},
            headers=headers,
            background=background,
        )
    response.on_complete = on_complete
    return response


@router.post(
    "/speak",
    response_class=Response,
    openapi_extra={
        "requestBody": {
            "content": {"application/json": {"schema": SpeakRequest.model_json_schema()}},
        }
    },
    responses={
        200: {"content": {"audio/mpeg": {}}, "description": "MP3 audio"},
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def speak(request: Request, service: SpeakService = Depends(get_speak_service)):
    """
    Synthesize speech for the given text.

    Returns the provider's MP3 bytes with Content-Type audio/mpeg, or a JSON
    error. Rate limit headers (RateLimit-Limit, RateLimit-Remaining,
    RateLimit-Reset) are attached whenever rate limiting is enabled.
    """
    rid = str(uuid.uuid4())[:12]
    set_request_id(rid)

    client = client_identity(
        request.headers.get("x-forwarded-for"),
        request.client.host if request.client else None,
    )
    try:
        body = await _read_body(request)
    except Exception as exc:
        # RecursionError on deeply nested JSON, ClientDisconnect while reading
        result = service.fault(client, exc)
    else:
        verbose(_LOG, "speak_received", client=client)
        result = await service.handle(body, client)
    return _to_response(result, rid, service)


@router.get("/health")
def health(service: SpeakService = Depends(get_speak_service)):
    """
    Liveness check for load balancers and orchestration.

    Reports the provider URL, whether an API key is configured (never the
    key itself) and rate limiter state.
    """
    return service.get_health_info()


@router.get("/metrics")
def prometheus_metrics():
    """Prometheus text exposition of the speak_* metrics."""
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
