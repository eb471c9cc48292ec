"""FastAPI server for codeplanner."""
from __future__ import annotations

from typing import Any, AsyncIterator, Dict
import asyncio
import json
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

from codeplanner.config import get_config
from codeplanner.errors import (
    CodePlannerError,
    RateLimitExceeded,
    UpstreamFetchError,
    UpstreamProviderError,
    ValidationError,
)
from codeplanner.service import ReviewService

logger = logging.getLogger(__name__)

TERMINAL_FRAMES = ("result", "error")


def _identity(request: Request) -> str:
    client_id = request.headers.get("x-client-id")
    if client_id:
        return client_id
    return request.client.host if request.client else "anonymous"


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return None


def error_response(exc: Exception) -> JSONResponse:
    if isinstance(exc, RateLimitExceeded):
        return JSONResponse(
            {"error": str(exc)},
            status_code=429,
            headers={"Retry-After": str(exc.retry_after)},
        )
    if isinstance(exc, ValidationError):
        return JSONResponse({"error": str(exc)}, status_code=400)
    if isinstance(exc, (UpstreamFetchError, UpstreamProviderError)):
        return JSONResponse({"error": str(exc)}, status_code=502)
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse({"error": str(exc) or "internal error"}, status_code=500)


async def _ndjson_frames(service: ReviewService, pipeline_request: Any, token: str | None) -> AsyncIterator[str]:
    queue: asyncio.Queue[Dict[str, Any]] = asyncio.Queue()
    terminal = {"sent": False}

    def _sink(frame: Dict[str, Any]) -> None:
        if frame.get("type") in TERMINAL_FRAMES:
            terminal["sent"] = True
        queue.put_nowait(frame)

    async def _drive() -> None:
        try:
            await service.run_standard_pipeline(pipeline_request, sink=_sink, token=token)
        except Exception as exc:
            # The pipeline reports its own failures; this covers errors raised before it started.
            logger.error("Pipeline run failed: %s", exc)
            if not terminal["sent"]:
                _sink({"type": "error", "error": str(exc)})

    task = asyncio.create_task(_drive())
    try:
        while True:
            frame = await queue.get()
            yield json.dumps(frame) + "\n"
            if frame.get("type") in TERMINAL_FRAMES:
                break
    finally:
        await asyncio.gather(task, return_exceptions=True)


def create_app(service: ReviewService | None = None) -> FastAPI:
    app = FastAPI(title="codeplanner")
    app.state.service = service or ReviewService.from_config(get_config())

    @app.get("/health")
    async def health():
        """Health check endpoint for monitoring."""
        return {"status": "healthy", "service": "codeplanner"}

    @app.post("/api/pipeline/run")
    async def pipeline_run_api(payload: Dict[str, Any], request: Request):
        svc: ReviewService = request.app.state.service
        try:
            svc.admit(_identity(request))
            pipeline_request = svc.parse_pipeline(payload)
        except CodePlannerError as exc:
            return error_response(exc)
        return StreamingResponse(
            _ndjson_frames(svc, pipeline_request, _bearer_token(request)),
            media_type="application/x-ndjson",
        )

    @app.post("/api/pipeline/agents")
    async def pipeline_agents_api(payload: Dict[str, Any], request: Request):
        svc: ReviewService = request.app.state.service
        try:
            result = await svc.run_agent_review(
                payload, identity=_identity(request), token=_bearer_token(request)
            )
        except Exception as exc:
            return error_response(exc)
        return result.to_dict()

    @app.get("/api/models/{provider}")
    async def models_api(provider: str, request: Request):
        svc: ReviewService = request.app.state.service
        try:
            models = await svc.list_models(provider)
        except CodePlannerError as exc:
            return error_response(exc)
        return {"provider": provider, "models": models}

    return app
