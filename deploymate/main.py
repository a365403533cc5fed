"""DeployMate — FastAPI app.

Loads config.yaml and every skill on startup. Exposes the clarification,
review and follow-up chat calls, the snapshot call, and /api/generate-flow
which streams the pipeline as Server-Sent Events.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from deploymate.config import config_dir, load_config
from deploymate.errors import DeployMateError
from deploymate.runtime import AgentRuntime
from deploymate.schemas import (
    ChatRequest,
    ChatResponse,
    ClarifyRequest,
    ClarifyResponse,
    ReviewRequest,
    ReviewResponse,
    SnapshotRequest,
    SnapshotResponse,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter()


def get_runtime(request: Request) -> AgentRuntime:
    return request.app.state.runtime


# ---------------------------------------------------------------------------
# Auth dependency
# ---------------------------------------------------------------------------


async def verify_api_key(request: Request) -> None:
    """Validate X-API-Key header against the configured key.
    If no api_key is set in config, auth is disabled (dev mode).
    """
    config = get_runtime(request).config
    if not config.api_key:
        return

    key = request.headers.get("X-API-Key")
    if key != config.api_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


async def handle_service_error(request: Request, exc: DeployMateError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


# ---------------------------------------------------------------------------
# Agent endpoints
# ---------------------------------------------------------------------------


@router.post("/api/clarify", dependencies=[Depends(verify_api_key)])
async def clarify(
    body: ClarifyRequest, runtime: AgentRuntime = Depends(get_runtime)
) -> ClarifyResponse:
    """Clarification turn: the reply plus whether the clarifier is ready to generate."""
    reply, is_ready = await runtime.clarify(body.message, body.history, body.snapshot)
    return ClarifyResponse(reply=reply, isReady=is_ready)


@router.get("/api/generate-flow", dependencies=[Depends(verify_api_key)])
async def generate_flow(
    request: Request,
    description: str | None = None,
    runtime: AgentRuntime = Depends(get_runtime),
):
    """Run the full pipeline for a description.

    Streams response as Server-Sent Events (SSE).
    """
    events = runtime.generate(description)

    async def stream():
        try:
            async for event in events:
                if await request.is_disconnected():
                    logger.info("Client disconnected, pipeline stream stopped")
                    break
                yield event.to_sse()
        finally:
            await events.aclose()

    return StreamingResponse(
        stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/api/review", dependencies=[Depends(verify_api_key)])
async def review(
    body: ReviewRequest, runtime: AgentRuntime = Depends(get_runtime)
) -> ReviewResponse:
    """One-shot security review of pasted OpenTofu files."""
    return ReviewResponse(review=await runtime.review(body.tfCode))


@router.post("/api/chat", dependencies=[Depends(verify_api_key)])
async def chat(
    body: ChatRequest, runtime: AgentRuntime = Depends(get_runtime)
) -> ChatResponse:
    """Follow-up chat with the reviewer (mode="review") or the clarifier."""
    return ChatResponse(reply=await runtime.chat(body.message, body.history, body.mode))


@router.post("/api/snapshot", dependencies=[Depends(verify_api_key)])
async def snapshot(
    body: SnapshotRequest, runtime: AgentRuntime = Depends(get_runtime)
) -> SnapshotResponse:
    """Condense the history when it reaches the snapshot cadence; null otherwise."""
    return SnapshotResponse(snapshot=await runtime.snapshot(body.history))


# ---------------------------------------------------------------------------
# Operational endpoints
# ---------------------------------------------------------------------------


@router.get("/health")
async def health(runtime: AgentRuntime = Depends(get_runtime)):
    """Liveness check."""
    return {
        "status": "healthy",
        "model": runtime.config.model.name,
        "skills": len(runtime.skills),
        "steps": len(runtime.config.pipeline.steps),
    }


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(runtime: AgentRuntime | None = None) -> FastAPI:
    """Build the app. Config is loaded here so CORS origins are known up front;
    skills are loaded in the lifespan, before the first request is served."""
    load_dotenv()
    config = runtime.config if runtime is not None else load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if runtime is None:
            app.state.runtime = AgentRuntime.from_config(config, base=config_dir())
        else:
            app.state.runtime = runtime
        logger.info(
            f"DeployMate started (origins={config.allowed_origins}, "
            f"auth={'enabled' if config.api_key else 'disabled'}, "
            f"model={config.model.name}, skills={len(app.state.runtime.skills)}, "
            f"steps={len(config.pipeline.steps)})"
        )
        yield
        logger.info("DeployMate shutting down")

    app = FastAPI(title="DeployMate", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(DeployMateError, handle_service_error)
    app.include_router(router)
    return app
