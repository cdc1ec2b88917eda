"""FastAPI web server for chatlens.

Every route is stateless: conversations and analyses travel in the request
and response bodies, nothing is stored.
"""

import asyncio
import contextlib
import logging
from typing import Any

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import Response
from pydantic import BaseModel

from . import __version__, config
from .analyzer import analyze_conversation
from .backends import available_backends, get_backend
from .core import ConversationAnalysis, Message, MessageIn
from .errors import (
    BackendAuthError,
    BackendError,
    BackendUnavailable,
    ExtractionFailed,
    ParseEmpty,
    SchemaExtractionFailed,
    SchemaInvalid,
)
from .export import export_to_markdown, markdown_filename
from .parser import parse_conversation, require_messages
from .share import is_share_url, parse_share_html

logger = logging.getLogger(__name__)

app = FastAPI(title="chatlens", version=__version__)

# How often a running analysis checks whether its client went away
DISCONNECT_POLL_SECONDS = 0.5


class ParseRequest(BaseModel):
    input: str


class ShareRequest(BaseModel):
    html: str
    url: str | None = None


class AnalyzeRequest(BaseModel):
    messages: list[MessageIn]
    provider: str | None = None


class ExportRequest(BaseModel):
    title: str
    messages: list[MessageIn]
    analysis: dict[str, Any]


def _to_messages(items: list[MessageIn]) -> list[Message]:
    return [m.to_message() for m in items]


def _analysis_error(exc: Exception) -> HTTPException:
    """Map an analysis failure onto an HTTP error."""
    if isinstance(exc, BackendAuthError):
        return HTTPException(status_code=401, detail=str(exc))
    if isinstance(exc, BackendUnavailable):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=502, detail=f"Analysis failed: {exc}")


async def _run_until_disconnect(request: Request, coro):
    """Await ``coro``, cancelling it if the client disconnects first."""
    task = asyncio.create_task(coro)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info("Client disconnected; cancelling analysis")
                return None
    finally:
        # Also reached when this handler is itself cancelled.
        if not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task


# ── Routes ───────────────────────────────────────────────────────


@app.get("/api/backends")
async def get_backends():
    """Return the names of the available analysis backends."""
    return available_backends()


@app.post("/api/parse")
async def parse(body: ParseRequest):
    """Parse pasted text or a ChatGPT export into messages."""
    conversation = parse_conversation(body.input)
    try:
        require_messages(conversation)
    except ParseEmpty as e:
        raise HTTPException(status_code=422, detail=str(e))
    return conversation.to_dict()


@app.post("/api/share")
async def share(body: ShareRequest):
    """Build a conversation from the rendered HTML of a ChatGPT share page."""
    if body.url and not is_share_url(body.url):
        raise HTTPException(
            status_code=400,
            detail="Invalid ChatGPT share URL. Expected format: https://chatgpt.com/share/...",
        )
    try:
        conversation = parse_share_html(body.html)
    except ExtractionFailed as e:
        raise HTTPException(status_code=422, detail=str(e))

    data = conversation.to_dict()
    if body.url:
        data["source"] = body.url
    return data


@app.post("/api/analyze")
async def analyze(
    body: AnalyzeRequest,
    request: Request,
    x_api_key: str | None = Header(None),
):
    """Analyze messages with the chosen backend.

    The API key comes from the ``x-api-key`` header, falling back to the
    server's environment.
    """
    provider = body.provider or config.get_default_backend()
    if provider not in available_backends():
        raise HTTPException(
            status_code=400,
            detail=f"Valid provider ({' or '.join(available_backends())}) is required",
        )

    api_key = x_api_key or config.get_api_key(provider)
    if not api_key:
        raise HTTPException(status_code=401, detail="API key is required. Please configure your API key.")

    messages = _to_messages(body.messages)
    if not messages:
        raise HTTPException(status_code=400, detail="Messages array is required")

    backend = get_backend(provider, model=config.get_model(provider))
    try:
        analysis = await _run_until_disconnect(
            request,
            analyze_conversation(messages, backend, api_key, timeout=config.get_timeout()),
        )
    except (BackendError, SchemaExtractionFailed, SchemaInvalid) as e:
        logger.error("Analysis with %s failed: %s", provider, e)
        raise _analysis_error(e)

    if analysis is None:
        # Nobody is listening; 499 is the conventional "client closed request"
        return Response(status_code=499)
    return analysis.to_dict()


@app.post("/api/export")
async def export(body: ExportRequest):
    """Render a conversation and its analysis as a Markdown download."""
    messages = _to_messages(body.messages)
    try:
        analysis = ConversationAnalysis.from_dict(body.analysis)
    except SchemaInvalid as e:
        raise HTTPException(status_code=422, detail=str(e))

    content = export_to_markdown(body.title, messages, analysis)
    return Response(
        content=content,
        media_type="text/markdown",
        headers={"Content-Disposition": f'attachment; filename="{markdown_filename(body.title)}"'},
    )
