import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles

from .config import Settings, check_startup_config, settings
from .context import AppContext, build_context
from .pipeline import ChatHandler

logger = logging.getLogger(__name__)


def create_app(cfg: Settings = settings, context: Optional[AppContext] = None) -> FastAPI:
    """Build the HTTP app.

    The tool registry is built in the lifespan, before the first request is
    accepted; a tool name collision aborts startup. Passing a prebuilt context
    skips that step (and leaves closing it to the caller).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if context is None:
            check_startup_config(cfg)
            ctx = await build_context(cfg)
        else:
            ctx = context
        app.state.context = ctx
        app.state.handler = ChatHandler(ctx)
        logger.info(f"toolchat ready: {len(ctx.registry)} tools ({', '.join(ctx.registry.names()) or 'none'})")
        yield
        if context is None:
            await ctx.aclose()
        logger.info("toolchat stopped")

    app = FastAPI(title="toolchat", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_methods=["POST"],
        allow_headers=["Accept", "Content-Type"],
    )

    @app.get("/health")
    async def health(request: Request):
        return {"ok": True, "tools": len(request.app.state.context.registry)}

    @app.get("/tools")
    async def tools(request: Request):
        return json.loads(request.app.state.context.registry.schema_document())

    @app.post("/chat")
    async def chat(request: Request):
        handler: ChatHandler = request.app.state.handler
        body = await request.body()
        try:
            reply = await asyncio.wait_for(handler.handle_raw(body), timeout=cfg.request_timeout_s)
        except asyncio.TimeoutError:
            logger.error(f"Chat request exceeded {cfg.request_timeout_s}s, cancelled")
            return JSONResponse({"detail": "request timed out"}, status_code=504)

        try:
            return JSONResponse(reply.model_dump())
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to encode response {e}")
            return PlainTextResponse(f"Failed to encode response: {e}", status_code=500)

    # Static chat front-end; registered last so the API routes win
    if cfg.app_root and os.path.isdir(cfg.app_root):
        app.mount("/", StaticFiles(directory=cfg.app_root, html=True), name="static")
        logger.info(f"Serving static files from {cfg.app_root}")

    return app


app = create_app()
