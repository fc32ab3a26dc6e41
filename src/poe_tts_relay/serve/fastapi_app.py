"""Standalone FastAPI relay server.

Endpoints:
- GET /health
- POST /generate        { "text": "..." }  -> {"audioData": base64} by default
- POST /generate-audio  { "text": "..." }  -> audio/mpeg by default

Either route honours ``?format=json|binary`` and ``Accept: application/json``.
"""
from __future__ import annotations
import logging

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from poe_tts_relay.common.config import RelayConfig, load_config
from poe_tts_relay.relay.pipeline import RelayPipeline
from poe_tts_relay.serve.endpoint import handle_generate, install_error_handlers

LOGGER = logging.getLogger("poe_tts_relay.serve.app")


def create_app(
    config: RelayConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """
    Build the standalone app.

    Args:
        config: Relay configuration; loaded from the environment when omitted,
            which raises ConfigurationError if the credential is missing.
        transport: Optional httpx transport for all outbound calls.
    """
    config = config or load_config()
    pipeline = RelayPipeline(config, transport=transport)

    app = FastAPI(title="Poe TTS relay", version="0.1.0")
    app.state.pipeline = pipeline
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.origins(),
        allow_methods=["POST"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    @app.on_event("startup")
    def _log_startup() -> None:
        LOGGER.info(
            "Relay ready: model=%s upstream=%s max_text_length=%s",
            config.model,
            config.completions_url,
            config.max_text_length or "unlimited",
        )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "model": config.model}

    @app.post("/generate")
    async def generate(request: Request) -> Response:
        return await handle_generate(request, pipeline, json_by_default=True)

    @app.post("/generate-audio")
    async def generate_audio(request: Request) -> Response:
        return await handle_generate(request, pipeline, json_by_default=False)

    return app
