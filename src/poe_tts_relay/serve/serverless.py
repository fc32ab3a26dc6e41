"""Serverless ASGI app mounted at the platform route ``/api/generate``.

Unlike the standalone server, configuration is resolved per request: a
missing credential answers 500 instead of preventing startup. The body is
checked first, so a request without ``text`` is a 400 either way.
"""
from __future__ import annotations
import logging
from functools import lru_cache

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from poe_tts_relay.common.config import load_config, load_origins
from poe_tts_relay.common.errors import ConfigurationError
from poe_tts_relay.common.logging_setup import setup_logging
from poe_tts_relay.relay.pipeline import RelayPipeline, validate_text
from poe_tts_relay.serve.endpoint import install_error_handlers, read_generation_request, run_generation

LOGGER = logging.getLogger("poe_tts_relay.serve.serverless")

ROUTE = "/api/generate"


@lru_cache(maxsize=1)
def get_pipeline() -> RelayPipeline:
    # failures are not cached, so a fixed environment is picked up next call
    config = load_config()
    setup_logging(config.log_level)
    return RelayPipeline(config)


def create_serverless_app() -> FastAPI:
    try:
        origins = load_origins()
    except ConfigurationError as e:
        # requests still report the real error through get_pipeline
        LOGGER.warning("Falling back to CORS origins ['*']: %s", e.message)
        origins = ["*"]

    app = FastAPI(title="Poe TTS relay (serverless)")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["POST"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    @app.post(ROUTE)
    async def generate(request: Request) -> Response:
        gen = await read_generation_request(request, max_length=0, json_by_default=False)
        pipeline = get_pipeline()
        validate_text(gen.text, pipeline.config.max_text_length)
        return await run_generation(gen, pipeline)

    return app


app = create_serverless_app()
