"""Request handling shared by the standalone server and the serverless app.

Each transport only decides the route and the default response framing;
body validation, the pipeline and error mapping live here.
"""
from __future__ import annotations
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from poe_tts_relay.common.errors import InternalError, InvalidInput, MethodNotAllowed, RelayError
from poe_tts_relay.common.schema import GenerateIn, GenerationRequest
from poe_tts_relay.relay.formatter import format_audio_response, wants_json
from poe_tts_relay.relay.pipeline import RelayPipeline, validate_text

LOGGER = logging.getLogger("poe_tts_relay.serve.endpoint")


async def read_generation_request(
    request: Request,
    max_length: int,
    json_by_default: bool = False,
) -> GenerationRequest:
    try:
        data = await request.json()
    except ValueError:
        raise InvalidInput("Request body must be valid JSON") from None
    if not isinstance(data, dict):
        raise InvalidInput("Request body must be a JSON object with a 'text' field")
    try:
        body = GenerateIn.model_validate(data)
    except ValidationError:
        raise InvalidInput("Text must be a string") from None

    return GenerationRequest(
        text=validate_text(body.text, max_length),
        wants_json=wants_json(
            request.query_params.get("format"),
            request.headers.get("accept"),
            default=json_by_default,
        ),
    )


async def handle_generate(
    request: Request,
    pipeline: RelayPipeline,
    json_by_default: bool = False,
) -> Response:
    gen = await read_generation_request(request, pipeline.config.max_text_length, json_by_default)
    return await run_generation(gen, pipeline)


async def run_generation(gen: GenerationRequest, pipeline: RelayPipeline) -> Response:
    try:
        audio = await pipeline.generate_audio(gen.text)
    except RelayError:
        raise
    except Exception as e:
        LOGGER.exception("Unexpected error while generating audio")
        raise InternalError(str(e) or "An error occurred on the server.") from e

    response = format_audio_response(audio, gen.wants_json)
    LOGGER.info("Step 3 done. Audio sent to client (%s)", "base64" if gen.wants_json else "binary")
    return response


async def _relay_error(request: Request, exc: RelayError) -> JSONResponse:
    if exc.status_code >= 500:
        LOGGER.error("Request to %s failed: %s", request.url.path, exc.message)
    return JSONResponse({"error": exc.message}, status_code=exc.status_code, headers=exc.headers or None)


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 405:
        allow = (exc.headers or {}).get("Allow", "POST")
        return await _relay_error(request, MethodNotAllowed(allow))
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


def install_error_handlers(app: FastAPI) -> None:
    """Render every error as ``{"error": ...}``."""
    app.add_exception_handler(RelayError, _relay_error)
    app.add_exception_handler(StarletteHTTPException, _http_error)
