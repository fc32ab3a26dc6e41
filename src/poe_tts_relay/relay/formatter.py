"""Turn the downloaded audio into the HTTP response the caller asked for."""
from __future__ import annotations
import base64

from fastapi.responses import JSONResponse, Response

from poe_tts_relay.common.schema import AudioDataOut, AudioPayload

JSON_MEDIA_TYPE = "application/json"
AUDIO_MEDIA_TYPE = "audio/mpeg"
BINARY_FORMATS = {"binary", "audio", "mp3"}


def _accepted_types(accept: str | None) -> list[str]:
    if not accept:
        return []
    return [part.split(";")[0].strip().lower() for part in accept.split(",")]


def wants_json(fmt: str | None, accept: str | None, default: bool = False) -> bool:
    """
    Decide the response framing.

    Precedence: ``format`` query parameter, then the Accept header, then the
    route default.
    """
    if fmt:
        fmt = fmt.strip().lower()
        if fmt == "json":
            return True
        if fmt in BINARY_FORMATS:
            return False
    types = _accepted_types(accept)
    if JSON_MEDIA_TYPE in types:
        return True
    if AUDIO_MEDIA_TYPE in types:
        return False
    return default


def encode_audio(audio: AudioPayload) -> str:
    return base64.b64encode(audio.data).decode("ascii")


def format_audio_response(audio: AudioPayload, as_json: bool) -> Response:
    if as_json:
        body = AudioDataOut(audioData=encode_audio(audio))
        return JSONResponse(body.model_dump(), status_code=200)
    return Response(
        content=audio.data,
        status_code=200,
        media_type=AUDIO_MEDIA_TYPE,
        headers={"Content-Length": str(audio.length)},
    )
