"""Pydantic models and dataclasses for request/response types."""
from __future__ import annotations
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict

class GenerateIn(BaseModel):
    """Incoming request body. ``text`` is checked by the handler so a missing
    field maps to a 400 rather than a validation 422."""
    model_config = ConfigDict(extra="ignore")

    text: str | None = None

class AudioDataOut(BaseModel):
    audioData: str

@dataclass(frozen=True)
class GenerationRequest:
    """Validated request: the text and the caller's format preference."""
    text: str
    wants_json: bool

@dataclass(frozen=True)
class AudioPayload:
    """Downloaded audio, owned by a single request."""
    data: bytes

    @property
    def length(self) -> int:
        return len(self.data)
