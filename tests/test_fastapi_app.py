from __future__ import annotations

import base64
import json

import pytest
from fastapi.testclient import TestClient

from conftest import AUDIO_BYTES, BASE_URL, FakeUpstream, sse_body
from poe_tts_relay.common.config import RelayConfig
from poe_tts_relay.relay.pipeline import text_length
from poe_tts_relay.serve.fastapi_app import create_app


def _client(config: RelayConfig, upstream: FakeUpstream) -> TestClient:
    return TestClient(create_app(config, transport=upstream.transport))


def test_health_ok(config: RelayConfig, upstream: FakeUpstream) -> None:
    r = _client(config, upstream).get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "model": "ElevenLabs-v3"}


def test_generate_audio_returns_binary(config: RelayConfig, upstream: FakeUpstream) -> None:
    r = _client(config, upstream).post("/generate-audio", json={"text": "hello"})
    assert r.status_code == 200
    assert r.headers["content-type"] == "audio/mpeg"
    assert r.headers["content-length"] == str(len(AUDIO_BYTES))
    assert r.content == AUDIO_BYTES
    assert str(upstream.downloads[0].url) == "http://example.com/a"


def test_generate_returns_base64_json(config: RelayConfig, upstream: FakeUpstream) -> None:
    r = _client(config, upstream).post("/generate", json={"text": "hello"})
    assert r.status_code == 200
    assert base64.b64decode(r.json()["audioData"]) == AUDIO_BYTES


def test_upstream_request_shape(config: RelayConfig, upstream: FakeUpstream) -> None:
    _client(config, upstream).post("/generate-audio", json={"text": "say this"})
    completion = upstream.requests[0]
    assert str(completion.url) == f"{BASE_URL}/chat/completions"
    assert completion.headers["authorization"] == "Bearer test-key"
    assert json.loads(completion.content) == {
        "model": "ElevenLabs-v3",
        "messages": [{"role": "user", "content": "say this"}],
        "stream": True,
    }


@pytest.mark.parametrize(
    "path, params, headers, expect_json",
    [
        ("/generate-audio", {"format": "json"}, {}, True),
        ("/generate-audio", {}, {"Accept": "application/json"}, True),
        ("/generate", {"format": "binary"}, {}, False),
        ("/generate", {}, {"Accept": "audio/mpeg"}, False),
        ("/generate-audio", {"format": "binary"}, {"Accept": "application/json"}, False),
    ],
)
def test_format_negotiation(config, upstream, path, params, headers, expect_json) -> None:
    r = _client(config, upstream).post(path, params=params, headers=headers, json={"text": "hi"})
    assert r.status_code == 200
    if expect_json:
        assert base64.b64decode(r.json()["audioData"]) == AUDIO_BYTES
    else:
        assert r.content == AUDIO_BYTES


def test_json_and_binary_paths_carry_same_bytes(config: RelayConfig) -> None:
    binary = _client(config, FakeUpstream()).post("/generate-audio", json={"text": "x"})
    as_json = _client(config, FakeUpstream()).post("/generate-audio?format=json", json={"text": "x"})
    assert base64.b64decode(as_json.json()["audioData"]) == binary.content


@pytest.mark.parametrize(
    "body",
    [{}, {"text": ""}, {"text": None}, {"other": "field"}],
)
def test_missing_text_is_400_without_outbound_calls(config, upstream, body) -> None:
    r = _client(config, upstream).post("/generate", json=body)
    assert r.status_code == 400
    assert r.json() == {"error": "Text is required"}
    assert upstream.requests == []


@pytest.mark.parametrize("raw", [b"not json", b"[1, 2]", b'{"text": 42}', b""])
def test_malformed_body_is_400(config, upstream, raw) -> None:
    r = _client(config, upstream).post("/generate-audio", content=raw, headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    assert "error" in r.json()
    assert upstream.requests == []


def test_text_over_limit_is_400_without_outbound_calls(config, upstream) -> None:
    r = _client(config, upstream).post("/generate-audio", json={"text": "a" * 2001})
    assert r.status_code == 400
    error = r.json()["error"]
    assert "2001" in error and "2000" in error
    assert upstream.requests == []


def test_text_at_limit_is_accepted(config, upstream) -> None:
    r = _client(config, upstream).post("/generate-audio", json={"text": "a" * 2000})
    assert r.status_code == 200


def test_length_counts_utf16_code_units(config, upstream) -> None:
    # each emoji is a surrogate pair: 1001 of them is 2002 units
    r = _client(config, upstream).post("/generate-audio", json={"text": "\U0001F600" * 1001})
    assert r.status_code == 400
    assert "2002" in r.json()["error"]
    assert upstream.requests == []


def test_utf16_length_at_limit_is_accepted(config, upstream) -> None:
    r = _client(config, upstream).post("/generate-audio", json={"text": "\U0001F600" * 1000})
    assert r.status_code == 200


def test_text_length_units() -> None:
    assert text_length("abc") == 3
    assert text_length("héllo") == 5
    assert text_length("\U0001F600") == 2


def test_length_limit_can_be_disabled(upstream) -> None:
    cfg = RelayConfig(api_key="k", base_url=BASE_URL, max_text_length=0)
    r = _client(cfg, upstream).post("/generate-audio", json={"text": "a" * 5000})
    assert r.status_code == 200


@pytest.mark.parametrize("method", ["GET", "PUT", "DELETE", "PATCH"])
def test_non_post_is_405(config, upstream, method) -> None:
    r = _client(config, upstream).request(method, "/generate-audio")
    assert r.status_code == 405
    assert r.headers["allow"] == "POST"
    assert r.json() == {"error": "Method Not Allowed"}
    assert upstream.requests == []


def test_upstream_error_status_is_mirrored(config) -> None:
    upstream = FakeUpstream(completion_status=429, completion_error="rate limited")
    r = _client(config, upstream).post("/generate-audio", json={"text": "hi"})
    assert r.status_code == 429
    assert "rate limited" in r.json()["error"]
    assert upstream.downloads == []


@pytest.mark.parametrize("fragments", [[], ["ftp://", "host/file.mp3"], ["Sorry, I can't"]])
def test_invalid_url_is_500_without_download(config, fragments) -> None:
    upstream = FakeUpstream(body=sse_body(fragments))
    r = _client(config, upstream).post("/generate-audio", json={"text": "hi"})
    assert r.status_code == 500
    assert r.json() == {"error": "API response did not contain a valid audio URL."}
    assert upstream.downloads == []


def test_download_failure_is_500(config) -> None:
    upstream = FakeUpstream(audio_status=404)
    r = _client(config, upstream).post("/generate-audio", json={"text": "hi"})
    assert r.status_code == 500
    assert "download" in r.json()["error"]


def test_stream_timeout_is_500_without_download() -> None:
    cfg = RelayConfig(api_key="k", base_url=BASE_URL, stream_timeout_s=0.2)
    upstream = FakeUpstream(body=sse_body(["http://slow"], done=False), stall=30)
    r = _client(cfg, upstream).post("/generate-audio", json={"text": "hi"})
    assert r.status_code == 500
    assert r.json()["error"].startswith("Timeout")
    assert upstream.downloads == []


def test_first_byte_timeout_is_500() -> None:
    cfg = RelayConfig(api_key="k", base_url=BASE_URL, first_byte_timeout_s=0.1)
    upstream = FakeUpstream(stall_before_first=30)
    r = _client(cfg, upstream).post("/generate-audio", json={"text": "hi"})
    assert r.status_code == 500
    assert "No data" in r.json()["error"]
    assert upstream.downloads == []


def test_unexpected_exception_is_500(config, upstream, monkeypatch) -> None:
    app = create_app(config, transport=upstream.transport)

    async def boom(text: str):
        raise RuntimeError("kaput")

    monkeypatch.setattr(app.state.pipeline, "generate_audio", boom)
    r = TestClient(app).post("/generate-audio", json={"text": "hi"})
    assert r.status_code == 500
    assert r.json() == {"error": "kaput"}
