"""Run the relay pipeline once from the command line and save the audio."""
from __future__ import annotations
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from poe_tts_relay.common.config import load_config
from poe_tts_relay.common.errors import RelayError
from poe_tts_relay.common.logging_setup import setup_logging
from poe_tts_relay.common.schema import AudioDataOut
from poe_tts_relay.relay.formatter import encode_audio
from poe_tts_relay.relay.pipeline import RelayPipeline, validate_text

LOGGER = logging.getLogger("poe_tts_relay.local.run")

def run_relay(text: str, out: Path, as_json: bool = False, cfg_path: str | None = None) -> int:
    """
    Generate audio for ``text`` and write it to ``out``.

    Args:
        text: Text to synthesize.
        out: Destination file; raw MP3, or ``{"audioData": ...}`` with as_json.
        as_json: Write the base64 JSON payload instead of raw bytes.
        cfg_path: Optional YAML config path.

    Returns:
        Number of audio bytes received.
    """
    config = load_config(cfg_path)
    text = validate_text(text, config.max_text_length)
    audio = asyncio.run(RelayPipeline(config).generate_audio(text))
    if as_json:
        out.write_text(json.dumps(AudioDataOut(audioData=encode_audio(audio)).model_dump()), encoding="utf-8")
    else:
        out.write_bytes(audio.data)
    return audio.length

def main() -> None:
    setup_logging()
    ap = argparse.ArgumentParser(description="Generate speech through the Poe relay pipeline")
    ap.add_argument("--text", required=True, help="Text to synthesize")
    ap.add_argument("--out", default="speech.mp3", help="Output file")
    ap.add_argument("--json", action="store_true", help="Write base64 JSON instead of MP3 bytes")
    ap.add_argument("--config", default=None, help="YAML config path")
    args = ap.parse_args()

    try:
        size = run_relay(args.text, Path(args.out), args.json, args.config)
    except RelayError as e:
        LOGGER.error("Generation failed (%s): %s", e.status_code, e.message)
        sys.exit(1)
    LOGGER.info("Wrote %s bytes of audio to %s", size, args.out)

if __name__ == "__main__":
    main()
