"""Serverless entry point: the platform mounts this module's ASGI ``app``."""
from poe_tts_relay.serve.serverless import app  # noqa: F401
