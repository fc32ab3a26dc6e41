"""
Poe TTS relay package.

Provides:
- Streamed chat-completion client and SSE reassembly of the audio URL
- Audio download and binary / base64 JSON response formatting
- Standalone FastAPI server, serverless ASGI app and a local CLI runner
"""
