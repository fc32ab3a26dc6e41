"""Launch the standalone relay server with uvicorn."""
from __future__ import annotations
import argparse
import logging
import os
import sys

import uvicorn

from poe_tts_relay.common.config import load_config
from poe_tts_relay.common.errors import ConfigurationError
from poe_tts_relay.common.logging_setup import setup_logging
from poe_tts_relay.serve.fastapi_app import create_app

LOGGER = logging.getLogger("poe_tts_relay.serve.server")

def main() -> None:
    ap = argparse.ArgumentParser(description="Run the Poe TTS relay server")
    ap.add_argument("--host", default=os.getenv("RELAY_HOST", "0.0.0.0"))
    ap.add_argument("--port", type=int, default=int(os.getenv("RELAY_PORT", "3000")))
    ap.add_argument("--config", default=None, help="YAML config path (overrides $RELAY_CONFIG)")
    args = ap.parse_args()

    setup_logging()
    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        LOGGER.error("%s", e.message)
        sys.exit(1)
    setup_logging(config.log_level)

    app = create_app(config)
    LOGGER.info("Server listening on http://%s:%s", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)

if __name__ == "__main__":
    main()
