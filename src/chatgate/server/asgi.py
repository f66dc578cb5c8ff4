"""ASGI entry point for running the chatgate server via uvicorn CLI.

    uvicorn chatgate.server.asgi:app --host ... --port ...

The config path can be overridden with the ``CHATGATE_CONFIG`` environment
variable.
"""

import os
from pathlib import Path

from chatgate.config.loader import load_config
from chatgate.server.app import create_app

_config_path = os.environ.get("CHATGATE_CONFIG")
config = load_config(Path(_config_path) if _config_path else None)
app = create_app(config)
