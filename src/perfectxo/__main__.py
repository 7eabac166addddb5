"""Entry point for running PerfectXO via ``python -m perfectxo``."""

from __future__ import annotations

import logging
import os

import uvicorn


def main() -> None:
    """Start the FastAPI-powered PerfectXO web server."""

    host = os.environ.get("PERFECTXO_HOST", "0.0.0.0")
    port = int(os.environ.get("PERFECTXO_PORT", "8000"))
    log_level = os.environ.get("PERFECTXO_LOG_LEVEL", "info").lower()
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    uvicorn.run("perfectxo.ui:app", host=host, port=port, reload=False, log_level=log_level)


if __name__ == "__main__":
    main()
