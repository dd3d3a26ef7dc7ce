"""
Backend startup wrapper.

    python -m ngoinfo.start_backend
"""
import logging
import os
import sys

import uvicorn

logger = logging.getLogger("ngoinfo")


def run() -> None:
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    logger.info(f"[startup] NGOInfo backend on http://{host}:{port}")
    try:
        uvicorn.run(
            "ngoinfo.main:app",
            host=host,
            port=port,
            reload=False,
            log_level="info",
            access_log=True,
        )
    except KeyboardInterrupt:
        logger.info("[startup] shutting down")
        sys.exit(0)


if __name__ == "__main__":
    run()
