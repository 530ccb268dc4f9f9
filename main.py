"""
main.py
========
Central entry point for the Audit Agent API.

Run with:
    uvicorn main:app
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()  # Load .env before any module reads env vars

# Configure logging for the entire application
logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# Keep client-library transport chatter out of the audit logs.
for _noisy_logger_name in (
    "googleapiclient.discovery",
    "googleapiclient.discovery_cache",
    "google.auth.transport.requests",
    "urllib3",
    "aiohttp.access",
):
    logging.getLogger(_noisy_logger_name).setLevel(logging.WARNING)

from src.api.routes import create_app  # noqa: E402

app = create_app()


def serve() -> None:
    """Run the API on the configured PORT."""
    import uvicorn

    from src.config import Settings

    settings = Settings.from_env()
    uvicorn.run("main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    serve()
