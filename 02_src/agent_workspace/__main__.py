"""Run the API server: ``python -m agent_workspace``."""

import os

import uvicorn
from dotenv import load_dotenv

from .config import PROJECT_ROOT


def main():
    """Run the application."""
    load_dotenv(PROJECT_ROOT / ".env")

    from .api import create_fastapi_app
    from .logging_config import setup_logging

    setup_logging(os.getenv("LOG_LEVEL"))

    api_host = os.getenv("API_HOST", "localhost")
    api_port = int(os.getenv("API_PORT", "8000"))

    uvicorn.run(
        create_fastapi_app(),
        host=api_host,
        port=api_port,
        log_level="info",
        log_config=None,
    )


if __name__ == "__main__":
    main()
