"""Main entry point for the chat core server."""

from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from chatcore.api import create_fastapi_app
from chatcore.app import Application
from chatcore.config import load_settings
from chatcore.logging_config import setup_logging


def main():
    """Run the application."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")

    settings = load_settings()
    setup_logging(settings.log_level)

    app = create_fastapi_app(Application(settings=settings))

    # Run with uvicorn
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()
