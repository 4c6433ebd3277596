"""Application entry point for the shift checklist service.

``create_app()`` builds the FastAPI application with every module's routes
registered.  Running this file starts a development server::

    python main.py --port 8000 --data-dir data
"""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI

import modules.checklists
import modules.staff
import modules.submissions
from utils import app_settings

logger = logging.getLogger(__name__)

APP_TITLE = "Shift Checklists"


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.DEBUG if app_settings.dev_mode() else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app() -> FastAPI:
    app = FastAPI(title=APP_TITLE)
    for module in (modules.checklists, modules.staff, modules.submissions):
        module.register_api(app)

    @app.get("/api/health")
    def health() -> dict:
        return {"status": "ok", "dev": app_settings.dev_mode()}

    logger.info("[app] routes registered; data dir %s", app_settings.data_dir())
    return app


if __name__ == "__main__":
    import argparse

    import uvicorn

    parser = argparse.ArgumentParser(description="Run the shift checklist API server")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--data-dir", default=None, help="Directory for checklists.db and app.ini")
    args = parser.parse_args()

    if args.data_dir:
        os.environ["CHECKLIST_DATA_DIR"] = args.data_dir
    configure_logging()
    uvicorn.run(create_app(), host=args.host, port=args.port)
