"""
SharedTool status service.
"""

from typing import Optional

from fastapi import FastAPI

from ..licensing import LicenseFileStore
from ..settings import SharedToolSettings, get_settings
from . import server


def create_app(settings: Optional[SharedToolSettings] = None) -> FastAPI:
    """Build the read-only status API for the configured license file."""
    settings = settings or get_settings()

    app = FastAPI(title="SharedTool License Status", version="0.1.0")
    app.state.settings = settings
    app.state.license_store = LicenseFileStore(settings.license_file)
    app.include_router(server.router)

    @app.get("/")
    async def root():
        return {"service": "sharedtool-status", "status": "running"}

    return app
