"""
Response models for the license status API.

All responses are read-only views of the license file.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from ..coordinator.models import LicenseStatusView


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    model_config = ConfigDict(extra="forbid")

    status: str = "ok"
    license_file: str
    license_file_exists: bool


class LicenseListResponse(BaseModel):
    """All license statuses as seen by one user at one instant."""

    model_config = ConfigDict(extra="forbid")

    user: Optional[str] = None
    generated_at: datetime
    licenses: List[LicenseStatusView]
