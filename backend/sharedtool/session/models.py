"""
Session discovery models.
"""

from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class DiscoveredLicense(BaseModel):
    """
    License identifier found in the user's host session log.

    login_time is the moment of discovery, not a time read from the log:
    the session line only proves the user is logged in now.
    """

    model_config = ConfigDict(extra="forbid")

    license_id: str = Field(..., min_length=1)
    login_time: datetime
    log_path: str = Field(..., description="Host log the license was read from")
