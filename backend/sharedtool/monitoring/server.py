"""
License status endpoints.

Read-only HTTP API over the shared license file, for dashboards and for
users who want to check a license before starting the host application.

Observation only: no login, read-in, write-out or logout over HTTP.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Request

from ..coordinator.models import LicenseStatusView
from ..coordinator.service import license_statuses
from ..licensing import LicenseFileStore, LicenseLoadError
from .models import HealthResponse, LicenseListResponse


router = APIRouter(prefix="/licenses", tags=["licenses"])


def _store(request: Request) -> LicenseFileStore:
    return request.app.state.license_store


def _load_statuses(request: Request, user: Optional[str]):
    try:
        records = _store(request).load_all()
    except LicenseLoadError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return license_statuses(records, datetime.now(), user or "")


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Health check endpoint.

    Reports which license file is served and whether it exists yet.
    """
    store = _store(request)
    return HealthResponse(
        license_file=str(store.path),
        license_file_exists=store.path.exists(),
    )


@router.get("", response_model=LicenseListResponse)
async def list_licenses(request: Request, user: Optional[str] = None):
    """
    List the status of every license.

    Args:
        user: User the usability verdict is computed for. Without it,
              a license is usable only once its hold window has passed.
    """
    return LicenseListResponse(
        user=user,
        generated_at=datetime.now(),
        licenses=_load_statuses(request, user),
    )


@router.get("/{license_id}", response_model=LicenseStatusView)
async def get_license(license_id: str, request: Request, user: Optional[str] = None):
    """
    Status of a single license (case-insensitive id).

    Raises:
        404: If the license is not in the file
    """
    for view in _load_statuses(request, user):
        if view.license_id.casefold() == license_id.casefold():
            return view
    raise HTTPException(status_code=404, detail=f"License not found: {license_id}")
