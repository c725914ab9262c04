"""
Liveness and readiness endpoints.

/health answers as long as the process runs and touches nothing else.
/health/ready checks what an upload needs: complete configuration, a
reachable database, the ffmpeg binaries and room on the asset volume.
Orchestrators restart on the first and stop routing on the second.
"""

import logging
import shutil
from typing import Any

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from ... import __version__
from ..dependencies import AssetStoreDep, SettingsDep, VideoRepositoryDep

logger = logging.getLogger(__name__)

router = APIRouter()

# Below this the asset volume can't take many more thumbnails
MIN_FREE_ASSET_BYTES = 100 * 1024 * 1024


class HealthResponse(BaseModel):
    """Liveness payload, including which integrations are mocked."""
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """One named check and why it failed, if it did."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness",
    description="200 while the process is up. No dependency is contacted.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        details={
            "mock_mode": {
                "snowflake": settings.snowflake_mock_mode,
                "s3": settings.s3_mock_mode,
                "media_tool": settings.media_tool_mock_mode,
            }
        }
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness",
    description="200 when uploads can be served, 503 with the failing checks otherwise.",
    responses={
        503: {
            "description": "At least one check failed",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(
    response: Response,
    settings: SettingsDep,
    repository: VideoRepositoryDep,
    assets: AssetStoreDep,
) -> ReadinessResponse:
    """Run every check; any failure turns the response into a 503."""
    checks: list[ReadinessCheck] = []

    # Check configuration
    missing_fields = settings.validate_required_fields()
    if missing_fields:
        checks.append(ReadinessCheck(
            name="configuration",
            status="error",
            error="Not set: " + ", ".join(missing_fields)
        ))
    else:
        checks.append(ReadinessCheck(name="configuration", status="ok"))

    # Check database
    try:
        repository.ping()
        checks.append(ReadinessCheck(name="database", status="ok"))
    except Exception as e:
        logger.error("Readiness: database ping failed", extra={"error": str(e)})
        checks.append(ReadinessCheck(name="database", status="error", error=str(e)))

    # Check media tool binaries
    if settings.media_tool_mock_mode:
        checks.append(ReadinessCheck(name="media_tool", status="ok", error="mock mode"))
    else:
        missing_binaries = [
            path for path in (settings.ffprobe_path, settings.ffmpeg_path)
            if shutil.which(path) is None
        ]
        if missing_binaries:
            checks.append(ReadinessCheck(
                name="media_tool",
                status="error",
                error=f"Not found on PATH: {', '.join(missing_binaries)}"
            ))
        else:
            checks.append(ReadinessCheck(name="media_tool", status="ok"))

    # Check asset volume
    try:
        free_bytes = assets.free_bytes()
        if free_bytes < MIN_FREE_ASSET_BYTES:
            checks.append(ReadinessCheck(
                name="assets",
                status="error",
                error=f"Only {free_bytes // (1024 * 1024)} MB free"
            ))
        else:
            checks.append(ReadinessCheck(name="assets", status="ok"))
    except OSError as e:
        checks.append(ReadinessCheck(name="assets", status="error", error=str(e)))

    all_ok = all(c.status == "ok" for c in checks)

    if not all_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Readiness check failed",
            extra={
                "checks": [
                    {"name": c.name, "status": c.status, "error": c.error}
                    for c in checks
                ]
            }
        )

    return ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=__version__,
        checks=checks,
    )
