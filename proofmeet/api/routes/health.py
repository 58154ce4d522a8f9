# proofmeet/api/routes/health.py
from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel, Field

from proofmeet.core.config import get_settings


router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """
    Response schema for the health check endpoint.
    """

    status: str = Field(
        ...,
        description="Overall health status of the service.",
        examples=["ok"],
    )
    app_name: str = Field(
        ...,
        description="Human-friendly name of the running application.",
        examples=["ProofMeet Compliance Service"],
    )
    environment: str = Field(
        ...,
        description="Current deployment environment (local/dev/stage/prod).",
        examples=["local"],
    )
    verification_base_url: str = Field(
        ...,
        description="Base URL embedded in newly issued court cards.",
        examples=["https://verify.proofmeet.example"],
    )
    timestamp_utc: datetime = Field(
        ...,
        description="Server-side timestamp (UTC) at which this health check was generated.",
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check for the compliance service",
    description=(
        "Lightweight endpoint to verify that the backend is up and responding.\n\n"
        "It also reports the verification base URL in effect, so a deployment "
        "pointing cards at the wrong site is visible without issuing a card."
    ),
)
async def health_check() -> HealthResponse:
    """
    Returns the current health status of the service.

    Does **not** touch the database or the video host so that it stays
    reliable while downstream components are degraded.
    """
    settings = get_settings()
    return HealthResponse(
        status="ok",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        verification_base_url=(settings.VERIFICATION_BASE_URL or "").rstrip("/"),
        timestamp_utc=datetime.now(tz=timezone.utc),
    )
