# proofmeet/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from proofmeet.api.routes import (
    attendance,
    court_reps,
    health,
    internal,
    meetings,
    participants,
    verification,
)
from proofmeet.core.config import get_settings
from proofmeet.core.errors import ProofMeetError
from proofmeet.core.logging import configure_logging
from proofmeet.db.session import init_db_for_startup
from proofmeet.services.court_card_issuer import CourtCardIssuer

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """
    Application factory for the ProofMeet compliance service.

    Raises ConfigurationError when VERIFICATION_BASE_URL is missing or not an
    absolute http(s) URL, so a misconfigured deployment never starts.
    """
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    card_issuer = CourtCardIssuer(settings.VERIFICATION_BASE_URL)

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Backend service that records court-ordered meeting attendance,\n"
            "evaluates participants' compliance per period, issues tamper-evident\n"
            "court cards and serves their public verification."
        ),
        version="0.1.0",
    )
    app.state.card_issuer = card_issuer

    # Routers
    app.include_router(health.router)
    app.include_router(participants.router)
    app.include_router(court_reps.router)
    app.include_router(meetings.router)
    app.include_router(attendance.router)
    app.include_router(verification.router)
    app.include_router(internal.router)

    @app.exception_handler(ProofMeetError)
    async def handle_domain_error(request: Request, exc: ProofMeetError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=int(exc.status_code),
            content={"detail": exc.message, "error": type(exc).__name__},
        )

    @app.on_event("startup")
    async def on_startup() -> None:  # pragma: no cover
        await init_db_for_startup()
        logger.info(
            "%s started (env=%s, verification base %s)",
            settings.APP_NAME,
            settings.APP_ENV,
            card_issuer.base_url,
        )

    return app


app = create_app()
