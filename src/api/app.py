"""
FastAPI application factory.

The view bridge: exposes the trip controllers to the presentation layer.

* Registers routes for trips and admin.
* Builds one controller per trip kind on startup and tears them down on
  shutdown (no polling task outlives the app).
* Renders every ``TripError`` as ``{"code", "detail"}`` using the
  error's user-facing message.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.api.dependencies import QuoteBook
from src.api.routes import admin, trips
from src.config import Settings, settings as default_settings
from src.domain.errors import (
    CancellationNotAllowed,
    IllegalTransition,
    InvalidQuoteInput,
    LocationUnresolved,
    MissingFareData,
    MissingPartnerData,
    NetworkError,
    NotFound,
    RequestRejected,
    TripAlreadyActive,
    TripError,
)
from src.services.factory import TripControllers, build_controllers

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[TripError], int] = {
    LocationUnresolved: 422,
    InvalidQuoteInput: 422,
    TripAlreadyActive: 409,
    IllegalTransition: 409,
    CancellationNotAllowed: 409,
    MissingPartnerData: 502,
    MissingFareData: 502,
    RequestRejected: 502,
    NetworkError: 503,
    NotFound: 404,
}


async def trip_error_handler(request: Request, exc: TripError) -> JSONResponse:
    status = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 400
    )
    logger.info("%s %s -> %d %s: %s", request.method, request.url.path, status, exc.code, exc)
    return JSONResponse(
        status_code=status,
        content={"code": exc.code, "detail": exc.user_message},
    )


def create_app(
    cfg: Optional[Settings] = None,
    controllers: Optional[TripControllers] = None,
) -> FastAPI:
    cfg = cfg or default_settings
    logging.basicConfig(level=cfg.log_level.upper())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Stop polling and close HTTP clients on shutdown."""
        yield
        await app.state.controllers.aclose()

    app = FastAPI(
        title="Trip Lifecycle & Fare Engine",
        description=(
            "Quotes rides and deliveries, books them, and tracks their "
            "progress by polling the marketplace backend.  Enforces the "
            "cancellation window and keeps one active trip per kind."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.controllers = controllers or build_controllers(cfg)
    app.state.quotes = QuoteBook()

    app.add_exception_handler(TripError, trip_error_handler)

    # Routers
    app.include_router(trips.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
