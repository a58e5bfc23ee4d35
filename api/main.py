"""
Phone Buyback API - Main Application.

FastAPI application with CORS enabled for frontend communication. The service
container is built in the lifespan (or injected by tests) and closed on
shutdown.
"""

import logging
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import __version__
from api.models import ERROR_RESPONSES
from domain.errors import BuybackError
from services.config import Settings
from services.container import BuybackServices

logger = logging.getLogger(__name__)

ServicesFactory = Callable[[], Awaitable[BuybackServices]]


async def _default_services() -> BuybackServices:
    return await BuybackServices.create(Settings.from_env())


def create_app(services_factory: Optional[ServicesFactory] = None) -> FastAPI:
    factory = services_factory or _default_services

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services = await factory()
        app.state.services = services
        try:
            yield
        finally:
            await services.aclose()

    app = FastAPI(
        title="Phone Buyback API",
        description="Quote, verify and book pickups or drop-offs for used phones",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # TODO: Restrict origins to the storefront domain once it is fixed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BuybackError)
    async def handle_buyback_error(request: Request, exc: BuybackError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.code, "message": exc.public_message},
        )

    @app.exception_handler(ValueError)
    async def handle_value_error(request: Request, exc: ValueError):
        return JSONResponse(status_code=400, content={"error": "INVALID_REQUEST", "message": str(exc)})

    @app.get("/health", tags=["Health"])
    def health_check():
        """
        Health check endpoint.

        Returns the API status and version.
        """
        return {
            "status": "healthy",
            "version": __version__,
            "service": "phone-buyback-api",
        }

    from api.routers import admin, appointments, cron, leads, quotes, schedule, verification

    app.include_router(quotes.router, prefix="/api/v1", tags=["Quotes"], responses=ERROR_RESPONSES)
    app.include_router(leads.router, prefix="/api/v1", tags=["Leads"], responses=ERROR_RESPONSES)
    app.include_router(verification.router, prefix="/api/v1", tags=["Verification"], responses=ERROR_RESPONSES)
    app.include_router(schedule.router, prefix="/api/v1", tags=["Schedule"], responses=ERROR_RESPONSES)
    app.include_router(appointments.router, prefix="/api/v1", tags=["Appointments"], responses=ERROR_RESPONSES)
    app.include_router(cron.router, prefix="/api/v1", tags=["Cron"], responses=ERROR_RESPONSES)
    app.include_router(admin.router, prefix="/api/v1", tags=["Admin"], responses=ERROR_RESPONSES)

    return app


app = create_app()


__all__ = ["app", "create_app"]
