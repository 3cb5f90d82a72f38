"""
FastAPI application factory.

* Registers routes for bookings, ambulances and admin.
* Wires the session factory, OSRM routing client, dispatcher and booking
  intake onto ``app.state`` (tests pass their own).
* Starts / stops the dispatch retry worker via lifespan events and drains
  in-flight background dispatches on shutdown.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from ambulance_dispatch.api.middleware import limiter
from ambulance_dispatch.api.routes import admin, ambulances, bookings
from ambulance_dispatch.domain.ports import RoutingClient
from ambulance_dispatch.infrastructure.database import (
    SessionFactory,
    async_session_factory,
)
from ambulance_dispatch.infrastructure.redis_client import close_redis
from ambulance_dispatch.infrastructure.routing import OsrmRoutingClient
from ambulance_dispatch.workers import dispatcher as _dispatcher
from ambulance_dispatch.workers.intake import BookingIntake

logging.basicConfig(level=logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the retry worker on startup; stop it and drain on shutdown."""
    await _dispatcher.start_retry_loop(app.state.dispatcher)
    yield
    await _dispatcher.stop_retry_loop()
    await app.state.intake.drain()
    router = app.state.dispatcher.router
    if isinstance(router, OsrmRoutingClient):
        await router.aclose()
    await close_redis()


def create_app(
    session_factory: Optional[SessionFactory] = None,
    routing_client: Optional[RoutingClient] = None,
) -> FastAPI:
    app = FastAPI(
        title="Ambulance Dispatch API",
        description=(
            "Accepts emergency bookings and assigns the available ambulance "
            "with the shortest road ETA.  Assignment runs in the background; "
            "a booking that could not be assigned stays pending and is "
            "retried automatically or on operator request."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Collaborators
    factory = session_factory or async_session_factory
    dispatcher = _dispatcher.Dispatcher(
        factory, routing_client or OsrmRoutingClient.from_settings()
    )
    app.state.session_factory = factory
    app.state.dispatcher = dispatcher
    app.state.intake = BookingIntake(factory, dispatcher)

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Routers
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(ambulances.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
