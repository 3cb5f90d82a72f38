"""
OSRM routing client over ``httpx``.

Calls ``/route/v1/{profile}/{lon},{lat};{lon},{lat}`` on an OSRM server
(the public demo server by default).  Only a 2xx response with
``code == "Ok"`` and at least one route counts as success; anything else,
including network errors and timeouts, becomes ``RouteUnavailable``.  No
retries: a failed call is final for the current dispatch attempt.
"""

from __future__ import annotations

import logging
from typing import Union

import httpx

from ambulance_dispatch.config import settings
from ambulance_dispatch.domain.entities import Coordinates, RouteEstimate
from ambulance_dispatch.domain.outcomes import RouteUnavailable
from ambulance_dispatch.domain.ports import RoutingClient

logger = logging.getLogger(__name__)


class OsrmRoutingClient(RoutingClient):
    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = settings.routing_base_url,
        profile: str = settings.routing_profile,
    ):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.profile = profile

    @classmethod
    def from_settings(cls, transport: httpx.AsyncBaseTransport | None = None):
        client = httpx.AsyncClient(
            timeout=settings.routing_timeout_seconds, transport=transport
        )
        return cls(client, settings.routing_base_url, settings.routing_profile)

    def route_url(self, origin: Coordinates, destination: Coordinates) -> str:
        # OSRM takes lon,lat pairs
        return (
            f"{self.base_url}/route/v1/{self.profile}/"
            f"{origin.longitude},{origin.latitude};"
            f"{destination.longitude},{destination.latitude}"
        )

    async def route(
        self, origin: Coordinates, destination: Coordinates
    ) -> Union[RouteEstimate, RouteUnavailable]:
        url = self.route_url(origin, destination)
        logger.debug("OSRM request %s", url)
        try:
            response = await self.client.get(url, params={"overview": "false"})
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException:
            return self._unavailable("timeout", url)
        except httpx.HTTPStatusError as exc:
            return self._unavailable(f"http_{exc.response.status_code}", url)
        except httpx.HTTPError as exc:
            return self._unavailable(type(exc).__name__, url)
        except ValueError:
            return self._unavailable("invalid_json", url)

        if not isinstance(payload, dict) or payload.get("code") != "Ok":
            code = payload.get("code") if isinstance(payload, dict) else None
            return self._unavailable(str(code or "no_code"), url)
        routes = payload.get("routes") or []
        if not routes:
            return self._unavailable("no_routes", url)
        try:
            return RouteEstimate(
                distance_meters=float(routes[0]["distance"]),
                duration_seconds=float(routes[0]["duration"]),
            )
        except (KeyError, TypeError, ValueError):
            return self._unavailable("malformed_route", url)

    async def aclose(self) -> None:
        await self.client.aclose()

    @staticmethod
    def _unavailable(reason: str, url: str) -> RouteUnavailable:
        logger.warning("OSRM route unavailable (%s): %s", reason, url)
        return RouteUnavailable(reason=reason)
