"""
Road distance and duration between two coordinates.

Uses the public OSRM router when reachable and falls back to a
straight-line estimate otherwise.
"""
import logging
import math

import httpx
from pydantic import BaseModel


logger = logging.getLogger(__name__)

OSRM_BASE_URL = "https://router.project-osrm.org/route/v1/driving"
OSRM_TIMEOUT_SECONDS = 10.0

# Rough kilometres per degree for the straight-line fallback
KM_PER_DEGREE = 111

MIN_TRIP_MINUTES = 30
TRIP_BUFFER_MINUTES = 15


class Coordinates(BaseModel):
    lat: float
    lng: float


class RouteInfo(BaseModel):
    distance_km: float
    duration_minutes: int
    source: str  # "osrm" or "estimate"


def estimate_route_from_coordinates(origin: Coordinates, destination: Coordinates) -> RouteInfo:
    """
    Straight-line estimate between two points.

    Equirectangular approximation in degrees, distance rounded to 0.1 km. Duration
    assumes 60 km/h plus a 15-minute buffer, never less than 30 minutes.
    """
    d_lat = destination.lat - origin.lat
    d_lng = (destination.lng - origin.lng) * math.cos(math.radians(origin.lat))
    km = math.sqrt(d_lat * d_lat + d_lng * d_lng) * KM_PER_DEGREE

    duration_minutes = max(MIN_TRIP_MINUTES, math.ceil(km) + TRIP_BUFFER_MINUTES)
    return RouteInfo(
        distance_km=round(km, 1),
        duration_minutes=duration_minutes,
        source="estimate",
    )


def parse_osrm_response(data: dict) -> RouteInfo:
    """
    Extract distance and duration from an OSRM route response.

    Raises:
        ValueError: If the response carries no usable route
    """
    routes = data.get("routes") or []
    if data.get("code") != "Ok" or not routes:
        raise ValueError(f"OSRM returned no route (code={data.get('code')})")

    route = routes[0]
    distance_km = round(route["distance"] / 1000, 1)
    duration_minutes = max(MIN_TRIP_MINUTES, math.ceil(route["duration"] / 60) + TRIP_BUFFER_MINUTES)
    return RouteInfo(distance_km=distance_km, duration_minutes=duration_minutes, source="osrm")


async def fetch_road_route(origin: Coordinates, destination: Coordinates) -> RouteInfo:
    """
    Fetch road distance from OSRM, falling back to the straight-line estimate.

    OSRM expects lon,lat order.
    """
    path = f"{origin.lng},{origin.lat};{destination.lng},{destination.lat}"
    url = f"{OSRM_BASE_URL}/{path}"

    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(
                url,
                params={"overview": "false"},
                timeout=OSRM_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            return parse_osrm_response(response.json())
    except (httpx.HTTPError, ValueError, KeyError) as e:
        logger.warning(f"OSRM route lookup failed, using estimate: {e}")
        return estimate_route_from_coordinates(origin, destination)
