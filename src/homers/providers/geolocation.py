"""IP geolocation for session labels.

Lookups only enrich label values. Any failure yields the unknown location
instead of failing the collection.
"""

import ipaddress
import logging
from dataclasses import dataclass

import httpx
from pydantic import BaseModel

from homers.core.ports import CollectionContext

logger = logging.getLogger(__name__)

GEOLOCATION_URL = "http://ip-api.com/json/{ip}"


@dataclass(frozen=True)
class Location:
    """Where a session streams from."""

    city: str = "Unknown"
    latitude: str = "0.0"
    longitude: str = "0.0"


UNKNOWN_LOCATION = Location()


class _IpApiResponse(BaseModel):
    status: str
    city: str = "Unknown"
    lat: float = 0.0
    lon: float = 0.0


def is_public_address(address: str) -> bool:
    """Return True for a routable address worth geolocating."""
    try:
        ip = ipaddress.ip_address(address.strip())
    except ValueError:
        return False
    return ip.is_global


async def locate(context: CollectionContext, address: str, enabled: bool = True) -> Location:
    """Resolve an IP address to a location.

    Args:
        context: Collection context holding the shared client.
        address: IPv4 or IPv6 address of the session.
        enabled: When False, skip the lookup entirely.

    Returns:
        The resolved Location, or UNKNOWN_LOCATION.
    """
    if not enabled or not is_public_address(address):
        return UNKNOWN_LOCATION
    try:
        response = await context.client.get(
            GEOLOCATION_URL.format(ip=address.strip()), timeout=context.timeout
        )
        response.raise_for_status()
        result = _IpApiResponse.model_validate(response.json())
    except (httpx.HTTPError, ValueError) as exc:
        logger.info("Geolocation lookup failed for %s: %s", address, exc)
        return UNKNOWN_LOCATION
    if result.status != "success":
        return UNKNOWN_LOCATION
    return Location(
        city=result.city,
        latitude=str(result.lat),
        longitude=str(result.lon),
    )
