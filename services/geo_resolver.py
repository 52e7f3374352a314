"""Visitor IP geolocation via an ip-api compatible lookup service."""

import asyncio
import ipaddress
import logging
from typing import Any, Dict, Optional

import aiohttp

from config import GEO_LOOKUP_URL, GEO_TIMEOUT_SECONDS
from models.session_models import UNKNOWN, GeoResult

LOGGER = logging.getLogger(__name__)

# ip-api response key -> GeoResult field
_FIELD_MAP = {
    "city": "city",
    "regionName": "region",
    "country": "country",
    "zip": "zip_code",
    "lat": "latitude",
    "lon": "longitude",
    "timezone": "timezone",
    "isp": "isp",
    "org": "org",
    "as": "asn",
}


def is_public_ip(ip: str) -> bool:
    """Return True when ``ip`` parses as a globally routable address."""
    try:
        return ipaddress.ip_address(ip.strip()).is_global
    except ValueError:
        return False


def parse_geo_payload(payload: Dict[str, Any]) -> GeoResult:
    """Convert an ip-api JSON body into a GeoResult, or the sentinel on failure."""
    if not isinstance(payload, dict) or payload.get("status") != "success":
        return GeoResult.unknown()
    values = {
        field: payload[key] if payload.get(key) not in (None, "") else UNKNOWN
        for key, field in _FIELD_MAP.items()
    }
    return GeoResult(resolved=True, **values)


class GeoResolver:
    """Resolve visitor IPs to locations without ever raising to the caller."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        lookup_url: str = GEO_LOOKUP_URL,
        timeout_seconds: float = GEO_TIMEOUT_SECONDS,
    ) -> None:
        """
        Args:
            session: Shared aiohttp session used for outbound lookups.
            lookup_url: URL template containing an ``{ip}`` placeholder.
            timeout_seconds: Total timeout for one lookup.
        """
        self._session = session
        self.lookup_url = lookup_url
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def resolve(self, ip: Optional[str]) -> GeoResult:
        """Return the location for ``ip``; falls back to GeoResult.unknown()."""
        if not ip or not is_public_ip(ip):
            return GeoResult.unknown()

        url = self.lookup_url.format(ip=ip.strip())
        try:
            async with self._session.get(url, timeout=self.timeout) as response:
                if response.status != 200:
                    LOGGER.warning("Geo lookup for %s returned HTTP %s", ip, response.status)
                    return GeoResult.unknown()
                payload = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            LOGGER.warning("Error fetching IP info for %s: %s", ip, exc)
            return GeoResult.unknown()

        result = parse_geo_payload(payload)
        if not result.resolved:
            LOGGER.info("Geo lookup for %s did not succeed", ip)
        return result
