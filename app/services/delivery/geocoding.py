"""Reverse geocoding."""
import logging
from typing import Optional

import httpx

from app.services.delivery.geo import Coordinate

logger = logging.getLogger(__name__)


class ReverseGeocoder:
    """Looks up a display name for a coordinate via a Nominatim-compatible API."""

    def __init__(
        self,
        base_url: str,
        user_agent: str,
        timeout: float = 4.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout
        self.client = client

    async def location_name(self, coordinate: Coordinate) -> str:
        """Return the place name, or the raw coordinate when lookup fails."""
        url = f"{self.base_url}/reverse"
        params = {
            "format": "json",
            "lat": coordinate.latitude,
            "lon": coordinate.longitude,
        }
        headers = {"User-Agent": self.user_agent}

        try:
            if self.client is not None:
                response = await self.client.get(
                    url, params=params, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=params, headers=headers)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"[GEOCODING] Reverse lookup failed for {coordinate}: {e}")
            return str(coordinate)

        name = data.get("display_name") if isinstance(data, dict) else None
        return name or str(coordinate)
