"""USGS API Client - Imperative Shell.

This module handles HTTP communication with the USGS Earthquake API.
It returns raw GeoJSON features; normalization happens in the core.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import requests


logger = logging.getLogger(__name__)


# USGS FDSN Event Web Service base URL
USGS_API_BASE = "https://earthquake.usgs.gov/fdsnws/event/1/query"

# Default timeout for API requests (seconds)
DEFAULT_TIMEOUT = 30


@dataclass
class USGSQueryParams:
    """Parameters for USGS API query.

    Attributes:
        min_magnitude: Minimum magnitude to fetch
        start_time: Fetch earthquakes after this time
        end_time: Fetch earthquakes before this time
        limit: Maximum number of results
    """
    min_magnitude: float | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    limit: int = 100


class USGSClient:
    """Client for fetching earthquake reports from the USGS API.

    This is part of the imperative shell - it handles HTTP I/O.
    """

    def __init__(
        self,
        base_url: str = USGS_API_BASE,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout

    def _build_params(self, query: USGSQueryParams) -> dict[str, str]:
        """Build query parameters for a USGS API request."""
        params: dict[str, str] = {
            "format": "geojson",
            "orderby": "time",
        }

        if query.min_magnitude is not None:
            params["minmagnitude"] = str(query.min_magnitude)

        if query.start_time is not None:
            params["starttime"] = query.start_time.strftime("%Y-%m-%dT%H:%M:%S")

        if query.end_time is not None:
            params["endtime"] = query.end_time.strftime("%Y-%m-%dT%H:%M:%S")

        if query.limit is not None:
            params["limit"] = str(query.limit)

        return params

    def fetch_features(self, query: USGSQueryParams) -> list[dict[str, Any]]:
        """Fetch raw GeoJSON features from the USGS API.

        This method performs HTTP I/O.

        Args:
            query: Query parameters

        Returns:
            List of feature dicts, as returned by USGS

        Raises:
            requests.RequestException: If the request fails
        """
        params = self._build_params(query)

        logger.info("Fetching earthquakes from USGS", extra={"params": params})

        response = requests.get(
            self.base_url,
            params=params,
            timeout=self.timeout,
        )
        response.raise_for_status()

        features = response.json().get("features") or []

        logger.info("Fetched %d earthquakes from USGS", len(features))

        return features

    def fetch_recent(
        self,
        min_magnitude: float | None = None,
        hours: int = 24,
        limit: int = 100,
        now: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch the features of the last `hours` hours.

        Args:
            min_magnitude: Minimum magnitude
            hours: How many hours back to fetch
            limit: Maximum results
            now: End of the window (defaults to the current time)

        Returns:
            List of raw feature dicts
        """
        end = now or datetime.now(timezone.utc)

        query = USGSQueryParams(
            min_magnitude=min_magnitude,
            start_time=end - timedelta(hours=hours),
            end_time=end,
            limit=limit,
        )

        return self.fetch_features(query)
