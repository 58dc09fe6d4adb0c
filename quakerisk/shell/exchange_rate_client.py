"""Exchange Rate Client - Imperative Shell.

This module fetches daily exchange rates from the date-versioned
currency API published on jsDelivr. Each day is a separate request;
days that fail are logged and left out of the series.
"""

import logging
from datetime import date, datetime, timedelta, timezone

import requests

from quakerisk.core.correlation import CurrencyPair, ExchangeRateSample


logger = logging.getLogger(__name__)


CURRENCY_API_URL = (
    "https://cdn.jsdelivr.net/npm/@fawazahmed0/currency-api@{date}/v1/currencies/{base}.json"
)

DEFAULT_TIMEOUT = 10


class ExchangeRateClient:
    """Client for daily exchange-rate series.

    This is part of the imperative shell - it handles HTTP I/O.
    Published days never change, so fetched rates are kept per
    (pair, day) for the lifetime of the client.
    """

    def __init__(
        self,
        url_template: str = CURRENCY_API_URL,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        self.url_template = url_template
        self.timeout = timeout
        self._cache: dict[tuple[str, date], float] = {}

    def fetch_rate(self, pair: CurrencyPair, day: date) -> float:
        """Fetch the rate of a pair on one day.

        This method performs HTTP I/O.

        Raises:
            requests.RequestException: If the request fails
            KeyError: If the response does not quote the pair
        """
        cache_key = (pair.name, day)
        if cache_key in self._cache:
            return self._cache[cache_key]

        base = pair.base.lower()
        url = self.url_template.format(date=day.isoformat(), base=base)

        response = requests.get(url, timeout=self.timeout)
        response.raise_for_status()

        rate = float(response.json()[base][pair.quote.lower()])
        self._cache[cache_key] = rate
        return rate

    def fetch_series(
        self,
        pair: CurrencyPair,
        days: int = 30,
        end_date: date | None = None,
    ) -> list[ExchangeRateSample]:
        """Fetch one sample per day for the last `days` days.

        Args:
            pair: Currency pair to fetch
            days: Number of days before end_date to include
            end_date: Last day of the series (defaults to today, UTC)

        Returns:
            Samples in ascending date order, one per day that succeeded
        """
        end = end_date or datetime.now(timezone.utc).date()
        samples: list[ExchangeRateSample] = []

        logger.info("Fetching %d days of %s rates", days + 1, pair.name)

        for offset in range(days, -1, -1):
            day = end - timedelta(days=offset)
            try:
                rate = self.fetch_rate(pair, day)
            except (requests.RequestException, KeyError, TypeError, ValueError) as e:
                logger.warning("No %s rate for %s: %s", pair.name, day, e)
                continue
            samples.append(ExchangeRateSample(date=day, rate=rate))

        logger.info("Fetched %d %s samples", len(samples), pair.name)

        return samples
