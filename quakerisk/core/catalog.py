"""Curated financial catalog - Pure data.

Financial centers drive the location component of the risk score; market
regions decide which markets and currencies an event touches. Order
matters: centers are checked first-match-wins and regions are reported in
the order listed here.

The tables are validated at startup by config.ensure_valid_catalog.
"""

from dataclasses import dataclass


# Location impact for events far from every financial center
DEFAULT_LOCATION_IMPACT = 30.0

# Proximity radius for market regions
MARKET_REGION_RADIUS_KM = 800.0

# Reported when no market region matches
GLOBAL_MARKETS = ("GLOBAL_MARKETS",)
GLOBAL_CURRENCIES = ("USD", "EUR")


@dataclass(frozen=True)
class FinancialCenter:
    """A financial center with a proximity radius and impact score.

    Attributes:
        name: Human-readable name
        latitude: Center latitude
        longitude: Center longitude
        radius_km: Events within this radius score impact_score
        impact_score: Location impact (0-100)
    """
    name: str
    latitude: float
    longitude: float
    radius_km: float
    impact_score: float


@dataclass(frozen=True)
class MarketRegion:
    """A region whose markets and currency react to nearby events.

    Attributes:
        name: Region identifier
        latitude: Region anchor latitude
        longitude: Region anchor longitude
        markets: Market codes exposed to the region
        currencies: Currency codes exposed to the region
        radius_km: Proximity radius
    """
    name: str
    latitude: float
    longitude: float
    markets: tuple[str, ...]
    currencies: tuple[str, ...]
    radius_km: float = MARKET_REGION_RADIUS_KM


FINANCIAL_CENTERS: tuple[FinancialCenter, ...] = (
    FinancialCenter("Tokyo", 35.6762, 139.6503, 500.0, 90.0),
    FinancialCenter("San Francisco", 37.7749, -122.4194, 300.0, 85.0),
    FinancialCenter("New York", 40.7128, -74.0060, 300.0, 90.0),
    FinancialCenter("London", 51.5074, -0.1278, 300.0, 85.0),
    FinancialCenter("Hong Kong", 22.3193, 114.1694, 300.0, 90.0),
    FinancialCenter("Singapore", 1.3521, 103.8198, 300.0, 80.0),
)

MARKET_REGIONS: tuple[MarketRegion, ...] = (
    MarketRegion("Japan", 35.6762, 139.6503, ("NIKKEI", "JPX"), ("JPY",)),
    MarketRegion("US West", 37.7749, -122.4194, ("NASDAQ", "NYSE", "SP500"), ("USD",)),
    MarketRegion("Australia", -33.8688, 151.2093, ("ASX200",), ("AUD",)),
    MarketRegion("China", 31.2304, 121.4737, ("SSE", "SZSE"), ("CNY",)),
)
