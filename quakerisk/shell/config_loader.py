"""Configuration Loader - Imperative Shell.

This module handles loading configuration from YAML files and
environment variables. All I/O is contained here.

Models (Config, LedgerConfig) are defined in quakerisk/core/config.py
to avoid information leakage between layers.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from quakerisk.core.alerts import BroadcastChannel, Severity
from quakerisk.core.catalog import (
    FINANCIAL_CENTERS,
    MARKET_REGION_RADIUS_KM,
    MARKET_REGIONS,
    FinancialCenter,
    MarketRegion,
)
from quakerisk.core.config import DEFAULT_CURRENCY_PAIRS, Config, LedgerConfig
from quakerisk.core.correlation import CurrencyPair


logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = "config/config.yaml"


def _resolve_value(value: Any) -> Any:
    """Resolve a ${ENV_VAR} placeholder from the environment.

    Unset variables leave the placeholder in place so validation can
    report it.
    """
    if not isinstance(value, str):
        return value

    if value.startswith("${") and value.endswith("}"):
        var_name = value[2:-1]
        env_value = os.environ.get(var_name)
        if env_value:
            return env_value
        logger.warning("Environment variable %s not set", var_name)

    return value


def _parse_channel(data: dict[str, Any]) -> BroadcastChannel:
    """Parse a broadcast channel from config data."""
    return BroadcastChannel(
        name=data["name"],
        webhook_url=_resolve_value(data.get("webhook_url", "")),
        min_severity=Severity(data.get("min_severity", Severity.MEDIUM.value)),
    )


def _parse_ledger(data: dict[str, Any] | None) -> LedgerConfig | None:
    """Parse the ledger gateway settings, if present."""
    if not data:
        return None
    return LedgerConfig(
        base_url=_resolve_value(data["base_url"]),
        api_token=_resolve_value(data.get("api_token")),
        timeout=int(data.get("timeout", 15)),
    )


def _parse_center(data: dict[str, Any]) -> FinancialCenter:
    return FinancialCenter(
        name=data["name"],
        latitude=float(data["latitude"]),
        longitude=float(data["longitude"]),
        radius_km=float(data["radius_km"]),
        impact_score=float(data["impact_score"]),
    )


def _parse_region(data: dict[str, Any]) -> MarketRegion:
    return MarketRegion(
        name=data["name"],
        latitude=float(data["latitude"]),
        longitude=float(data["longitude"]),
        markets=tuple(data.get("markets", ())),
        currencies=tuple(data.get("currencies", ())),
        radius_km=float(data.get("radius_km", MARKET_REGION_RADIUS_KM)),
    )


def load_config_from_dict(data: dict[str, Any]) -> Config:
    """Load configuration from a dictionary.

    This is a pure-ish function (only env var expansion has side effects).

    Args:
        data: Configuration dictionary

    Returns:
        Parsed Config object
    """
    centers = FINANCIAL_CENTERS
    if "financial_centers" in data:
        centers = tuple(_parse_center(c) for c in data["financial_centers"])

    regions = MARKET_REGIONS
    if "market_regions" in data:
        regions = tuple(_parse_region(r) for r in data["market_regions"])

    pairs = DEFAULT_CURRENCY_PAIRS
    if "currency_pairs" in data:
        pairs = tuple(CurrencyPair.parse(p) for p in data["currency_pairs"])

    min_fetch = data.get("min_fetch_magnitude")

    return Config(
        polling_interval_seconds=int(data.get("polling_interval_seconds", 300)),
        lookback_hours=int(data.get("lookback_hours", 24)),
        dedup_window_hours=int(data.get("dedup_window_hours", 24)),
        min_fetch_magnitude=float(min_fetch) if min_fetch is not None else None,
        verification_magnitude=float(data.get("verification_magnitude", 5.0)),
        ledger=_parse_ledger(data.get("ledger")),
        broadcast_channels=[_parse_channel(c) for c in data.get("broadcast_channels", [])],
        financial_centers=centers,
        market_regions=regions,
        currency_pairs=pairs,
    )


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from a YAML file.

    This method performs file I/O.

    Args:
        config_path: Path to YAML config file.
                    If None, uses CONFIG_PATH env var or default.

    Returns:
        Parsed Config object

    Raises:
        yaml.YAMLError: If config file is invalid YAML
    """
    if config_path is None:
        config_path = os.environ.get("CONFIG_PATH", DEFAULT_CONFIG_PATH)

    path = Path(config_path)

    logger.info("Loading configuration from %s", path)

    if not path.exists():
        logger.warning("Config file not found: %s, using defaults", path)
        return Config()

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    if data is None:
        logger.warning("Config file is empty, using defaults")
        return Config()

    config = load_config_from_dict(data)

    logger.info(
        "Loaded config: %d channels, %d centers, %d regions",
        len(config.broadcast_channels),
        len(config.financial_centers),
        len(config.market_regions),
    )

    return config


def load_config_from_env() -> Config:
    """Load minimal configuration from environment variables.

    Useful for simple deployments without a YAML file.

    Environment variables:
        SLACK_WEBHOOK_URL: Webhook that receives every alert
        LEDGER_URL: Ledger gateway root URL
        LEDGER_API_TOKEN: Bearer token for the ledger gateway
        MIN_MAGNITUDE: Minimum magnitude to fetch
        LOOKBACK_HOURS: How far back to fetch
        POLLING_INTERVAL_SECONDS: Seconds between ingestion cycles

    Returns:
        Config object from environment
    """
    channels = []
    webhook_url = os.environ.get("SLACK_WEBHOOK_URL")
    if webhook_url:
        channels.append(BroadcastChannel(name="default", webhook_url=webhook_url))
    else:
        logger.warning("SLACK_WEBHOOK_URL not set, alerts will not be broadcast")

    ledger = None
    ledger_url = os.environ.get("LEDGER_URL")
    if ledger_url:
        ledger = LedgerConfig(
            base_url=ledger_url,
            api_token=os.environ.get("LEDGER_API_TOKEN"),
        )

    min_magnitude = os.environ.get("MIN_MAGNITUDE")

    return Config(
        polling_interval_seconds=int(os.environ.get("POLLING_INTERVAL_SECONDS", "300")),
        lookback_hours=int(os.environ.get("LOOKBACK_HOURS", "24")),
        min_fetch_magnitude=float(min_magnitude) if min_magnitude else None,
        ledger=ledger,
        broadcast_channels=channels,
    )
