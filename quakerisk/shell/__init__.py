"""Imperative Shell - I/O and side effects.

This module contains all code that interacts with external systems:
- USGS API client (HTTP)
- Exchange-rate API client (HTTP)
- Ledger gateway client (HTTP)
- Slack webhook broadcaster (HTTP)
- Configuration loading (environment/files)

Keep this layer thin and simple. All business logic should be in core.
"""

from quakerisk.shell.config_loader import load_config, load_config_from_env
from quakerisk.shell.exchange_rate_client import ExchangeRateClient
from quakerisk.shell.ledger_client import LedgerClient, TxReceipt
from quakerisk.shell.slack_client import SlackClient
from quakerisk.shell.usgs_client import USGSClient

__all__ = [
    "USGSClient",
    "ExchangeRateClient",
    "LedgerClient",
    "TxReceipt",
    "SlackClient",
    "load_config",
    "load_config_from_env",
]
