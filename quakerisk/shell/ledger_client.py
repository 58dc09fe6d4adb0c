"""Ledger Gateway Client - Imperative Shell.

This module publishes significant events to an external ledger gateway
and asks it to verify them. The gateway answers with a JSON envelope:

    {"success": true, "transactionHash": "0x...", "blockNumber": 4123456,
     "status": "confirmed"}

    {"success": false, "error": "reason"}

Publication is best-effort: the orchestrator logs failures and moves on.
"""

import logging
from dataclasses import dataclass
from typing import Any

import requests

from quakerisk.core.config import LedgerConfig
from quakerisk.core.errors import LedgerError
from quakerisk.core.event import Event


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TxReceipt:
    """Ledger transaction receipt.

    Attributes:
        tx_hash: Transaction hash
        block_number: Block that included the transaction
        status: Gateway status label (e.g. "confirmed")
    """
    tx_hash: str
    block_number: int | None
    status: str


def event_payload(event: Event) -> dict[str, Any]:
    """Serialize the fields of an event that go on the ledger."""
    return {
        "id": event.id,
        "place": event.place,
        "magnitude": event.magnitude,
        "depth": event.depth_km,
        "latitude": event.latitude,
        "longitude": event.longitude,
        "time": event.time.isoformat(),
        "source": event.source,
        "tsunami": event.tsunami,
    }


class LedgerClient:
    """Client for the ledger gateway.

    This is part of the imperative shell - it handles HTTP I/O.
    """

    def __init__(self, config: LedgerConfig) -> None:
        self.base_url = config.base_url.rstrip("/")
        self.timeout = config.timeout
        self.headers = {"Content-Type": "application/json"}
        if config.api_token:
            self.headers["Authorization"] = f"Bearer {config.api_token}"

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = requests.post(
            f"{self.base_url}{path}",
            json=payload,
            headers=self.headers,
            timeout=self.timeout,
        )
        response.raise_for_status()

        body = response.json()
        if not isinstance(body, dict):
            raise LedgerError(f"Ledger returned a malformed envelope for {path}")
        if not body.get("success"):
            raise LedgerError(body.get("error") or f"Ledger rejected {path}")
        return body

    def publish(self, event: Event) -> TxReceipt:
        """Record an event on the ledger.

        This method performs HTTP I/O.

        Raises:
            requests.RequestException: If the gateway is unreachable
            LedgerError: If the gateway reports a failure
        """
        logger.info("Publishing event %s to ledger", event.id)

        body = self._post("/events", event_payload(event))

        tx_hash = body.get("transactionHash")
        if not tx_hash:
            raise LedgerError(f"Ledger returned no transaction for {event.id}")

        receipt = TxReceipt(
            tx_hash=tx_hash,
            block_number=body.get("blockNumber"),
            status=body.get("status", "confirmed"),
        )

        logger.info("Event %s recorded in tx %s", event.id, receipt.tx_hash)

        return receipt

    def verify(self, event_id: str) -> bool:
        """Ask the ledger to verify a previously published event.

        This method performs HTTP I/O.

        Raises:
            requests.RequestException: If the gateway is unreachable
            LedgerError: If the gateway reports a failure
        """
        body = self._post(f"/events/{event_id}/verify", {"id": event_id})
        verified = bool(body.get("verified"))

        logger.info("Ledger verification of %s: %s", event_id, verified)

        return verified
