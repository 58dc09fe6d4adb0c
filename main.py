"""Cloud Function Entry Point - Root Module.

This is the root-level entry point for Google Cloud Functions.
It imports from the quakerisk package.
"""

from quakerisk.main import ingestion_cycle

__all__ = [
    "ingestion_cycle",
]
