"""Quake Risk Oracle.

Ingests seismic event reports, deduplicates and alerts on them, scores
their financial impact and meters access to the scores through
expiring, request-budgeted API keys.
"""

__version__ = "1.0.0"
