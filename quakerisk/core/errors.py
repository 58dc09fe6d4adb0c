"""Error taxonomy - Pure definitions.

Every failure the system surfaces derives from QuakeRiskError so callers
can catch the whole family at a boundary. A duplicate candidate is not an
error; it is reported as IngestOutcome.DUPLICATE_IGNORED.
"""


class QuakeRiskError(Exception):
    """Base class for all quakerisk errors."""


class MalformedInputError(QuakeRiskError):
    """A raw candidate record could not be normalized into an Event."""


class NotFoundError(QuakeRiskError):
    """An event, alert or key does not exist."""


class AccessError(QuakeRiskError):
    """Base class for failures of the quota-gated access controller."""


class InvalidKeyError(AccessError):
    """The API key is unknown or has been revoked."""


class ExpiredError(AccessError):
    """The subscription end time has passed."""


class QuotaExhaustedError(AccessError):
    """The subscription has no request budget left."""


class LedgerError(QuakeRiskError):
    """The ledger collaborator answered with a failure."""


class ConfigurationError(QuakeRiskError):
    """Configuration or curated catalog is invalid. Fatal at startup."""
