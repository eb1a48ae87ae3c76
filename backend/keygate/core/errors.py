"""
Error taxonomy shared by the admission engine and the management layer.

Admission denials are *decisions*, not exceptions: they are reported via
DenialReason on an AdmissionDecision. The exceptions below cover store
failures and bad input reaching the services.
"""

import enum

from sqlalchemy.exc import SQLAlchemyError


class DenialReason(str, enum.Enum):
    """Why an inbound request was refused. Value is sent to the caller."""

    CREDENTIAL_MISSING = "CredentialMissing"
    CREDENTIAL_INVALID = "CredentialInvalid"
    QUOTA_EXCEEDED = "QuotaExceeded"


class KeygateError(Exception):
    """Base class for all service errors."""


class InvalidInputError(KeygateError):
    """A raw credential was empty, absent, or not a string."""


class InvalidConfigError(KeygateError):
    """Provisioning parameters are invalid (e.g. non-positive daily limit)."""


# Raised by the store layer. asyncpg surfaces refused or dropped connections
# as bare OSError at checkout, outside SQLAlchemy's exception wrapping.
STORE_ERRORS: tuple[type[BaseException], ...] = (SQLAlchemyError, OSError)


class StoreUnavailableError(KeygateError):
    """The backing store failed or timed out.

    The admission gate converts this into a denial (fail-closed).
    """


class ClientNotFoundError(KeygateError):
    """No client exists with the given id."""
