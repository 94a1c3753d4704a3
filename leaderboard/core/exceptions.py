"""
Exception hierarchy for the leaderboard backend.

Failures are grouped by where they originate so callers branch on types:

- configuration: a required setting is missing, the process must not start
- cryptographic: a stored API key token cannot be read back
- metrics source: RevenueCat rejected the key, was unreachable, or
  answered with something unusable
- registration: user-facing reasons a new startup was refused
"""

from enum import Enum
from typing import Optional


class LeaderboardError(Exception):
    """Base class for all application errors"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(LeaderboardError):
    """A required configuration value is missing or invalid"""


# Credential cipher

class CipherError(LeaderboardError):
    """Base class for encrypted token failures"""


class MalformedTokenError(CipherError):
    """Stored token does not have the salt:nonce:tag:ciphertext shape"""


class AuthenticationError(CipherError):
    """Token failed to decrypt: tampered, bad hex, or wrong master secret"""


# Metrics source

class FailureKind(str, Enum):
    """Classification of a failed RevenueCat metrics fetch"""
    INVALID_CREDENTIAL = "invalid_credential"
    TRANSIENT = "transient"
    MALFORMED_RESPONSE = "malformed_response"


class MetricsSourceError(LeaderboardError):
    """Base class for metrics fetch failures"""
    kind: FailureKind


class InvalidCredentialError(MetricsSourceError):
    """
    RevenueCat authoritatively rejected the API key.

    The only failure that allows the refresh job to remove an entry.
    """
    kind = FailureKind.INVALID_CREDENTIAL


class TransientError(MetricsSourceError):
    """Network failure, timeout, rate limit, 5xx or any other non-2xx answer"""
    kind = FailureKind.TRANSIENT

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(MetricsSourceError):
    """A 2xx answer that cannot be parsed into metrics"""
    kind = FailureKind.MALFORMED_RESPONSE


# Registration

class RegistrationError(LeaderboardError):
    """A registration refused for a reason that is safe to show the user"""
    status_code: int = 400


class DuplicateProjectError(RegistrationError):
    status_code = 409

    def __init__(self, message: str = "This RevenueCat project ID is already registered."):
        super().__init__(message)


class CredentialRejectedError(RegistrationError):
    status_code = 400

    def __init__(
        self,
        message: str = "Invalid RevenueCat API key or Project ID. Please check your credentials."
    ):
        super().__init__(message)


# Refresh job

class RefreshInProgressError(LeaderboardError):
    """A metrics refresh is already running in this process"""

    def __init__(self, message: str = "A metrics refresh is already in progress"):
        super().__init__(message)
