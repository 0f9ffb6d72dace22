"""Exceptions raised while bridging image pushes to ECS redeploys."""
import logging
from typing import Optional

from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
    ReadTimeoutError,
)

logger = logging.getLogger(__name__)

TRANSIENT_ERROR_CODES = frozenset({
    'ThrottlingException',
    'Throttling',
    'TooManyRequestsException',
    'RequestLimitExceeded',
    'ServerException',
    'ServiceUnavailableException',
    'ServiceUnavailable',
    'InternalFailure',
    'RequestTimeout',
    'RequestTimeoutException',
})

TRANSIENT_NETWORK_ERRORS = (
    ConnectTimeoutError,
    ReadTimeoutError,
    EndpointConnectionError,
    ConnectionClosedError,
)

CREDENTIAL_ERRORS = (NoCredentialsError, PartialCredentialsError)


class WatcherError(Exception):
    """Base class for every failure surfaced by the watcher."""


class ValidationError(WatcherError):
    """Malformed event or deployment target."""


class ConfigurationError(WatcherError):
    """Deployment targets could not be loaded."""


class InvocationCancelledError(WatcherError):
    """The caller cancelled the invocation while it was waiting to retry."""


class ControlPlaneError(WatcherError):
    """A failed call against the orchestration control plane."""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 cluster_identifier: Optional[str] = None,
                 service_identifier: Optional[str] = None):
        super().__init__(message)
        self.error_code = error_code
        self.cluster_identifier = cluster_identifier
        self.service_identifier = service_identifier


class TransientControlPlaneError(ControlPlaneError):
    """Throttling, timeouts and temporary unavailability. Safe to retry."""


class FatalControlPlaneError(ControlPlaneError):
    """Authorization failures, unknown cluster/service, bad parameters."""


class RetriesExhaustedError(FatalControlPlaneError):
    """Transient failures persisted past the configured retry limit."""

    def __init__(self, attempts: int, last_error: TransientControlPlaneError):
        super().__init__(
            f"Gave up after {attempts} attempts: {last_error}",
            error_code=last_error.error_code,
            cluster_identifier=last_error.cluster_identifier,
            service_identifier=last_error.service_identifier,
        )
        self.attempts = attempts
        self.last_error = last_error


class DispatchError(WatcherError):
    """One or more matching targets failed while dispatching a single event."""

    def __init__(self, outcomes, errors):
        failed = ", ".join(f"{target.service_identifier}: {error}" for target, error in errors)
        super().__init__(f"{len(errors)} deployment target(s) failed ({failed})")
        self.outcomes = outcomes
        self.errors = errors


def classify_client_error(error: Exception, cluster_identifier: Optional[str] = None,
                          service_identifier: Optional[str] = None) -> ControlPlaneError:
    """Map a botocore exception onto the transient/fatal split.

    Args:
        error: Exception raised by the boto3 ECS client
        cluster_identifier: Cluster the call was made against
        service_identifier: Service the call was made against

    Returns:
        TransientControlPlaneError or FatalControlPlaneError wrapping ``error``
    """
    context = {
        'cluster_identifier': cluster_identifier,
        'service_identifier': service_identifier,
    }

    if isinstance(error, ClientError):
        error_info = error.response.get('Error', {})
        code = error_info.get('Code', 'Unknown')
        message = error_info.get('Message') or str(error)
        status = error.response.get('ResponseMetadata', {}).get('HTTPStatusCode') or 0

        if code in TRANSIENT_ERROR_CODES or status == 429 or status >= 500:
            return TransientControlPlaneError(f"{code}: {message}", error_code=code, **context)
        return FatalControlPlaneError(f"{code}: {message}", error_code=code, **context)

    if isinstance(error, TRANSIENT_NETWORK_ERRORS):
        return TransientControlPlaneError(str(error), error_code=type(error).__name__, **context)

    if isinstance(error, CREDENTIAL_ERRORS):
        return FatalControlPlaneError(str(error), error_code=type(error).__name__, **context)

    logger.debug(f"Unclassified control plane error {type(error).__name__}, treating as fatal")
    return FatalControlPlaneError(str(error), error_code=type(error).__name__, **context)
