"""Utility modules for logging, AWS client management, errors and backoff."""

from natgw_lifecycle.utils.aws_client import AWSClientManager
from natgw_lifecycle.utils.retry import BackoffStrategy
from natgw_lifecycle.utils.errors import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    NatGatewayError,
    RemoteError,
    TransportError,
    NotFoundError,
    MalformedResponseError,
    WaitError,
    WaitTimeoutError,
    WaitFailedError,
    WaitCancelledError,
    ConfigurationError,
    StateError,
    ErrorHandler,
    error_handler
)
from natgw_lifecycle.utils.logging import get_logger, setup_logging

__all__ = [
    # AWS Client
    'AWSClientManager',

    # Backoff
    'BackoffStrategy',

    # Errors
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'NatGatewayError',
    'RemoteError',
    'TransportError',
    'NotFoundError',
    'MalformedResponseError',
    'WaitError',
    'WaitTimeoutError',
    'WaitFailedError',
    'WaitCancelledError',
    'ConfigurationError',
    'StateError',
    'ErrorHandler',
    'error_handler',

    # Logging
    'get_logger',
    'setup_logging',
]
