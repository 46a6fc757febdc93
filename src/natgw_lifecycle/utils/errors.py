"""Error handling framework for NAT gateway lifecycle operations."""

from typing import Optional, Dict, Any, List
from enum import Enum
from dataclasses import dataclass
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
    NoCredentialsError,
    PartialCredentialsError,
)
from natgw_lifecycle.utils.logging import get_logger

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Categories of errors that can occur while reconciling a gateway."""
    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    NOT_FOUND = "not_found"
    REMOTE = "remote"
    MALFORMED_RESPONSE = "malformed_response"
    WAIT = "wait"
    STATE = "state"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    CRITICAL = "critical"  # Run cannot continue
    ERROR = "error"  # Gateway failed but other gateways can continue
    WARNING = "warning"  # Non-fatal issue
    INFO = "info"  # Informational message


@dataclass
class ErrorContext:
    """Context information for an error."""
    nat_gateway_id: Optional[str] = None
    gateway_name: Optional[str] = None
    operation: Optional[str] = None
    aws_operation: Optional[str] = None
    request_id: Optional[str] = None
    additional_info: Optional[Dict[str, Any]] = None


class NatGatewayError(Exception):
    """Base exception for NAT gateway lifecycle errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        """Initialize lifecycle error.

        Args:
            message: Human-readable error message
            category: Error category
            severity: Error severity
            context: Additional context about the error
            cause: Original exception that caused this error
            suggestions: List of suggested fixes
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.cause = cause
        self.suggestions = suggestions or []

    def to_user_message(self) -> str:
        """Convert error to user-friendly message.

        Returns:
            Formatted error message for display to user
        """
        lines = [f"{self.severity.value.upper()}: {self.message}"]

        if self.context.gateway_name:
            lines.append(f"   Gateway: {self.context.gateway_name}")
        if self.context.nat_gateway_id:
            lines.append(f"   NAT gateway ID: {self.context.nat_gateway_id}")
        if self.context.operation:
            lines.append(f"   Operation: {self.context.operation}")

        if self.cause:
            lines.append(f"   Cause: {str(self.cause)}")

        if self.suggestions:
            lines.append("\nSuggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            'message': self.message,
            'category': self.category.value,
            'severity': self.severity.value,
            'context': {
                'nat_gateway_id': self.context.nat_gateway_id,
                'gateway_name': self.context.gateway_name,
                'operation': self.context.operation,
                'aws_operation': self.context.aws_operation,
                'request_id': self.context.request_id,
                'additional_info': self.context.additional_info
            },
            'cause': str(self.cause) if self.cause else None,
            'suggestions': self.suggestions
        }


class RemoteError(NatGatewayError):
    """Error returned by the remote control plane, identified by its error code."""

    def __init__(self, code: str, message: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.REMOTE)
        super().__init__(message, **kwargs)
        self.code = code

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class TransportError(RemoteError):
    """Network, credential or throttling failure; possibly transient."""

    def __init__(self, code: str, message: str, **kwargs):
        super().__init__(code, message, category=ErrorCategory.TRANSPORT, **kwargs)


class NotFoundError(RemoteError):
    """The target object does not exist on the remote system."""

    def __init__(self, code: str, message: str, **kwargs):
        super().__init__(
            code,
            message,
            category=ErrorCategory.NOT_FOUND,
            severity=ErrorSeverity.INFO,
            **kwargs
        )


class MalformedResponseError(NatGatewayError):
    """Remote object violates an expected invariant. Never retried."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.MALFORMED_RESPONSE,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class WaitError(NatGatewayError):
    """Base class for wait outcomes that are not success."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.WAIT,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class WaitTimeoutError(WaitError):
    """The object was still transitional when the wait budget ran out."""

    def __init__(self, message: str, last_state: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.last_state = last_state


class WaitFailedError(WaitError):
    """The remote system reported a failure state."""

    def __init__(self, message: str, reason: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.reason = reason


class WaitCancelledError(WaitError):
    """The wait was aborted by the caller or an external deadline."""
    pass


class ConfigurationError(NatGatewayError):
    """Error in configuration file or settings."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class StateError(NatGatewayError):
    """Error related to the persisted state file."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.STATE,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class ErrorHandler:
    """Translates AWS and botocore exceptions into the lifecycle error taxonomy."""

    # Codes meaning the gateway does not exist
    NOT_FOUND_CODES = {
        'NatGatewayNotFound',
        'InvalidNatGatewayID.NotFound',
        'InvalidNatGatewayId.NotFound',
    }

    # Mapping of AWS error codes that indicate a transport-level problem
    TRANSPORT_ERROR_MAPPING = {
        # Credential errors
        'AuthFailure': [
            'Check that your AWS credentials are correctly configured',
            'Verify credentials using: aws sts get-caller-identity',
        ],
        'InvalidClientTokenId': [
            'Check that your AWS credentials are correctly configured',
            'Update credentials if they have expired',
        ],
        'ExpiredToken': [
            'Refresh your AWS session credentials',
            'Check if MFA token needs to be refreshed',
        ],
        'RequestExpired': [
            'Check that the local clock is in sync',
        ],

        # Throttling
        'RequestLimitExceeded': [
            'Reduce the number of gateways reconciled concurrently (max_workers)',
            'Increase the waiter poll interval',
        ],
        'Throttling': [
            'Reduce the frequency of API calls',
        ],
        'ThrottlingException': [
            'Reduce the frequency of API calls',
        ],

        # Service-side
        'RequestTimeout': [
            'Check your network connectivity',
            'Retry the operation',
        ],
        'ServiceUnavailable': [
            'Wait a few moments and retry',
            'Check AWS Service Health Dashboard',
        ],
        'Unavailable': [
            'Wait a few moments and retry',
        ],
        'InternalError': [
            'Wait a few moments and retry',
        ],
        'InternalFailure': [
            'Wait a few moments and retry',
        ],
    }

    # Suggestions for common non-transient codes
    REMOTE_ERROR_SUGGESTIONS = {
        'InvalidSubnetID.NotFound': [
            'Verify the subnet exists in the configured region',
        ],
        'InvalidAllocationID.NotFound': [
            'Verify the Elastic IP allocation exists in the configured region',
        ],
        'Resource.AlreadyAssociated': [
            'The Elastic IP allocation is already associated with another resource',
        ],
        'NatGatewayLimitExceeded': [
            'Request a service limit increase through AWS Support',
            'Delete unused NAT gateways in the availability zone',
        ],
        'UnauthorizedOperation': [
            'Add the required ec2:*NatGateway* and ec2:*Tags permissions',
        ],
    }

    def translate(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None
    ) -> NatGatewayError:
        """Translate an exception into the lifecycle error taxonomy.

        Args:
            error: The exception raised by boto3/botocore
            context: Additional context about where the error occurred

        Returns:
            NotFoundError, TransportError, RemoteError or the error itself
            if it is already a NatGatewayError
        """
        context = context or ErrorContext()

        if isinstance(error, NatGatewayError):
            return error

        if isinstance(error, ClientError):
            return self._translate_client_error(error, context)

        if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
            return TransportError(
                type(error).__name__,
                str(error),
                context=context,
                cause=error,
                suggestions=[
                    'Configure AWS credentials using: aws configure',
                    'Specify a profile with --profile',
                ]
            )

        if isinstance(error, (BotoConnectionError, HTTPClientError, ConnectionError, TimeoutError)):
            return TransportError(
                type(error).__name__,
                str(error),
                context=context,
                cause=error,
                suggestions=['Check your network connectivity']
            )

        if isinstance(error, BotoCoreError):
            return RemoteError(type(error).__name__, str(error), context=context, cause=error)

        return NatGatewayError(
            message=str(error),
            category=ErrorCategory.UNKNOWN,
            context=context,
            cause=error
        )

    def _translate_client_error(self, error: ClientError, context: ErrorContext) -> RemoteError:
        error_code = error.response.get('Error', {}).get('Code', 'Unknown')
        error_message = error.response.get('Error', {}).get('Message', str(error))
        context.request_id = error.response.get('ResponseMetadata', {}).get('RequestId')
        context.aws_operation = context.aws_operation or getattr(error, 'operation_name', None)

        if error_code in self.NOT_FOUND_CODES:
            return NotFoundError(error_code, error_message, context=context, cause=error)

        if error_code in self.TRANSPORT_ERROR_MAPPING:
            return TransportError(
                error_code,
                error_message,
                context=context,
                cause=error,
                suggestions=self.TRANSPORT_ERROR_MAPPING[error_code]
            )

        status_code = error.response.get('ResponseMetadata', {}).get('HTTPStatusCode')
        if status_code is not None and status_code >= 500:
            return TransportError(error_code, error_message, context=context, cause=error)

        return RemoteError(
            error_code,
            error_message,
            context=context,
            cause=error,
            suggestions=self.REMOTE_ERROR_SUGGESTIONS.get(error_code, [])
        )

    def log_error(self, error: NatGatewayError):
        """Log an error with appropriate level.

        Args:
            error: The error to log
        """
        log_message = error.to_user_message()

        if error.severity in (ErrorSeverity.CRITICAL, ErrorSeverity.ERROR):
            logger.error(log_message)
        elif error.severity == ErrorSeverity.WARNING:
            logger.warning(log_message)
        else:
            logger.info(log_message)

        logger.debug(f"Error details: {error.to_dict()}")


error_handler = ErrorHandler()
