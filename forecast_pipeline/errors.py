"""
Error types for the forecast pipeline and classification of AWS errors.
"""

from enum import Enum

from botocore.exceptions import ClientError


ALREADY_EXISTS_CODE = "ResourceAlreadyExistsException"
NOT_FOUND_CODE = "ResourceNotFoundException"


class ForecastPipelineError(Exception):
    """Base class for pipeline failures."""


class CreationError(ForecastPipelineError):
    """A create call failed for a reason other than the resource already existing."""

    def __init__(self, resource_type: str, name: str, message: str):
        super().__init__(f"Failed to create {resource_type} {name}: {message}")
        self.resource_type = resource_type
        self.name = name


class ProvisioningFailed(ForecastPipelineError):
    """The resource reported CREATE_FAILED while waiting for it to become ACTIVE."""

    def __init__(self, name: str, status: str):
        super().__init__(f"{name} creation failed (status={status})")
        self.name = name
        self.status = status


class UnexpectedState(ForecastPipelineError):
    """The resource reported a status outside the vocabulary of the current wait."""

    def __init__(self, name: str, status: str, expected_prefix: str):
        super().__init__(f"{name} reported unexpected status {status} (expected {expected_prefix}*)")
        self.name = name
        self.status = status
        self.expected_prefix = expected_prefix


class DeletionFailed(ForecastPipelineError):
    """The resource reported DELETE_FAILED while waiting for it to disappear."""

    def __init__(self, name: str, status: str):
        super().__init__(f"{name} deletion failed (status={status})")
        self.name = name
        self.status = status


class WaitTimeout(ForecastPipelineError):
    """The poll policy ran out of attempts before a terminal status was seen."""

    def __init__(self, name: str, attempts: int, last_status: str):
        super().__init__(f"{name} still {last_status} after {attempts} polls")
        self.name = name
        self.attempts = attempts
        self.last_status = last_status


class RunCancelled(ForecastPipelineError):
    """The run was cancelled; the remaining stages were not started."""

    def __init__(self, next_stage: str):
        super().__init__(f"Run cancelled before {next_stage}")
        self.next_stage = next_stage


class ErrorKind(Enum):
    ALREADY_EXISTS = "already_exists"
    NOT_FOUND = "not_found"
    OTHER = "other"


def error_code(exc: BaseException) -> str:
    """Return the AWS error code carried by a ClientError, or an empty string."""
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code", "") or ""
    return ""


def classify_error(exc: BaseException) -> ErrorKind:
    """
    Map an exception to the kinds the lifecycle helpers recover from.

    The check uses the service error code, never the message text. Modeled
    exceptions such as ``client.exceptions.ResourceNotFoundException`` are
    ClientError subclasses carrying the same code, so both forms classify the
    same way.

    Args:
        exc: Exception raised by a boto3 call

    Returns:
        ErrorKind for the exception
    """
    code = error_code(exc)
    if code == ALREADY_EXISTS_CODE:
        return ErrorKind.ALREADY_EXISTS
    if code == NOT_FOUND_CODE:
        return ErrorKind.NOT_FOUND
    return ErrorKind.OTHER
