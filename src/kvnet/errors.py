"""Error taxonomy for the vault network access sample.

Only one status per call site is expected: "not found" during existence
checks and "forbidden" during data-plane access probes. Collaborators turn
that single status into a tagged result; every other failure is an
UnexpectedRemoteError and propagates unchanged.
"""

from __future__ import annotations

from enum import Enum

from azure.core.exceptions import AzureError, HttpResponseError

HTTP_STATUS_FORBIDDEN = 403
HTTP_STATUS_NOT_FOUND = 404

# Any SDK failure outside the expected status. Kept as the SDK type so
# callers see the status code, error code and response as returned.
UnexpectedRemoteError = AzureError


class InvalidResourceIdentifier(ValueError):
    """Raised when a resource path is malformed or names the wrong resource type."""

    pass


class RetryAbortedError(Exception):
    """Raised when a retried request returns a status designated as 'abort'."""

    def __init__(self, operation: str, status_code: int | None) -> None:
        self.operation = operation
        self.status_code = status_code
        super().__init__(
            f"status code {status_code} is designated as 'abort'; terminating {operation}"
        )


class ProvisioningError(Exception):
    """Raised when a resource that was just created cannot be read back."""

    pass


class RemoteErrorKind(str, Enum):
    """Classification of a failed management or data-plane call."""

    NOT_FOUND = "NotFound"
    FORBIDDEN = "Forbidden"
    OTHER = "Other"


def classify_remote_error(error: HttpResponseError) -> RemoteErrorKind:
    """Map an SDK HTTP error onto the expected/unexpected buckets."""
    match error.status_code:
        case 404:
            return RemoteErrorKind.NOT_FOUND
        case 403:
            return RemoteErrorKind.FORBIDDEN
        case _:
            return RemoteErrorKind.OTHER
