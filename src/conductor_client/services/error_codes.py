from dataclasses import dataclass
from typing import List

from conductor_client.errors import ConductorError


@dataclass(frozen=True)
class RecoveryAction:
    action_id: str
    label: str
    description: str


@dataclass(frozen=True)
class ErrorCatalogEntry:
    code: str
    title: str
    user_message: str
    actions: List[RecoveryAction]


ERROR_CATALOG: List[ErrorCatalogEntry] = [
    ErrorCatalogEntry(
        code="ERR_TRANSPORT",
        title="Connection lost",
        user_message="The conductor service could not be reached or the live log connection dropped.",
        actions=[
            RecoveryAction("reconnect", "Reconnect", "Watch the run again to reopen its log stream."),
            RecoveryAction("check_health", "Check health", "Query the service health endpoint."),
        ],
    ),
    ErrorCatalogEntry(
        code="ERR_DECODE",
        title="Unreadable response",
        user_message="The service sent data the client could not understand.",
        actions=[
            RecoveryAction("refresh_runs", "Refresh runs", "Reload the run list from the service."),
        ],
    ),
    ErrorCatalogEntry(
        code="ERR_NOT_FOUND",
        title="Not found",
        user_message="The run or template no longer exists.",
        actions=[
            RecoveryAction("refresh_runs", "Refresh runs", "Reload the run list from the service."),
        ],
    ),
    ErrorCatalogEntry(
        code="ERR_START_FAILED",
        title="Run could not be started",
        user_message="The service rejected the request to start a run.",
        actions=[
            RecoveryAction("retry_start", "Retry", "Submit the same template and configuration again."),
            RecoveryAction("check_health", "Check health", "Query the service health endpoint."),
        ],
    ),
    ErrorCatalogEntry(
        code="ERR_STOP_FAILED",
        title="Stop not confirmed",
        user_message="The run is shown as stopped, but the service did not confirm the stop.",
        actions=[
            RecoveryAction("retry_stop", "Retry stop", "Send the stop request again."),
            RecoveryAction("refresh_runs", "Refresh runs", "Reload the run list to see the real status."),
        ],
    ),
    ErrorCatalogEntry(
        code="ERR_API",
        title="Service error",
        user_message="The service returned an error.",
        actions=[
            RecoveryAction("refresh_runs", "Refresh runs", "Reload the run list from the service."),
        ],
    ),
    ErrorCatalogEntry(
        code="ERR_UNKNOWN",
        title="Unknown error",
        user_message="An unknown error occurred.",
        actions=[
            RecoveryAction("check_health", "Check health", "Query the service health endpoint."),
        ],
    ),
]


def detect_error_code(exc: BaseException) -> str:
    if isinstance(exc, ConductorError):
        return exc.code
    return "ERR_UNKNOWN"


def get_catalog_entry(code: str) -> ErrorCatalogEntry:
    for entry in ERROR_CATALOG:
        if entry.code == code:
            return entry
    return next(entry for entry in ERROR_CATALOG if entry.code == "ERR_UNKNOWN")


def describe_error(exc: BaseException) -> str:
    entry = get_catalog_entry(detect_error_code(exc))
    detail = exc.message if isinstance(exc, ConductorError) else str(exc)
    return f"{entry.title}: {detail}" if detail else entry.user_message
