"""Failure taxonomy shared by acquisition, analysis, storage and chat."""

from dataclasses import dataclass

ANALYSIS_FAILED_MESSAGE = "We couldn't analyze your media. Please try again."


class PawsightError(Exception):
    """Base class for every failure the core surfaces."""

    kind = "error"
    user_message = "Something went wrong. Please try again."

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.user_message)
        self.detail = detail


# ─── Acquisition ──────────────────────────────────────────────────────────────

class PermissionDenied(PawsightError):
    kind = "permission_denied"
    user_message = "Enable camera access to record."


class InputRejected(PawsightError):
    """Oversize file, unsupported media type or a recording that is too short."""

    kind = "input_rejected"

    def __init__(self, detail: str, reason: str = "invalid"):
        super().__init__(detail)
        self.reason = reason
        self.user_message = detail


class CaptureBusy(PawsightError):
    kind = "capture_busy"
    user_message = "A recording is already in progress."


class TransportFailure(PawsightError):
    """Upload failed: network error, non-success status, or no URL returned."""

    kind = "transport_failure"
    user_message = "Upload failed. Please check your connection and try again."

    def __init__(self, detail: str, reason: str = "network", status_code: int | None = None):
        super().__init__(detail)
        self.reason = reason
        self.status_code = status_code


# ─── Analysis ─────────────────────────────────────────────────────────────────

class ValidationFailure(PawsightError):
    """Model output did not match the report schema."""

    kind = "validation_failure"
    user_message = ANALYSIS_FAILED_MESSAGE


class ServiceFailure(PawsightError):
    """Model call errored, timed out or declined to respond."""

    kind = "service_failure"
    user_message = ANALYSIS_FAILED_MESSAGE


class StorageFailure(PawsightError):
    kind = "storage_failure"
    user_message = "The report could not be saved. Please try again."


# ─── Orchestration ────────────────────────────────────────────────────────────

class IllegalTransition(PawsightError):
    kind = "illegal_transition"


class AttemptInProgress(PawsightError):
    kind = "attempt_in_progress"
    user_message = "An analysis is already running."


class ChatBusy(PawsightError):
    kind = "chat_busy"
    user_message = "Please wait for the current answer."


@dataclass(frozen=True)
class NotFound:
    """Lookup result for an unknown report id. Callers redirect to history."""

    report_id: str
    redirect_to: str = "/reports"
