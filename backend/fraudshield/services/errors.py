from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    CANCELLED = "cancelled"
    CATALOG_UNAVAILABLE = "catalog_unavailable"
    MANIFEST_UNAVAILABLE = "manifest_unavailable"
    TRANSFER_FAILURE = "transfer_failure"
    VALIDATION_FAILURE = "validation_failure"
    DELETION_FAILURE = "deletion_failure"


class AcquisitionError(Exception):
    """Base error for model-asset acquisition."""

    kind: ErrorKind = ErrorKind.TRANSFER_FAILURE

    def __init__(self, message: str = "", kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class DownloadCancelled(AcquisitionError):
    """Raised when the user cancelled the acquisition. Not a failure."""

    kind = ErrorKind.CANCELLED

    def __init__(self, message: str = "Download cancelled by user") -> None:
        super().__init__(message)


class TransferPaused(DownloadCancelled):
    """A transfer was paused mid-file; its partial bytes are kept for resume."""


class DownloadInProgressError(RuntimeError):
    """Raised when a second acquisition is started while one is active."""


class EngineUnavailableError(AcquisitionError):
    """Raised when the inference engine cannot be initialised."""
