from fraudshield.models.download import (
    AcquisitionEvent,
    AcquisitionOutcome,
    BadgeState,
    DownloadProgress,
    DownloadState,
    FileCompleted,
    FilesNotFound,
    FileStarted,
    LoadModelRequest,
    ProgressChanged,
    SessionCancelled,
    SessionCompleted,
    SessionFailed,
    StatusChanged,
    VariantStatus,
)
from fraudshield.models.preset import (
    STRUCTURAL_FILES,
    VARIANT_LABELS,
    Preset,
    Variant,
    required_local_files,
)

__all__ = [
    "AcquisitionEvent",
    "AcquisitionOutcome",
    "BadgeState",
    "DownloadProgress",
    "DownloadState",
    "FileCompleted",
    "FileStarted",
    "FilesNotFound",
    "LoadModelRequest",
    "Preset",
    "ProgressChanged",
    "STRUCTURAL_FILES",
    "SessionCancelled",
    "SessionCompleted",
    "SessionFailed",
    "StatusChanged",
    "VARIANT_LABELS",
    "Variant",
    "VariantStatus",
    "required_local_files",
]
