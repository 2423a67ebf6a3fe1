from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict


class DownloadState(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    DOWNLOADING = "downloading"
    LOADING = "loading"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    ERROR = "error"
    NOT_FOUND = "not_found"


class AcquisitionOutcome(str, Enum):
    LOADED = "loaded"
    CANCELLED = "cancelled"
    NOT_FOUND = "not_found"
    FAILED = "failed"


class BadgeState(str, Enum):
    AVAILABLE = "available"
    DOWNLOADING = "downloading"
    DOWNLOADED = "downloaded"


class DownloadProgress(BaseModel):
    state: DownloadState = DownloadState.IDLE
    preset_name: str = ""
    variant: str = ""
    status: str = ""
    progress: float = 0.0  # current file only
    file_index: int = 0
    file_count: int = 0
    error: str | None = None


class LoadModelRequest(BaseModel):
    preset_name: str
    variant: str


class VariantStatus(BaseModel):
    variant: str
    label: str
    downloaded: bool
    badge: BadgeState


# --- Acquisition events ---


class StatusChanged(BaseModel):
    type: Literal["status"] = "status"
    status: str


class FileStarted(BaseModel):
    type: Literal["file_started"] = "file_started"
    index: int
    total: int
    filename: str


class ProgressChanged(BaseModel):
    type: Literal["progress"] = "progress"
    fraction: float


class FileCompleted(BaseModel):
    type: Literal["file_completed"] = "file_completed"
    index: int
    total: int
    filename: str
    cached: bool = False


class SessionCompleted(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    type: Literal["session_completed"] = "session_completed"
    model_dir: str


class SessionFailed(BaseModel):
    type: Literal["session_failed"] = "session_failed"
    reason: str


class SessionCancelled(BaseModel):
    type: Literal["session_cancelled"] = "session_cancelled"


class FilesNotFound(BaseModel):
    type: Literal["files_not_found"] = "files_not_found"


AcquisitionEvent = Union[
    StatusChanged,
    FileStarted,
    ProgressChanged,
    FileCompleted,
    SessionCompleted,
    SessionFailed,
    SessionCancelled,
    FilesNotFound,
]

TERMINAL_EVENTS = (SessionCompleted, SessionFailed, SessionCancelled, FilesNotFound)
