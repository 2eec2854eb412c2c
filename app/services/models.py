from enum import Enum
from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

# AllDebrid magnet status codes (v4.1 magnet/status).
READY_STATUS_CODE = 4
QUEUED_STATUS_CODE = 0

STATUS_MESSAGES = {
    0: "In Queue",
    1: "Downloading",
    2: "Compressing / Moving",
    3: "Uploading",
    4: "Ready",
    5: "Upload fail",
    6: "Internal error on unpacking",
    7: "Not downloaded in 20 min",
    8: "File too big",
    9: "Internal error",
    10: "Download took more than 72h",
    11: "Deleted on the hoster website",
    12: "Processing failed",
    13: "Processing failed",
    14: "Error while contacting tracker",
    15: "File not available - no peer",
}


class MagnetSubmission(BaseModel):
    model_config = ConfigDict(frozen=True)

    magnet_uri: str


class MagnetRecord(BaseModel):
    """
    A magnet as known by the debrid service.
    `id` is the only identity used after upload.
    """
    model_config = ConfigDict(frozen=True)

    id: int = Field(gt=0)
    info_hash: str = ""
    display_name: str = "Unknown"
    ready: bool = False
    status_code: Optional[int] = None

    @property
    def status_message(self) -> str:
        if self.status_code is None:
            return "Ready" if self.ready else "Unknown"
        return STATUS_MESSAGES.get(self.status_code, f"Status {self.status_code}")


# --- Remote file tree (v4.1 magnet/files) ---

class RemoteFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["file"] = "file"
    name: str
    link: str
    size_bytes: Optional[int] = None


class RemoteDirectory(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["directory"] = "directory"
    name: str
    children: List["RemoteFileNode"] = []


RemoteFileNode = Annotated[Union[RemoteDirectory, RemoteFile], Field(discriminator="kind")]

RemoteDirectory.model_rebuild()


class ResolvedFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    stream_url: str
    size_bytes: Optional[int] = None


# --- Outcomes ---

class Ready(BaseModel):
    kind: Literal["ready"] = "ready"
    files: List[ResolvedFile] = []

    @property
    def message(self) -> str:
        if not self.files:
            return "No video files found"
        return f"Found {len(self.files)} video file(s)"


class TimedOut(BaseModel):
    kind: Literal["timed_out"] = "timed_out"
    attempts: int

    @property
    def message(self) -> str:
        return "Timeout waiting for cache. Try again later."


class Failed(BaseModel):
    kind: Literal["failed"] = "failed"
    reason: str
    code: Optional[str] = None

    @property
    def message(self) -> str:
        return self.reason


ResolutionOutcome = Annotated[Union[Ready, TimedOut, Failed], Field(discriminator="kind")]


class ResolutionState(str, Enum):
    UPLOADING = "uploading"
    POLLING = "polling"
    LISTING = "listing"
    DONE = "done"
    DONE_EMPTY = "done_empty"
    TIMEOUT = "timeout"
    FAILED = "failed"


class ResolutionProgress(BaseModel):
    state: ResolutionState
    message: str
    magnet_id: Optional[int] = None
    attempt: int = 0
    max_attempts: int = 0
    status_code: Optional[int] = None


# --- Search ---

class SearchResult(BaseModel):
    title: str
    seeds: int = 0
    leeches: int = 0
    size: str = ""
    magnet: str
    info_hash: str
