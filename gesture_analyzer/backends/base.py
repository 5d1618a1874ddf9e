"""Provider interfaces for remote video analysis."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

from pydantic import BaseModel


class FileState(str, Enum):
    STATE_UNSPECIFIED = "STATE_UNSPECIFIED"
    PROCESSING = "PROCESSING"
    ACTIVE = "ACTIVE"
    FAILED = "FAILED"

    @classmethod
    def parse(cls, value: object) -> "FileState":
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.STATE_UNSPECIFIED


class RemoteFile(BaseModel):
    name: str
    uri: Optional[str] = None
    mime_type: str = "video/mp4"
    display_name: Optional[str] = None
    state: FileState = FileState.STATE_UNSPECIFIED
    error: Optional[dict] = None

    @property
    def is_active(self) -> bool:
        return self.state is FileState.ACTIVE


class AnalysisBackend(Protocol):
    name: str

    def upload_file(
        self,
        path: Path,
        *,
        mime_type: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> RemoteFile:
        """Upload a local file and return the provider's handle for it."""

    def get_file(self, name: str) -> RemoteFile:
        """Return the current state of a previously uploaded file."""

    def generate_content(self, remote: RemoteFile, prompt: str, *, model: Optional[str] = None) -> str:
        """Ask the model about an ACTIVE file and return its raw text answer."""

    def delete_file(self, name: str) -> None:
        """Delete a previously uploaded file."""


__all__ = ["AnalysisBackend", "FileState", "RemoteFile"]
