from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from gesture_analyzer.api import create_app
from gesture_analyzer.backends.base import FileState, RemoteFile
from gesture_analyzer.errors import ProviderError
from gesture_analyzer.settings import Settings

SAMPLE_RESPONSE = (
    '{"gestures":[{"start_timestamp":"00:00:01.000","end_timestamp":"00:00:02.000",'
    '"type":"smile","position_x":100,"position_y":200}]}'
)


class FakeBackend:
    """In-memory provider that records every call made against it."""

    name = "fake"

    def __init__(
        self,
        *,
        active_after: Optional[int] = 1,
        text: str = SAMPLE_RESPONSE,
        fail_upload: bool = False,
        fail_generate: bool = False,
        fail_delete: bool = False,
    ) -> None:
        self.active_after = active_after
        self.text = text
        self.fail_upload = fail_upload
        self.fail_generate = fail_generate
        self.fail_delete = fail_delete

        self.calls: List[str] = []
        self.polls = 0
        self.generated = 0
        self.deleted: List[str] = []
        self.uploaded_path: Optional[Path] = None
        self.uploaded_bytes: Optional[bytes] = None
        self.uploaded_mime: Optional[str] = None
        self.uploaded_name: Optional[str] = None
        self.prompt: Optional[str] = None
        self.model: Optional[str] = None

    def upload_file(self, path: Path, *, mime_type=None, display_name=None) -> RemoteFile:
        self.calls.append("upload")
        if self.fail_upload:
            raise ProviderError("upload exploded")
        self.uploaded_path = Path(path)
        self.uploaded_bytes = Path(path).read_bytes()
        self.uploaded_mime = mime_type
        self.uploaded_name = display_name
        return RemoteFile(
            name="files/fake123",
            uri="https://generativelanguage.googleapis.com/v1beta/files/fake123",
            mime_type=mime_type or "video/mp4",
            state=FileState.PROCESSING,
        )

    def get_file(self, name: str) -> RemoteFile:
        self.calls.append("get")
        self.polls += 1
        ready = self.active_after is not None and self.polls >= self.active_after
        return RemoteFile(
            name=name,
            uri="https://generativelanguage.googleapis.com/v1beta/files/fake123",
            state=FileState.ACTIVE if ready else FileState.PROCESSING,
        )

    def generate_content(self, remote: RemoteFile, prompt: str, *, model=None) -> str:
        self.calls.append("generate")
        self.generated += 1
        self.prompt = prompt
        self.model = model
        if self.fail_generate:
            raise ProviderError("generate exploded")
        return self.text

    def delete_file(self, name: str) -> None:
        self.calls.append("delete")
        self.deleted.append(name)
        if self.fail_delete:
            raise ProviderError("delete exploded")


@pytest.fixture()
def upload_dir(tmp_path: Path) -> Path:
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture()
def settings(upload_dir: Path) -> Settings:
    return Settings(gemini_api_key="test-key", poll_delay_s=0.0, upload_dir=str(upload_dir))


@pytest.fixture()
def make_client(settings: Settings):
    def _make(backend: Optional[FakeBackend] = None, **overrides) -> TestClient:
        app_settings = settings.model_copy(update=overrides) if overrides else settings
        return TestClient(create_app(app_settings, backend=backend or FakeBackend()))

    return _make
