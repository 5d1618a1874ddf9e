"""Gemini REST client for file upload, status polling, generation and deletion."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import requests

from ..errors import ConfigurationError, ProviderError
from ..settings import DEFAULT_MODEL
from ..util.logging import get_logger
from .base import AnalysisBackend, FileState, RemoteFile

logger = get_logger(__name__)

DEFAULT_MIME_TYPE = "video/mp4"
DEFAULT_DISPLAY_NAME = "video.mp4"


class GeminiClient(AnalysisBackend):
    """Thin wrapper around the Gemini Files and generateContent endpoints."""

    name = "gemini"

    base_url = "https://generativelanguage.googleapis.com/v1beta"
    upload_endpoint = "https://generativelanguage.googleapis.com/upload/v1beta/files"

    def __init__(
        self,
        api_key: Optional[str],
        *,
        model: str = DEFAULT_MODEL,
        timeout: float = 120.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("GOOGLE_AI_API_KEY is required for video analysis.")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    # ---------- helpers ----------

    def _request(self, method: str, url: str, *, action: str, **kwargs: Any) -> requests.Response:
        params = dict(kwargs.pop("params", None) or {})
        params["key"] = self.api_key
        kwargs.setdefault("timeout", self.timeout)
        try:
            response = self.session.request(method, url, params=params, **kwargs)
        except requests.RequestException as exc:
            raise ProviderError(f"Gemini {action} request failed: {exc}") from exc
        if not response.ok:
            raise ProviderError(f"Gemini {action} failed: {response.status_code} {_safe_text(response)}")
        return response

    @staticmethod
    def _json(response: requests.Response, action: str) -> dict:
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError(f"Gemini {action} returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise ProviderError(f"Gemini {action} returned an unexpected payload: {payload!r}")
        return payload

    @staticmethod
    def _to_remote_file(payload: dict) -> RemoteFile:
        name = payload.get("name")
        if not name:
            raise ProviderError(f"Gemini file payload has no name: {payload}")
        return RemoteFile(
            name=str(name),
            uri=payload.get("uri"),
            mime_type=payload.get("mimeType") or DEFAULT_MIME_TYPE,
            display_name=payload.get("displayName"),
            state=FileState.parse(payload.get("state")),
            error=payload.get("error"),
        )

    # ---------- files ----------

    def upload_file(
        self,
        path: Path,
        *,
        mime_type: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> RemoteFile:
        """Upload a local file with the resumable protocol and return its handle."""
        path = Path(path)
        mime_type = mime_type or DEFAULT_MIME_TYPE
        display_name = display_name or DEFAULT_DISPLAY_NAME
        num_bytes = path.stat().st_size

        logger.info(
            "Uploading video to Gemini API",
            extra={"event": "gemini.upload.start", "display_name": display_name, "bytes": num_bytes},
        )

        init_response = self._request(
            "post",
            self.upload_endpoint,
            action="upload start",
            headers={
                "X-Goog-Upload-Protocol": "resumable",
                "X-Goog-Upload-Command": "start",
                "X-Goog-Upload-Header-Content-Length": str(num_bytes),
                "X-Goog-Upload-Header-Content-Type": mime_type,
                "Content-Type": "application/json",
            },
            json={"file": {"display_name": display_name}},
            timeout=30,
        )

        upload_url = init_response.headers.get("X-Goog-Upload-URL")
        if not upload_url:
            raise ProviderError("No upload URL returned from Gemini API")

        with path.open("rb") as video_file:
            upload_response = self._request(
                "post",
                upload_url,
                action="upload",
                headers={
                    "Content-Length": str(num_bytes),
                    "X-Goog-Upload-Offset": "0",
                    "X-Goog-Upload-Command": "upload, finalize",
                },
                data=video_file,
                timeout=max(self.timeout, 300),
            )

        file_info = self._json(upload_response, "upload").get("file", {})
        remote = self._to_remote_file(file_info)
        logger.info(
            "Video uploaded successfully",
            extra={"event": "gemini.upload.complete", "file": remote.name, "state": remote.state.value},
        )
        return remote

    def get_file(self, name: str) -> RemoteFile:
        # name already carries the "files/xxxxx" prefix
        response = self._request("get", f"{self.base_url}/{name}", action="file status", timeout=30)
        return self._to_remote_file(self._json(response, "file status"))

    def delete_file(self, name: str) -> None:
        self._request("delete", f"{self.base_url}/{name}", action="file delete", timeout=30)
        logger.info("Deleted file from Gemini", extra={"event": "gemini.delete", "file": name})

    # ---------- generation ----------

    def generate_content(self, remote: RemoteFile, prompt: str, *, model: Optional[str] = None) -> str:
        """Run one generateContent call over an ACTIVE file and return the raw text."""
        if not remote.uri:
            raise ProviderError(f"Remote file {remote.name} has no URI")
        model = model or self.model
        payload = {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"file_data": {"mime_type": remote.mime_type, "file_uri": remote.uri}},
                        {"text": prompt},
                    ],
                }
            ]
        }

        logger.info("Analyzing video with Gemini", extra={"event": "gemini.analyze.start", "model": model})
        response = self._request(
            "post",
            f"{self.base_url}/models/{model}:generateContent",
            action="generateContent",
            headers={"Content-Type": "application/json"},
            json=payload,
        )
        text = self._extract_text(self._json(response, "generateContent"))
        logger.info("Video analysis complete", extra={"event": "gemini.analyze.complete", "chars": len(text)})
        return text

    @staticmethod
    def _extract_text(payload: dict) -> str:
        """Concatenate the text parts of the first candidate."""
        candidates = payload.get("candidates") or []
        if not candidates:
            feedback = payload.get("promptFeedback")
            raise ProviderError(f"Gemini returned no candidates (promptFeedback={feedback})")
        parts = candidates[0].get("content", {}).get("parts", [])
        return "".join(p.get("text", "") for p in parts if "text" in p)


def _safe_text(response: requests.Response) -> str:
    try:
        return response.text.strip()
    except Exception:  # noqa: BLE001
        return "<unable to read response>"


__all__ = ["GeminiClient"]
