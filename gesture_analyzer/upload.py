"""Streaming multipart receiver that spools the ``video`` field to a temp file."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Tuple

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header
from starlette.requests import Request

from .errors import MissingVideoError, UploadTooLargeError
from .util.logging import get_logger

logger = get_logger(__name__)

VIDEO_FIELD = "video"
# Slack allowed on the whole body for boundaries, part headers and other fields.
MULTIPART_OVERHEAD = 1024 * 1024


@dataclass
class UploadedFile:
    path: Path
    filename: Optional[str]
    content_type: Optional[str]
    size: int


class _VideoPartCollector:
    """python-multipart callbacks that write the first matching file part to disk."""

    def __init__(self, field_name: str, max_bytes: int, upload_dir: Optional[str]) -> None:
        self.field_name = field_name
        self.max_bytes = max_bytes
        self.upload_dir = upload_dir
        self.too_large = False
        self.uploaded: Optional[UploadedFile] = None

        self._headers: List[Tuple[bytes, bytes]] = []
        self._field = b""
        self._value = b""
        self._fh: Optional[BinaryIO] = None
        self._capturing = False

    def callbacks(self) -> Dict[str, object]:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
        }

    def on_part_begin(self) -> None:
        self._headers = []
        self._field = b""
        self._value = b""

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._value += data[start:end]

    def on_header_end(self) -> None:
        self._headers.append((self._field.lower(), self._value))
        self._field = b""
        self._value = b""

    def on_headers_finished(self) -> None:
        headers = dict(self._headers)
        _, disposition = parse_options_header(headers.get(b"content-disposition", b""))
        name = disposition.get(b"name", b"").decode("utf-8", errors="replace")
        if name != self.field_name or b"filename" not in disposition or self.uploaded is not None:
            return

        filename = disposition[b"filename"].decode("utf-8", errors="replace") or None
        content_type = headers.get(b"content-type", b"").decode("latin-1").strip() or None
        suffix = os.path.splitext(filename or "")[1]
        fd, raw_path = tempfile.mkstemp(prefix="gesture_upload_", suffix=suffix, dir=self.upload_dir)
        self._fh = os.fdopen(fd, "wb")
        self.uploaded = UploadedFile(path=Path(raw_path), filename=filename, content_type=content_type, size=0)
        self._capturing = True

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        if not self._capturing or self.too_large or self._fh is None or self.uploaded is None:
            return
        chunk = data[start:end]
        if self.uploaded.size + len(chunk) > self.max_bytes:
            self.too_large = True
            return
        self._fh.write(chunk)
        self.uploaded.size += len(chunk)

    def on_part_end(self) -> None:
        if not self._capturing:
            return
        self._capturing = False
        if self.uploaded is not None and (self.uploaded.size == 0 or not self.uploaded.filename):
            # Browsers send an empty, unnamed part when no file was picked.
            self.discard()
        else:
            self.close()

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    def discard(self) -> None:
        self.close()
        if self.uploaded is not None:
            try:
                self.uploaded.path.unlink(missing_ok=True)
            except OSError:
                logger.exception("Error deleting partial upload %s", self.uploaded.path)
            self.uploaded = None


async def receive_video(
    request: Request,
    *,
    max_bytes: int,
    upload_dir: Optional[str] = None,
    field_name: str = VIDEO_FIELD,
) -> UploadedFile:
    """Stream the request body and return the spooled ``field_name`` upload.

    Raises :class:`MissingVideoError` when the body is not multipart or has no
    such file part, and :class:`UploadTooLargeError` once ``max_bytes`` is
    exceeded. Nothing is left on disk when either is raised.
    """
    content_type, params = parse_options_header(request.headers.get("content-type", ""))
    boundary = params.get(b"boundary")
    if content_type != b"multipart/form-data" or not boundary:
        raise MissingVideoError("Request body is not multipart/form-data")

    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > max_bytes + MULTIPART_OVERHEAD:
        raise UploadTooLargeError(max_bytes)

    collector = _VideoPartCollector(field_name, max_bytes, upload_dir)
    parser = MultipartParser(boundary, collector.callbacks())
    received = 0
    try:
        async for chunk in request.stream():
            received += len(chunk)
            if received > max_bytes + MULTIPART_OVERHEAD:
                raise UploadTooLargeError(max_bytes)
            if chunk:
                parser.write(chunk)
            if collector.too_large:
                raise UploadTooLargeError(max_bytes)
        parser.finalize()
    except MultipartParseError as exc:
        collector.discard()
        raise MissingVideoError(f"Malformed multipart body: {exc}") from exc
    except BaseException:
        collector.discard()
        raise
    finally:
        collector.close()

    uploaded = collector.uploaded
    if uploaded is None:
        raise MissingVideoError("No video file uploaded")

    logger.info("Received video file: %s", uploaded.filename)
    logger.info("File saved temporarily at: %s", uploaded.path)
    logger.info("File MIME type: %s", uploaded.content_type)
    logger.info("File size: %s bytes", uploaded.size)
    return uploaded


__all__ = ["MULTIPART_OVERHEAD", "UploadedFile", "VIDEO_FIELD", "receive_video"]
