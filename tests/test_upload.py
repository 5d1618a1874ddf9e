from __future__ import annotations

from pathlib import Path

from gesture_analyzer.api import ANALYZE_PATH
from gesture_analyzer.upload import MULTIPART_OVERHEAD

from .conftest import FakeBackend


def test_keeps_extension_and_ignores_other_fields(make_client, upload_dir: Path) -> None:
    backend = FakeBackend()
    client = make_client(backend)

    response = client.post(
        ANALYZE_PATH,
        data={"note": "hello"},
        files={"video": ("holiday.mov", b"mov-bytes", "video/quicktime")},
    )

    assert response.status_code == 200
    assert backend.uploaded_path is not None
    assert backend.uploaded_path.suffix == ".mov"
    assert backend.uploaded_path.parent == upload_dir
    assert backend.uploaded_bytes == b"mov-bytes"
    assert backend.uploaded_mime == "video/quicktime"
    assert backend.uploaded_name == "holiday.mov"
    assert not backend.uploaded_path.exists()


def test_plain_text_video_field_is_not_a_file(make_client) -> None:
    backend = FakeBackend()
    client = make_client(backend)

    response = client.post(
        ANALYZE_PATH,
        data={"video": "not-a-file"},
        files={"other": ("x.txt", b"x", "text/plain")},
    )

    assert response.status_code == 400
    assert backend.calls == []


def test_only_first_video_part_is_used(make_client) -> None:
    backend = FakeBackend()
    client = make_client(backend)

    response = client.post(
        ANALYZE_PATH,
        files=[
            ("video", ("first.mp4", b"first", "video/mp4")),
            ("video", ("second.mp4", b"second", "video/mp4")),
        ],
    )

    assert response.status_code == 200
    assert backend.uploaded_bytes == b"first"
    assert backend.uploaded_name == "first.mp4"


def test_declared_length_over_limit_is_rejected_up_front(make_client, upload_dir: Path) -> None:
    backend = FakeBackend()
    client = make_client(backend, max_upload_bytes=16)
    body = b"--xyz\r\n" + b"a" * (MULTIPART_OVERHEAD + 64) + b"\r\n--xyz--\r\n"

    response = client.post(
        ANALYZE_PATH,
        content=body,
        headers={"content-type": "multipart/form-data; boundary=xyz"},
    )

    assert response.status_code == 413
    assert backend.calls == []
    assert list(upload_dir.iterdir()) == []


def test_missing_boundary_is_a_client_error(make_client) -> None:
    backend = FakeBackend()
    client = make_client(backend)

    response = client.post(ANALYZE_PATH, content=b"abc", headers={"content-type": "multipart/form-data"})

    assert response.status_code == 400
    assert backend.calls == []


def _chunked_body(boundary: str, junk_bytes: int):
    yield (
        f"--{boundary}\r\n"
        'Content-Disposition: form-data; name="junk"; filename="junk.bin"\r\n'
        "Content-Type: application/octet-stream\r\n\r\n"
    ).encode()
    chunk = b"j" * 65536
    for _ in range(junk_bytes // len(chunk)):
        yield chunk
    yield (
        f"\r\n--{boundary}\r\n"
        'Content-Disposition: form-data; name="video"; filename="clip.mp4"\r\n'
        "Content-Type: video/mp4\r\n\r\n"
        "hello\r\n"
        f"--{boundary}--\r\n"
    ).encode()


def test_chunked_body_over_limit_is_rejected(make_client, upload_dir: Path) -> None:
    backend = FakeBackend()
    client = make_client(backend, max_upload_bytes=1024)

    response = client.post(
        ANALYZE_PATH,
        content=_chunked_body("xyz", MULTIPART_OVERHEAD + 4 * 65536),
        headers={"content-type": "multipart/form-data; boundary=xyz"},
    )

    assert response.status_code == 413
    assert backend.calls == []
    assert list(upload_dir.iterdir()) == []


def test_empty_unnamed_video_part_counts_as_missing(make_client, upload_dir: Path) -> None:
    backend = FakeBackend()
    client = make_client(backend)
    body = (
        b"--xyz\r\n"
        b'Content-Disposition: form-data; name="video"; filename=""\r\n'
        b"Content-Type: application/octet-stream\r\n\r\n"
        b"\r\n--xyz--\r\n"
    )

    response = client.post(
        ANALYZE_PATH,
        content=body,
        headers={"content-type": "multipart/form-data; boundary=xyz"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "No video file uploaded."}
    assert backend.calls == []
    assert list(upload_dir.iterdir()) == []


def test_zero_byte_video_counts_as_missing(make_client, upload_dir: Path) -> None:
    backend = FakeBackend()
    client = make_client(backend)

    response = client.post(ANALYZE_PATH, files={"video": ("clip.mp4", b"", "video/mp4")})

    assert response.status_code == 400
    assert backend.calls == []
    assert list(upload_dir.iterdir()) == []
