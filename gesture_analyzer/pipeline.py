"""Upload -> poll -> analyze -> parse workflow with scoped cleanup."""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Iterator, Optional

import anyio
from starlette.concurrency import run_in_threadpool

from .analysis.gestures import GESTURE_PROMPT, parse_analysis
from .backends.base import AnalysisBackend, FileState, RemoteFile
from .errors import ProcessingTimeoutError, ProviderError
from .settings import Settings
from .util.logging import emit_event, get_logger

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@contextmanager
def local_video(path: Path) -> Iterator[Path]:
    """Yield ``path`` and delete it on exit, logging (never raising) failures."""
    try:
        yield path
    finally:
        try:
            Path(path).unlink()
            logger.info("Temporary file %s deleted.", path)
        except OSError:
            logger.exception("Error deleting temporary file %s", path)


@asynccontextmanager
async def remote_file(backend: AnalysisBackend, remote: RemoteFile) -> AsyncIterator[RemoteFile]:
    """Yield ``remote`` and delete it from the provider on exit, whatever the outcome."""
    try:
        yield remote
    finally:
        # Shielded so a cancelled request still releases the provider-side file.
        with anyio.CancelScope(shield=True):
            try:
                await run_in_threadpool(backend.delete_file, remote.name)
                logger.info("File %s deleted from Gemini.", remote.name)
            except Exception:  # noqa: BLE001
                logger.exception("Error deleting file %s from Gemini", remote.name)


async def wait_until_active(
    backend: AnalysisBackend,
    remote: RemoteFile,
    *,
    max_attempts: int = 30,
    delay_s: float = 2.0,
    deadline_s: Optional[float] = None,
    sleep: Sleep = asyncio.sleep,
) -> RemoteFile:
    """Poll the provider until ``remote`` is ACTIVE.

    The file is polled at most ``max_attempts`` times with ``delay_s`` between
    polls; ``deadline_s`` additionally caps the total wait. A FAILED state
    raises :class:`ProviderError`, running out of attempts or time raises
    :class:`ProcessingTimeoutError`.
    """
    started = time.monotonic()
    state = remote.state
    for attempt in range(1, max_attempts + 1):
        current = await run_in_threadpool(backend.get_file, remote.name)
        state = current.state
        if state is FileState.ACTIVE:
            emit_event(logger, "gemini.processing.complete", file=remote.name, attempts=attempt)
            return current
        if state is FileState.FAILED:
            raise ProviderError(f"Video processing failed: {current.error or 'Unknown error'}")

        logger.info("Waiting for file to be ACTIVE... (%s)", state.value)
        if attempt == max_attempts:
            break
        if deadline_s is not None and time.monotonic() - started + delay_s > deadline_s:
            raise ProcessingTimeoutError(
                f"File processing timed out after {attempt} attempts ({deadline_s}s deadline, state={state.value})"
            )
        await sleep(delay_s)

    raise ProcessingTimeoutError(f"File processing timed out after {max_attempts} attempts (state={state.value})")


async def analyze_file(
    backend: AnalysisBackend,
    path: Path,
    settings: Settings,
    *,
    mime_type: Optional[str] = None,
    display_name: Optional[str] = None,
    sleep: Sleep = asyncio.sleep,
) -> dict:
    """Upload ``path``, wait for processing, ask for gestures and parse the answer.

    The remote file is deleted before returning, on every exit path. The
    local file is left alone; callers own it.
    """
    uploaded = await run_in_threadpool(
        backend.upload_file, path, mime_type=mime_type, display_name=display_name
    )
    async with remote_file(backend, uploaded):
        ready = await wait_until_active(
            backend,
            uploaded,
            max_attempts=settings.poll_attempts,
            delay_s=settings.poll_delay_s,
            deadline_s=settings.poll_deadline_s,
            sleep=sleep,
        )
        text = await run_in_threadpool(backend.generate_content, ready, GESTURE_PROMPT, model=settings.model)
        logger.debug("Raw Gemini response: %s", text)
        return parse_analysis(text)


__all__ = ["analyze_file", "local_video", "remote_file", "wait_until_active"]
