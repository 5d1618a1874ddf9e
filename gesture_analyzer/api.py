"""
FastAPI application exposing the gesture analysis endpoint.

Run with: uvicorn --factory gesture_analyzer.api:create_app
or:       gesture-analyzer serve
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .backends.base import AnalysisBackend
from .backends.gemini import GeminiClient
from .errors import ConfigurationError, MalformedResponseError, MissingVideoError, UploadTooLargeError
from .pipeline import analyze_file, local_video
from .settings import Settings, get_settings
from .upload import receive_video
from .util.logging import get_logger, set_level

logger = get_logger(__name__)

API_TITLE = "Gesture Analyzer API"
API_VERSION = "1.0.0"
ANALYZE_PATH = "/api/analyze-video"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

GENERIC_ERROR = "Failed to process video upload."
INVALID_JSON_ERROR = "Gemini AI did not return valid JSON format."

router = APIRouter()


def _error(status_code: int, message: str, **extra: object) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def get_backend(request: Request) -> AnalysisBackend:
    backend = request.app.state.backend
    if backend is None:
        raise ConfigurationError("GOOGLE_AI_API_KEY is not configured")
    return backend


@router.options(ANALYZE_PATH, include_in_schema=False)
async def analyze_video_preflight() -> Response:
    return Response(status_code=200)


async def method_not_allowed(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = _error(405, "Method not allowed")
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@router.post(ANALYZE_PATH)
async def analyze_video(request: Request) -> JSONResponse:
    """Accept a multipart ``video`` upload and return the detected gestures."""
    settings: Settings = request.app.state.settings

    try:
        upload = await receive_video(
            request,
            max_bytes=settings.max_upload_bytes,
            upload_dir=settings.upload_dir,
        )
    except MissingVideoError as exc:
        logger.info("Rejected request without video: %s", exc)
        return _error(400, "No video file uploaded.")
    except UploadTooLargeError as exc:
        logger.info("Rejected oversized upload: %s", exc)
        return _error(413, "Video file exceeds the maximum upload size.", maxBytes=exc.limit)
    except Exception:  # noqa: BLE001
        logger.exception("Error receiving video upload")
        return _error(500, GENERIC_ERROR)

    with local_video(upload.path):
        try:
            result = await analyze_file(
                get_backend(request),
                upload.path,
                settings,
                mime_type=upload.content_type,
                display_name=upload.filename,
            )
        except MalformedResponseError as exc:
            logger.warning("Gemini did not return valid JSON. Returning raw text. (%s)", exc)
            return _error(500, INVALID_JSON_ERROR, rawGeminiResponse=exc.raw_text)
        except Exception:  # noqa: BLE001
            logger.exception("Error in analyze-video endpoint")
            return _error(500, GENERIC_ERROR)

    return JSONResponse(content=result)


@router.get("/health", tags=["health"])
async def health_check(request: Request) -> dict:
    return {"status": "ok", "provider_configured": request.app.state.backend is not None}


def build_backend(settings: Settings) -> Optional[AnalysisBackend]:
    """Create the process-wide Gemini client, or None when no API key is set."""
    if not settings.gemini_api_key:
        logger.warning("GOOGLE_AI_API_KEY missing; analysis requests will fail")
        return None
    return GeminiClient(
        settings.gemini_api_key,
        model=settings.model,
        timeout=settings.request_timeout_s,
    )


def create_app(settings: Optional[Settings] = None, backend: Optional[AnalysisBackend] = None) -> FastAPI:
    settings = settings or get_settings()
    if settings.log_level:
        set_level(settings.log_level)

    app = FastAPI(title=API_TITLE, version=API_VERSION, exception_handlers={405: method_not_allowed})
    app.state.settings = settings
    app.state.backend = backend if backend is not None else build_backend(settings)

    @app.middleware("http")
    async def add_cors_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response

    app.include_router(router)
    return app


__all__ = ["ANALYZE_PATH", "CORS_HEADERS", "build_backend", "create_app", "get_backend", "router"]
