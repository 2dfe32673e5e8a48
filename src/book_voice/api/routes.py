"""
Relay API Routes.

Endpoints:
    GET  /                      - Service metadata and endpoint listing
    GET  /health                - Health check with store/voice counts
    GET  /metrics               - Prometheus metrics
    POST /tts/generate          - Generate audio from text
    GET  /download/{audio_id}   - Download generated audio
    GET  /info/{audio_id}       - Record metadata without the audio
    POST /voice/upload          - Upload a voice sample (multipart)
    POST /tts/clone-voice       - Same as /voice/upload
    GET  /voices, /tts/voices   - Predefined and uploaded voices

Request Flow (generate):
    1. Generate unique request ID for tracing
    2. VoiceService validates text and resolves the voice
    3. Provider chain runs (or is scheduled in background mode)
    4. JSON body with audio_id and download_url

Error Handling:
    Service errors are returned as JSON:
    {
        "ok": false,
        "error": "<ERROR_CODE>",
        "message": "<human readable message>",
        "details": {...}
    }

    HTTP status codes are mapped from ErrorCode:
        - TEXT_REQUIRED, TEXT_TOO_LONG, VALIDATION_ERROR -> 400
        - FILE_REQUIRED, FILE_TYPE_NOT_ALLOWED, FILE_TOO_LARGE -> 400
        - AUDIO_NOT_FOUND, VOICE_NOT_FOUND -> 404
        - PROCESSING_FAILED -> 500

    Provider failures never show up here; the worst case is a 200 with
    placeholder audio.
"""
from __future__ import annotations

import uuid
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from book_voice import __version__
from book_voice.api.dependencies import get_voice_service
from book_voice.api.schemas import GenerateResponse, TTSGenerateRequest
from book_voice.core.logging import error, get_logger, info, set_request_id, warn
from book_voice.core.metrics import metrics
from book_voice.services.errors import ErrorCode, NotFoundError, VoiceServiceError
from book_voice.services.voice_service import GenerateRequest, VoiceService

router = APIRouter()

_LOG = get_logger("book-voice.api")

AVAILABLE_ENDPOINTS = [
    "GET /",
    "GET /health",
    "GET /metrics",
    "POST /tts/generate",
    "GET /download/:audioId",
    "GET /info/:audioId",
    "POST /voice/upload",
    "POST /tts/clone-voice",
    "GET /voices",
    "GET /tts/voices",
]

_STATUS_MAP = {
    ErrorCode.TEXT_REQUIRED: 400,
    ErrorCode.TEXT_TOO_LONG: 400,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.FILE_REQUIRED: 400,
    ErrorCode.FILE_TYPE_NOT_ALLOWED: 400,
    ErrorCode.FILE_TOO_LARGE: 400,
    ErrorCode.AUDIO_NOT_FOUND: 404,
    ErrorCode.VOICE_NOT_FOUND: 404,
    ErrorCode.PROCESSING_FAILED: 500,
}


def _new_request_id() -> str:
    rid = str(uuid.uuid4())[:12]
    set_request_id(rid)
    return rid


def _error_response(err: VoiceServiceError, rid: str) -> JSONResponse:
    """
    Create a JSON error response from a VoiceServiceError.

    Not-found errors also echo the missing id at the top level, e.g.
    ``{"ok": false, "error": "AUDIO_NOT_FOUND", ..., "audio_id": "audio_1"}``.
    """
    status_code = _STATUS_MAP.get(err.code, 500)
    content = err.to_dict()
    if isinstance(err, NotFoundError):
        content.update(err.details)
    if status_code >= 500:
        error(_LOG, "request_failed", code=err.code, error=err.message)
    else:
        info(_LOG, "request_rejected", code=err.code, status=status_code)
    return JSONResponse(status_code=status_code, content=content, headers={"X-Request-Id": rid})


def _internal_error(exc: Exception, rid: str) -> JSONResponse:
    # Log the details, never return them
    error(_LOG, "unhandled_error", error=f"{exc.__class__.__name__}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "ok": False,
            "error": ErrorCode.INTERNAL_ERROR,
            "message": "Internal server error",
            "request_id": rid,
        },
        headers={"X-Request-Id": rid},
    )


@router.get("/")
async def root():
    """Service metadata and endpoint listing."""
    return {
        "status": "success",
        "message": "Book-Voice TTS server is running",
        "version": __version__,
        "endpoints": {
            "/health": "Server status",
            "/metrics": "Prometheus metrics",
            "/tts/generate": "Generate audio from text",
            "/download/{audio_id}": "Download generated audio",
            "/info/{audio_id}": "Generated audio metadata",
            "/voice/upload": "Upload a custom voice sample",
            "/tts/clone-voice": "Upload a custom voice sample",
            "/voices": "List available voices",
            "/tts/voices": "List available voices",
        },
    }


@router.get("/health")
async def health(service: VoiceService = Depends(get_voice_service)):
    """
    Health check endpoint for load balancers and probes.

    Returns:
        dict: Health information from VoiceService.
    """
    return service.get_health_info()


@router.get("/metrics")
async def prometheus_metrics():
    """Prometheus metrics endpoint."""
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)


@router.post("/tts/generate", response_model=GenerateResponse)
async def generate(
    req: TTSGenerateRequest,
    service: VoiceService = Depends(get_voice_service),
):
    """
    Generate audio from text.

    Returns 200 even when every provider failed (the audio is then a
    placeholder and audio_info.used_fallback is true).

    Raises:
        400: Text missing, blank or too long
        404: Unknown voice_id

    Example:
        curl -X POST http://localhost:8000/tts/generate \\
            -H "Content-Type: application/json" \\
            -d '{"text": "Hola mundo", "voice_type": "female"}'
    """
    rid = _new_request_id()
    try:
        result = await service.generate(
            GenerateRequest(text=req.text, voice_type=req.voice_type, voice_id=req.voice_id),
            request_id=rid,
        )
        return JSONResponse(
            content=service.describe_generation(result),
            headers={"X-Request-Id": rid},
        )
    except VoiceServiceError as e:
        return _error_response(e, rid)
    except Exception as e:
        return _internal_error(e, rid)


@router.get("/download/{audio_id}")
async def download(audio_id: str, service: VoiceService = Depends(get_voice_service)):
    """
    Download generated audio.

    Returns:
        200: Audio bytes with Content-Disposition and engine headers
        202: Generation still running (background mode)
        404: Unknown or expired audio_id
    """
    rid = _new_request_id()
    try:
        record = service.get_audio(audio_id)
    except VoiceServiceError as e:
        return _error_response(e, rid)
    except Exception as e:
        return _internal_error(e, rid)

    audio = record.audio_bytes
    if audio is None:
        return JSONResponse(
            status_code=202,
            content={
                "audio_id": audio_id,
                "status": "pending",
                "message": "Audio is still being generated",
            },
            headers={"X-Request-Id": rid, "Retry-After": "1"},
        )

    headers = {
        "Content-Disposition": f'attachment; filename="{record.id}.{record.extension}"',
        "Cache-Control": "no-store",
        # header values must be latin-1; voice names are free text
        "X-Audio-Engine": quote(record.engine or "", safe=""),
        "X-Voice-Used": quote(record.voice_used or "", safe=""),
        "X-Used-Fallback": "true" if record.used_fallback else "false",
        "X-Request-Id": rid,
    }
    return Response(content=audio, media_type=record.content_type, headers=headers)


@router.get("/info/{audio_id}")
async def audio_info(audio_id: str, service: VoiceService = Depends(get_voice_service)):
    """Metadata snapshot of a stored record (no audio bytes)."""
    rid = _new_request_id()
    try:
        return service.get_info(audio_id)
    except VoiceServiceError as e:
        return _error_response(e, rid)


@router.post("/voice/upload")
@router.post("/tts/clone-voice")
async def upload_voice(
    voice_file: Optional[UploadFile] = File(None),
    name: Optional[str] = Form(None),
    service: VoiceService = Depends(get_voice_service),
):
    """
    Upload a voice sample and register it as a custom voice.

    Multipart fields:
        voice_file: wav/mp3/m4a/ogg/flac audio, at most 50MB
        name: Optional display name (defaults to the file name)

    Raises:
        400: Missing file, wrong type or too large
    """
    rid = _new_request_id()
    try:
        if voice_file is None:
            voice = await service.clone_voice(None, None, b"", name)
        else:
            limit = service.config.upload.max_bytes
            if voice_file.size is not None and voice_file.size > limit:
                # declared size already too big; reject without reading
                voice = await service.clone_voice(voice_file.filename, voice_file.content_type, b"", name,
                                                  size=voice_file.size)
            else:
                # one byte past the limit is enough to detect an oversize body
                data = await voice_file.read(limit + 1)
                voice = await service.clone_voice(voice_file.filename, voice_file.content_type, data, name)
    except VoiceServiceError as e:
        return _error_response(e, rid)
    except Exception as e:
        return _internal_error(e, rid)

    return JSONResponse(
        content={
            "success": True,
            "voice_id": voice.id,
            "voice_name": voice.display_name,
            "message": "Voice cloned successfully",
            "voice_info": voice.to_dict(),
        },
        headers={"X-Request-Id": rid},
    )


@router.get("/voices")
@router.get("/tts/voices")
async def list_voices(service: VoiceService = Depends(get_voice_service)):
    """Predefined voices followed by uploaded voices."""
    return {"success": True, "voices": service.list_voices()}


# =============================================================================
# Application-level exception handlers (registered in main.py)
# =============================================================================

async def not_found_handler(request: Request, exc: StarletteHTTPException):
    """Unmatched routes get the endpoint listing; other HTTP errors pass through."""
    if exc.status_code != 404:
        return await http_exception_handler(request, exc)

    warn(_LOG, "endpoint_not_found", method=request.method, path=request.url.path)
    return JSONResponse(
        status_code=404,
        content={
            "error": "Endpoint not found",
            "path": request.url.path,
            "available_endpoints": AVAILABLE_ENDPOINTS,
        },
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are a 400 with the VALIDATION_ERROR code."""
    return JSONResponse(
        status_code=400,
        content={
            "ok": False,
            "error": ErrorCode.VALIDATION_ERROR,
            "message": "Invalid request body",
            "details": {"errors": jsonable_encoder(exc.errors())},
        },
    )
