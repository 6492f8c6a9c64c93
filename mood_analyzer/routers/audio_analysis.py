# mood_analyzer/routers/audio_analysis.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import FormData, UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException, MultiPartParser

from mood_analyzer.core import config
from mood_analyzer.core.audio_features import (
    AnalysisResult,
    FeatureExtractor,
    get_feature_extractor,
    to_analysis_result,
)
from mood_analyzer.core.uploads import is_audio_file, staged_upload

router = APIRouter(prefix="/api", tags=["audio"])
logger = logging.getLogger("mood_analyzer.analyze")

MISSING_FILE_MESSAGE = 'No audio file provided. Please upload an audio file under the key "audio".'
INVALID_TYPE_MESSAGE = "Invalid file type. Please upload an audio file (MP3, WAV, etc.)."
ANALYSIS_FAILED_MESSAGE = "Failed to analyze audio file. Please try again."
INTERNAL_ERROR_MESSAGE = "Internal server error. Please try again."


class FileInfo(BaseModel):
    originalName: Optional[str]
    size: int
    mimetype: Optional[str]


class AnalyzeResponse(BaseModel):
    success: bool
    message: str
    data: AnalysisResult
    fileInfo: FileInfo


class ErrorResponse(BaseModel):
    error: str


def too_large_message() -> str:
    return f"File too large. Maximum file size is {config.MAX_UPLOAD_MB}MB."


class UploadParseError(Exception):
    """The multipart body could not be accepted as-is."""


def _check_declared_length(request: Request) -> None:
    declared = request.headers.get("content-length")
    if declared and declared.isdigit():
        if int(declared) > config.MAX_UPLOAD_BYTES + config.FORM_OVERHEAD_BYTES:
            raise UploadParseError(f"maxFileSize exceeded: declared body of {declared} bytes")


def _check_file_parts(form: FormData) -> None:
    files = [v for _, v in form.multi_items() if isinstance(v, UploadFile)]
    logger.info(
        "parsed form: fields=%s files=%s",
        [k for k, v in form.multi_items() if not isinstance(v, UploadFile)],
        [(f.filename, f.size, f.content_type) for f in files],
    )
    for f in files:
        if not f.size:
            raise UploadParseError(f"empty file part {f.filename!r}: allowEmptyFiles is disabled")
    total = sum(f.size or 0 for f in files)
    if total > config.MAX_UPLOAD_BYTES:
        raise UploadParseError(f"maxFileSize exceeded: {total} bytes > {config.MAX_UPLOAD_BYTES}")


async def _limited_stream(request: Request):
    """Yield body chunks, aborting once more than the upload cap has arrived."""
    limit = config.MAX_UPLOAD_BYTES + config.FORM_OVERHEAD_BYTES
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > limit:
            raise MultiPartException(f"maxFileSize exceeded: more than {limit} bytes received")
        yield chunk


async def _read_form(request: Request) -> FormData:
    try:
        if request.headers.get("content-type", "").startswith("multipart/form-data"):
            return await MultiPartParser(request.headers, _limited_stream(request)).parse()
        return await request.form()
    except StarletteHTTPException as exc:
        # starlette reports multipart parse errors as HTTP 400
        raise UploadParseError(str(exc.detail)) from exc
    except MultiPartException as exc:
        raise UploadParseError(exc.message) from exc


def _parse_error_to_http(exc: Exception) -> HTTPException:
    logger.error("upload parsing error: %s", exc)
    if "maxFileSize" in str(exc):
        return HTTPException(status_code=413, detail=too_large_message())
    return HTTPException(status_code=500, detail=INTERNAL_ERROR_MESSAGE)


@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    responses={code: {"model": ErrorResponse} for code in (400, 405, 413, 500)},
)
async def analyze(request: Request, extractor: FeatureExtractor = Depends(get_feature_extractor)):
    """Analyze one uploaded audio file sent as multipart field "audio"."""
    form = None
    try:
        _check_declared_length(request)
        form = await _read_form(request)
        _check_file_parts(form)
    except UploadParseError as exc:
        if form is not None:
            await form.close()
        raise _parse_error_to_http(exc) from exc

    try:
        audio = form.get("audio")
        if not isinstance(audio, UploadFile):
            logger.warning("rejecting request without an audio file part")
            raise HTTPException(status_code=400, detail=MISSING_FILE_MESSAGE)

        logger.info(
            "audio file details: mimetype=%s originalName=%s size=%s",
            audio.content_type, audio.filename, audio.size,
        )
        if not is_audio_file(audio.content_type, audio.filename):
            logger.warning("rejecting %r with type %r", audio.filename, audio.content_type)
            raise HTTPException(status_code=400, detail=INVALID_TYPE_MESSAGE)

        try:
            with staged_upload(audio) as path:
                raw = await run_in_threadpool(extractor.extract, path)
            result = to_analysis_result(raw)
        except Exception as exc:
            logger.exception("error during audio analysis of %s", audio.filename)
            raise HTTPException(status_code=500, detail=ANALYSIS_FAILED_MESSAGE) from exc

        return AnalyzeResponse(
            success=True,
            message="Audio analysis completed successfully",
            data=result,
            fileInfo=FileInfo(originalName=audio.filename, size=audio.size or 0, mimetype=audio.content_type),
        )
    finally:
        try:
            await form.close()
        except Exception:
            logger.warning("failed to release parsed upload files", exc_info=True)
