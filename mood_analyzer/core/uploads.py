# mood_analyzer/core/uploads.py
import os
import time
import uuid
import shutil
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from starlette.datastructures import UploadFile

from mood_analyzer.core import config

logger = logging.getLogger("mood_analyzer.uploads")


def is_audio_file(mimetype: Optional[str], filename: Optional[str]) -> bool:
    """An upload is audio if its declared type says so or its name ends in a known extension."""
    if mimetype and "audio" in mimetype:
        return True
    return bool(filename) and filename.lower().endswith(config.ALLOWED_EXTENSIONS)


def _safe_basename(filename: Optional[str]) -> str:
    # drop any directory part a client put in the filename
    name = os.path.basename((filename or "").replace("\\", "/"))
    return name or "upload"


def staged_path_for(filename: Optional[str], tmp_dir: Optional[str] = None) -> str:
    tmp_dir = tmp_dir or config.UPLOAD_TMP_DIR
    stamp = int(time.time() * 1000)
    return os.path.join(tmp_dir, f"audio_{stamp}_{uuid.uuid4().hex[:8]}_{_safe_basename(filename)}")


def cleanup_temp_file(path: Optional[str]) -> None:
    if not path:
        return
    try:
        if os.path.exists(path):
            os.unlink(path)
    except OSError:
        logger.warning("failed to clean up temp file %s", path, exc_info=True)


@contextmanager
def staged_upload(upload: UploadFile, tmp_dir: Optional[str] = None) -> Iterator[str]:
    """Copy the upload's bytes to a temp path of our own and yield that path.

    The copy is removed when the block exits, whatever the outcome.
    """
    path = staged_path_for(upload.filename, tmp_dir)
    try:
        upload.file.seek(0)
        with open(path, "wb") as out:
            shutil.copyfileobj(upload.file, out)
        logger.debug("staged %s at %s", upload.filename, path)
        yield path
    finally:
        cleanup_temp_file(path)
