# mood_analyzer/core/config.py
import os
import tempfile

MAX_UPLOAD_MB = int(os.environ.get("MAX_UPLOAD_MB", "50"))
MAX_UPLOAD_BYTES = MAX_UPLOAD_MB * 1024 * 1024
# headers and boundaries around the file parts of a multipart body
FORM_OVERHEAD_BYTES = 64 * 1024

UPLOAD_TMP_DIR = os.environ.get("UPLOAD_TMP_DIR", tempfile.gettempdir())
ANALYZER_BACKEND = os.environ.get("ANALYZER_BACKEND", "mock")  # mock | package.module:ClassName

ALLOWED_EXTENSIONS = (".mp3", ".wav", ".m4a", ".aac", ".ogg", ".flac")

_DEFAULT_ORIGINS = "http://localhost:3000,http://localhost:8000,http://127.0.0.1:8000"
CORS_ORIGINS = [o.strip() for o in os.environ.get("CORS_ORIGINS", _DEFAULT_ORIGINS).split(",") if o.strip()]

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8000"))
