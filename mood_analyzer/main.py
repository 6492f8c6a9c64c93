# mood_analyzer/main.py
import os
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mood_analyzer.core import config
from mood_analyzer.routers.audio_analysis import router as audio_router

STATIC_DIR = os.path.join(os.path.dirname(__file__), "static")
METHOD_NOT_ALLOWED_MESSAGE = "Method not allowed. Only POST requests are supported."

logging.getLogger("mood_analyzer").setLevel(config.LOG_LEVEL)
logger = logging.getLogger("mood_analyzer.app")

app = FastAPI(title="Audio Mood Analysis Service")
app.include_router(audio_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    if exc.status_code == 405 and request.url.path.startswith("/api/"):
        detail = METHOD_NOT_ALLOWED_MESSAGE
    return JSONResponse(status_code=exc.status_code, content={"error": str(detail)}, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("unhandled error on %s %s: %r", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error. Please try again."})


@app.get("/", include_in_schema=False)
def index():
    return FileResponse(os.path.join(STATIC_DIR, "index.html"), media_type="text/html")


def run():
    import uvicorn

    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run("mood_analyzer.main:app", host=config.HOST, port=config.PORT)
