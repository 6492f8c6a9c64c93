# mood_analyzer/core/audio_features.py
import importlib
import logging
from typing import Any, Dict, Literal, Optional, Protocol, Union

import numpy as np
from pydantic import BaseModel, Field

from mood_analyzer.core import config

logger = logging.getLogger("mood_analyzer.features")


class AnalysisResult(BaseModel):
    mood_happy: float = Field(..., ge=0.0, le=1.0)
    mood_sad: float = Field(..., ge=0.0, le=1.0)
    mood_relaxed: float = Field(..., ge=0.0, le=1.0)
    mood_aggressive: float = Field(..., ge=0.0, le=1.0)
    danceability: float = Field(..., ge=0.0, le=1.0)
    bpm: int = Field(..., gt=0)
    key: str
    scale: Literal["major", "minor"]


class FeatureExtractor(Protocol):
    """Maps a staged audio file to an AnalysisResult."""

    def extract(self, path: str) -> Union[AnalysisResult, Dict[str, Any]]:
        ...


def _safe_number(x):
    """Return a JSON-safe number: float or int, or None if NaN/Inf."""
    if isinstance(x, (bool, np.bool_)):
        return x
    if isinstance(x, (int, np.integer)):
        return int(x)
    if isinstance(x, (float, np.floating)):
        v = float(x)
        return v if np.isfinite(v) else None
    return x


def to_analysis_result(raw: Union[AnalysisResult, Dict[str, Any]]) -> AnalysisResult:
    """Validate whatever an extractor returned; raises pydantic.ValidationError on bad output."""
    if isinstance(raw, AnalysisResult):
        return raw
    return AnalysisResult(**{k: _safe_number(v) for k, v in dict(raw).items()})


class MockFeatureExtractor:
    """Placeholder analyzer: random scores, no audio is decoded.

    Stands in until a real analyzer is configured through ANALYZER_BACKEND.
    """

    def __init__(self, seed: Optional[int] = None, key: str = "C", scale: str = "major"):
        self.rng = np.random.default_rng(seed)
        self.key = key
        self.scale = scale

    def extract(self, path: str) -> AnalysisResult:
        moods = self.rng.random(5)
        return AnalysisResult(
            mood_happy=float(moods[0]),
            mood_sad=float(moods[1]),
            mood_relaxed=float(moods[2]),
            mood_aggressive=float(moods[3]),
            danceability=float(moods[4]),
            bpm=int(self.rng.integers(60, 240)),
            key=self.key,
            scale=self.scale,
        )


def load_feature_extractor(backend: str) -> FeatureExtractor:
    backend = (backend or "mock").strip()
    if backend.lower() == "mock":
        return MockFeatureExtractor()
    module_name, sep, attr = backend.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"ANALYZER_BACKEND must be 'mock' or 'package.module:ClassName', got {backend!r}")
    cls = getattr(importlib.import_module(module_name), attr)
    return cls()


# analyzer instance is built once and reused across requests
_extractor_instance: Optional[FeatureExtractor] = None


def get_feature_extractor() -> FeatureExtractor:
    global _extractor_instance

    if _extractor_instance is None:
        _extractor_instance = load_feature_extractor(config.ANALYZER_BACKEND)
        logger.info("feature extractor ready: %s", type(_extractor_instance).__name__)
    return _extractor_instance


def reset_feature_extractor() -> None:
    global _extractor_instance
    _extractor_instance = None
