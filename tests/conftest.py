import pytest

from mood_analyzer.core import config
from mood_analyzer.core.audio_features import reset_feature_extractor
from mood_analyzer.main import app


@pytest.fixture(autouse=True)
def upload_tmp_dir(tmp_path_factory, monkeypatch):
    staging = tmp_path_factory.mktemp("staging")
    monkeypatch.setattr(config, "UPLOAD_TMP_DIR", str(staging))
    yield staging
    app.dependency_overrides.clear()
    reset_feature_extractor()
