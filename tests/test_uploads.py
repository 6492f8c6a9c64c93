import io
import os

import pytest
from starlette.datastructures import UploadFile

from mood_analyzer.core import uploads
from mood_analyzer.core.uploads import cleanup_temp_file, is_audio_file, staged_path_for, staged_upload


@pytest.mark.parametrize(
    "mimetype,filename,expected",
    [
        ("audio/mpeg", "song.mp3", True),
        ("audio/wav", None, True),
        ("application/octet-stream", "take.M4A", True),
        (None, "loop.ogg", True),
        ("", "a.aac", True),
        ("text/plain", "notes.txt", False),
        ("video/mp4", "clip.mp4", False),
        (None, None, False),
        ("text/plain", "mp3", False),
    ],
)
def test_is_audio_file(mimetype, filename, expected):
    assert is_audio_file(mimetype, filename) is expected


def test_staged_path_strips_directories(tmp_path):
    path = staged_path_for("../../etc/evil.mp3", str(tmp_path))
    assert os.path.dirname(path) == str(tmp_path)
    assert os.path.basename(path).endswith("_evil.mp3")

    windows = staged_path_for("C:\\Users\\me\\song.wav", str(tmp_path))
    assert os.path.basename(windows).endswith("_song.wav")


def test_staged_paths_are_unique_for_identical_names(tmp_path):
    paths = {staged_path_for("same.mp3", str(tmp_path)) for _ in range(50)}
    assert len(paths) == 50


def test_staged_upload_copies_bytes_and_removes_on_exit(tmp_path):
    upload = UploadFile(io.BytesIO(b"audio-bytes"), filename="a.mp3")
    with staged_upload(upload, str(tmp_path)) as path:
        with open(path, "rb") as f:
            assert f.read() == b"audio-bytes"
    assert not os.path.exists(path)
    assert list(tmp_path.iterdir()) == []


def test_staged_upload_removes_on_error(tmp_path):
    upload = UploadFile(io.BytesIO(b"x"), filename="a.mp3")
    with pytest.raises(RuntimeError):
        with staged_upload(upload, str(tmp_path)) as path:
            raise RuntimeError("boom")
    assert not os.path.exists(path)


def test_cleanup_swallows_errors(tmp_path, monkeypatch):
    target = tmp_path / "stuck.mp3"
    target.write_bytes(b"x")

    def refuse(path):
        raise PermissionError("busy")

    monkeypatch.setattr(uploads.os, "unlink", refuse)
    cleanup_temp_file(str(target))
    assert target.exists()


def test_cleanup_ignores_missing_paths(tmp_path):
    cleanup_temp_file(str(tmp_path / "never-created"))
    cleanup_temp_file(None)
