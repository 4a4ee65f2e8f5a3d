import os
import tempfile

# logger.py creates its log directory at import time.
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="deal_recorder_logs_"))

import pytest

from config.settings import Settings


class FakeTranscriber:
    def __init__(self, text="привет, это тестовая встреча", error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def transcribe_file(self, path, mime_type):
        self.calls.append((path, mime_type, os.path.exists(path)))
        if self.error:
            raise self.error
        return self.text


class FakeTranscoder:
    def __init__(self, error=None):
        self.error = error
        self.calls = []
        self.durations_read = []

    def convert_to_mp3(self, in_path, out_path, bitrate_kbps=128):
        self.calls.append((in_path, out_path, bitrate_kbps))
        with open(out_path, "wb") as fh:
            fh.write(b"ID3 partial")
        if self.error:
            raise self.error
        return out_path

    def ffprobe_duration_seconds(self, path):
        self.durations_read.append(path)
        return 1.5


class FakeDrive:
    def __init__(self, ids=("audio-file-id", "text-file-id"), fail_on=None, error=None):
        self.ids = list(ids)
        self.fail_on = fail_on
        self.error = error
        self.calls = []

    async def upload(self, path, name, mime_type, folder_id=None):
        with open(path, "rb") as fh:
            content = fh.read()
        self.calls.append({"path": path, "name": name, "mime_type": mime_type,
                           "folder_id": folder_id, "content": content})
        if self.fail_on is not None and len(self.calls) == self.fail_on:
            raise self.error
        return self.ids[len(self.calls) - 1]


class FakeCrm:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def add_deal_note(self, deal_id, text):
        self.calls.append((deal_id, text))
        if self.error:
            raise self.error
        return {}


@pytest.fixture
def upload_dir(tmp_path):
    d = tmp_path / "uploads"
    d.mkdir()
    return d


@pytest.fixture
def settings(upload_dir):
    return Settings(
        OPENAI_API_KEY="sk-test",
        GOOGLE_AUTH_MODE="refresh_token",
        GOOGLE_SERVICE_ACCOUNT_JSON="",
        GOOGLE_CLIENT_ID="client-id",
        GOOGLE_CLIENT_SECRET="client-secret",
        GOOGLE_REFRESH_TOKEN="refresh-token",
        GOOGLE_REDIRECT_URI="http://localhost:3000/auth-google/callback",
        GOOGLE_DRIVE_AUDIO_FOLDER_ID="audio-folder",
        GOOGLE_DRIVE_TEXT_FOLDER_ID="text-folder",
        AMOCRM_DOMAIN="example.amocrm.ru",
        AMOCRM_ACCESS_TOKEN="amo-token",
        UPLOAD_DIR=str(upload_dir),
        CONCURRENT_PREPARE=False,
    )
