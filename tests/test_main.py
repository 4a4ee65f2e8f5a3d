import os

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import FakeCrm, FakeDrive, FakeTranscoder, FakeTranscriber
from domain.errors import ArchiveError, CrmError, TranscodeError, TranscriptionError
from main import create_app
from services.google_oauth import GoogleOAuthHelper
from services.pipeline import DealUploadPipeline

AUDIO = ("meeting.webm", b"\x1aE\xdf\xa3 fake webm", "audio/webm;codecs=opus")


class Harness:
    def __init__(self, settings, stt=None, transcoder=None, drive=None, crm=None, token_handler=None):
        self.stt = stt or FakeTranscriber()
        self.transcoder = transcoder or FakeTranscoder()
        self.drive = drive or FakeDrive()
        self.crm = crm or FakeCrm()
        pipeline = DealUploadPipeline(settings, self.stt, self.drive, self.crm, transcoder=self.transcoder)
        oauth = GoogleOAuthHelper(
            "cid", "secret", "http://localhost:3000/auth-google/callback",
            transport=httpx.MockTransport(token_handler or (lambda r: httpx.Response(500))),
        )
        self.client = TestClient(create_app(settings, pipeline=pipeline, oauth=oauth))

    def upstream_calls(self):
        return len(self.stt.calls) + len(self.transcoder.calls) + len(self.drive.calls) + len(self.crm.calls)


def test_health(settings):
    rv = Harness(settings).client.get("/health")
    assert rv.status_code == 200
    assert rv.json() == {"status": "ok"}


def test_index_page(settings):
    rv = Harness(settings).client.get("/")
    assert rv.status_code == 200
    assert "text/html" in rv.headers["content-type"]
    assert "/upload" in rv.text


@pytest.mark.parametrize("kwargs", [
    {"files": {"audio": AUDIO}},
    {"data": {"dealId": "42"}},
    {"data": {"dealId": ""}, "files": {"audio": AUDIO}},
])
def test_missing_input_is_rejected_without_upstream_calls(settings, upload_dir, kwargs):
    h = Harness(settings)
    rv = h.client.post("/upload", **kwargs)

    assert rv.status_code == 400
    assert rv.json() == {"error": "dealId and audio are required"}
    assert h.upstream_calls() == 0
    assert os.listdir(upload_dir) == []


def test_upload_success(settings, upload_dir):
    h = Harness(settings)
    rv = h.client.post("/upload", data={"dealId": "42"}, files={"audio": AUDIO})

    assert rv.status_code == 200
    assert rv.json() == {
        "success": True,
        "dealId": "42",
        "textFileId": "text-file-id",
        "audioFileId": "audio-file-id",
    }

    src_path, mime, existed = h.stt.calls[0]
    assert mime == "audio/webm;codecs=opus"
    assert existed
    assert h.transcoder.calls[0][0] == src_path
    assert h.transcoder.calls[0][2] == 128

    audio_up, text_up = h.drive.calls
    assert audio_up["mime_type"] == "audio/mpeg"
    assert audio_up["folder_id"] == "audio-folder"
    assert audio_up["name"].startswith("deal_42_audio_") and audio_up["name"].endswith(".mp3")
    assert text_up["mime_type"] == "text/plain"
    assert text_up["folder_id"] == "text-folder"
    assert text_up["name"].startswith("deal_42_transcription_") and text_up["name"].endswith(".txt")
    assert text_up["content"].decode("utf-8") == h.stt.text

    assert len(h.crm.calls) == 1
    deal_id, note = h.crm.calls[0]
    assert deal_id == "42"
    assert h.stt.text in note
    assert "https://drive.google.com/file/d/audio-file-id/view" in note
    assert "https://drive.google.com/file/d/text-file-id/view" in note

    assert os.listdir(upload_dir) == []


def test_archive_failure_stops_pipeline(settings, upload_dir):
    drive = FakeDrive(fail_on=1, error=ArchiveError("Google Drive error: storage quota exceeded"))
    h = Harness(settings, drive=drive)
    rv = h.client.post("/upload", data={"dealId": "42"}, files={"audio": AUDIO})

    assert rv.status_code == 500
    assert rv.json() == {"error": "Google Drive error: storage quota exceeded"}
    assert len(h.drive.calls) == 1
    assert h.crm.calls == []
    assert os.listdir(upload_dir) == []


def test_transcript_archive_failure_cleans_text_file(settings, upload_dir):
    drive = FakeDrive(fail_on=2, error=ArchiveError("Google Drive error: forbidden"))
    h = Harness(settings, drive=drive)
    rv = h.client.post("/upload", data={"dealId": "42"}, files={"audio": AUDIO})

    assert rv.status_code == 500
    assert rv.json()["error"] == "Google Drive error: forbidden"
    assert h.crm.calls == []
    assert os.listdir(upload_dir) == []


def test_transcription_failure_skips_everything_else(settings, upload_dir):
    stt = FakeTranscriber(error=TranscriptionError('Whisper error: {"error": "bad file"}'))
    h = Harness(settings, stt=stt)
    rv = h.client.post("/upload", data={"dealId": "7"}, files={"audio": AUDIO})

    assert rv.status_code == 500
    assert rv.json() == {"error": 'Whisper error: {"error": "bad file"}'}
    assert h.transcoder.calls == []
    assert h.drive.calls == []
    assert h.crm.calls == []
    assert os.listdir(upload_dir) == []


def test_transcode_failure_removes_partial_output(settings, upload_dir):
    h = Harness(settings, transcoder=FakeTranscoder(error=TranscodeError("ffmpeg failed: Invalid data")))
    rv = h.client.post("/upload", data={"dealId": "7"}, files={"audio": AUDIO})

    assert rv.status_code == 500
    assert rv.json() == {"error": "ffmpeg failed: Invalid data"}
    assert h.drive.calls == []
    assert os.listdir(upload_dir) == []


def test_crm_failure(settings, upload_dir):
    h = Harness(settings, crm=FakeCrm(error=CrmError("amoCRM error 401: Unauthorized")))
    rv = h.client.post("/upload", data={"dealId": "7"}, files={"audio": AUDIO})

    assert rv.status_code == 500
    assert rv.json() == {"error": "amoCRM error 401: Unauthorized"}
    assert len(h.drive.calls) == 2
    assert os.listdir(upload_dir) == []


def test_unexpected_error_message_is_returned(settings, upload_dir):
    h = Harness(settings, crm=FakeCrm(error=RuntimeError("socket closed")))
    rv = h.client.post("/upload", data={"dealId": "7"}, files={"audio": AUDIO})

    assert rv.status_code == 500
    assert rv.json() == {"error": "socket closed"}
    assert os.listdir(upload_dir) == []


def test_auth_google_redirects_to_consent(settings):
    rv = Harness(settings).client.get("/auth-google", follow_redirects=False)

    assert rv.status_code == 302
    location = rv.headers["location"]
    assert location.startswith("https://accounts.google.com/o/oauth2/v2/auth?")
    assert "access_type=offline" in location
    assert "prompt=consent" in location
    assert "drive.file" in location


def test_auth_callback_requires_code(settings):
    rv = Harness(settings).client.get("/auth-google/callback")
    assert rv.status_code == 400
    assert rv.text == "Missing code"


def test_auth_callback_shows_refresh_token(settings):
    def token_handler(request):
        assert b"code=abc" in request.content
        return httpx.Response(200, json={"refresh_token": "1//new-refresh", "access_token": "ya29.x"})

    rv = Harness(settings, token_handler=token_handler).client.get("/auth-google/callback?code=abc")

    assert rv.status_code == 200
    assert "1//new-refresh" in rv.text
    assert "ya29.x" in rv.text


def test_auth_callback_non_json_token_response(settings):
    def token_handler(request):
        return httpx.Response(200, text="<html>captive portal</html>")

    rv = Harness(settings, token_handler=token_handler).client.get("/auth-google/callback?code=abc")

    assert rv.status_code == 500
    assert "Token exchange failed" in rv.text
    assert "captive portal" in rv.text
