"""
settings.py
This module defines a `Settings` dataclass that centralizes configuration
for the transcription, Google Drive and amoCRM integrations. Values are read
from the environment (and a local `.env` file, if present).

Missing secrets are not enforced here: `missing()` lists them so startup can
warn, and the first call that needs one fails instead.
"""

import os
from dataclasses import dataclass
from typing import List

from dotenv import load_dotenv

from domain.models import DriveAuth, RefreshTokenAuth, ServiceAccountAuth

load_dotenv()

AUTH_MODE_SERVICE_ACCOUNT = "service_account"
AUTH_MODE_REFRESH_TOKEN = "refresh_token"
AUTH_MODES = (AUTH_MODE_SERVICE_ACCOUNT, AUTH_MODE_REFRESH_TOKEN)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    # Speech-to-text (OpenAI Whisper)
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    TRANSCRIBE_URL: str = os.getenv("TRANSCRIBE_URL", "https://api.openai.com/v1/audio/transcriptions")
    WHISPER_MODEL: str = os.getenv("WHISPER_MODEL", "whisper-1")
    TRANSCRIBE_LANGUAGE: str = os.getenv("TRANSCRIBE_LANGUAGE", "ru")

    # Timeouts
    HTTP_TIMEOUT_SEC: float = float(os.getenv("HTTP_TIMEOUT_SEC", "120"))

    # Google Drive
    GOOGLE_AUTH_MODE: str = os.getenv("GOOGLE_AUTH_MODE", "")
    GOOGLE_SERVICE_ACCOUNT_JSON: str = os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON", "")
    GOOGLE_CLIENT_ID: str = os.getenv("GOOGLE_CLIENT_ID", "")
    GOOGLE_CLIENT_SECRET: str = os.getenv("GOOGLE_CLIENT_SECRET", "")
    GOOGLE_REFRESH_TOKEN: str = os.getenv("GOOGLE_REFRESH_TOKEN", "")
    GOOGLE_REDIRECT_URI: str = os.getenv("GOOGLE_REDIRECT_URI", "")
    GOOGLE_DRIVE_AUDIO_FOLDER_ID: str = os.getenv("GOOGLE_DRIVE_AUDIO_FOLDER_ID", "")
    GOOGLE_DRIVE_TEXT_FOLDER_ID: str = os.getenv("GOOGLE_DRIVE_TEXT_FOLDER_ID", "")

    # amoCRM
    AMOCRM_DOMAIN: str = os.getenv("AMOCRM_DOMAIN", "")
    AMOCRM_ACCESS_TOKEN: str = os.getenv("AMOCRM_ACCESS_TOKEN", "")

    # Local processing
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "/tmp/uploads")
    MP3_BITRATE_KBPS: int = int(os.getenv("MP3_BITRATE_KBPS", "128"))
    CONCURRENT_PREPARE: bool = _env_bool("CONCURRENT_PREPARE")

    # Server
    PORT: int = int(os.getenv("PORT", "3000"))

    @property
    def auth_mode(self) -> str:
        """
        Explicit GOOGLE_AUTH_MODE wins; otherwise a service-account key
        selects service-account mode. Unknown values fall back to detection.
        """
        mode = self.GOOGLE_AUTH_MODE.strip().lower()
        if mode in AUTH_MODES:
            return mode
        if self.GOOGLE_SERVICE_ACCOUNT_JSON:
            return AUTH_MODE_SERVICE_ACCOUNT
        return AUTH_MODE_REFRESH_TOKEN

    def drive_auth(self) -> DriveAuth:
        if self.auth_mode == AUTH_MODE_SERVICE_ACCOUNT:
            return ServiceAccountAuth(credentials_json=self.GOOGLE_SERVICE_ACCOUNT_JSON)
        return RefreshTokenAuth(
            client_id=self.GOOGLE_CLIENT_ID,
            client_secret=self.GOOGLE_CLIENT_SECRET,
            refresh_token=self.GOOGLE_REFRESH_TOKEN,
        )

    def missing(self) -> List[str]:
        """
        Names of required settings that have no value, for the selected
        Google auth mode.
        """
        required = ["OPENAI_API_KEY"]
        if self.auth_mode == AUTH_MODE_SERVICE_ACCOUNT:
            required.append("GOOGLE_SERVICE_ACCOUNT_JSON")
        else:
            required += ["GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "GOOGLE_REFRESH_TOKEN"]
        required += [
            "GOOGLE_DRIVE_AUDIO_FOLDER_ID",
            "GOOGLE_DRIVE_TEXT_FOLDER_ID",
            "AMOCRM_DOMAIN",
            "AMOCRM_ACCESS_TOKEN",
        ]
        return [name for name in required if not getattr(self, name)]
