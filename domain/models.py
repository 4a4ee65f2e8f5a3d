"""
models.py

This module defines the Pydantic models used by the deal recorder service.
All of them are request scoped; nothing is persisted.

- ""UploadJob"": one uploaded recording tied to an amoCRM deal, alive only
  for the duration of the `/upload` request.
- ""ArchivedFile"": a file stored on Google Drive, with the view URL derived
  from its id.
- ""CrmNote"": the text note posted into the deal timeline.
- ""UploadResponse"" / ""ErrorResponse"": JSON bodies returned by `/upload`.
- ""ServiceAccountAuth"" / ""RefreshTokenAuth"": the two mutually exclusive
  ways of authenticating against Google Drive (``DriveAuth``).
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field

DRIVE_VIEW_URL = "https://drive.google.com/file/d/{file_id}/view"

NOTE_TEMPLATE = (
    "📝 Транскрипция встречи:\n\n"
    "{transcript}\n\n"
    "🎵 Аудио: {audio_url}\n"
    "📄 Текст: {text_url}"
)


class FileRole(str, Enum):
    AUDIO = "audio"
    TRANSCRIPT = "transcript"


class UploadJob(BaseModel):
    deal_id: str
    local_audio_path: str
    mime_type: str = "audio/webm"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def stamp_ms(self) -> int:
        return int(self.created_at.timestamp() * 1000)


class ArchivedFile(BaseModel):
    remote_id: str
    mime_type: str
    role: FileRole

    @property
    def public_url(self) -> str:
        return DRIVE_VIEW_URL.format(file_id=self.remote_id)


class CrmNote(BaseModel):
    deal_id: str
    text: str

    @classmethod
    def compose(cls, deal_id: str, transcript: str, audio: ArchivedFile, text: ArchivedFile) -> "CrmNote":
        body = NOTE_TEMPLATE.format(
            transcript=transcript,
            audio_url=audio.public_url,
            text_url=text.public_url,
        )
        return cls(deal_id=deal_id, text=body)


class UploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    deal_id: str = Field(alias="dealId")
    text_file_id: str = Field(alias="textFileId")
    audio_file_id: str = Field(alias="audioFileId")


class ErrorResponse(BaseModel):
    error: str


class ServiceAccountAuth(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["service_account"] = "service_account"
    credentials_json: str


class RefreshTokenAuth(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["refresh_token"] = "refresh_token"
    client_id: str
    client_secret: str
    refresh_token: str


DriveAuth = Union[ServiceAccountAuth, RefreshTokenAuth]
