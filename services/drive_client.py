"""
drive_client.py

`DriveClient` archives local files to Google Drive (API v3).

Authentication is chosen once, at construction, from the `DriveAuth` variant:

- `ServiceAccountAuth`: service-account key JSON (the whole key file as a
  string, as most hosting platforms store secrets).
- `RefreshTokenAuth`: OAuth client id/secret plus a long-lived refresh token
  (see `/auth-google`), exchanged for an access token.

Credentials are minted on every upload and never cached between calls. The
Google client library is blocking, so `upload` runs it in a worker thread.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, Optional

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from domain.errors import ArchiveError
from domain.models import DRIVE_VIEW_URL, DriveAuth, ServiceAccountAuth
from logger import get_logger

log = get_logger("Drive Client")

DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive.file"]
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


class DriveClient:
    def __init__(self, auth: DriveAuth, timeout_sec: float = 120.0) -> None:
        self.auth = auth
        self.timeout_sec = timeout_sec

    @staticmethod
    def view_url(file_id: str) -> str:
        return DRIVE_VIEW_URL.format(file_id=file_id)

    def _credentials(self):
        if isinstance(self.auth, ServiceAccountAuth):
            try:
                info = json.loads(self.auth.credentials_json)
                return service_account.Credentials.from_service_account_info(info, scopes=DRIVE_SCOPES)
            except (ValueError, KeyError) as e:
                raise ArchiveError(f"Invalid service account JSON: {e}") from e

        creds = Credentials(
            token=None,
            refresh_token=self.auth.refresh_token,
            client_id=self.auth.client_id,
            client_secret=self.auth.client_secret,
            token_uri=GOOGLE_TOKEN_URI,
            scopes=DRIVE_SCOPES,
        )
        creds.refresh(Request())
        return creds

    def _service(self):
        http = AuthorizedHttp(self._credentials(), http=httplib2.Http(timeout=self.timeout_sec))
        return build("drive", "v3", http=http, cache_discovery=False)

    def upload_sync(self, path: str, name: str, mime_type: str, folder_id: Optional[str] = None) -> str:
        body: Dict[str, Any] = {"name": name}
        if folder_id:
            body["parents"] = [folder_id]

        try:
            fh = open(path, "rb")
        except OSError as e:
            raise ArchiveError(f"Cannot read {name} for upload: {e.strerror or e}") from e

        with fh:
            try:
                drive = self._service()
                media = MediaIoBaseUpload(fh, mimetype=mime_type, resumable=False)
                created = drive.files().create(
                    body=body,
                    media_body=media,
                    supportsAllDrives=True,
                    fields="id",
                ).execute()
            except HttpError as e:
                log.error("Drive upload rejected | name=%s | status=%s | body=%s", name, e.resp.status, e.content[:500])
                raise ArchiveError(f"Google Drive error: {e}") from e
            except GoogleAuthError as e:
                log.error("Drive auth failed | name=%s | error=%r", name, e)
                raise ArchiveError(f"Google Drive auth error: {e}") from e
            except (OSError, httplib2.HttpLib2Error) as e:
                log.error("Drive request failed | name=%s | error=%r", name, e)
                raise ArchiveError(f"Google Drive error: {e}") from e

        file_id = created.get("id")
        if not file_id:
            raise ArchiveError(f"Google Drive returned no file id for {name}")
        log.info("Uploaded to Drive | name=%s | id=%s", name, file_id)
        return file_id

    async def upload(self, path: str, name: str, mime_type: str, folder_id: Optional[str] = None) -> str:
        return await asyncio.to_thread(self.upload_sync, path, name, mime_type, folder_id)
