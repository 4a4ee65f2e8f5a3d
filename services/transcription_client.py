"""
transcription_client.py
-----------------------

This module defines the `TranscriptionClient` class, which sends a recording
to the OpenAI Whisper transcription endpoint using asynchronous I/O.

Key Responsibilities:
1. Upload the original audio file as multipart form data under a synthetic
   filename (`audio.<container>`). Whisper picks the decoder from the
   filename extension, not from the part's content type, so the extension
   has to match the real container.
2. Pass the fixed model and language hint.
3. Return the `text` field verbatim.
4. Turn any non-2xx answer or transport failure into a `TranscriptionError`
   that carries the upstream body. There are no retries.
"""

from __future__ import annotations

from typing import Optional

import httpx

from domain.errors import TranscriptionError
from helpers.format_utils import FormatUtils
from logger import get_logger

log = get_logger("Transcription Client")


class TranscriptionClient:
    """
    Only handles STT HTTP I/O.
    """

    def __init__(self, api_url: str, api_key: str, model: str = "whisper-1", language: str = "ru",
                 timeout_sec: float = 120.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = api_url
        self.api_key = api_key
        self.model = model
        self.language = language
        self.timeout_sec = timeout_sec
        self._transport = transport

    async def transcribe_file(self, path: str, mime_type: str) -> str:
        base_mime = FormatUtils.base_mime(mime_type) or "audio/webm"
        filename = FormatUtils.transcription_filename(mime_type)
        log.info("whisper filename=%s contentType=%s (original: %s)", filename, base_mime, mime_type)

        data = {"model": self.model, "language": self.language}
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout_sec, transport=self._transport) as client:
                with open(path, "rb") as fh:
                    files = {"file": (filename, fh, base_mime)}
                    resp = await client.post(self.url, data=data, files=files, headers=headers)
        except httpx.HTTPError as e:
            log.error("Whisper request failed: %r", e)
            raise TranscriptionError(f"Whisper error: {e}") from e

        if not resp.is_success:
            log.error("Whisper API error %s: %s", resp.status_code, resp.text[:500])
            raise TranscriptionError(f"Whisper error: {resp.text}")

        try:
            return resp.json()["text"]
        except (ValueError, KeyError, TypeError) as e:
            raise TranscriptionError(f"Whisper error: unexpected response {resp.text[:500]}") from e
