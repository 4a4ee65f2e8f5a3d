"""
pipeline.py

DealUploadPipeline orchestrates the end-to-end flow for one uploaded deal
recording. It ties together helpers and services to: save the upload to
scratch storage, transcribe the original file with Whisper, convert it to
MP3, archive the MP3 and the transcript to Google Drive, and post a note with
the transcript and both Drive links to the amoCRM deal.

Stages run strictly one after another:

    Received -> Transcribing -> Transcoding -> ArchivingAudio
    -> ArchivingTranscript -> Notifying -> CleaningUp -> Done | Failed

With `CONCURRENT_PREPARE` enabled, Transcribing and Transcoding run as two
concurrent tasks (both read the same source file) and are joined before
archiving. Both are always awaited to completion before an error is raised.

The first failing stage aborts the run. Every scratch file is registered
before it is written and released on every exit path.
"""

from __future__ import annotations

import asyncio
import uuid
from enum import Enum
from typing import BinaryIO, Optional

from config.settings import Settings
from domain.models import ArchivedFile, CrmNote, FileRole, UploadJob, UploadResponse
from helpers.audio_utils import AudioUtils
from helpers.file_utils import ScratchFiles, safe_name
from logger import get_logger
from services.crm_client import AmoCrmClient
from services.drive_client import DriveClient
from services.transcription_client import TranscriptionClient

log = get_logger("Pipeline")

DEFAULT_MIME = "audio/webm"


class PipelineStage(str, Enum):
    RECEIVED = "Received"
    TRANSCRIBING = "Transcribing"
    TRANSCODING = "Transcoding"
    ARCHIVING_AUDIO = "ArchivingAudio"
    ARCHIVING_TRANSCRIPT = "ArchivingTranscript"
    NOTIFYING = "Notifying"
    CLEANING_UP = "CleaningUp"
    DONE = "Done"
    FAILED = "Failed"


class DealUploadPipeline:
    def __init__(self, settings: Settings, stt: TranscriptionClient, drive: DriveClient, crm: AmoCrmClient,
                 transcoder=AudioUtils):
        self.s = settings
        self.stt = stt
        self.drive = drive
        self.crm = crm
        self.transcoder = transcoder

    def _enter(self, job: UploadJob, stage: PipelineStage) -> None:
        log.info("[%s] %s", job.deal_id, stage.value)

    async def _transcribe(self, job: UploadJob) -> str:
        self._enter(job, PipelineStage.TRANSCRIBING)
        transcript = await self.stt.transcribe_file(job.local_audio_path, job.mime_type)
        log.info("[%s] Transcription done: %s...", job.deal_id, transcript[:80])
        return transcript

    async def _transcode(self, job: UploadJob, mp3_path: str) -> str:
        self._enter(job, PipelineStage.TRANSCODING)
        await asyncio.to_thread(
            self.transcoder.convert_to_mp3, job.local_audio_path, mp3_path, self.s.MP3_BITRATE_KBPS
        )
        duration = await asyncio.to_thread(self.transcoder.ffprobe_duration_seconds, mp3_path)
        log.info("[%s] MP3 ready: %.1fs", job.deal_id, duration)
        return mp3_path

    async def _prepare(self, job: UploadJob, mp3_path: str) -> str:
        if not self.s.CONCURRENT_PREPARE:
            transcript = await self._transcribe(job)
            await self._transcode(job, mp3_path)
            return transcript

        results = await asyncio.gather(
            self._transcribe(job), self._transcode(job, mp3_path), return_exceptions=True
        )
        for r in results:
            if isinstance(r, BaseException):
                raise r
        return results[0]

    async def run(self, job: UploadJob, scratch: ScratchFiles) -> UploadResponse:
        deal = safe_name(job.deal_id)
        stamp = job.stamp_ms

        mp3_path = scratch.path_for(f"{deal}_{stamp}_{uuid.uuid4().hex[:8]}.mp3")
        transcript = await self._prepare(job, mp3_path)

        self._enter(job, PipelineStage.ARCHIVING_AUDIO)
        audio_id = await self.drive.upload(
            mp3_path, f"deal_{deal}_audio_{stamp}.mp3", "audio/mpeg", self.s.GOOGLE_DRIVE_AUDIO_FOLDER_ID or None
        )
        audio = ArchivedFile(remote_id=audio_id, mime_type="audio/mpeg", role=FileRole.AUDIO)

        self._enter(job, PipelineStage.ARCHIVING_TRANSCRIPT)
        text_name = f"deal_{deal}_transcription_{stamp}.txt"
        text_path = await asyncio.to_thread(
            scratch.write_text, transcript, f"{deal}_{stamp}_{uuid.uuid4().hex[:8]}.txt"
        )
        text_id = await self.drive.upload(
            text_path, text_name, "text/plain", self.s.GOOGLE_DRIVE_TEXT_FOLDER_ID or None
        )
        text = ArchivedFile(remote_id=text_id, mime_type="text/plain", role=FileRole.TRANSCRIPT)

        self._enter(job, PipelineStage.NOTIFYING)
        note = CrmNote.compose(job.deal_id, transcript, audio, text)
        await self.crm.add_deal_note(note.deal_id, note.text)

        return UploadResponse(deal_id=job.deal_id, text_file_id=text.remote_id, audio_file_id=audio.remote_id)

    async def handle(self, deal_id: str, upload: BinaryIO, mime_type: Optional[str]) -> UploadResponse:
        mime_type = mime_type or DEFAULT_MIME
        log.info("[%s] Starting pipeline... mime=%s", deal_id, mime_type)

        try:
            try:
                with ScratchFiles(self.s.UPLOAD_DIR) as scratch:
                    job = UploadJob(deal_id=deal_id, local_audio_path="", mime_type=mime_type)
                    self._enter(job, PipelineStage.RECEIVED)
                    source_name = f"upload_{safe_name(deal_id)}_{job.stamp_ms}_{uuid.uuid4().hex[:8]}"
                    job.local_audio_path = await asyncio.to_thread(scratch.save_stream, upload, source_name)

                    result = await self.run(job, scratch)
            finally:
                log.info("[%s] %s: scratch files released", deal_id, PipelineStage.CLEANING_UP.value)
        except Exception as e:
            log.error("[%s] %s: %s", deal_id, PipelineStage.FAILED.value, e)
            raise

        log.info("[%s] %s: pipeline complete", deal_id, PipelineStage.DONE.value)
        return result
