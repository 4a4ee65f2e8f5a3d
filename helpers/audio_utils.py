"""
audio_utils.py

This module provides utility functions for working with audio files
using `ffmpeg` and `ffprobe`. Recordings arrive in whatever container the
capture device produced (webm/opus, m4a, ogg, wav...); before archiving they
are normalized to a fixed-bitrate MP3 that plays everywhere.

Methods:
1. _run:
  Internal helper to run subprocess commands and capture output.

2. ffprobe_duration_seconds:
  Uses `ffprobe` to return the media duration in seconds. Returns `0.0`
  if ffprobe fails.

3. convert_to_mp3:
  Encodes any input audio file to MP3 at the given bitrate (128 kbps by
  default). Raises `TranscodeError` on any failure; a partial output file
  may be left behind and must be removed by the caller.
"""

from __future__ import annotations

import os
import subprocess
from typing import List

from domain.errors import TranscodeError
from logger import get_logger

log = get_logger("Audio Utils")


class AudioUtils:
    @staticmethod
    def _run(cmd: List[str]) -> str:
        """
        Run a subprocess and return stdout as text.
        Raises CalledProcessError on failure (so the caller sees real errors).
        """
        out = subprocess.check_output(cmd, stderr=subprocess.STDOUT)
        return out.decode("utf-8", errors="ignore").strip()

    @staticmethod
    def ffprobe_duration_seconds(path: str) -> float:
        """
        Returns media duration (seconds) using ffprobe, or 0.0 on error.
        """
        cmd = [
            "ffprobe", "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=nw=1:nk=1", path,
        ]
        try:
            return float(AudioUtils._run(cmd))
        except (OSError, subprocess.CalledProcessError, ValueError) as e:
            log.error("ffprobe failed for %s: %s", path, repr(e))
            return 0.0

    @staticmethod
    def convert_to_mp3(in_path: str, out_path: str, bitrate_kbps: int = 128) -> str:
        """
        Encode `in_path` as MP3 at `bitrate_kbps` into `out_path`.
        """
        if not os.path.isfile(in_path):
            raise TranscodeError(f"Audio file not found: {in_path}")

        cmd = [
            "ffmpeg", "-hide_banner", "-loglevel", "error", "-nostdin", "-y",
            "-i", in_path,
            "-vn", "-codec:a", "libmp3lame", "-b:a", f"{bitrate_kbps}k",
            "-f", "mp3", out_path,
        ]
        try:
            AudioUtils._run(cmd)
        except subprocess.CalledProcessError as e:
            detail = (e.output or b"").decode("utf-8", errors="ignore").strip()
            raise TranscodeError(f"ffmpeg failed: {detail or e}") from e
        except OSError as e:
            raise TranscodeError(f"ffmpeg could not be started: {e}") from e
        return out_path
