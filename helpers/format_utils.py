"""
format_utils.py

Maps the MIME type of an uploaded recording to a container label. Browsers
and phone recorders send all kinds of content types (often with codec
parameters, e.g. `audio/webm;codecs=opus`), while Whisper decides how to
decode a file from its filename extension. The label picks that extension.

Unknown types fall back to `webm`, the format most browser recorders emit.
"""

from __future__ import annotations

DEFAULT_CONTAINER = "webm"

# Order matters: the first matching fragment wins.
_CONTAINER_RULES = (
    (("mp4", "m4a"), "mp4"),
    (("ogg",), "ogg"),
    (("wav",), "wav"),
    (("mpeg", "mp3"), "mp3"),
)


class FormatUtils:
    @staticmethod
    def base_mime(mime_type: str | None) -> str:
        """`audio/webm;codecs=opus` -> `audio/webm`"""
        return (mime_type or "").split(";", 1)[0].strip().lower()

    @staticmethod
    def container_for(mime_type: str | None) -> str:
        base = FormatUtils.base_mime(mime_type)
        for fragments, label in _CONTAINER_RULES:
            if any(f in base for f in fragments):
                return label
        return DEFAULT_CONTAINER

    @staticmethod
    def transcription_filename(mime_type: str | None) -> str:
        return f"audio.{FormatUtils.container_for(mime_type)}"
