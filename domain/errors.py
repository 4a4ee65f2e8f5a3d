"""
errors.py

Error taxonomy for the upload pipeline. Every error carries a plain message
that is returned to the caller verbatim as `{"error": message}`.
"""


class PipelineError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ClientInputError(PipelineError):
    """Missing deal id or audio payload."""

    status_code = 400


class UpstreamServiceError(PipelineError):
    pass


class TranscriptionError(UpstreamServiceError):
    pass


class ArchiveError(UpstreamServiceError):
    pass


class CrmError(UpstreamServiceError):
    pass


class OAuthExchangeError(UpstreamServiceError):
    pass


class TranscodeError(PipelineError):
    pass


class ScratchStorageError(PipelineError):
    """Local scratch disk could not be written."""
