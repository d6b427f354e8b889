"""Error taxonomy for the video upload pipeline."""

from __future__ import annotations

from typing import Optional


class UploadPipelineError(Exception):
    """Base class for failures while handling one upload request.

    ``stage`` names the pipeline state that was being entered when the failure
    happened. ``status_code`` is the HTTP status the router responds with.
    """

    status_code = 500
    default_stage = "received"

    def __init__(self, message: str, *, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage or self.default_stage


class AuthError(UploadPipelineError):
    """Missing/invalid identity or caller is not the video owner."""

    status_code = 401


class ValidationError(UploadPipelineError):
    """Bad identifier or unsupported content type."""

    status_code = 400


class UploadTooLargeError(ValidationError):
    status_code = 413
    default_stage = "staged"


class VideoNotFoundError(UploadPipelineError):
    status_code = 404


class StagingError(UploadPipelineError):
    default_stage = "staged"


class ProbeError(UploadPipelineError):
    default_stage = "probed"

    def __init__(self, message: str, *, stage: Optional[str] = None, timeout: bool = False):
        super().__init__(message, stage=stage)
        self.timeout = timeout


class RemuxError(UploadPipelineError):
    default_stage = "remuxed"

    def __init__(self, message: str, *, stage: Optional[str] = None, timeout: bool = False):
        super().__init__(message, stage=stage)
        self.timeout = timeout


class StoreError(UploadPipelineError):
    default_stage = "uploaded"


class PersistError(UploadPipelineError):
    default_stage = "recorded"


class SignError(UploadPipelineError):
    default_stage = "done"
