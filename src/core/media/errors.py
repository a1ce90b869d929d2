"""
Error taxonomy for the upload pipeline.

Every error carries the HTTP status it maps to and a short public message.
The exception's own message (str(exc)) can hold internal detail such as
tool stderr or SDK error text. That detail is for logs only; the API layer
returns `public_message` to callers.
"""


class MediaPipelineError(Exception):
    """Base class for all pipeline failures."""
    status_code: int = 500
    public_message: str = "Internal server error"


# ---------------------------------------------------------------------------
# User-correctable
# ---------------------------------------------------------------------------

class BadRequestError(MediaPipelineError):
    """Malformed or missing upload field, or an unsupported content type."""
    status_code = 400
    public_message = "Invalid upload"

    def __init__(self, public_message: str, detail: str = "") -> None:
        super().__init__(detail or public_message)
        self.public_message = public_message


class PayloadTooLargeError(BadRequestError):
    """Upload exceeds the configured size limit."""
    status_code = 413


class ForbiddenError(MediaPipelineError):
    """Caller does not own the video record."""
    status_code = 403
    public_message = "User is not the owner of the video"


class NotFoundError(MediaPipelineError):
    """Unknown video identifier."""
    status_code = 404
    public_message = "No video corresponding to videoID"


# ---------------------------------------------------------------------------
# Operational
# ---------------------------------------------------------------------------

class StagingError(MediaPipelineError):
    """Copying the upload into a temp file failed."""
    public_message = "Error when writing temp video file"


class ProcessingError(MediaPipelineError):
    """Probe or remux failed."""
    public_message = "Error when processing video"


class ProbeError(MediaPipelineError):
    """ffprobe could not be run or its output could not be parsed."""
    public_message = "Error when fetching video ratio"


class RemuxError(MediaPipelineError):
    """ffmpeg failed or produced no output."""
    public_message = "Error when processing video for fast start"


class StoreUploadError(MediaPipelineError):
    """Object storage rejected or failed the upload."""
    public_message = "Error when sending file to storage"


class SigningError(MediaPipelineError):
    """Presigned URL generation failed."""
    public_message = "Error when generating video URL"


class PersistenceError(MediaPipelineError):
    """Writing the video record back failed."""
    public_message = "Error when updating video"
