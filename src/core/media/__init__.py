"""
Video upload and processing.

Contains the upload pipeline, its domain models and error taxonomy,
and storage key derivation.
"""

from .errors import (
    BadRequestError,
    ForbiddenError,
    MediaPipelineError,
    NotFoundError,
    PayloadTooLargeError,
    PersistenceError,
    ProbeError,
    ProcessingError,
    RemuxError,
    SigningError,
    StagingError,
    StoreUploadError,
)
from .keys import derive_storage_key
from .models import Orientation, StorageLocation, StreamInfo, StreamMetadata, Video
from .pipeline import PipelineConfig, UrlMode, VideoUploadPipeline
from .uploads import UploadedFile

__all__ = [
    "BadRequestError",
    "ForbiddenError",
    "MediaPipelineError",
    "NotFoundError",
    "PayloadTooLargeError",
    "PersistenceError",
    "ProbeError",
    "ProcessingError",
    "RemuxError",
    "SigningError",
    "StagingError",
    "StoreUploadError",
    "derive_storage_key",
    "Orientation",
    "StorageLocation",
    "StreamInfo",
    "StreamMetadata",
    "Video",
    "PipelineConfig",
    "UrlMode",
    "VideoUploadPipeline",
    "UploadedFile",
]
