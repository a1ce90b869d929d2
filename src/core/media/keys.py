"""Storage key derivation for processed videos."""

import base64
import secrets

from .models import Orientation

# The remux step always writes an MP4 container, whatever was declared.
VIDEO_EXTENSION = "mp4"
KEY_ID_BYTES = 32


def random_key_id() -> str:
    """32 random bytes as URL-safe base64 without padding (43 chars)."""
    raw = secrets.token_bytes(KEY_ID_BYTES)
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def derive_storage_key(orientation: Orientation) -> str:
    """
    Build "<orientation>/<random id>.mp4".

    No lookup against existing keys: uniqueness rests on the entropy of
    the random id.
    """
    return f"{orientation.value}/{random_key_id()}.{VIDEO_EXTENSION}"
