"""
Inbound upload values and content-type checks.

The HTTP layer hands the pipeline an `UploadedFile` instead of a framework
object, so the pipeline can be driven from tests with a plain BytesIO.
"""

import re
from dataclasses import dataclass
from typing import BinaryIO, Optional

from .errors import BadRequestError, PayloadTooLargeError

_TOKEN = r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+"
_MEDIA_TYPE_RE = re.compile(rf"^({_TOKEN})/({_TOKEN})$")


@dataclass
class UploadedFile:
    """A multipart file field as received from the client."""
    stream: BinaryIO
    content_type: Optional[str]
    filename: str = ""
    size: Optional[int] = None  # None when the transport doesn't report it


def parse_media_type(value: Optional[str]) -> str:
    """
    Parse a Content-Type header value down to its lowercased media type.

    Raises ValueError for an empty value, a malformed type/subtype, or a
    parameter without "=".
    """
    if not value or not value.strip():
        raise ValueError("Content type is empty")

    main, *params = value.split(";")
    main = main.strip()
    if not _MEDIA_TYPE_RE.match(main):
        raise ValueError(f"Malformed media type: {main!r}")

    for param in params:
        param = param.strip()
        if param and "=" not in param:
            raise ValueError(f"Malformed media type parameter: {param!r}")

    return main.lower()


def accept_upload(
    upload: Optional[UploadedFile],
    accepted_types: frozenset[str],
    max_bytes: int,
) -> str:
    """
    Validate an upload before anything touches the filesystem.

    Returns the parsed media type.
    """
    if upload is None:
        raise BadRequestError("Unable to parse form file")

    try:
        media_type = parse_media_type(upload.content_type)
    except ValueError as e:
        raise BadRequestError("Invalid Content-Type", detail=str(e))

    if media_type not in accepted_types:
        raise BadRequestError(
            "Invalid file type",
            detail=f"{media_type} not in {sorted(accepted_types)}",
        )

    if upload.size is not None and upload.size > max_bytes:
        raise PayloadTooLargeError(
            f"File too large. Maximum size: {max_bytes // (1024 * 1024)}MB"
        )

    return media_type
