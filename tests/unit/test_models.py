"""
Unit tests for the media domain logic.

These tests verify the core business logic without touching
external services (no subprocesses, no storage, no database).

Testing philosophy:
- Test behavior, not implementation
- Each test should have a clear "given/when/then" structure
- Use descriptive names that explain what we're testing
- Prefer real objects over mocks where practical
"""

import io
import re
from datetime import timezone
from uuid import uuid4

import pytest

from src.core.media.errors import BadRequestError, PayloadTooLargeError
from src.core.media.keys import derive_storage_key, random_key_id
from src.core.media.models import (
    Orientation,
    StorageLocation,
    StreamInfo,
    StreamMetadata,
    Video,
)
from src.core.media.pipeline import PipelineConfig, UrlMode
from src.core.media.uploads import UploadedFile, accept_upload, parse_media_type


# ---------------------------------------------------------------------------
# Orientation Tests
# ---------------------------------------------------------------------------

class TestOrientation:
    """Aspect ratio classification."""

    def test_sixteen_by_nine_is_landscape(self):
        assert Orientation.from_aspect_ratio("16:9") is Orientation.LANDSCAPE

    def test_nine_by_sixteen_is_portrait(self):
        assert Orientation.from_aspect_ratio("9:16") is Orientation.PORTRAIT

    @pytest.mark.parametrize("ratio", ["1.78", "32:18", "4:3", "1:1", " 16:9", "", None])
    def test_anything_else_is_other(self, ratio):
        """Match is on the exact string, so equivalent notations don't count."""
        assert Orientation.from_aspect_ratio(ratio) is Orientation.OTHER


class TestStreamMetadata:
    """Picking the stream that decides orientation."""

    def test_first_video_stream_wins(self):
        metadata = StreamMetadata(streams=(
            StreamInfo(codec_type="audio", display_aspect_ratio="9:16"),
            StreamInfo(codec_type="video", display_aspect_ratio="16:9"),
            StreamInfo(codec_type="video", display_aspect_ratio="9:16"),
        ))
        assert metadata.orientation is Orientation.LANDSCAPE

    def test_no_video_stream_is_other(self):
        metadata = StreamMetadata(streams=(StreamInfo(codec_type="audio"),))
        assert metadata.first_video_stream is None
        assert metadata.orientation is Orientation.OTHER

    def test_video_stream_without_ratio_is_other(self):
        metadata = StreamMetadata(streams=(StreamInfo(codec_type="video"),))
        assert metadata.orientation is Orientation.OTHER


# ---------------------------------------------------------------------------
# Storage Keys
# ---------------------------------------------------------------------------

class TestStorageKeys:
    """Key derivation for stored objects."""

    KEY_PATTERN = re.compile(r"^(landscape|portrait|other)/[A-Za-z0-9_-]{43}\.mp4$")

    def test_random_id_is_urlsafe_without_padding(self):
        key_id = random_key_id()
        assert len(key_id) == 43
        assert "=" not in key_id
        assert re.fullmatch(r"[A-Za-z0-9_-]+", key_id)

    @pytest.mark.parametrize("orientation", list(Orientation))
    def test_key_format(self, orientation):
        key = derive_storage_key(orientation)
        assert self.KEY_PATTERN.match(key)
        assert key.startswith(f"{orientation.value}/")

    def test_keys_do_not_repeat(self):
        keys = {derive_storage_key(Orientation.PORTRAIT) for _ in range(500)}
        assert len(keys) == 500


# ---------------------------------------------------------------------------
# Storage Location
# ---------------------------------------------------------------------------

class TestStorageLocation:
    """The "bucket,key" reference stored in signed mode."""

    def test_str_and_parse_agree(self):
        location = StorageLocation(bucket="media", key="portrait/abc.mp4")
        assert str(location) == "media,portrait/abc.mp4"
        assert StorageLocation.parse("media,portrait/abc.mp4") == location

    def test_key_may_contain_commas(self):
        """Only the first comma separates bucket from key."""
        location = StorageLocation.parse("media,other/a,b.mp4")
        assert location.bucket == "media"
        assert location.key == "other/a,b.mp4"

    @pytest.mark.parametrize("value", [
        None,
        "",
        "https://media.s3.us-east-1.amazonaws.com/portrait/abc.mp4",
        "https://cdn.example.com/a,b.mp4",
        "data:image/png;base64,iVBORw==",
        "no-comma-here",
        ",portrait/abc.mp4",
        "media,",
    ])
    def test_parse_rejects_non_pairs(self, value):
        assert StorageLocation.parse(value) is None

    def test_bucket_cannot_contain_comma(self):
        with pytest.raises(ValueError, match="comma"):
            StorageLocation(bucket="a,b", key="k")

    def test_both_parts_required(self):
        with pytest.raises(ValueError):
            StorageLocation(bucket="", key="k")


# ---------------------------------------------------------------------------
# Video Record
# ---------------------------------------------------------------------------

class TestVideo:
    """The video metadata record."""

    def test_new_video_defaults(self):
        owner = uuid4()
        video = Video(user_id=owner, title="Product demo")

        assert video.video_url is None
        assert video.thumbnail_url is None
        assert video.created_at.tzinfo == timezone.utc
        assert video.storage_location is None

    def test_ownership(self):
        owner = uuid4()
        video = Video(user_id=owner)

        assert video.is_owned_by(owner)
        assert not video.is_owned_by(uuid4())

    def test_touch_moves_updated_at_forward(self):
        video = Video(user_id=uuid4())
        before = video.updated_at

        video.touch()

        assert video.updated_at >= before

    def test_storage_location_from_signed_reference(self):
        video = Video(user_id=uuid4(), video_url="media,landscape/xyz.mp4")
        assert video.storage_location == StorageLocation("media", "landscape/xyz.mp4")


# ---------------------------------------------------------------------------
# Upload Validation
# ---------------------------------------------------------------------------

class TestParseMediaType:
    """Content-Type header parsing."""

    @pytest.mark.parametrize("value,expected", [
        ("video/mp4", "video/mp4"),
        ("VIDEO/MP4", "video/mp4"),
        ("video/mp4; codecs=\"avc1.42E01E\"", "video/mp4"),
        ("  image/png  ", "image/png"),
        ("video/mp4;", "video/mp4"),
    ])
    def test_valid(self, value, expected):
        assert parse_media_type(value) == expected

    @pytest.mark.parametrize("value", [
        None,
        "",
        "   ",
        "video",
        "video/",
        "/mp4",
        "video/mp4/extra",
        "video mp4",
        "video/mp4; codecs",
    ])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_media_type(value)


class TestAcceptUpload:
    """Pre-staging checks on an upload field."""

    ACCEPTED = frozenset({"video/mp4"})

    def _upload(self, content_type="video/mp4", size=None):
        return UploadedFile(stream=io.BytesIO(b"x"), content_type=content_type, size=size)

    def test_returns_parsed_media_type(self):
        assert accept_upload(self._upload("video/MP4"), self.ACCEPTED, 100) == "video/mp4"

    def test_missing_field(self):
        with pytest.raises(BadRequestError) as exc_info:
            accept_upload(None, self.ACCEPTED, 100)
        assert exc_info.value.public_message == "Unable to parse form file"

    def test_invalid_content_type(self):
        with pytest.raises(BadRequestError) as exc_info:
            accept_upload(self._upload("not a type"), self.ACCEPTED, 100)
        assert exc_info.value.public_message == "Invalid Content-Type"

    def test_wrong_content_type(self):
        with pytest.raises(BadRequestError) as exc_info:
            accept_upload(self._upload("video/quicktime"), self.ACCEPTED, 100)
        assert exc_info.value.public_message == "Invalid file type"
        assert exc_info.value.status_code == 400

    def test_declared_size_over_limit(self):
        with pytest.raises(PayloadTooLargeError) as exc_info:
            accept_upload(self._upload(size=101), self.ACCEPTED, 100)
        assert exc_info.value.status_code == 413

    def test_declared_size_at_limit_is_fine(self):
        assert accept_upload(self._upload(size=100), self.ACCEPTED, 100) == "video/mp4"


# ---------------------------------------------------------------------------
# Pipeline Config
# ---------------------------------------------------------------------------

class TestPipelineConfig:
    """Stored references per URL mode."""

    def test_signed_reference(self):
        config = PipelineConfig(bucket="media", region="us-east-1")
        assert config.reference_for("portrait/a.mp4") == "media,portrait/a.mp4"

    def test_static_reference(self):
        config = PipelineConfig(bucket="media", region="ap-south-1", url_mode=UrlMode.STATIC)
        assert (
            config.reference_for("other/a.mp4")
            == "https://media.s3.ap-south-1.amazonaws.com/other/a.mp4"
        )

    def test_cdn_reference(self):
        config = PipelineConfig(
            bucket="media",
            region="us-east-1",
            url_mode=UrlMode.CDN,
            cdn_distribution_host="videos.example.com",
        )
        assert config.reference_for("landscape/a.mp4") == "https://videos.example.com/landscape/a.mp4"

    def test_bucket_required(self):
        with pytest.raises(ValueError, match="bucket"):
            PipelineConfig(bucket="", region="us-east-1")

    def test_expiry_must_be_positive(self):
        with pytest.raises(ValueError):
            PipelineConfig(bucket="media", region="us-east-1", presign_expiry_seconds=0)
