"""File selection checks and inline encoding."""

import pytest

from app.errors import InputRejected
from app.media.intake import check_media_file, encode_inline, resolve_mime_type

MB = 1024 * 1024


@pytest.mark.parametrize(
    ("filename", "content_type", "expected"),
    [
        ("clip.mp4", "video/mp4", "video/mp4"),
        ("photo.jpg", "image/jpeg; charset=binary", "image/jpeg"),
        ("clip.mov", "application/octet-stream", "video/quicktime"),
        ("photo.png", None, "image/png"),
        ("mystery", "", "application/octet-stream"),
    ],
)
def test_resolve_mime_type(filename, content_type, expected):
    assert resolve_mime_type(filename, content_type) == expected


def test_accepts_video_and_image():
    assert check_media_file("clip.mp4", "video/mp4", 10 * MB) == "video/mp4"
    assert check_media_file("dog.jpg", "image/jpeg", 500_000) == "image/jpeg"


def test_rejects_oversize_file():
    with pytest.raises(InputRejected) as exc_info:
        check_media_file("clip.mp4", "video/mp4", 100 * MB + 1, max_bytes=100 * MB)
    assert exc_info.value.reason == "too_large"
    assert "100MB" in exc_info.value.user_message


def test_size_at_ceiling_accepted():
    assert check_media_file("clip.mp4", "video/mp4", 100 * MB, max_bytes=100 * MB) == "video/mp4"


@pytest.mark.parametrize(
    ("filename", "content_type"),
    [("notes.pdf", "application/pdf"), ("song.mp3", "audio/mpeg"), ("mystery", None)],
)
def test_rejects_wrong_type(filename, content_type):
    with pytest.raises(InputRejected) as exc_info:
        check_media_file(filename, content_type, 1000)
    assert exc_info.value.reason == "wrong_type"


def test_rejects_empty_file():
    with pytest.raises(InputRejected) as exc_info:
        check_media_file("clip.mp4", "video/mp4", 0)
    assert exc_info.value.reason == "empty"


def test_unknown_size_checked_later():
    assert check_media_file("clip.mp4", "video/mp4", None) == "video/mp4"


def test_encode_inline():
    media = encode_inline(b"\xff\xd8\xff\xe0jpeg", "image/jpeg")
    assert media.kind == "inline"
    assert media.as_data_uri().startswith("data:image/jpeg;base64,")


def test_encode_inline_rejects_empty_and_oversize():
    with pytest.raises(InputRejected):
        encode_inline(b"", "image/jpeg")
    with pytest.raises(InputRejected) as exc_info:
        encode_inline(b"x" * 11, "image/jpeg", max_bytes=10)
    assert exc_info.value.reason == "too_large"
