from pathlib import Path

import pytest

from gallery_search.errors import InvalidFileError
from gallery_search.ingestion import UploadedFile, guess_mime_type, validate_uploaded_file
from gallery_search.ingestion.validation import MAX_FILE_SIZE


def _upload(size=100, mime_type="image/jpeg", name="photo.jpg"):
    return UploadedFile(
        path=Path("/tmp/upload-photo"), original_filename=name, mime_type=mime_type, size=size
    )


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("beach.png", "image/png"),
        ("BEACH.JPG", "image/jpeg"),
        ("anim.gif", "image/gif"),
        ("pic.webp", "image/webp"),
        ("scan.bmp", "image/bmp"),
        ("noextension", "image/jpeg"),
        ("archive.tar.gz", "image/jpeg"),
        ("", "image/jpeg"),
    ],
)
def test_guess_mime_type(filename, expected):
    assert guess_mime_type(filename) == expected


@pytest.mark.parametrize(
    "mime_type", ["image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp", "image/bmp"]
)
def test_allowed_types_pass(mime_type):
    upload = _upload(mime_type=mime_type)
    assert validate_uploaded_file(upload) is upload


def test_file_at_size_limit_passes():
    assert validate_uploaded_file(_upload(size=MAX_FILE_SIZE))


def test_missing_file_is_rejected():
    with pytest.raises(InvalidFileError) as info:
        validate_uploaded_file(None)
    assert info.value.code == "NO_FILES"


def test_empty_file_is_rejected():
    with pytest.raises(InvalidFileError, match="is empty"):
        validate_uploaded_file(_upload(size=0))


def test_oversized_file_is_rejected():
    with pytest.raises(InvalidFileError) as info:
        validate_uploaded_file(_upload(size=MAX_FILE_SIZE + 1))
    assert info.value.code == "FILE_TOO_LARGE"
    assert "10MB" in info.value.message


@pytest.mark.parametrize("mime_type", ["application/pdf", "text/plain", "image/svg+xml", None])
def test_non_image_is_rejected(mime_type):
    with pytest.raises(InvalidFileError) as info:
        validate_uploaded_file(_upload(mime_type=mime_type))
    assert info.value.code == "INVALID_FILE"
    assert info.value.status_code == 400


def test_custom_limits_are_honoured():
    upload = _upload(size=2048, mime_type="image/png")
    with pytest.raises(InvalidFileError):
        validate_uploaded_file(upload, max_size=1024)
    with pytest.raises(InvalidFileError):
        validate_uploaded_file(upload, allowed_types=["image/jpeg"])
