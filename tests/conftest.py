from typing import Optional

import pytest

from fakes import FakeProvider, FakeStore
from gallery_search.ingestion import UploadedFile


@pytest.fixture
def make_upload(tmp_path):
    """Create a temporary upload file; its content defaults to its name."""

    def _make(
        name: str, content: Optional[bytes] = None, mime_type: str = "image/jpeg"
    ) -> UploadedFile:
        data = content if content is not None else name.encode()
        path = tmp_path / f"upload-{name}"
        path.write_bytes(data)
        return UploadedFile(
            path=path, original_filename=name, mime_type=mime_type, size=len(data)
        )

    return _make


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def store():
    return FakeStore()
