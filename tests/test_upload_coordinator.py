import asyncio
from unittest.mock import MagicMock

import grpc
import pytest
from langchain_core.embeddings import DeterministicFakeEmbedding
from pymilvus.exceptions import MilvusException

from fakes import FIXED_TIME, FakeProvider, fixed_clock
from gallery_search.errors import (
    BatchAbortedError,
    CleanupError,
    CollaboratorError,
    InvalidFileError,
    StoreError,
    StoreUnavailableError,
)
from gallery_search.ingestion import UploadCoordinator
from gallery_search.ingestion.coordinator import summarize_failures
from gallery_search.vectorstore import Embedder, ImageVectorStore
from gallery_search.vision import DescriptionEmbeddingProvider


class SlowDescriber:
    """Hangs on the configured image content, answers immediately otherwise."""

    def __init__(self, slow_content: bytes, delay: float = 1.0):
        self.slow_content = slow_content
        self.delay = delay

    async def describe(self, image_bytes, mime_type):
        if image_bytes == self.slow_content:
            await asyncio.sleep(self.delay)
        return f"a photo of {image_bytes.decode()}"


class StaticEmbedder:
    async def aembed_query(self, text):
        return [0.1, 0.2, 0.3, 0.4]


async def test_all_files_succeed(provider, store, make_upload):
    files = [make_upload("a.jpg"), make_upload("b.png"), make_upload("c.gif")]
    coordinator = UploadCoordinator(provider, store, clock=fixed_clock)

    result = await coordinator.ingest(files)

    assert result.total_processed == 3
    assert result.total_failed == 0
    assert result.all_succeeded
    assert [s.filename for s in result.successes] == ["a.jpg", "b.png", "c.gif"]
    assert len(store.records) == 3
    assert all(not f.path.exists() for f in files)


async def test_files_are_processed_in_input_order(provider, store, make_upload):
    files = [make_upload(name) for name in ("3.jpg", "1.jpg", "2.jpg")]

    await UploadCoordinator(provider, store).ingest(files)

    assert provider.describe_calls == [b"3.jpg", b"1.jpg", b"2.jpg"]
    assert provider.embed_calls == [
        "a photo of 3.jpg",
        "a photo of 1.jpg",
        "a photo of 2.jpg",
    ]


async def test_every_input_is_either_a_success_or_a_failure(store, make_upload):
    provider = FakeProvider(
        describe_errors={b"b.jpg": CollaboratorError("vision failed")},
        embed_errors={"a photo of d.jpg": CollaboratorError("embedding failed")},
    )
    files = [make_upload(name) for name in ("a.jpg", "b.jpg", "c.jpg", "d.jpg")]

    result = await UploadCoordinator(provider, store).ingest(files)

    assert result.input_count == len(files)
    assert result.total_processed + result.total_failed == 4
    assert [s.filename for s in result.successes] == ["a.jpg", "c.jpg"]
    assert [f.filename for f in result.failures] == ["b.jpg", "d.jpg"]
    assert summarize_failures(result) == [
        "b.jpg: vision failed",
        "d.jpg: embedding failed",
    ]


async def test_describe_timeout_fails_only_that_file(store, make_upload):
    provider = DescriptionEmbeddingProvider(
        SlowDescriber(b"slow.jpg"), StaticEmbedder(), timeout_sec=0.05
    )
    files = [make_upload("fast.jpg"), make_upload("slow.jpg"), make_upload("late.jpg")]

    result = await UploadCoordinator(provider, store).ingest(files)

    assert [s.filename for s in result.successes] == ["fast.jpg", "late.jpg"]
    assert len(result.failures) == 1
    failure = result.failures[0]
    assert failure.filename == "slow.jpg"
    assert "timed out" in failure.error_message
    assert failure.error_code == "PROVIDER_TIMEOUT"


async def test_each_temp_file_is_released_exactly_once(store, make_upload):
    provider = FakeProvider(describe_errors={b"bad.jpg": CollaboratorError("boom")})
    files = [make_upload("ok.jpg"), make_upload("bad.jpg")]
    released = []

    await UploadCoordinator(provider, store, release=released.append).ingest(files)

    assert sorted(released) == sorted(f.path for f in files)


async def test_failed_file_is_deleted_from_disk(store, make_upload):
    provider = FakeProvider(describe_errors={b"bad.jpg": CollaboratorError("boom")})
    files = [make_upload("bad.jpg")]

    result = await UploadCoordinator(provider, store).ingest(files)

    assert result.total_failed == 1
    assert not files[0].path.exists()


async def test_cleanup_failure_does_not_change_outcome(provider, store, make_upload):
    def failing_release(path):
        raise CleanupError(f"Error cleaning up file {path}: permission denied")

    files = [make_upload("a.jpg"), make_upload("b.jpg")]

    result = await UploadCoordinator(provider, store, release=failing_release).ingest(files)

    assert result.total_processed == 2
    assert result.total_failed == 0


async def test_os_error_on_cleanup_is_logged_not_raised(provider, store, make_upload):
    def failing_release(path):
        raise PermissionError("read-only filesystem")

    image = await UploadCoordinator(provider, store, release=failing_release).ingest_one(
        make_upload("a.jpg")
    )

    assert image.filename == "a.jpg"


async def test_ingest_one_matches_batch_path(provider, store, make_upload):
    coordinator = UploadCoordinator(provider, store, clock=fixed_clock)
    upload = make_upload("sunset.jpg")

    image = await coordinator.ingest_one(upload)
    batch = await coordinator.ingest([make_upload("sunset.jpg")])

    assert image.filename == batch.successes[0].filename == "sunset.jpg"
    assert image.description == batch.successes[0].description == "a photo of sunset.jpg"
    assert image.created_at == FIXED_TIME
    assert store.records[image.id]["created_at"] == FIXED_TIME.isoformat()
    assert store.records[image.id]["filename"] == "sunset.jpg"
    assert not upload.path.exists()


async def test_ingest_one_propagates_errors_and_cleans_up(store, make_upload):
    provider = FakeProvider(describe_errors={b"a.jpg": CollaboratorError("vision down")})
    upload = make_upload("a.jpg")

    with pytest.raises(CollaboratorError, match="vision down"):
        await UploadCoordinator(provider, store).ingest_one(upload)

    assert not upload.path.exists()
    assert store.records == {}


async def test_store_outage_aborts_batch_and_keeps_partial_result(
    provider, store, make_upload
):
    store.upsert_errors["b.jpg"] = StoreUnavailableError("Milvus is down")
    files = [make_upload(name) for name in ("a.jpg", "b.jpg", "c.jpg", "d.jpg")]

    with pytest.raises(BatchAbortedError) as info:
        await UploadCoordinator(provider, store).ingest(files)

    error = info.value
    assert [s.filename for s in error.partial.successes] == ["a.jpg"]
    assert [f.filename for f in error.partial.failures] == ["b.jpg"]
    assert error.partial.failures[0].error_code == "STORE_UNAVAILABLE"
    assert error.pending == ["c.jpg", "d.jpg"]
    assert error.status_code == 503
    # Nothing after the outage was attempted
    assert provider.describe_calls == [b"a.jpg", b"b.jpg"]
    assert all(not f.path.exists() for f in files)


async def test_store_rejection_is_a_per_file_failure(provider, store, make_upload):
    store.upsert_errors["b.jpg"] = StoreError("row rejected")
    files = [make_upload(name) for name in ("a.jpg", "b.jpg", "c.jpg")]

    result = await UploadCoordinator(provider, store).ingest(files)

    assert [s.filename for s in result.successes] == ["a.jpg", "c.jpg"]
    assert result.failures[0].error_code == "STORE_ERROR"


async def test_unexpected_exception_is_recorded_as_processing_error(
    provider, store, make_upload
):
    store.upsert_errors["a.jpg"] = ValueError("vector has dim 4 but collection expects 8")

    result = await UploadCoordinator(provider, store).ingest([make_upload("a.jpg")])

    assert result.failures[0].error_code == "PROCESSING_ERROR"
    assert "expects 8" in result.failures[0].error_message


async def test_empty_batch_is_rejected(provider, store):
    with pytest.raises(InvalidFileError) as info:
        await UploadCoordinator(provider, store).ingest([])

    assert info.value.code == "NO_FILES"
    assert provider.describe_calls == []


async def test_unreachable_milvus_aborts_batch(provider, make_upload):
    client = MagicMock()
    client.upsert.side_effect = MilvusException(
        code=grpc.StatusCode.UNAVAILABLE,
        message="[upsert] Retry timeout: 10s, message=failed to connect to all addresses",
    )
    milvus_store = ImageVectorStore(
        client=client,
        collection="gallery_test",
        embedder=Embedder(config={"dim": 4}, embeddings=DeterministicFakeEmbedding(size=4)),
    )
    files = [make_upload(name) for name in ("a.jpg", "b.jpg", "c.jpg")]

    with pytest.raises(BatchAbortedError) as info:
        await UploadCoordinator(provider, milvus_store).ingest(files)

    assert info.value.partial.successes == []
    assert [f.filename for f in info.value.partial.failures] == ["a.jpg"]
    assert info.value.pending == ["b.jpg", "c.jpg"]
    assert client.upsert.call_count == 1
    assert all(not f.path.exists() for f in files)


async def test_cancelled_batch_releases_every_file(store, make_upload):
    provider = FakeProvider(describe_errors={b"b.jpg": asyncio.CancelledError()})
    files = [make_upload(name) for name in ("a.jpg", "b.jpg", "c.jpg")]

    with pytest.raises(asyncio.CancelledError):
        await UploadCoordinator(provider, store).ingest(files)

    assert [f.original_filename for f in files if f.path.exists()] == []
    assert provider.describe_calls == [b"a.jpg", b"b.jpg"]
