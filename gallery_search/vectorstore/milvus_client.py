import logging
import time
from typing import Optional

from pymilvus import MilvusClient
from pymilvus.exceptions import MilvusException

from gallery_search.config import MilvusConfig
from gallery_search.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


def get_milvus_client(
    milvus: Optional[MilvusConfig] = None,
    *,
    timeout: Optional[float] = None,
    wait_ready: bool = True,
    retries: int = 10,
    backoff_sec: float = 1.0,
) -> MilvusClient:
    """Connect to the Milvus server described by ``milvus``.

    With ``wait_ready`` the server is pinged until it answers; when every
    attempt fails the last error is raised as StoreUnavailableError.
    """
    milvus = milvus or MilvusConfig()
    attempts = max(1, retries)
    last_error: Optional[Exception] = None

    for attempt in range(1, attempts + 1):
        try:
            client = MilvusClient(uri=milvus.uri, token=milvus.token, timeout=timeout)
            if wait_ready:
                client.list_collections()
            return client
        except (MilvusException, ConnectionError) as e:
            last_error = e
            if attempt < attempts:
                logger.info(
                    "Milvus at %s not ready yet (attempt %d/%d)", milvus.uri, attempt, attempts
                )
                time.sleep(backoff_sec)

    raise StoreUnavailableError(
        f"Could not reach Milvus at {milvus.uri} after {attempts} attempts: {last_error}"
    )
