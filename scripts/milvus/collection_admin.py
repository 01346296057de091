import logging
import sys

from gallery_search.config import get_config
from gallery_search.errors import StoreError
from gallery_search.vectorstore import Embedder, ImageVectorStore
from gallery_search.vectorstore.milvus_client import get_milvus_client

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
    ]
)
logger = logging.getLogger(__name__)


def _open_store() -> ImageVectorStore:
    config = get_config()
    client = get_milvus_client(config.milvus, timeout=config.timeouts.store_sec)
    logger.info("Connected to Milvus at %s", config.milvus.uri)
    return ImageVectorStore(
        client=client,
        collection=config.milvus.collection,
        embedder=Embedder(config=config.raw),
        timeout=config.timeouts.store_sec,
        stats_timeout=config.timeouts.stats_sec,
    )


def show_stats(store: ImageVectorStore) -> None:
    """Print collection statistics."""
    try:
        stats = store.collection_stats()
    except StoreError as e:
        logger.error("Failed to read stats for '%s': %s", store.collection, e)
        print(f"❌ Failed to read stats: {e}")
        return
    print(f"\n{'Name':<25} | {'Records':<10} | {'Dim':<6} | {'Metric':<8} | {'State'}")
    print("-" * 70)
    print(
        f"{stats.collection_name:<25} | {stats.count:<10} | {stats.dimension or '?':<6} | "
        f"{stats.distance_metric or '?':<8} | {stats.status}"
    )
    print("-" * 70)


def ensure(store: ImageVectorStore) -> None:
    """Create the collection if it does not exist yet."""
    store.manager.ensure_collection()
    print(f"✅ Collection '{store.collection}' is ready.")


def reset(store: ImageVectorStore) -> None:
    """Drop and recreate the collection after confirmation."""
    confirm = input(
        f"⚠️  WARNING: This will PERMANENTLY DELETE every image record in '{store.collection}'.\n"
        "Type the collection name to confirm: "
    )
    if confirm != store.collection:
        logger.info("User cancelled reset of collection '%s'", store.collection)
        print("❌ Confirmation failed. Aborted.")
        return
    logger.warning("Resetting collection '%s'", store.collection)
    store.manager.reset_collection()
    print("✅ Collection recreated (empty).")


def main_menu() -> None:
    """Main interactive menu for the gallery collection."""
    store = _open_store()
    actions = {"1": show_stats, "2": ensure, "3": reset}

    try:
        while True:
            print("\nACTIONS:")
            print("1. [Stats]  Record count, dimension and load state")
            print("2. [Ensure] Create the collection if missing")
            print("3. [Reset]  Drop and recreate the collection")
            print("Q. Quit")

            choice = input("\nSelect Action: ").lower().strip()
            if choice == "q":
                print("Bye!")
                break
            action = actions.get(choice)
            if action is None:
                print("Invalid choice")
                continue
            try:
                action(store)
            except StoreError as e:
                logger.error("Action failed: %s", e)
                print(f"❌ {e}")
    except KeyboardInterrupt:
        print("\n\n🛑 Interrupted. Goodbye!")


def main() -> None:
    """Main entry point for the script."""
    try:
        main_menu()
    except Exception as e:
        logger.error("💥 Fatal error: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
