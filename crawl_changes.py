"""
Crawl RDBMS changes as an ordered change feed
Run this script to traverse inserts, updates and deletes from the last checkpoint
"""

import logging
import sys
import time
from typing import Optional

from config import Config, get_config
from database import get_rdbms_connector, get_traversal_connector
from traversal import CheckpointStore, TraversalBatch, TraversalError, TraversalManager

logger = logging.getLogger(__name__)


def build_traversal_manager(config: Config) -> TraversalManager:
    """Create a traversal manager for the configured identities"""
    sysadmin = get_rdbms_connector(config.rdbms)
    traversal = get_traversal_connector(config.rdbms)
    return TraversalManager(config.traversal, sysadmin, traversal)


def log_batch(batch: TraversalBatch):
    for document in batch.inserts:
        logger.info(f"   • {document.get('docid')} {document.get('Name')!r} "
                    f"modified {document.get('lastModified')}")
    for event in batch.deletes:
        logger.info(f"   ✗ {event.data_id} deleted {event.audit_date}")


def run_once(manager: TraversalManager, store: CheckpointStore) -> Optional[TraversalBatch]:
    """
    Run one traversal call and persist its checkpoint

    Returns:
        The batch, or None if nothing new was available
    """
    if store.checkpoint is None:
        batch = manager.start_traversal()
    else:
        batch = manager.resume_traversal(store.checkpoint)

    if batch is None:
        return None

    log_batch(batch)
    checkpoint = manager.checkpoint(batch)
    store.save_checkpoint(checkpoint, len(batch.inserts), len(batch.deletes))
    return batch


def main(max_calls: Optional[int] = None):
    """Main crawl workflow"""
    config = get_config()
    logging.basicConfig(level=config.system.log_level)

    try:
        config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    sysadmin = get_rdbms_connector(config.rdbms)
    if not sysadmin.test_connection():
        logger.error("Failed to connect to RDBMS")
        return 1

    store = CheckpointStore(config.system.checkpoint_path)
    logger.info(f"📍 Resuming from checkpoint: {store.checkpoint or 'start'} "
                f"(last traversal: {store.get_last_traversal_time()})")

    try:
        manager = build_traversal_manager(config)
        calls = 0
        while max_calls is None or calls < max_calls:
            calls += 1
            batch = run_once(manager, store)
            if batch is None:
                logger.info(f"💤 No new changes, waiting {config.system.poll_interval}s")
                time.sleep(config.system.poll_interval)
            elif batch.is_empty:
                logger.info("⏩ No documents yet, continuing from advanced checkpoint")
            else:
                logger.info(f"✅ Delivered {len(batch.inserts)} changes and "
                            f"{len(batch.deletes)} deletes")
        return 0

    except KeyboardInterrupt:
        logger.info("\n👋 Crawl stopped by user")
        return 0

    except TraversalError as e:
        logger.error(f"\n❌ Crawl failed: {e}", exc_info=True)
        return 1

    finally:
        sysadmin.close()
        get_traversal_connector(config.rdbms).close()
        logger.info("Connections closed")


if __name__ == "__main__":
    sys.exit(main())
