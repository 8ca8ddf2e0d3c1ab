"""
Backfill status tracking on orders created before it existed.

    python migrate_orders.py
"""

import logging
import sys
from datetime import datetime

from pymongo.errors import PyMongoError

from database import get_db

log = logging.getLogger(__name__)


def backfill_order_status(db) -> int:
    result = db["order"].update_many(
        {"status": {"$exists": False}},
        {"$set": {
            "status": "Ordered",
            "status_history": [{"status": "Ordered", "note": "", "timestamp": datetime.utcnow()}],
        }},
    )
    return result.modified_count


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        count = backfill_order_status(get_db())
    except (PyMongoError, RuntimeError) as e:
        log.error("Migration failed: %s", e)
        sys.exit(1)
    log.info("Orders updated: %d", count)
