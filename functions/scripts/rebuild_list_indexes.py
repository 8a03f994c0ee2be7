"""
Rebuild the flat list-view indexes (service_registrations_index and
employees_index) from clients and users.

Run it after bulk edits to clients or users; the indexes are not kept in
sync automatically.
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backoffice.constants import CLIENTS_PATH, USERS_PATH
from backoffice.dependencies import get_store
from backoffice.errors import StoreError
from backoffice.indexing import collect_index_updates, rebuild_list_indexes


logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Rebuild list-view indexes")
    parser.add_argument(
        "--today",
        type=date.fromisoformat,
        default=None,
        help="Date (YYYY-MM-DD) used for registrations without one",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report how many index records would be written without saving",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    store = get_store()
    day = args.today or date.today()

    try:
        if args.dry_run:
            _, report = collect_index_updates(
                store.read(CLIENTS_PATH), store.read(USERS_PATH), day
            )
            logger.info("Dry run: %s", report.summary())
        else:
            report = rebuild_list_indexes(store, today=lambda: day)
            logger.info(report.summary())
    except StoreError as e:
        logger.error("Index rebuild failed at %s: %s", e.path, e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
