# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

# Cloud functions for the staffing back-office - list index maintenance.
#
# This file containing Python cloud functions must be named main.py.
# See https://cloud.google.com/run/docs/write-functions#python for more info.

# Standard library imports
from dataclasses import asdict, dataclass
from datetime import date
from typing import Optional

# Third-party library imports
from firebase_admin import initialize_app
from firebase_functions import https_fn, logger, options

# Local application imports
from backoffice.errors import StoreError
from backoffice.gateway import FirebaseRealtimeStore
from backoffice import indexing
from backoffice.constants import CLIENTS_PATH, USERS_PATH
from backoffice.json_utils import convert_keys

REBUILD_FUNCTION_TIMEOUT = 540

initialize_app()


@dataclass
class RebuildListIndexesResult:
    registrations: int
    employees: int
    message: str
    dry_run: bool = False


def _parse_day(value: Optional[str]) -> date:
    if not value:
        return date.today()
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            "today must be an ISO date (YYYY-MM-DD).",
        )


@https_fn.on_call(
    timeout_sec=REBUILD_FUNCTION_TIMEOUT, memory=options.MemoryOption.MB_512
)
def rebuild_list_indexes(req: https_fn.CallableRequest) -> dict:
    """
    Rebuilds service_registrations_index and employees_index from the source
    collections.

    Args:
        req (https_fn.CallableRequest): The request; optional `dryRun` and
            `today` (the date used for registrations without one).

    Returns:
        A dictionary representation of the RebuildListIndexesResult object.
    """
    data = req.data or {}
    dry_run = bool(data.get("dryRun"))
    day = _parse_day(data.get("today"))
    store = FirebaseRealtimeStore()

    try:
        if dry_run:
            _, report = indexing.collect_index_updates(
                store.read(CLIENTS_PATH), store.read(USERS_PATH), day
            )
        else:
            report = indexing.rebuild_list_indexes(store, today=lambda: day)
    except StoreError as e:
        logger.error(f"Index rebuild failed at {e.path}: {e}")
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.UNAVAILABLE,
            f"Index rebuild failed: {e}",
        )

    logger.info(report.summary())
    result = RebuildListIndexesResult(
        registrations=report.registrations,
        employees=report.employees,
        message=report.summary(),
        dry_run=dry_run,
    )
    return convert_keys(asdict(result), "snake_to_camel")
