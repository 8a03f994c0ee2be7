"""
Asset tracking: inventory listing and assignment to employees.

Both collections are served from the durable cache. The employee index is
refreshed after a day; the asset list stays as cached until a forced reload,
and assignments patch the cached copy instead of invalidating it.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from backoffice.cache import CacheService
from backoffice.confirmation import require_fields
from backoffice.constants import (
    ASSETS_CACHE_KEY,
    ASSETS_PATH,
    EMPLOYEES_INDEX_CACHE_KEY,
    EMPLOYEES_INDEX_PATH,
)
from backoffice.errors import NotFoundError, ValidationError
from backoffice.gateway import StoreGateway, join_path
from backoffice.pagination import with_key
from backoffice.records import Asset, AssetStatus

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_LIMIT = 10
UNASSIGNED = "Unassigned"


def assigned_date_label(day: date) -> str:
    return day.strftime("%d/%m/%Y")


def parse_assigned_date(value: Optional[str]) -> datetime:
    """Parse dd/mm/YYYY or ISO dates; anything else sorts last."""
    if not value:
        return datetime.min
    try:
        if "/" in value:
            return datetime.strptime(value, "%d/%m/%Y")
        return datetime.fromisoformat(value)
    except ValueError:
        return datetime.min


class AssetTracker:
    def __init__(
        self,
        store: StoreGateway,
        cache: CacheService,
        employees_max_age: float = 24 * 60 * 60,
        today: Callable[[], date] = date.today,
    ):
        self.store = store
        self.cache = cache
        self.employees_max_age = employees_max_age
        self.today = today
        self.assets: Dict[str, Asset] = {}
        self.employees: Dict[str, Dict[str, Any]] = {}
        self.last_updated: Optional[float] = None

    def _fetch_employees_index(self) -> Dict[str, Any]:
        data = self.store.read(EMPLOYEES_INDEX_PATH) or {}
        if not data:
            logger.warning("Employees index is empty; the index rebuild may need to run")
        return data

    def load(self, force: bool = False) -> List[Asset]:
        employees = self.cache.load(
            EMPLOYEES_INDEX_CACHE_KEY,
            self._fetch_employees_index,
            max_age=self.employees_max_age,
            force=force,
        )
        assets = self.cache.load(
            ASSETS_CACHE_KEY,
            lambda: self.store.read(ASSETS_PATH) or {},
            force=force,
        )
        self.employees = {
            key: with_key(key, value) for key, value in (employees.data or {}).items()
        }
        self.assets = {
            key: Asset.from_store(key, value)
            for key, value in (assets.data or {}).items()
            if isinstance(value, dict)
        }
        self.last_updated = assets.timestamp
        return list(self.assets.values())

    def employee_name(self, key: Optional[str]) -> str:
        employee = self.employees.get(key or "")
        if not employee:
            return key or UNASSIGNED
        return f"{employee.get('firstName', '')} {employee.get('lastName', '')}".strip()

    def available_assets(self, term: str = "") -> List[Asset]:
        needle = (term or "").strip().lower()
        return [
            asset
            for asset in self.assets.values()
            if asset.status == AssetStatus.AVAILABLE
            and (needle in asset.name.lower() or needle in asset.serial_number.lower())
        ]

    def recent_activity(self) -> List[Asset]:
        """Most recently assigned assets, newest first."""
        assigned = [
            asset
            for asset in self.assets.values()
            if asset.status == AssetStatus.ASSIGNED and asset.assigned_to != UNASSIGNED
        ]
        assigned.sort(key=lambda a: parse_assigned_date(a.assigned_date), reverse=True)
        return assigned[:RECENT_ACTIVITY_LIMIT]

    def assign(self, asset_key: str, employee_key: str, reason: str) -> Asset:
        require_fields(
            {"asset": asset_key, "employee": employee_key, "reason": reason},
            ("asset", "employee", "reason"),
        )
        asset = self.assets.get(asset_key)
        if asset is None:
            raise NotFoundError(f"Asset {asset_key} was not found.")
        if asset.status != AssetStatus.AVAILABLE:
            raise ValidationError(
                ["asset"], f"Asset {asset.name} is not available (status: {asset.status.value})."
            )

        fields = {
            "status": AssetStatus.ASSIGNED.value,
            "assignedTo": employee_key,
            "assignedDate": assigned_date_label(self.today()),
            "returnDate": None,
        }
        self.store.patch(join_path(ASSETS_PATH, asset_key), fields)

        asset.status = AssetStatus.ASSIGNED
        asset.assigned_to = employee_key
        asset.assigned_date = fields["assignedDate"]
        asset.return_date = None
        self.cache.patch_item(ASSETS_CACHE_KEY, asset_key, fields)
        logger.info("Assigned asset %s to %s: %s", asset_key, employee_key, reason)
        return asset
