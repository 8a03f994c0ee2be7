"""
Project portfolio shown on the public site, with drag reordering.

The admin list is served from the volatile (per-session) cache. Every
mutation stamps `metadata/projects_last_updated` so that public readers can
tell the list changed, then reloads from the database.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from backoffice.cache import VOLATILE, CacheService
from backoffice.confirmation import Confirmation, require_fields
from backoffice.constants import (
    PROJECT_IMAGES_PREFIX,
    PROJECTS_CACHE_KEY,
    PROJECTS_LAST_UPDATED_PATH,
    PROJECTS_PATH,
)
from backoffice.errors import NotFoundError, StoreError, ValidationError
from backoffice.gateway import RangeQuery, StoreGateway, join_path
from backoffice.pagination import KEY_FIELD, with_key
from backoffice.records import Project
from backoffice.storage import StorageClient, UploadedFile, safe_file_name

logger = logging.getLogger(__name__)

PROJECT_FORM_FIELDS = ("title", "category", "image", "description", "link", "client", "order")


def now_ms() -> int:
    return int(time.time() * 1000)


def sort_by_order(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Stable sort on `order`; records without one go last."""
    return sorted(
        records,
        key=lambda r: Project.from_store(r.get(KEY_FIELD, ""), _payload(r)).sort_position,
    )


def _payload(record: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in record.items() if k != KEY_FIELD}


class ProjectPortfolio:
    def __init__(
        self,
        store: StoreGateway,
        storage: StorageClient,
        cache: CacheService,
        limit: int = 50,
        clock_ms: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.storage = storage
        self.cache = cache
        self.limit = limit
        self.clock_ms = clock_ms
        self.projects: List[Dict[str, Any]] = []

    def _fetch(self) -> List[Dict[str, Any]]:
        data = self.store.read_range(PROJECTS_PATH, RangeQuery(limit_to_last=self.limit))
        return sort_by_order([with_key(k, v) for k, v in data.items()])

    def load(self, force: bool = False) -> List[Project]:
        entry = self.cache.load(PROJECTS_CACHE_KEY, self._fetch, force=force, tier=VOLATILE)
        self.projects = list(entry.data or [])
        return self.records()

    def records(self) -> List[Project]:
        return [Project.from_store(r[KEY_FIELD], _payload(r)) for r in self.projects]

    def touch_marker(self) -> Optional[int]:
        """
        Write the shared last-updated marker (epoch milliseconds).

        A failed marker write is logged and reported as None; the project
        write before it stands.
        """
        stamp = self.clock_ms()
        try:
            self.store.write(PROJECTS_LAST_UPDATED_PATH, stamp)
        except StoreError:
            logger.exception("Failed to update %s", PROJECTS_LAST_UPDATED_PATH)
            return None
        return stamp

    def _index_of(self, key: str) -> int:
        for index, record in enumerate(self.projects):
            if record.get(KEY_FIELD) == key:
                return index
        raise NotFoundError(f"Project {key} was not found.")

    def save(
        self,
        form: Dict[str, Any],
        image: Optional[UploadedFile] = None,
        key: Optional[str] = None,
    ) -> Project:
        """
        Create a project (key None) or update an existing one.

        An image URL or an uploaded image is required; an upload wins over
        the URL. New projects go to the end of the current order.
        """
        require_fields(form, ("title", "description"))
        if not form.get("image") and image is None:
            raise ValidationError(
                ["image"], "Please provide an Image URL or Upload an Image."
            )
        if key is not None:
            self._index_of(key)

        values = {name: form[name] for name in PROJECT_FORM_FIELDS if name in form}
        if image is not None:
            path = f"{PROJECT_IMAGES_PREFIX}/{self.clock_ms()}_{safe_file_name(image.name)}"
            values["image"] = self.storage.upload_bytes(path, image.data, image.content_type)

        if key is None:
            if values.get("order") is None:
                values["order"] = len(self.projects)
            key = self.store.push_key(PROJECTS_PATH)
            project = Project(key=key, **values)
            self.store.write(join_path(PROJECTS_PATH, key), project.to_store())
            logger.info("Created project %s", key)
        else:
            project = Project(key=key, **values)
            payload = {
                k: v
                for k, v in project.to_store().items()
                if k in values and v is not None
            }
            self.store.patch(join_path(PROJECTS_PATH, key), payload)
            logger.info("Updated project %s", key)

        self.touch_marker()
        self.load(force=True)
        return project

    def request_delete(self, key: str) -> Confirmation:
        record = self.projects[self._index_of(key)]

        def apply() -> None:
            self.store.delete(join_path(PROJECTS_PATH, key))
            self.touch_marker()
            self.load(force=True)
            logger.info("Deleted project %s", key)

        return Confirmation(
            message=f"Are you sure you want to delete the project '{record.get('title', '')}'?",
            action=apply,
        )

    def reorder(self, from_index: int, to_index: int) -> List[Project]:
        """
        Move one project and persist every position.

        The new order is applied locally and cached first; then all `order`
        fields are written in one batch, then the marker. Concurrent
        reorders from two sessions are not reconciled.
        """
        count = len(self.projects)
        if not (0 <= from_index < count and 0 <= to_index < count):
            raise ValidationError(
                ["from_index", "to_index"], f"Positions must be between 0 and {count - 1}."
            )
        reordered = list(self.projects)
        moved = reordered.pop(from_index)
        reordered.insert(to_index, moved)
        for index, record in enumerate(reordered):
            record["order"] = index

        self.projects = reordered
        self.cache.store(PROJECTS_CACHE_KEY, reordered, tier=VOLATILE)

        self.store.patch_many(
            {
                join_path(PROJECTS_PATH, record[KEY_FIELD], "order"): index
                for index, record in enumerate(reordered)
            }
        )
        self.touch_marker()
        logger.info("Reordered %d projects", count)
        return self.records()

