"""
Cursor-based paging over a key-ordered collection, with an over-fetch buffer
so that records removed by a client-side filter do not leave pages short.

Page contents and cursors are cached per paginator instance. A cursor is the
last raw key of a fetched window; it goes stale if keys are inserted before
it between page loads, and no invalidation is attempted. Keys are assumed to
sort in creation order (push keys and auth uids are not guaranteed to).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from backoffice.constants import CLIENT_ROLE, PREFIX_RANGE_END
from backoffice.gateway import RangeQuery, StoreGateway
from backoffice.records import role_tokens

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
Predicate = Callable[[Record], bool]

KEY_FIELD = "firebaseKey"


def is_client_account(record: Record) -> bool:
    """True when any role token of the account is "client" (any case)."""
    return CLIENT_ROLE in role_tokens(record)


def with_key(key: str, value: Any) -> Record:
    record = dict(value) if isinstance(value, dict) else {}
    record[KEY_FIELD] = key
    return record


@dataclass
class Page:
    number: int
    records: List[Record]
    has_more: bool


@dataclass
class KeysetPaginator:
    """
    Forward/backward pagination over `path` ordered by key.

    fetch_buffer raw records are read per page (3x page_size by default) and
    `exclude` is applied before slicing to page_size.
    """

    store: StoreGateway
    path: str
    page_size: int = 5
    fetch_buffer: Optional[int] = None
    exclude: Optional[Predicate] = None
    page_cache: Dict[int, List[Record]] = field(default_factory=dict)
    cursors: Dict[int, str] = field(default_factory=dict)
    current_page: int = 1
    has_more: bool = True

    def __post_init__(self):
        if self.fetch_buffer is None:
            self.fetch_buffer = self.page_size * 3
        if self.fetch_buffer < self.page_size:
            raise ValueError("fetch_buffer must be at least page_size")

    def reset(self) -> None:
        """Forget cached pages and cursors (e.g. after a record was created)."""
        self.page_cache.clear()
        self.cursors.clear()
        self.current_page = 1
        self.has_more = True

    def _query_for(self, page_number: int) -> tuple[int, RangeQuery, bool]:
        if page_number > 1:
            cursor = self.cursors.get(page_number - 1)
            if cursor is not None:
                return (
                    page_number,
                    RangeQuery(start_at=cursor, limit_to_first=self.fetch_buffer + 1),
                    True,
                )
            logger.warning(
                "No cursor for page %d of %s; reloading the first page",
                page_number - 1,
                self.path,
            )
        return 1, RangeQuery(limit_to_first=self.fetch_buffer), False

    def load_page(self, page_number: int) -> Optional[Page]:
        """
        Serve page_number from cache or fetch it.

        Returns None for page numbers below 1, and for a forward move past
        the known last page. Store errors propagate with state unchanged.
        """
        if page_number < 1:
            return None

        cached = self.page_cache.get(page_number)
        if cached is not None:
            self.current_page = page_number
            return Page(page_number, list(cached), self._has_more_after(page_number))

        if not self.has_more and page_number > self.current_page:
            return None

        page_number, query, drop_cursor_echo = self._query_for(page_number)
        raw = self.store.read_range(self.path, query)

        keys = list(raw.keys())
        if drop_cursor_echo:
            keys = keys[1:]

        if not keys:
            self.has_more = False
            self.page_cache[page_number] = []
            self.current_page = page_number
            return Page(page_number, [], False)

        records = [with_key(k, raw[k]) for k in keys]
        # Filter before slicing so excluded records do not under-fill the page.
        if self.exclude is not None:
            records = [r for r in records if not self.exclude(r)]
        page_records = records[: self.page_size]

        self.has_more = len(keys) >= self.fetch_buffer
        self.page_cache[page_number] = page_records
        self.cursors[page_number] = keys[-1]
        self.current_page = page_number
        return Page(page_number, list(page_records), self.has_more)

    def _has_more_after(self, page_number: int) -> bool:
        if page_number + 1 in self.page_cache:
            return True
        return self.has_more or page_number < max(self.page_cache, default=0)

    def next_page(self) -> Optional[Page]:
        return self.load_page(self.current_page + 1)

    def previous_page(self) -> Optional[Page]:
        if self.current_page <= 1:
            return None
        return self.load_page(self.current_page - 1)

    def current_records(self) -> List[Record]:
        return list(self.page_cache.get(self.current_page, []))

    def replace_record(self, key: str, record: Optional[Record]) -> None:
        """Patch (or drop, when record is None) one record in every cached page."""
        for number, records in self.page_cache.items():
            updated = []
            for existing in records:
                if existing.get(KEY_FIELD) != key:
                    updated.append(existing)
                elif record is not None:
                    updated.append(with_key(key, record))
            self.page_cache[number] = updated


def capitalize_first(term: str) -> str:
    return term[:1].upper() + term[1:]


@dataclass
class PrefixSearch:
    """
    Bounded search over the same collection, bypassing pagination.

    A term containing "@" is an exact match on email_field; anything else is
    a capitalised prefix match on each of name_fields. Results are merged by
    key and passed through the same exclusion filter as the pages.
    """

    store: StoreGateway
    path: str
    email_field: str = "workEmail"
    name_fields: tuple = ("firstName", "lastName")
    limit: int = 10
    exclude: Optional[Predicate] = None

    def queries(self, term: str) -> List[RangeQuery]:
        if "@" in term:
            return [
                RangeQuery(
                    order_by=self.email_field, equal_to=term, limit_to_first=self.limit
                )
            ]
        prefix = capitalize_first(term)
        return [
            RangeQuery(
                order_by=name_field,
                start_at=prefix,
                end_at=prefix + PREFIX_RANGE_END,
                limit_to_first=self.limit,
            )
            for name_field in self.name_fields
        ]

    def run(self, term: str) -> Optional[List[Record]]:
        """None for a blank term (search cleared), else the merged matches."""
        term = (term or "").strip()
        if not term:
            return None
        matches: Dict[str, Record] = {}
        for query in self.queries(term):
            for key, value in self.store.read_range(self.path, query).items():
                record = with_key(key, value)
                if self.exclude is not None and self.exclude(record):
                    continue
                matches[key] = record
        return list(matches.values())
