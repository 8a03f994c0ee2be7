"""
Dependency wiring for the FastAPI app.

Collaborators and controllers are process-wide singletons. Without a
database URL (or with BACKOFFICE_USE_IN_MEMORY_BACKENDS set) everything runs
against in-memory implementations.
"""

from __future__ import annotations

import logging
from pathlib import Path

import firebase_admin
from firebase_admin import credentials

from backoffice.assets import AssetTracker
from backoffice.auth import AuthClient, FirebaseAuthClient, InMemoryAuthClient
from backoffice.cache import (
    CacheService,
    InMemoryCacheStore,
    RedisCacheStore,
    SqlCacheStore,
)
from backoffice.config import get_settings
from backoffice.departments import DepartmentRegistry
from backoffice.employees import EmployeeDirectory
from backoffice.gateway import FirebaseRealtimeStore, InMemoryStore, StoreGateway
from backoffice.projects import ProjectPortfolio
from backoffice.registrations import RegistrationBoard
from backoffice.storage import (
    CosStorageClient,
    FirebaseStorageClient,
    InMemoryStorageClient,
    StorageClient,
)
from backoffice.submissions import SubmissionInbox

logger = logging.getLogger(__name__)

_store: StoreGateway | None = None
_cache: CacheService | None = None
_auth_client: AuthClient | None = None
_storage_client: StorageClient | None = None
_controllers: dict = {}


def use_in_memory() -> bool:
    settings = get_settings()
    return settings.use_in_memory_backends or not settings.firebase_database_url


def get_firebase_app() -> firebase_admin.App:
    """Initialize the default Firebase app once, from a key file or ADC."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass
    settings = get_settings()
    credential = (
        credentials.Certificate(settings.firebase_credentials_path)
        if settings.firebase_credentials_path
        else credentials.ApplicationDefault()
    )
    options = {"databaseURL": settings.firebase_database_url}
    if settings.firebase_storage_bucket:
        options["storageBucket"] = settings.firebase_storage_bucket
    return firebase_admin.initialize_app(credential, options)


def get_store() -> StoreGateway:
    """
    Return a singleton store so in-memory data persists across requests.
    """
    global _store
    if _store:
        return _store

    if use_in_memory():
        _store = InMemoryStore()
    else:
        _store = FirebaseRealtimeStore(app=get_firebase_app())
    return _store


def _sqlite_parent(database_url: str) -> Path | None:
    prefix = "sqlite:///"
    if not database_url.startswith(prefix) or database_url.endswith(":memory:"):
        return None
    return Path(database_url[len(prefix):]).parent


def get_cache() -> CacheService:
    global _cache
    if _cache:
        return _cache

    settings = get_settings()
    if use_in_memory():
        durable = InMemoryCacheStore()
    elif settings.redis_url:
        durable = RedisCacheStore(url=settings.redis_url, prefix=settings.redis_cache_prefix)
    else:
        parent = _sqlite_parent(settings.cache_database_url)
        if parent is not None:
            parent.mkdir(parents=True, exist_ok=True)
        durable = SqlCacheStore(settings.cache_database_url)
    _cache = CacheService(durable=durable, volatile=InMemoryCacheStore())
    return _cache


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client:
        return _auth_client

    if use_in_memory():
        _auth_client = InMemoryAuthClient()
    else:
        _auth_client = FirebaseAuthClient(app=get_firebase_app())
    return _auth_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if use_in_memory():
        _storage_client = InMemoryStorageClient()
    elif settings.cos_bucket:
        _storage_client = CosStorageClient(
            bucket=settings.cos_bucket,
            region=settings.cos_region or "",
            endpoint=settings.cos_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.cos_public_base_url,
        )
    else:
        get_firebase_app()
        _storage_client = FirebaseStorageClient(bucket_name=settings.firebase_storage_bucket)
    return _storage_client


def _controller(name: str, factory):
    if name not in _controllers:
        _controllers[name] = factory()
    return _controllers[name]


def get_employee_directory() -> EmployeeDirectory:
    settings = get_settings()
    return _controller(
        "employees",
        lambda: EmployeeDirectory(
            get_store(),
            get_auth_client(),
            page_size=settings.employee_page_size,
            fetch_buffer=settings.employee_fetch_buffer,
            search_limit=settings.search_result_limit,
        ),
    )


def get_department_registry() -> DepartmentRegistry:
    return _controller("departments", lambda: DepartmentRegistry(get_store()))


def get_asset_tracker() -> AssetTracker:
    settings = get_settings()
    return _controller(
        "assets",
        lambda: AssetTracker(
            get_store(),
            get_cache(),
            employees_max_age=settings.employees_index_max_age_seconds,
        ),
    )


def get_project_portfolio() -> ProjectPortfolio:
    settings = get_settings()
    return _controller(
        "projects",
        lambda: ProjectPortfolio(
            get_store(),
            get_storage_client(),
            get_cache(),
            limit=settings.projects_list_limit,
        ),
    )


def get_submission_inbox() -> SubmissionInbox:
    settings = get_settings()
    return _controller(
        "submissions",
        lambda: SubmissionInbox(
            get_store(), get_storage_client(), limit=settings.submissions_list_limit
        ),
    )


def get_registration_board() -> RegistrationBoard:
    settings = get_settings()
    return _controller(
        "registrations",
        lambda: RegistrationBoard(
            get_store(),
            get_cache(),
            max_age=settings.registrations_index_max_age_seconds,
        ),
    )


def reset_dependencies() -> None:
    """Drop every singleton (tests, or after settings change)."""
    global _store, _cache, _auth_client, _storage_client
    _store = _cache = _auth_client = _storage_client = None
    _controllers.clear()
