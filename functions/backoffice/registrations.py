"""
Client service registrations: sign-up writes and the admin review board.

A registration lives twice: nested under its client and flattened in
service_registrations_index. Every status change writes both copies in one
batch so the two never disagree after a successful write.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from backoffice.cache import CacheService
from backoffice.confirmation import Confirmation, require_fields
from backoffice.constants import (
    CLIENT_JOB_APPLICATIONS_PATH,
    CLIENTS_PATH,
    MANAGER_ASSIGNMENTS_PATH,
    REGISTRATIONS_CACHE_KEY,
    SERVICE_REGISTRATIONS_CHILD,
    SERVICE_REGISTRATIONS_INDEX_PATH,
    USERS_PATH,
)
from backoffice.errors import NotFoundError
from backoffice.gateway import StoreGateway, join_path
from backoffice.indexing import build_registration_index_record, index_key
from backoffice.pagination import with_key
from backoffice.records import AssignmentStatus, role_tokens

logger = logging.getLogger(__name__)

# Board tabs and the assignment statuses each one shows.
TABS = {
    "registered": (AssignmentStatus.REGISTERED.value, ""),
    "unassigned": (AssignmentStatus.PENDING_MANAGER.value,),
    "active": (
        AssignmentStatus.PENDING_EMPLOYEE.value,
        AssignmentStatus.PENDING_ACCEPTANCE.value,
        AssignmentStatus.ACTIVE.value,
        AssignmentStatus.INACTIVE.value,
    ),
    "rejected": (AssignmentStatus.REJECTED.value,),
    "restored": (AssignmentStatus.RESTORED.value,),
}


def registration_path(client_key: str, registration_key: str) -> str:
    return join_path(CLIENTS_PATH, client_key, SERVICE_REGISTRATIONS_CHILD, registration_key)


def register_service(
    store: StoreGateway,
    client_key: str,
    form: Dict[str, Any],
    today: Callable[[], date] = date.today,
) -> str:
    """
    Record a client's sign-up for a service and return the registration key.

    The nested record, its index record and the client's contact fields are
    written in one batch.
    """
    require_fields(form, ("service", "first_name", "last_name", "email"))
    day = today().isoformat()
    registration_key = store.push_key(
        join_path(CLIENTS_PATH, client_key, SERVICE_REGISTRATIONS_CHILD)
    )
    registration = {
        "service": form["service"],
        "subServices": list(form.get("sub_services") or []),
        "userType": form.get("user_type") or "",
        "firstName": form["first_name"],
        "lastName": form["last_name"],
        "mobile": form.get("mobile") or "",
        "email": form["email"],
        "registeredDate": day,
        "appliedDate": day,
        "assignmentStatus": AssignmentStatus.REGISTERED.value,
        "assignedManager": "",
        "paymentStatus": "Pending",
        "registrationKey": registration_key,
        "clientFirebaseKey": client_key,
    }
    profile = {
        "firstName": registration["firstName"],
        "lastName": registration["lastName"],
        "mobile": registration["mobile"],
        "email": registration["email"],
    }
    updates: Dict[str, Any] = {
        registration_path(client_key, registration_key): registration,
        join_path(SERVICE_REGISTRATIONS_INDEX_PATH, index_key(client_key, registration_key)): (
            build_registration_index_record(
                client_key, registration_key, registration, profile, today()
            )
        ),
    }
    for name, value in profile.items():
        updates[join_path(CLIENTS_PATH, client_key, name)] = value
    store.patch_many(updates)
    logger.info("Client %s registered for %s (%s)", client_key, form["service"], registration_key)
    return registration_key


def is_manager(user: Dict[str, Any]) -> bool:
    return "manager" in role_tokens(user)


class RegistrationBoard:
    def __init__(
        self,
        store: StoreGateway,
        cache: CacheService,
        max_age: float = 2 * 60,
    ):
        self.store = store
        self.cache = cache
        self.max_age = max_age
        self.registrations: Dict[str, Dict[str, Any]] = {}
        self.managers: List[Dict[str, Any]] = []

    def _fetch(self) -> Dict[str, Any]:
        index = self.store.read(SERVICE_REGISTRATIONS_INDEX_PATH) or {}
        users = self.store.read(USERS_PATH) or {}
        if not index:
            logger.warning(
                "service_registrations_index is empty; the index rebuild may need to run"
            )
        managers = [
            {
                "firebaseKey": key,
                "firstName": user.get("firstName", ""),
                "lastName": user.get("lastName", ""),
                "email": user.get("email") or user.get("workEmail", ""),
            }
            for key, user in users.items()
            if isinstance(user, dict) and is_manager(user)
        ]
        return {"registrations": index, "managers": managers}

    def load(self, force: bool = False) -> List[Dict[str, Any]]:
        entry = self.cache.load(
            REGISTRATIONS_CACHE_KEY, self._fetch, max_age=self.max_age, force=force
        )
        data = entry.data or {}
        self.registrations = {
            key: with_key(key, value)
            for key, value in (data.get("registrations") or {}).items()
            if isinstance(value, dict)
        }
        self.managers = list(data.get("managers") or [])
        return list(self.registrations.values())

    def _save_cache(self) -> None:
        registrations = {
            key: {k: v for k, v in record.items() if k != "firebaseKey"}
            for key, record in self.registrations.items()
        }
        self.cache.store(
            REGISTRATIONS_CACHE_KEY,
            {"registrations": registrations, "managers": self.managers},
        )

    def by_tab(self, tab: str) -> List[Dict[str, Any]]:
        try:
            statuses = TABS[tab]
        except KeyError:
            raise NotFoundError(f"Unknown tab: {tab}") from None
        return [
            r
            for r in self.registrations.values()
            if (r.get("assignmentStatus") or "") in statuses
        ]

    def tab_counts(self) -> Dict[str, int]:
        return {tab: len(self.by_tab(tab)) for tab in TABS}

    def get(self, key: str) -> Dict[str, Any]:
        try:
            return self.registrations[key]
        except KeyError:
            raise NotFoundError(f"Registration {key} was not found.") from None

    def _write_fields(self, key: str, fields: Dict[str, Any], extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        record = self.get(key)
        nested = registration_path(record["clientFirebaseKey"], record["registrationKey"])
        indexed = join_path(SERVICE_REGISTRATIONS_INDEX_PATH, key)
        updates: Dict[str, Any] = {}
        for name, value in fields.items():
            updates[join_path(nested, name)] = value
            updates[join_path(indexed, name)] = value
        updates.update(extra or {})
        self.store.patch_many(updates)
        record.update(fields)
        self._save_cache()
        return record

    def _set_status(self, key: str, status: AssignmentStatus) -> Dict[str, Any]:
        record = self._write_fields(key, {"assignmentStatus": status.value})
        logger.info("Registration %s is now %s", key, status.value)
        return record

    def accept(self, key: str) -> Dict[str, Any]:
        return self._set_status(key, AssignmentStatus.PENDING_MANAGER)

    def decline(self, key: str) -> Dict[str, Any]:
        return self._set_status(key, AssignmentStatus.REJECTED)

    def request_unaccept(self, key: str) -> Confirmation:
        record = self.get(key)
        return Confirmation(
            message=f"Are you sure you want to move {record.get('firstName', '')} "
            f"{record.get('lastName', '')} back to registered?",
            action=lambda: self._set_status(key, AssignmentStatus.REGISTERED),
        )

    def request_assign_manager(self, key: str, manager_key: str) -> Confirmation:
        """
        Prepare handing the registration to a manager; the manager's reverse
        index under manager_assignments moves with it.
        """
        record = self.get(key)
        manager = next((m for m in self.managers if m["firebaseKey"] == manager_key), None)
        if manager is None:
            raise NotFoundError(f"Manager {manager_key} was not found.")
        manager_name = f"{manager['firstName']} {manager['lastName']}".strip()
        client_name = f"{record.get('firstName', '')} {record.get('lastName', '')}".strip()

        def apply() -> Dict[str, Any]:
            extra: Dict[str, Any] = {
                join_path(MANAGER_ASSIGNMENTS_PATH, manager_key, key): {
                    "clientFirebaseKey": record["clientFirebaseKey"],
                    "registrationKey": record["registrationKey"],
                    "clientName": client_name,
                    "status": AssignmentStatus.PENDING_EMPLOYEE.value,
                }
            }
            previous = record.get("assignedManager")
            if previous and previous != manager_key:
                extra[join_path(MANAGER_ASSIGNMENTS_PATH, previous, key)] = None
            updated = self._write_fields(
                key,
                {
                    "manager": manager_name,
                    "assignedManager": manager_key,
                    "assignmentStatus": AssignmentStatus.PENDING_EMPLOYEE.value,
                },
                extra,
            )
            logger.info("Registration %s assigned to manager %s", key, manager_key)
            return updated

        return Confirmation(
            message=f"Are you sure you want to assign {manager_name} to {client_name}?",
            action=apply,
        )

    def request_delete(self, key: str) -> Confirmation:
        record = self.get(key)
        client_key, registration_key = record["clientFirebaseKey"], record["registrationKey"]

        def apply() -> None:
            self.store.patch_many(
                {
                    registration_path(client_key, registration_key): None,
                    join_path(SERVICE_REGISTRATIONS_INDEX_PATH, key): None,
                    join_path(CLIENT_JOB_APPLICATIONS_PATH, client_key, registration_key): None,
                }
            )
            del self.registrations[key]
            self._save_cache()
            logger.info("Deleted service registration %s", key)

        return Confirmation(
            message=f"Are you sure you want to delete the {record.get('service', '')} "
            f"registration of {record.get('firstName', '')} {record.get('lastName', '')}? "
            "This action cannot be undone.",
            action=apply,
        )
