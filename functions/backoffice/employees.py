"""
Employee directory: paged listing, search and account mutations.

Listing and search read `users` directly (key order), hiding client accounts.
Mutations write `users/{key}` and then patch the cached pages and the active
search results in place instead of reloading.
"""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import asdict, fields, replace
from typing import Any, Dict, List, Optional

from backoffice.auth import AuthClient
from backoffice.confirmation import (
    Confirmation,
    changed_fields,
    describe_changes,
    nothing_to_do,
    require_fields,
)
from backoffice.constants import DEPARTMENTS_PATH, USERS_PATH
from backoffice.errors import NotFoundError
from backoffice.gateway import StoreGateway, join_path
from backoffice.pagination import (
    KEY_FIELD,
    KeysetPaginator,
    Page,
    PrefixSearch,
    is_client_account,
    with_key,
)
from backoffice.records import (
    EMPLOYEE_PROFILE_FIELDS,
    AccountStatus,
    Employee,
    coerce_enum,
)

logger = logging.getLogger(__name__)

PASSWORD_ALPHABET = string.ascii_letters + string.digits + "!@#$%^&*()"
PASSWORD_LENGTH = 12

CREATE_REQUIRED_FIELDS = ("first_name", "last_name", "work_email", "temporary_password")

# Classification fields and the names they are reported under.
CLASSIFICATION_FIELDS = {
    "functional_role": "role",
    "department_key": "department",
    "account_status": "account_status",
}

_EDITABLE_FIELDS = frozenset(EMPLOYEE_PROFILE_FIELDS) | frozenset(CLASSIFICATION_FIELDS)


def generate_temporary_password(length: int = PASSWORD_LENGTH) -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def employee_from_form(form: Dict[str, Any], key: str = "") -> Employee:
    known = {f.name for f in fields(Employee)} & _EDITABLE_FIELDS
    values = {name: form[name] for name in known if form.get(name) is not None}
    employee = Employee(key=key, **values)
    employee.functional_role = (employee.functional_role or "employee").strip().lower()
    employee.account_status = coerce_enum(
        AccountStatus, employee.account_status, AccountStatus.ACTIVE
    )
    employee.department_key = employee.department_key or None
    return employee


class EmployeeDirectory:
    """
    Employee list state: a paginator (page and cursor caches) and the
    current search results.

    The service keeps one directory per process (see
    `dependencies.get_employee_directory`), so every caller shares the
    current page and search results. Build a separate instance for state
    that must stay private to one caller.
    """

    def __init__(
        self,
        store: StoreGateway,
        auth: AuthClient,
        page_size: int = 5,
        fetch_buffer: int = 15,
        search_limit: int = 10,
    ):
        self.store = store
        self.auth = auth
        self.paginator = KeysetPaginator(
            store,
            USERS_PATH,
            page_size=page_size,
            fetch_buffer=fetch_buffer,
            exclude=is_client_account,
        )
        self.searcher = PrefixSearch(
            store, USERS_PATH, limit=search_limit, exclude=is_client_account
        )
        self.search_results: Optional[List[Dict[str, Any]]] = None

    # Listing

    def load_page(self, page_number: int) -> Optional[Page]:
        return self.paginator.load_page(page_number)

    def next_page(self) -> Optional[Page]:
        return self.paginator.next_page()

    def previous_page(self) -> Optional[Page]:
        return self.paginator.previous_page()

    def search(self, term: str) -> Optional[List[Dict[str, Any]]]:
        """Run a search; a blank term clears it and returns None."""
        self.search_results = self.searcher.run(term)
        return self.search_results

    def visible_records(self) -> List[Dict[str, Any]]:
        if self.search_results is not None:
            return list(self.search_results)
        return self.paginator.current_records()

    # Helpers

    def _department_names(self) -> Dict[str, str]:
        """Department key -> name."""
        departments = self.store.read(DEPARTMENTS_PATH) or {}
        return {
            key: value.get("name", "")
            for key, value in departments.items()
            if isinstance(value, dict)
        }

    def _find_raw(self, key: str) -> Dict[str, Any]:
        for record in self.visible_records():
            if record.get(KEY_FIELD) == key:
                return record
        raw = self.store.read(join_path(USERS_PATH, key))
        if not isinstance(raw, dict):
            raise NotFoundError(f"Employee {key} was not found.")
        return with_key(key, raw)

    def _load_employee(self, key: str, names: Dict[str, str]) -> tuple[Dict[str, Any], Employee]:
        raw = self._find_raw(key)
        stored = {k: v for k, v in raw.items() if k != KEY_FIELD}
        by_name = {name: dept_key for dept_key, name in names.items() if name}
        return raw, Employee.from_store(key, stored, by_name)

    def _apply_locally(self, key: str, record: Optional[Dict[str, Any]]) -> None:
        self.paginator.replace_record(key, record)
        if self.search_results is None:
            return
        updated = []
        for existing in self.search_results:
            if existing.get(KEY_FIELD) != key:
                updated.append(existing)
            elif record is not None:
                updated.append(with_key(key, record))
        self.search_results = updated

    # Mutations

    def create_account(self, form: Dict[str, Any]) -> Employee:
        """
        Create the login, then the profile under the new uid.

        The page caches are dropped afterwards and page 1 is reloaded so the
        new account shows up.
        """
        require_fields(form, CREATE_REQUIRED_FIELDS)
        uid = self.auth.create_user(form["work_email"].strip(), form["temporary_password"])
        employee = employee_from_form(form, key=uid)
        payload = employee.to_store()
        if employee.department_key:
            payload["department"] = self._department_names().get(employee.department_key, "")
        self.store.write(join_path(USERS_PATH, uid), payload)
        logger.info("Created employee %s (%s)", uid, employee.work_email)

        self.paginator.reset()
        self.paginator.load_page(1)
        return employee

    def request_update(self, key: str, edited: Dict[str, Any]) -> Confirmation:
        names = self._department_names()
        raw, original = self._load_employee(key, names)

        changes = {
            name: value for name, value in edited.items() if name in _EDITABLE_FIELDS
        }
        if "functional_role" in changes and changes["functional_role"]:
            changes["functional_role"] = str(changes["functional_role"]).strip().lower()
        if "account_status" in changes:
            changes["account_status"] = coerce_enum(
                AccountStatus, changes["account_status"], original.account_status
            )
        if "department_key" in changes:
            changes["department_key"] = changes["department_key"] or None
        updated = replace(original, **changes)

        before, after = asdict(original), asdict(updated)
        changed = changed_fields(before, after, EMPLOYEE_PROFILE_FIELDS)
        changed += [
            label
            for name, label in CLASSIFICATION_FIELDS.items()
            if before[name] != after[name]
        ]
        if not changed:
            return nothing_to_do("No changes were made to the employee details.")

        def apply() -> Employee:
            payload = updated.to_store()
            payload["department"] = names.get(updated.department_key, "") if updated.department_key else ""
            self.store.patch(join_path(USERS_PATH, key), payload)
            merged = {k: v for k, v in raw.items() if k != KEY_FIELD}
            merged.update(payload)
            self._apply_locally(key, merged)
            logger.info("Updated employee %s: %s", key, ", ".join(changed))
            return updated

        return Confirmation(
            message="Are you sure you want to apply the following changes: "
            f"{describe_changes(changed)}?",
            action=apply,
            changes=changed,
        )

    def request_status_toggle(self, key: str) -> Confirmation:
        raw, employee = self._load_employee(key, self._department_names())
        new_status = (
            AccountStatus.INACTIVE
            if employee.account_status == AccountStatus.ACTIVE
            else AccountStatus.ACTIVE
        )

        def apply() -> AccountStatus:
            self.store.patch(
                join_path(USERS_PATH, key), {"accountStatus": new_status.value}
            )
            merged = {k: v for k, v in raw.items() if k != KEY_FIELD}
            merged["accountStatus"] = new_status.value
            self._apply_locally(key, merged)
            logger.info("Employee %s is now %s", key, new_status.value)
            return new_status

        return Confirmation(
            message=f"Are you sure you want to set the status of "
            f"'{employee.display_name}' to {new_status.value}?",
            action=apply,
            changes=["account_status"],
        )

    def request_delete(self, key: str) -> Confirmation:
        raw = self._find_raw(key)

        def apply() -> None:
            self.store.delete(join_path(USERS_PATH, key))
            self._apply_locally(key, None)
            logger.info("Deleted employee %s", key)

        return Confirmation(
            message="Are you sure you want to delete employee "
            f"'{raw.get('firstName', '')} {raw.get('lastName', '')}'? "
            "This action cannot be undone.",
            action=apply,
        )
