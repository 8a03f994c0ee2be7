"""
Department registry: departments, their heads and their members.

Membership lives on the employee (`departmentKey`); the count shown per
department is derived on load. Older accounts only carry the department as
a lowercase token in `roles`, so membership writes also maintain that token.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, replace
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional

from backoffice.confirmation import (
    Confirmation,
    changed_fields,
    nothing_to_do,
    require_fields,
)
from backoffice.constants import DEPARTMENTS_PATH, USERS_PATH
from backoffice.errors import NotFoundError
from backoffice.gateway import StoreGateway, join_path
from backoffice.indexing import is_internal_account
from backoffice.pagination import is_client_account
from backoffice.records import (
    Department,
    DepartmentStatus,
    Employee,
    coerce_enum,
    role_tokens,
)

logger = logging.getLogger(__name__)

NOT_ASSIGNED = "Not assigned"
HEAD_ROLES = ("manager", "team lead")
DEPARTMENT_FIELDS = ("name", "description", "head_key", "status")


def created_date_label(day: date) -> str:
    """d/m/Y without zero padding, e.g. 5/3/2024."""
    return f"{day.day}/{day.month}/{day.year}"


class DepartmentRegistry:
    def __init__(self, store: StoreGateway, today: Callable[[], date] = date.today):
        self.store = store
        self.today = today
        self.departments: Dict[str, Department] = {}
        self.employees: Dict[str, Employee] = {}
        self._raw_users: Dict[str, Dict[str, Any]] = {}

    def load(self) -> List[Department]:
        """Read departments and users, then derive membership counts."""
        raw_departments = self.store.read(DEPARTMENTS_PATH) or {}
        raw_users = self.store.read(USERS_PATH) or {}

        self.departments = {
            key: Department.from_store(key, value)
            for key, value in raw_departments.items()
            if isinstance(value, dict)
        }
        by_name = {d.name: key for key, d in self.departments.items() if d.name}
        self._raw_users = {
            key: value
            for key, value in raw_users.items()
            if isinstance(value, dict)
            and not is_client_account(value)
            and is_internal_account(value)
        }
        self.employees = {
            key: Employee.from_store(key, value, by_name)
            for key, value in self._raw_users.items()
        }
        self._recount()
        logger.info(
            "Loaded %d departments and %d employees",
            len(self.departments),
            len(self.employees),
        )
        return self.list()

    def _recount(self) -> None:
        for department in self.departments.values():
            department.employee_count = len(self.members(department.key))

    def list(self) -> List[Department]:
        return list(self.departments.values())

    def get(self, key: str) -> Department:
        try:
            return self.departments[key]
        except KeyError:
            raise NotFoundError(f"Department {key} was not found.") from None

    def head_name(self, department: Department) -> str:
        head = self.employees.get(department.head_key) if department.head_key else None
        return head.display_name if head else NOT_ASSIGNED

    def head_options(self) -> List[Employee]:
        """Employees eligible to head a department."""
        return [e for e in self.employees.values() if e.functional_role in HEAD_ROLES]

    def members(self, key: str) -> List[Employee]:
        return [e for e in self.employees.values() if e.department_key == key]

    def available_employees(self, key: str) -> List[Employee]:
        return [e for e in self.employees.values() if e.department_key != key]

    def search(self, term: str) -> List[Department]:
        """Case-insensitive substring match on name, description and head name."""
        needle = (term or "").strip().lower()
        if not needle:
            return self.list()
        return [
            d
            for d in self.departments.values()
            if needle in d.name.lower()
            or needle in d.description.lower()
            or needle in self.head_name(d).lower()
        ]

    def create(self, form: Dict[str, Any]) -> Department:
        require_fields(form, ("name",))
        key = self.store.push_key(DEPARTMENTS_PATH)
        department = Department(
            key=key,
            name=form["name"].strip(),
            description=(form.get("description") or "").strip(),
            head_key=form.get("head_key") or None,
            status=coerce_enum(DepartmentStatus, form.get("status"), DepartmentStatus.ACTIVE),
            created_date=created_date_label(self.today()),
        )
        self.store.write(join_path(DEPARTMENTS_PATH, key), department.to_store())
        self.departments[key] = department
        logger.info("Created department %s (%s)", key, department.name)
        return department

    # Membership writes

    def _member_updates(
        self,
        user_key: str,
        department: Optional[Department],
        drop_tokens: Iterable[str],
    ) -> Dict[str, Any]:
        """Absolute-path writes moving one user into department (or out, for None)."""
        drop = {t.lower() for t in drop_tokens if t}
        raw = self._raw_users.get(user_key, {})
        tokens = [t for t in role_tokens({"roles": raw.get("roles")}) if t not in drop]
        if department is not None:
            tokens.append(department.name.lower())
        base = join_path(USERS_PATH, user_key)
        return {
            f"{base}/departmentKey": department.key if department else None,
            f"{base}/department": department.name if department else None,
            f"{base}/roles": tokens or None,
        }

    def _apply_member_updates(self, updates: Dict[str, Any]) -> None:
        by_name = {d.name: key for key, d in self.departments.items() if d.name}
        for path, value in updates.items():
            parts = path.split("/")
            if len(parts) != 3 or parts[0] != USERS_PATH:
                continue
            _, user_key, field_name = parts
            raw = self._raw_users.setdefault(user_key, {})
            if value is None:
                raw.pop(field_name, None)
            else:
                raw[field_name] = value
        for user_key in {p.split("/")[1] for p in updates if p.startswith(USERS_PATH + "/")}:
            if user_key in self._raw_users:
                self.employees[user_key] = Employee.from_store(
                    user_key, self._raw_users[user_key], by_name
                )

    def request_update(
        self,
        key: str,
        edited: Dict[str, Any],
        member_keys: Optional[Iterable[str]] = None,
    ) -> Confirmation:
        """
        Prepare an update of the department's fields and, when member_keys is
        given, of its membership. Everything is written in one batch.
        """
        original = self.get(key)
        changes = {n: edited[n] for n in DEPARTMENT_FIELDS if n in edited}
        if "status" in changes:
            changes["status"] = coerce_enum(DepartmentStatus, changes["status"], original.status)
        if "head_key" in changes:
            changes["head_key"] = changes["head_key"] or None
        updated = replace(original, **changes)
        changed = changed_fields(asdict(original), asdict(updated), DEPARTMENT_FIELDS)

        current = {e.key for e in self.members(key)}
        wanted = set(member_keys) if member_keys is not None else current
        unknown = wanted - set(self.employees)
        if unknown:
            raise NotFoundError(f"Unknown employees: {', '.join(sorted(unknown))}")
        added, removed = wanted - current, current - wanted
        if added or removed:
            changed.append("members")
        if not changed:
            return nothing_to_do("No changes were made to the department details.")

        department_names = [d.name for d in self.departments.values()]

        def apply() -> Department:
            updates: Dict[str, Any] = {
                join_path(DEPARTMENTS_PATH, key, name): value
                for name, value in updated.to_store().items()
            }
            for user_key in added:
                updates.update(self._member_updates(user_key, updated, department_names))
            for user_key in removed:
                updates.update(self._member_updates(user_key, None, [original.name]))
            if updated.name != original.name:
                for user_key in wanted - added:
                    updates.update(
                        self._member_updates(user_key, updated, [original.name])
                    )
            self.store.patch_many(updates)
            self.departments[key] = updated
            self._apply_member_updates(updates)
            self._recount()
            logger.info(
                "Updated department %s (+%d/-%d members)", key, len(added), len(removed)
            )
            return updated

        return Confirmation(
            message=f"Are you sure you want to update department '{original.name}'?",
            action=apply,
            changes=changed,
        )

    def request_delete(self, key: str) -> Confirmation:
        """
        Prepare deleting the department and detaching every employee that
        references it, by key or by the legacy lowercase name token.
        """
        department = self.get(key)
        token = department.name.lower()

        def apply() -> List[str]:
            detached = [
                user_key
                for user_key, raw in self._raw_users.items()
                if raw.get("departmentKey") == key
                or token in role_tokens({"roles": raw.get("roles")})
                or str(raw.get("department") or "").lower() == token
            ]
            updates: Dict[str, Any] = {join_path(DEPARTMENTS_PATH, key): None}
            for user_key in detached:
                updates.update(self._member_updates(user_key, None, [token]))
            self.store.patch_many(updates)
            del self.departments[key]
            self._apply_member_updates(updates)
            logger.info(
                "Deleted department %s and detached %d employees", key, len(detached)
            )
            return detached

        return Confirmation(
            message=f"Are you sure you want to delete the department '{department.name}'? "
            "This action cannot be undone.",
            action=apply,
        )
