"""
Typed records for the collections the admin screens manage.

Stored payloads are camelCase JSON; records are snake_case dataclasses.
Every record keeps its store key in `key`, which is never written back into
the payload itself.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from dacite import Config, from_dict

from backoffice.json_utils import convert_keys

T = TypeVar("T")


class AccountStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    PENDING = "Pending"


class DepartmentStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


class AssetStatus(str, Enum):
    AVAILABLE = "available"
    ASSIGNED = "assigned"
    IN_MAINTENANCE = "in maintenance"


class CareerStatus(str, Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


class AssignmentStatus(str, Enum):
    REGISTERED = "registered"
    PENDING_MANAGER = "pending_manager"
    PENDING_EMPLOYEE = "pending_employee"
    PENDING_ACCEPTANCE = "pending_acceptance"
    ACTIVE = "active"
    INACTIVE = "inactive"
    RESTORED = "restored"
    REJECTED = "rejected"


# Functional roles an admin can give an internal account.
FUNCTIONAL_ROLES = ("employee", "admin", "manager", "team lead")

_DACITE_CONFIG = Config(cast=[Enum], check_types=False)


def coerce_enum(enum_cls: Type[Enum], value: Any, default: Enum) -> Enum:
    """Map a stored value onto enum_cls case-insensitively, else default."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        for member in enum_cls:
            if member.value.lower() == lowered:
                return member
    return default


def role_tokens(raw: Dict[str, Any]) -> List[str]:
    """
    Lowercase role tokens of a stored account.

    Accepts a `roles` list (or index-keyed object, as lists come back from
    the database) and a `role` scalar; both may be present.
    """
    tokens: List[str] = []
    roles = raw.get("roles")
    if isinstance(roles, dict):
        roles = list(roles.values())
    if isinstance(roles, list):
        tokens.extend(str(r).strip().lower() for r in roles if r)
    role = raw.get("role")
    if isinstance(role, str) and role.strip():
        tokens.append(role.strip().lower())
    return tokens


def _to_store_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list):
        return [_to_store_value(v) for v in value]
    if isinstance(value, dict):
        return {k: _to_store_value(v) for k, v in value.items()}
    return value


def record_from_store(cls: Type[T], key: str, raw: Optional[Dict[str, Any]]) -> T:
    """Build a dataclass from a stored camelCase payload, ignoring unknown fields."""
    data = convert_keys(dict(raw or {}), "camel_to_snake")
    known = {f.name for f in fields(cls)}
    data = {k: v for k, v in data.items() if k in known and v is not None}
    data["key"] = key
    return from_dict(data_class=cls, data=data, config=_DACITE_CONFIG)


def record_to_store(record: Any, exclude: Iterable[str] = ()) -> Dict[str, Any]:
    skip = {"key", *exclude}
    payload = {k: v for k, v in asdict(record).items() if k not in skip}
    return convert_keys(_to_store_value(payload), "snake_to_camel")


@dataclass
class Employee:
    """
    Internal user account.

    Role, account status and department are separate fields. Legacy
    records fold all three into one lowercase `roles` list; `from_store`
    splits them apart and `to_store` writes the explicit fields (keeping a
    one-element `roles` list for older readers).
    """

    key: str = ""
    first_name: str = ""
    last_name: str = ""
    gender: str = ""
    date_of_birth: str = ""
    marital_status: str = ""
    personal_number: str = ""
    alternative_number: str = ""
    personal_email: str = ""
    work_email: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zipcode: str = ""
    country: str = ""
    date_of_join: str = ""
    functional_role: str = "employee"
    account_status: AccountStatus = AccountStatus.ACTIVE
    department_key: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @classmethod
    def from_store(
        cls,
        key: str,
        raw: Optional[Dict[str, Any]],
        department_keys_by_name: Optional[Dict[str, str]] = None,
    ) -> "Employee":
        raw = dict(raw or {})
        by_name = {
            name.lower(): dept_key
            for name, dept_key in (department_keys_by_name or {}).items()
        }
        tokens = role_tokens({"roles": raw.get("roles")})
        status_tokens = {s.value.lower() for s in AccountStatus}

        explicit_role = raw.get("role")
        if isinstance(explicit_role, str) and explicit_role.strip():
            functional_role = explicit_role.strip().lower()
        else:
            functional_role = next(
                (
                    t
                    for t in tokens
                    if t not in status_tokens and t not in by_name
                ),
                "employee",
            )

        if raw.get("accountStatus"):
            account_status = coerce_enum(
                AccountStatus, raw["accountStatus"], AccountStatus.ACTIVE
            )
        else:
            status_token = next((t for t in tokens if t in status_tokens), None)
            account_status = coerce_enum(
                AccountStatus, status_token, AccountStatus.ACTIVE
            )

        department_key = raw.get("departmentKey")
        if not department_key:
            legacy_name = raw.get("department")
            candidates = [legacy_name.lower()] if isinstance(legacy_name, str) else []
            candidates.extend(tokens)
            department_key = next((by_name[c] for c in candidates if c in by_name), None)

        for legacy in ("roles", "role", "accountStatus", "departmentKey", "department"):
            raw.pop(legacy, None)
        employee = record_from_store(cls, key, raw)
        employee.functional_role = functional_role
        employee.account_status = account_status
        employee.department_key = department_key
        return employee

    def to_store(self) -> Dict[str, Any]:
        payload = record_to_store(
            self, exclude=("functional_role", "account_status", "department_key")
        )
        payload["role"] = self.functional_role
        payload["roles"] = [self.functional_role]
        payload["accountStatus"] = self.account_status.value
        payload["departmentKey"] = self.department_key
        return payload


# Profile fields compared field-by-field before an employee update.
EMPLOYEE_PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "gender",
    "date_of_birth",
    "marital_status",
    "personal_number",
    "alternative_number",
    "personal_email",
    "work_email",
    "address",
    "city",
    "state",
    "zipcode",
    "country",
    "date_of_join",
)


@dataclass
class Department:
    key: str = ""
    name: str = ""
    description: str = ""
    head_key: Optional[str] = None
    status: DepartmentStatus = DepartmentStatus.ACTIVE
    created_date: str = ""
    # Derived from employee records on load; never persisted.
    employee_count: int = 0

    @classmethod
    def from_store(cls, key: str, raw: Optional[Dict[str, Any]]) -> "Department":
        raw = dict(raw or {})
        status = coerce_enum(DepartmentStatus, raw.pop("status", None), DepartmentStatus.ACTIVE)
        raw.pop("employeeCount", None)
        department = record_from_store(cls, key, raw)
        department.status = status
        return department

    def to_store(self) -> Dict[str, Any]:
        return record_to_store(self, exclude=("employee_count",))


@dataclass
class Asset:
    key: str = ""
    name: str = ""
    serial_number: str = ""
    status: AssetStatus = AssetStatus.AVAILABLE
    assigned_to: Optional[str] = None
    assigned_date: Optional[str] = None
    return_date: Optional[str] = None

    @classmethod
    def from_store(cls, key: str, raw: Optional[Dict[str, Any]]) -> "Asset":
        raw = dict(raw or {})
        status = coerce_enum(AssetStatus, raw.pop("status", None), AssetStatus.AVAILABLE)
        asset = record_from_store(cls, key, raw)
        asset.status = status
        return asset

    def to_store(self) -> Dict[str, Any]:
        return record_to_store(self)


# Sort position for projects stored without an order.
UNORDERED_POSITION = 9999


@dataclass
class Project:
    key: str = ""
    title: str = ""
    category: str = "Web App"
    image: str = ""
    description: str = ""
    link: str = ""
    client: str = ""
    order: Optional[int] = None

    @classmethod
    def from_store(cls, key: str, raw: Optional[Dict[str, Any]]) -> "Project":
        return record_from_store(cls, key, raw)

    def to_store(self) -> Dict[str, Any]:
        return record_to_store(self)

    @property
    def sort_position(self) -> int:
        return self.order if self.order is not None else UNORDERED_POSITION


@dataclass
class CareerSubmission:
    key: str = ""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    role: str = ""
    experience: str = ""
    expected_salary: str = ""
    message: str = ""
    resume_url: str = ""
    status: CareerStatus = CareerStatus.PENDING
    applied_date: str = ""

    @classmethod
    def from_store(cls, key: str, raw: Optional[Dict[str, Any]]) -> "CareerSubmission":
        raw = dict(raw or {})
        # Older submissions spell it resumeURL.
        resume_url = raw.pop("resumeURL", None) or raw.pop("resumeUrl", None) or ""
        status = coerce_enum(CareerStatus, raw.pop("status", None), CareerStatus.PENDING)
        submission = record_from_store(cls, key, raw)
        submission.resume_url = resume_url
        submission.status = status
        return submission

    def to_store(self) -> Dict[str, Any]:
        payload = record_to_store(self, exclude=("resume_url",))
        payload["resumeURL"] = self.resume_url
        return payload


@dataclass
class ContactMessage:
    key: str = ""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    subject: str = ""
    message: str = ""
    received_date: str = ""

    @classmethod
    def from_store(cls, key: str, raw: Optional[Dict[str, Any]]) -> "ContactMessage":
        return record_from_store(cls, key, raw)

    def to_store(self) -> Dict[str, Any]:
        return record_to_store(self)


@dataclass
class EmployeeIndexRecord:
    """Flat list-view projection of an internal account."""

    firebase_key: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    mobile: str = ""
    roles: List[str] = field(default_factory=list)
    department: str = ""
    department_key: Optional[str] = None
    account_status: str = "Active"

    def to_store(self) -> Dict[str, Any]:
        return convert_keys(asdict(self), "snake_to_camel")
