"""
One-shot rebuild of the flat list-view indexes.

Reads every client (with its nested service registrations) and every user
once, and writes:
  - service_registrations_index/{clientKey}_{registrationKey}
  - employees_index/{userKey}   (internal accounts only)

The job is manual. Index records are derived data and drift from their
sources until the next rebuild; nothing keeps them in sync automatically.
Every index write is a full overwrite under a deterministic key, so a failed
run can simply be repeated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from backoffice.constants import (
    CLIENTS_PATH,
    EMPLOYEES_INDEX_PATH,
    INTERNAL_ROLES,
    SERVICE_REGISTRATIONS_CHILD,
    SERVICE_REGISTRATIONS_INDEX_PATH,
    USERS_PATH,
)
from backoffice.gateway import StoreGateway
from backoffice.records import EmployeeIndexRecord, role_tokens

logger = logging.getLogger(__name__)

_REG = "registration"
_CLIENT = "client"

# (index field, ordered sources, default). Each source is (record, field);
# the first truthy value wins, otherwise the default is used.
REGISTRATION_INDEX_FIELDS: Sequence[Tuple[str, Sequence[Tuple[str, str]], Any]] = (
    # Basic info
    ("firstName", ((_REG, "firstName"), (_CLIENT, "firstName")), ""),
    ("middleName", ((_REG, "middleName"), (_CLIENT, "middleName")), ""),
    ("lastName", ((_REG, "lastName"), (_CLIENT, "lastName")), ""),
    (
        "dob",
        (
            (_REG, "dob"),
            (_REG, "dateOfBirth"),
            (_CLIENT, "dob"),
            (_CLIENT, "dateOfBirth"),
        ),
        "",
    ),
    ("gender", ((_REG, "gender"), (_CLIENT, "gender")), ""),
    ("ethnicity", ((_REG, "ethnicity"), (_CLIENT, "ethnicity")), ""),
    ("mobile", ((_REG, "mobile"), (_CLIENT, "mobile")), ""),
    ("email", ((_REG, "email"), (_CLIENT, "email")), ""),
    # Address
    ("address", ((_REG, "address"), (_CLIENT, "address")), ""),
    ("city", ((_REG, "city"), (_CLIENT, "city")), ""),
    ("state", ((_REG, "state"), (_CLIENT, "state")), ""),
    ("county", ((_REG, "county"), (_CLIENT, "county")), ""),
    (
        "zipCode",
        (
            (_REG, "zipCode"),
            (_REG, "zipcode"),
            (_CLIENT, "zipCode"),
            (_CLIENT, "zipcode"),
        ),
        "",
    ),
    ("country", ((_REG, "country"), (_CLIENT, "country")), ""),
    ("countryCode", ((_REG, "countryCode"), (_CLIENT, "countryCode")), "+1"),
    # Professional info
    ("service", ((_REG, "service"),), "Unknown"),
    ("assignmentStatus", ((_REG, "assignmentStatus"),), "registered"),
    ("currentCompany", ((_REG, "currentCompany"),), ""),
    ("currentDesignation", ((_REG, "currentDesignation"),), ""),
    ("yearsOfExperience", ((_REG, "yearsOfExperience"),), ""),
    ("currentSalary", ((_REG, "currentSalary"),), ""),
    ("expectedSalary", ((_REG, "expectedSalary"),), ""),
    ("noticePeriod", ((_REG, "noticePeriod"),), ""),
    # Job preferences
    ("jobsToApply", ((_REG, "jobsToApply"),), ""),
    ("workPreference", ((_REG, "workPreference"),), ""),
    ("willingToRelocate", ((_REG, "willingToRelocate"),), ""),
    ("restrictedCompanies", ((_REG, "restrictedCompanies"),), ""),
    ("preferredInterviewTime", ((_REG, "preferredInterviewTime"),), ""),
    ("earliestJoiningDate", ((_REG, "earliestJoiningDate"),), ""),
    ("relievingDate", ((_REG, "relievingDate"),), ""),
    # Clearance and visa
    ("securityClearance", ((_REG, "securityClearance"),), ""),
    ("clearanceLevel", ((_REG, "clearanceLevel"),), ""),
    ("visaStatus", ((_REG, "visaStatus"),), ""),
    ("otherVisaStatus", ((_REG, "otherVisaStatus"),), ""),
    # Education
    ("educationDetails", ((_REG, "educationDetails"),), []),
    # References
    ("referenceName", ((_REG, "referenceName"),), ""),
    ("referencePhone", ((_REG, "referencePhone"),), ""),
    ("referenceAddress", ((_REG, "referenceAddress"),), ""),
    ("referenceEmail", ((_REG, "referenceEmail"),), ""),
    ("referenceRole", ((_REG, "referenceRole"),), ""),
    # Account
    (
        "jobPortalAccountNameandCredentials",
        ((_REG, "jobPortalAccountNameandCredentials"),),
        "",
    ),
    # Files (URLs and metadata only)
    ("resume", ((_REG, "resume"), (_REG, "resumes")), []),
    ("coverLetter", ((_REG, "coverLetter"), (_REG, "coverLetterUrl")), ""),
    # Manager refs
    ("manager", ((_REG, "manager"),), None),
    ("assignedManager", ((_REG, "assignedManager"),), None),
)

REGISTRATION_INDEX_DATE_FIELDS: Sequence[Tuple[str, Sequence[Tuple[str, str]]]] = (
    (
        "appliedDate",
        (
            (_REG, "appliedDate"),
            (_REG, "dateOfJoin"),
            (_REG, "registeredDate"),
            (_CLIENT, "registeredDate"),
            (_CLIENT, "dateOfJoin"),
        ),
    ),
    (
        "registeredDate",
        (
            (_REG, "registeredDate"),
            (_REG, "dateOfJoin"),
            (_CLIENT, "registeredDate"),
            (_CLIENT, "dateOfJoin"),
        ),
    ),
)


@dataclass
class IndexingReport:
    registrations: int = 0
    employees: int = 0

    @property
    def is_noop(self) -> bool:
        return self.registrations == 0 and self.employees == 0

    def summary(self) -> str:
        if self.is_noop:
            return "No registrations or employees found to index."
        return (
            f"Created index for {self.registrations} registrations. "
            f"Created index for {self.employees} employees."
        )


def index_key(client_key: str, registration_key: str) -> str:
    return f"{client_key}_{registration_key}"


def _pick(sources: Dict[str, Dict[str, Any]], chain, default: Any) -> Any:
    for record_name, field_name in chain:
        value = sources[record_name].get(field_name)
        if value:
            return value
    return default


def date_part(value: str) -> str:
    """Date portion of an ISO timestamp ("2024-05-01T10:00:00Z" -> "2024-05-01")."""
    return str(value).split("T")[0]


def build_registration_index_record(
    client_key: str,
    registration_key: str,
    registration: Dict[str, Any],
    client: Dict[str, Any],
    today: date,
) -> Dict[str, Any]:
    """Flatten one nested registration, preferring its own fields over the client's."""
    sources = {_REG: registration or {}, _CLIENT: client or {}}
    record: Dict[str, Any] = {
        "clientFirebaseKey": client_key,
        "registrationKey": registration_key,
    }
    for name, chain, default in REGISTRATION_INDEX_FIELDS:
        # Copy mutable defaults so records never share a list.
        record[name] = _pick(sources, chain, list(default) if isinstance(default, list) else default)
    for name, chain in REGISTRATION_INDEX_DATE_FIELDS:
        record[name] = date_part(_pick(sources, chain, today.isoformat()))
    return record


def is_internal_account(user: Dict[str, Any]) -> bool:
    return any(token in INTERNAL_ROLES for token in role_tokens(user))


def build_employee_index_record(user_key: str, user: Dict[str, Any]) -> EmployeeIndexRecord:
    roles = user.get("roles")
    if isinstance(roles, dict):
        roles = list(roles.values())
    if not isinstance(roles, list) or not roles:
        roles = [user.get("role") or "employee"]
    return EmployeeIndexRecord(
        firebase_key=user_key,
        first_name=user.get("firstName") or "",
        last_name=user.get("lastName") or "",
        email=user.get("email") or user.get("workEmail") or "",
        mobile=user.get("mobile") or user.get("personalNumber") or "",
        roles=list(roles),
        department=user.get("department") or "",
        department_key=user.get("departmentKey"),
        account_status=user.get("accountStatus") or "Active",
    )


def collect_index_updates(
    clients: Optional[Dict[str, Any]],
    users: Optional[Dict[str, Any]],
    today: date,
) -> Tuple[Dict[str, Any], IndexingReport]:
    """Pure part of the rebuild: map source collections to absolute-path writes."""
    updates: Dict[str, Any] = {}
    report = IndexingReport()

    for client_key, client in (clients or {}).items():
        if not isinstance(client, dict):
            continue
        registrations = client.get(SERVICE_REGISTRATIONS_CHILD) or {}
        for registration_key, registration in registrations.items():
            if not isinstance(registration, dict):
                continue
            key = index_key(client_key, registration_key)
            updates[f"{SERVICE_REGISTRATIONS_INDEX_PATH}/{key}"] = (
                build_registration_index_record(
                    client_key, registration_key, registration, client, today
                )
            )
            report.registrations += 1

    for user_key, user in (users or {}).items():
        if not isinstance(user, dict) or not is_internal_account(user):
            continue
        updates[f"{EMPLOYEES_INDEX_PATH}/{user_key}"] = build_employee_index_record(
            user_key, user
        ).to_store()
        report.employees += 1

    return updates, report


def rebuild_list_indexes(
    store: StoreGateway, today: Callable[[], date] = date.today
) -> IndexingReport:
    """
    Rebuild both indexes in one batched write.

    Any read or write failure propagates and nothing is reported as done;
    the job is safe to re-run in full.
    """
    clients = store.read(CLIENTS_PATH)
    users = store.read(USERS_PATH)
    updates, report = collect_index_updates(clients, users, today())

    if report.is_noop:
        logger.info("No registrations or employees found to index")
        return report

    store.patch_many(updates)
    logger.info(
        "Indexed %d registrations and %d employees",
        report.registrations,
        report.employees,
    )
    return report
