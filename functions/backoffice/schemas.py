"""
Pydantic schemas for the back-office HTTP API.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ConfirmationResponse(BaseModel):
    """A mutation preview, or its outcome once confirmed."""

    message: str
    requires_confirmation: bool
    applied: bool = False
    changes: List[str] = Field(default_factory=list)
    result: Optional[Any] = None


class EmployeeForm(BaseModel):
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
    account_status: str = "Active"
    department_key: Optional[str] = None


class CreateEmployeeRequest(EmployeeForm):
    temporary_password: str = ""


class EmployeeUpdateRequest(BaseModel):
    """Only the fields present in the request are compared and written."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[str] = None
    marital_status: Optional[str] = None
    personal_number: Optional[str] = None
    alternative_number: Optional[str] = None
    personal_email: Optional[str] = None
    work_email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipcode: Optional[str] = None
    country: Optional[str] = None
    date_of_join: Optional[str] = None
    functional_role: Optional[str] = None
    account_status: Optional[str] = None
    department_key: Optional[str] = None


class EmployeePageResponse(BaseModel):
    page: int
    has_more: bool
    employees: List[Dict[str, Any]]


class EmployeeSearchResponse(BaseModel):
    term: str
    employees: Optional[List[Dict[str, Any]]]


class PasswordResponse(BaseModel):
    password: str


class DepartmentForm(BaseModel):
    name: str = ""
    description: str = ""
    head_key: Optional[str] = None
    status: str = "active"


class DepartmentUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    head_key: Optional[str] = None
    status: Optional[str] = None
    member_keys: Optional[List[str]] = None


class DepartmentResponse(BaseModel):
    key: str
    name: str
    description: str
    head_key: Optional[str]
    head_name: str
    status: str
    created_date: str
    employee_count: int


class AssignAssetRequest(BaseModel):
    employee_key: str = ""
    reason: str = ""


class AssetListResponse(BaseModel):
    assets: List[Dict[str, Any]]
    recent_activity: List[Dict[str, Any]]
    last_updated: Optional[float] = None


class ProjectForm(BaseModel):
    title: str = ""
    category: str = "Web App"
    image: str = ""
    description: str = ""
    link: str = ""
    client: str = ""
    order: Optional[int] = None


class ReorderRequest(BaseModel):
    from_index: int
    to_index: int


class SubmissionsResponse(BaseModel):
    career: List[Dict[str, Any]]
    contact: List[Dict[str, Any]]


class CareerApplicationForm(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    role: str = ""
    experience: str = ""
    expected_salary: str = ""
    message: str = ""


class ContactMessageForm(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    subject: str = ""
    message: str = ""


class ServiceRegistrationForm(BaseModel):
    service: str = ""
    sub_services: List[str] = Field(default_factory=list)
    user_type: str = ""
    first_name: str = ""
    last_name: str = ""
    mobile: str = ""
    email: str = ""


class ServiceRegistrationResponse(BaseModel):
    client_key: str
    registration_key: str


class RegistrationBoardResponse(BaseModel):
    registrations: List[Dict[str, Any]]
    managers: List[Dict[str, Any]]
    counts: Dict[str, int]


class AssignManagerRequest(BaseModel):
    manager_key: str


class RebuildIndexesResponse(BaseModel):
    registrations: int
    employees: int
    message: str
