"""
HTTP routes for the back-office API.

Mutations that need confirmation answer with a preview unless the request
carries confirm=true; the same request with confirm=true performs the write.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from backoffice.assets import AssetTracker
from backoffice.confirmation import Confirmation
from backoffice.departments import DepartmentRegistry
from backoffice.dependencies import (
    get_asset_tracker,
    get_department_registry,
    get_employee_directory,
    get_project_portfolio,
    get_registration_board,
    get_store,
    get_submission_inbox,
)
from backoffice.employees import EmployeeDirectory, generate_temporary_password
from backoffice.errors import (
    BackofficeError,
    IdentityConflictError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from backoffice.gateway import StoreGateway
from backoffice.indexing import rebuild_list_indexes
from backoffice.projects import ProjectPortfolio
from backoffice.registrations import RegistrationBoard, register_service
from backoffice.schemas import (
    AssetListResponse,
    AssignAssetRequest,
    AssignManagerRequest,
    CareerApplicationForm,
    ConfirmationResponse,
    ContactMessageForm,
    CreateEmployeeRequest,
    DepartmentForm,
    DepartmentResponse,
    DepartmentUpdateRequest,
    EmployeePageResponse,
    EmployeeSearchResponse,
    EmployeeUpdateRequest,
    PasswordResponse,
    RebuildIndexesResponse,
    RegistrationBoardResponse,
    ReorderRequest,
    ServiceRegistrationForm,
    ServiceRegistrationResponse,
    SubmissionsResponse,
)
from backoffice.storage import UploadedFile
from backoffice.submissions import (
    ACCEPT,
    DELETE_CAREER,
    DELETE_CONTACT,
    REJECT,
    SubmissionInbox,
)

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_STATUS = {
    ValidationError: 400,
    NotFoundError: 404,
    IdentityConflictError: 409,
    StoreError: 502,
}

SUBMISSION_ACTIONS = {
    ("career", "accept"): ACCEPT,
    ("career", "reject"): REJECT,
    ("career", "delete"): DELETE_CAREER,
    ("contact", "delete"): DELETE_CONTACT,
}


def backoffice_error_handler(request: Request, exc: BackofficeError) -> JSONResponse:
    status = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 500
    )
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    body = {"detail": str(exc)}
    if isinstance(exc, ValidationError):
        body["missing"] = exc.missing
    return JSONResponse(status_code=status, content=body)


def _respond(confirmation: Confirmation, confirm: bool) -> ConfirmationResponse:
    if not confirm or not confirmation.requires_action:
        return ConfirmationResponse(
            message=confirmation.message,
            requires_confirmation=confirmation.requires_action,
            changes=confirmation.changes or [],
        )
    result = confirmation.confirm()
    return ConfirmationResponse(
        message=confirmation.message,
        requires_confirmation=False,
        applied=True,
        changes=confirmation.changes or [],
        result=jsonable_encoder(result),
    )


async def _read_upload(file: Optional[UploadFile]) -> Optional[UploadedFile]:
    if file is None or not file.filename:
        return None
    return UploadedFile(
        name=file.filename,
        data=await file.read(),
        content_type=file.content_type or "application/octet-stream",
    )


# Employees


@router.get("/employees", response_model=EmployeePageResponse)
def list_employees(
    page: int = Query(1, ge=1),
    directory: EmployeeDirectory = Depends(get_employee_directory),
):
    loaded = directory.load_page(page)
    if loaded is None:
        raise HTTPException(status_code=404, detail="No more employees")
    return EmployeePageResponse(
        page=loaded.number, has_more=loaded.has_more, employees=loaded.records
    )


@router.get("/employees/search", response_model=EmployeeSearchResponse)
def search_employees(
    q: str = Query(""),
    directory: EmployeeDirectory = Depends(get_employee_directory),
):
    return EmployeeSearchResponse(term=q, employees=directory.search(q))


@router.get("/employees/temporary-password", response_model=PasswordResponse)
def temporary_password():
    return PasswordResponse(password=generate_temporary_password())


@router.post("/employees", status_code=201)
def create_employee(
    payload: CreateEmployeeRequest,
    directory: EmployeeDirectory = Depends(get_employee_directory),
):
    employee = directory.create_account(payload.model_dump())
    return jsonable_encoder(employee)


@router.post("/employees/{key}/update", response_model=ConfirmationResponse)
def update_employee(
    key: str,
    payload: EmployeeUpdateRequest,
    confirm: bool = Query(False),
    directory: EmployeeDirectory = Depends(get_employee_directory),
):
    return _respond(
        directory.request_update(key, payload.model_dump(exclude_unset=True)), confirm
    )


@router.post("/employees/{key}/status", response_model=ConfirmationResponse)
def toggle_employee_status(
    key: str,
    confirm: bool = Query(False),
    directory: EmployeeDirectory = Depends(get_employee_directory),
):
    return _respond(directory.request_status_toggle(key), confirm)


@router.post("/employees/{key}/delete", response_model=ConfirmationResponse)
def delete_employee(
    key: str,
    confirm: bool = Query(False),
    directory: EmployeeDirectory = Depends(get_employee_directory),
):
    return _respond(directory.request_delete(key), confirm)


# Departments


def _department_response(registry: DepartmentRegistry, department) -> DepartmentResponse:
    return DepartmentResponse(
        key=department.key,
        name=department.name,
        description=department.description,
        head_key=department.head_key,
        head_name=registry.head_name(department),
        status=department.status.value,
        created_date=department.created_date,
        employee_count=department.employee_count,
    )


@router.get("/departments", response_model=list[DepartmentResponse])
def list_departments(
    q: str = Query(""),
    registry: DepartmentRegistry = Depends(get_department_registry),
):
    registry.load()
    return [_department_response(registry, d) for d in registry.search(q)]


@router.get("/departments/head-options")
def department_head_options(
    registry: DepartmentRegistry = Depends(get_department_registry),
):
    registry.load()
    return jsonable_encoder(registry.head_options())


@router.get("/departments/{key}/members")
def department_members(
    key: str,
    registry: DepartmentRegistry = Depends(get_department_registry),
):
    registry.load()
    registry.get(key)
    return {
        "members": jsonable_encoder(registry.members(key)),
        "available": jsonable_encoder(registry.available_employees(key)),
    }


@router.post("/departments", response_model=DepartmentResponse, status_code=201)
def create_department(
    payload: DepartmentForm,
    registry: DepartmentRegistry = Depends(get_department_registry),
):
    registry.load()
    return _department_response(registry, registry.create(payload.model_dump()))


@router.post("/departments/{key}/update", response_model=ConfirmationResponse)
def update_department(
    key: str,
    payload: DepartmentUpdateRequest,
    confirm: bool = Query(False),
    registry: DepartmentRegistry = Depends(get_department_registry),
):
    registry.load()
    edited = payload.model_dump(exclude_unset=True)
    member_keys = edited.pop("member_keys", None)
    return _respond(registry.request_update(key, edited, member_keys), confirm)


@router.post("/departments/{key}/delete", response_model=ConfirmationResponse)
def delete_department(
    key: str,
    confirm: bool = Query(False),
    registry: DepartmentRegistry = Depends(get_department_registry),
):
    registry.load()
    return _respond(registry.request_delete(key), confirm)


# Assets


@router.get("/assets", response_model=AssetListResponse)
def list_assets(
    force: bool = Query(False),
    available: Optional[str] = Query(None),
    tracker: AssetTracker = Depends(get_asset_tracker),
):
    assets = tracker.load(force=force)
    if available is not None:
        assets = tracker.available_assets(available)
    return AssetListResponse(
        assets=jsonable_encoder(assets),
        recent_activity=jsonable_encoder(tracker.recent_activity()),
        last_updated=tracker.last_updated,
    )


@router.post("/assets/{key}/assign")
def assign_asset(
    key: str,
    payload: AssignAssetRequest,
    tracker: AssetTracker = Depends(get_asset_tracker),
):
    if not tracker.assets:
        tracker.load()
    return jsonable_encoder(tracker.assign(key, payload.employee_key, payload.reason))


# Projects


@router.get("/projects")
def list_projects(
    force: bool = Query(False),
    portfolio: ProjectPortfolio = Depends(get_project_portfolio),
):
    return jsonable_encoder(portfolio.load(force=force))


async def _save_project(
    portfolio: ProjectPortfolio,
    key: Optional[str],
    title: str,
    category: str,
    image: str,
    description: str,
    link: str,
    client: str,
    order: Optional[int],
    image_file: Optional[UploadFile],
) -> Any:
    portfolio.load()
    form = {
        "title": title,
        "category": category,
        "image": image,
        "description": description,
        "link": link,
        "client": client,
        "order": order,
    }
    project = portfolio.save(form, image=await _read_upload(image_file), key=key)
    return jsonable_encoder(project)


@router.post("/projects", status_code=201)
async def create_project(
    title: str = Form(""),
    category: str = Form("Web App"),
    image: str = Form(""),
    description: str = Form(""),
    link: str = Form(""),
    client: str = Form(""),
    order: Optional[int] = Form(None),
    image_file: Optional[UploadFile] = File(None),
    portfolio: ProjectPortfolio = Depends(get_project_portfolio),
):
    return await _save_project(
        portfolio, None, title, category, image, description, link, client, order, image_file
    )


@router.put("/projects/{key}")
async def update_project(
    key: str,
    title: str = Form(""),
    category: str = Form("Web App"),
    image: str = Form(""),
    description: str = Form(""),
    link: str = Form(""),
    client: str = Form(""),
    order: Optional[int] = Form(None),
    image_file: Optional[UploadFile] = File(None),
    portfolio: ProjectPortfolio = Depends(get_project_portfolio),
):
    return await _save_project(
        portfolio, key, title, category, image, description, link, client, order, image_file
    )


@router.post("/projects/reorder")
def reorder_projects(
    payload: ReorderRequest,
    portfolio: ProjectPortfolio = Depends(get_project_portfolio),
):
    portfolio.load()
    return jsonable_encoder(portfolio.reorder(payload.from_index, payload.to_index))


@router.post("/projects/{key}/delete", response_model=ConfirmationResponse)
def delete_project(
    key: str,
    confirm: bool = Query(False),
    portfolio: ProjectPortfolio = Depends(get_project_portfolio),
):
    portfolio.load()
    return _respond(portfolio.request_delete(key), confirm)


# Submissions


def _load_inbox(inbox: SubmissionInbox) -> dict:
    loaded = inbox.load()
    if loaded is None:
        raise HTTPException(status_code=503, detail="The inbox is closed")
    return loaded


@router.get("/submissions", response_model=SubmissionsResponse)
def list_submissions(inbox: SubmissionInbox = Depends(get_submission_inbox)):
    loaded = _load_inbox(inbox)
    return SubmissionsResponse(
        career=jsonable_encoder(loaded["career"]),
        contact=jsonable_encoder(loaded["contact"]),
    )


@router.get("/submissions/career/{key}/resume")
def submission_resume(key: str, inbox: SubmissionInbox = Depends(get_submission_inbox)):
    _load_inbox(inbox)
    return {"url": inbox.resume_url(key)}


@router.post("/submissions/career", status_code=201)
async def submit_career_application(
    first_name: str = Form(""),
    last_name: str = Form(""),
    email: str = Form(""),
    phone: str = Form(""),
    role: str = Form(""),
    experience: str = Form(""),
    expected_salary: str = Form(""),
    message: str = Form(""),
    resume: Optional[UploadFile] = File(None),
    inbox: SubmissionInbox = Depends(get_submission_inbox),
):
    form = CareerApplicationForm(
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone=phone,
        role=role,
        experience=experience,
        expected_salary=expected_salary,
        message=message,
    )
    submission = inbox.submit_career_application(
        form.model_dump(), resume=await _read_upload(resume)
    )
    return jsonable_encoder(submission)


@router.post("/submissions/contact", status_code=201)
def submit_contact_message(
    payload: ContactMessageForm,
    inbox: SubmissionInbox = Depends(get_submission_inbox),
):
    return jsonable_encoder(inbox.submit_contact_message(payload.model_dump()))


@router.post("/submissions/{kind}/{key}/{action}", response_model=ConfirmationResponse)
def submission_action(
    kind: str,
    key: str,
    action: str,
    confirm: bool = Query(False),
    inbox: SubmissionInbox = Depends(get_submission_inbox),
):
    inbox_action = SUBMISSION_ACTIONS.get((kind, action))
    if inbox_action is None:
        raise HTTPException(status_code=404, detail=f"Unknown action {kind}/{action}")
    _load_inbox(inbox)
    return _respond(inbox.request_action(inbox_action, key), confirm)


# Service registrations


@router.get("/registrations", response_model=RegistrationBoardResponse)
def list_registrations(
    tab: Optional[str] = Query(None),
    force: bool = Query(False),
    board: RegistrationBoard = Depends(get_registration_board),
):
    registrations = board.load(force=force)
    if tab is not None:
        registrations = board.by_tab(tab)
    return RegistrationBoardResponse(
        registrations=registrations, managers=board.managers, counts=board.tab_counts()
    )


@router.post(
    "/clients/{client_key}/registrations",
    response_model=ServiceRegistrationResponse,
    status_code=201,
)
def create_registration(
    client_key: str,
    payload: ServiceRegistrationForm,
    store: StoreGateway = Depends(get_store),
):
    registration_key = register_service(store, client_key, payload.model_dump())
    return ServiceRegistrationResponse(
        client_key=client_key, registration_key=registration_key
    )


@router.post("/registrations/{key}/accept")
def accept_registration(key: str, board: RegistrationBoard = Depends(get_registration_board)):
    board.load()
    return board.accept(key)


@router.post("/registrations/{key}/decline")
def decline_registration(key: str, board: RegistrationBoard = Depends(get_registration_board)):
    board.load()
    return board.decline(key)


@router.post("/registrations/{key}/unaccept", response_model=ConfirmationResponse)
def unaccept_registration(
    key: str,
    confirm: bool = Query(False),
    board: RegistrationBoard = Depends(get_registration_board),
):
    board.load()
    return _respond(board.request_unaccept(key), confirm)


@router.post("/registrations/{key}/assign-manager", response_model=ConfirmationResponse)
def assign_registration_manager(
    key: str,
    payload: AssignManagerRequest,
    confirm: bool = Query(False),
    board: RegistrationBoard = Depends(get_registration_board),
):
    board.load()
    return _respond(board.request_assign_manager(key, payload.manager_key), confirm)


@router.post("/registrations/{key}/delete", response_model=ConfirmationResponse)
def delete_registration(
    key: str,
    confirm: bool = Query(False),
    board: RegistrationBoard = Depends(get_registration_board),
):
    board.load()
    return _respond(board.request_delete(key), confirm)


# Maintenance


@router.post("/maintenance/rebuild-indexes", response_model=RebuildIndexesResponse)
def rebuild_indexes(store: StoreGateway = Depends(get_store)):
    report = rebuild_list_indexes(store)
    return RebuildIndexesResponse(
        registrations=report.registrations,
        employees=report.employees,
        message=report.summary(),
    )
