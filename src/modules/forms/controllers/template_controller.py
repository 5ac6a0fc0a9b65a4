from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from modules.auth.dependencies import get_current_user, require_permission
from modules.auth.models.user import User
from modules.forms.controllers.errors import http_error
from modules.forms.exceptions import WorkflowError, TemplateNotFound
from modules.forms.schemas.form_schema import RequiredSigner
from modules.forms.schemas.submission_schemas import (
    TemplateCreateRequest, TemplateVersionRequest, TemplateVersionResponse
)
from modules.forms.services.template_registry import TemplateRegistry

router = APIRouter(prefix="/templates", tags=["templates"])


def get_registry(db: Session = Depends(get_db)) -> TemplateRegistry:
    return TemplateRegistry(db)


def _check_company(registry: TemplateRegistry, template_id: int, user: User):
    template = registry.get_template(template_id)
    if template.company_id != user.company_id:
        raise TemplateNotFound(f"Template {template_id} not found")
    return template


@router.post("", response_model=TemplateVersionResponse, status_code=status.HTTP_201_CREATED)
def create_template(
    data: TemplateCreateRequest,
    registry: TemplateRegistry = Depends(get_registry),
    current_user: User = Depends(require_permission("manage_templates"))
):
    """Create a template and publish version 1"""
    try:
        version = registry.create_template(
            company_id=current_user.company_id,
            template_code=data.template_code,
            name=data.name,
            form_schema=data.form_schema,
            required_signers=data.required_signers,
            form_type=data.form_type,
            recurrence=data.recurrence,
            allow_parallel_signing=data.allow_parallel_signing,
            created_by=current_user.id,
        )
    except WorkflowError as e:
        raise http_error(e) from e
    return TemplateVersionResponse.from_version(version)


@router.post("/{template_id}/versions", response_model=TemplateVersionResponse, status_code=status.HTTP_201_CREATED)
def publish_version(
    template_id: int,
    data: TemplateVersionRequest,
    registry: TemplateRegistry = Depends(get_registry),
    current_user: User = Depends(require_permission("manage_templates"))
):
    """Publish a new version; submissions keep the version they were created with"""
    try:
        _check_company(registry, template_id, current_user)
        version = registry.publish_version(
            template_id,
            form_schema=data.form_schema,
            required_signers=data.required_signers,
            recurrence=data.recurrence,
            allow_parallel_signing=data.allow_parallel_signing,
            created_by=current_user.id,
        )
    except WorkflowError as e:
        raise http_error(e) from e
    return TemplateVersionResponse.from_version(version)


@router.get("/{template_id}", response_model=TemplateVersionResponse)
def get_latest_version(
    template_id: int,
    registry: TemplateRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user)
):
    try:
        _check_company(registry, template_id, current_user)
        version = registry.latest_published(template_id)
    except WorkflowError as e:
        raise http_error(e) from e
    return TemplateVersionResponse.from_version(version)


@router.get("/{template_id}/versions/{version}", response_model=TemplateVersionResponse)
def get_version(
    template_id: int,
    version: int,
    registry: TemplateRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user)
):
    try:
        _check_company(registry, template_id, current_user)
        found = registry.resolve(template_id, version)
    except WorkflowError as e:
        raise http_error(e) from e
    return TemplateVersionResponse.from_version(found)


@router.get("/{template_id}/versions/{version}/signers", response_model=List[RequiredSigner])
def get_required_signers(
    template_id: int,
    version: int,
    registry: TemplateRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user)
):
    try:
        _check_company(registry, template_id, current_user)
        return registry.required_signers(template_id, version)
    except WorkflowError as e:
        raise http_error(e) from e
