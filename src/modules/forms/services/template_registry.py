from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.orm import Session

from modules.forms.exceptions import TemplateNotFound, InvalidTemplate
from modules.forms.models.template import FormTemplate, FormTemplateVersion, Recurrence, TemplateStatus
from modules.forms.schemas.form_schema import FormSchema, RequiredSigner
from utils.logger import setup_logger

logger = setup_logger(__name__)


class TemplateRegistry:
    """Publishes template versions and resolves them by exact version."""

    def __init__(self, db_session: Session):
        self.db = db_session

    # ------------------------------------------------------------------ publishing
    def create_template(
        self,
        company_id: int,
        template_code: str,
        name: str,
        form_schema: Dict[str, Any],
        required_signers: List[Dict[str, Any]],
        form_type: str = "CHECKLIST",
        recurrence: Recurrence = Recurrence.NONE,
        allow_parallel_signing: bool = False,
        created_by: Optional[int] = None,
    ) -> FormTemplateVersion:
        """Create a template and publish its first version."""
        code = template_code.strip().upper()
        if not code or "-" in code:
            raise InvalidTemplate("template_code must be non-empty and must not contain '-'")

        template = FormTemplate(
            company_id=company_id,
            template_code=code,
            name=name,
            form_type=form_type,
            status=TemplateStatus.PUBLISHED,
        )
        self.db.add(template)
        self.db.flush()
        version = self._new_version(
            template, 1, form_schema, required_signers, recurrence, allow_parallel_signing, created_by
        )
        self.db.commit()
        logger.info(f"Template {code} created (id={template.id}, v1)")
        return version

    def publish_version(
        self,
        template_id: int,
        form_schema: Dict[str, Any],
        required_signers: List[Dict[str, Any]],
        recurrence: Recurrence = Recurrence.NONE,
        allow_parallel_signing: bool = False,
        created_by: Optional[int] = None,
    ) -> FormTemplateVersion:
        """Publish the next version; earlier versions are left untouched."""
        template = self.db.get(FormTemplate, template_id)
        if template is None:
            raise TemplateNotFound(f"Template {template_id} not found")
        current = (
            self.db.query(func.max(FormTemplateVersion.version))
            .filter(FormTemplateVersion.template_id == template_id)
            .scalar()
        ) or 0
        version = self._new_version(
            template, current + 1, form_schema, required_signers, recurrence, allow_parallel_signing, created_by
        )
        self.db.commit()
        logger.info(f"Template {template.template_code} published v{version.version}")
        return version

    def _new_version(self, template, number, form_schema, required_signers, recurrence,
                     allow_parallel_signing, created_by) -> FormTemplateVersion:
        schema = self.parse_schema(form_schema)
        signers = self.parse_signers(required_signers)
        version = FormTemplateVersion(
            template_id=template.id,
            version=number,
            form_schema=schema.model_dump(mode="json", exclude_none=True),
            required_signers=[s.model_dump(exclude_none=True) for s in signers],
            recurrence=recurrence,
            allow_parallel_signing=allow_parallel_signing,
            created_by=created_by,
        )
        self.db.add(version)
        self.db.flush()
        return version

    @staticmethod
    def parse_schema(form_schema: Dict[str, Any]) -> FormSchema:
        try:
            return FormSchema.model_validate(form_schema)
        except ValidationError as e:
            raise InvalidTemplate(f"Invalid form schema: {e.errors()[0]['msg']}") from e

    @staticmethod
    def parse_signers(required_signers: List[Dict[str, Any]]) -> List[RequiredSigner]:
        try:
            signers = [RequiredSigner.model_validate(s) for s in required_signers]
        except ValidationError as e:
            raise InvalidTemplate(f"Invalid required signer: {e.errors()[0]['msg']}") from e
        orders = [s.order for s in signers]
        if len(orders) != len(set(orders)):
            raise InvalidTemplate("Required signer orders must be unique")
        return sorted(signers, key=lambda s: s.order)

    # ------------------------------------------------------------------ resolution
    def get_template(self, template_id: int) -> FormTemplate:
        template = self.db.get(FormTemplate, template_id)
        if template is None:
            raise TemplateNotFound(f"Template {template_id} not found")
        return template

    def resolve(self, template_id: int, version: int) -> FormTemplateVersion:
        """Exact-version lookup; never falls back to the latest version."""
        found = (
            self.db.query(FormTemplateVersion)
            .filter(
                FormTemplateVersion.template_id == template_id,
                FormTemplateVersion.version == version,
            )
            .one_or_none()
        )
        if found is None:
            raise TemplateNotFound(f"Template {template_id} v{version} not found")
        return found

    def latest_published(self, template_id: int) -> FormTemplateVersion:
        """Version to bind to a new submission."""
        template = self.get_template(template_id)
        if template.status != TemplateStatus.PUBLISHED:
            raise TemplateNotFound(f"Template {template_id} is not published")
        latest = (
            self.db.query(FormTemplateVersion)
            .filter(FormTemplateVersion.template_id == template_id)
            .order_by(FormTemplateVersion.version.desc())
            .first()
        )
        if latest is None:
            raise TemplateNotFound(f"Template {template_id} has no published version")
        return latest

    def required_signers(self, template_id: int, version: int) -> List[RequiredSigner]:
        return self.parse_signers(self.resolve(template_id, version).required_signers)

    def mandatory_count(self, template_id: int, version: int) -> int:
        return sum(1 for s in self.required_signers(template_id, version) if s.is_mandatory)

    def form_schema(self, template_id: int, version: int) -> FormSchema:
        return self.parse_schema(self.resolve(template_id, version).form_schema)
