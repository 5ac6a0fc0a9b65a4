"""Typed field schema for SMS form templates.

A template's ``form_schema`` is a list of fields, each tagged by ``type``.
Every field kind knows how to check a submitted value, so form data is
validated against the exact template version on every write.
"""
import re
from datetime import date, datetime, time
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

YES_NO = ("YES", "NO")
YES_NO_NA = ("YES", "NO", "NA")


class Condition(BaseModel):
    field_id: str
    operator: Literal["equals", "not_equals", "contains"] = "equals"
    value: Any = None

    def is_met(self, data: Dict[str, Any]) -> bool:
        actual = data.get(self.field_id)
        if self.operator == "equals":
            return actual == self.value
        if self.operator == "not_equals":
            return actual != self.value
        try:
            return self.value in actual
        except TypeError:
            return False


class BaseField(BaseModel):
    id: str
    label: str
    required: bool = False
    help_text: Optional[str] = None
    page_number: Optional[int] = None
    conditional_on: Optional[Condition] = None

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("field id must not be blank")
        return value

    @property
    def holds_value(self) -> bool:
        return True

    def is_active(self, data: Dict[str, Any]) -> bool:
        return self.conditional_on is None or self.conditional_on.is_met(data)

    def is_empty(self, value: Any) -> bool:
        return value is None or value == "" or value == [] or value == {}

    def check(self, value: Any) -> Optional[str]:
        """Return an error message for a non-empty value, or None."""
        return None


class TextField(BaseField):
    type: Literal["text", "textarea"]
    max_length: Optional[int] = None
    pattern: Optional[str] = None

    @field_validator("pattern")
    @classmethod
    def _pattern_compiles(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"invalid pattern: {e}") from e
        return value

    def check(self, value):
        if not isinstance(value, str):
            return "must be a string"
        if self.max_length is not None and len(value) > self.max_length:
            return f"must be at most {self.max_length} characters"
        if self.pattern and not re.fullmatch(self.pattern, value):
            return "does not match the expected format"
        return None


class NumberField(BaseField):
    type: Literal["number"]
    min: Optional[float] = None
    max: Optional[float] = None

    def check(self, value):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return "must be a number"
        if self.min is not None and value < self.min:
            return f"must be >= {self.min}"
        if self.max is not None and value > self.max:
            return f"must be <= {self.max}"
        return None


class CheckboxField(BaseField):
    type: Literal["checkbox"]

    def is_empty(self, value):
        # An unticked mandatory checkbox is incomplete
        return value is None or value is False

    def check(self, value):
        if not isinstance(value, bool):
            return "must be true or false"
        return None


class YesNoField(BaseField):
    type: Literal["yes_no", "yes_no_na"]

    def check(self, value):
        allowed = YES_NO if self.type == "yes_no" else YES_NO_NA
        if value not in allowed:
            return f"must be one of {', '.join(allowed)}"
        return None


class DropdownField(BaseField):
    type: Literal["dropdown"]
    options: List[str]
    multiple: bool = False

    @field_validator("options")
    @classmethod
    def _has_options(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("dropdown needs at least one option")
        return value

    def check(self, value):
        values = value if self.multiple and isinstance(value, list) else [value]
        unknown = [v for v in values if v not in self.options]
        if unknown:
            return f"unknown option(s): {', '.join(map(str, unknown))}"
        return None


class TemporalField(BaseField):
    type: Literal["date", "datetime", "time"]

    def check(self, value):
        if not isinstance(value, str):
            return f"must be an ISO {self.type} string"
        parser = {"date": date.fromisoformat, "datetime": datetime.fromisoformat, "time": time.fromisoformat}[self.type]
        try:
            parser(value)
        except ValueError:
            return f"must be an ISO {self.type} string"
        return None


class SignatureField(BaseField):
    type: Literal["signature"]

    def check(self, value):
        if not isinstance(value, str):
            return "must be signature data"
        return None


class TableColumn(BaseModel):
    id: str
    label: str
    type: str = "text"


class TableField(BaseField):
    type: Literal["table"]
    columns: List[TableColumn]
    min_rows: Optional[int] = None
    max_rows: Optional[int] = None

    def check(self, value):
        if not isinstance(value, list) or not all(isinstance(row, dict) for row in value):
            return "must be a list of rows"
        if self.min_rows is not None and len(value) < self.min_rows:
            return f"needs at least {self.min_rows} rows"
        if self.max_rows is not None and len(value) > self.max_rows:
            return f"allows at most {self.max_rows} rows"
        column_ids = {c.id for c in self.columns}
        for index, row in enumerate(value, start=1):
            unknown = set(row) - column_ids
            if unknown:
                return f"row {index} has unknown column(s): {', '.join(sorted(unknown))}"
        return None


class FileField(BaseField):
    """Holds references to attachments kept by the storage service."""
    type: Literal["file"]
    max_files: Optional[int] = None

    def references(self, value) -> List[str]:
        if value is None:
            return []
        return value if isinstance(value, list) else [value]

    def check(self, value):
        refs = self.references(value)
        if not all(isinstance(ref, str) and ref for ref in refs):
            return "must be attachment reference(s)"
        if self.max_files is not None and len(refs) > self.max_files:
            return f"allows at most {self.max_files} files"
        return None


class SectionField(BaseField):
    """Layout-only header; never carries data."""
    type: Literal["section"]

    @property
    def holds_value(self) -> bool:
        return False


FormField = Annotated[
    Union[
        TextField, NumberField, CheckboxField, YesNoField, DropdownField,
        TemporalField, SignatureField, TableField, FileField, SectionField,
    ],
    Field(discriminator="type"),
]


class FormPage(BaseModel):
    id: str
    number: int
    title: Optional[str] = None
    fields: List[str] = []


class FormSchema(BaseModel):
    fields: List[FormField]
    pages: List[FormPage] = []

    @model_validator(mode="after")
    def _unique_field_ids(self):
        seen = set()
        for f in self.fields:
            if f.id in seen:
                raise ValueError(f"duplicate field id '{f.id}'")
            seen.add(f.id)
        return self

    def field_map(self) -> Dict[str, BaseField]:
        return {f.id: f for f in self.fields}

    def validate_data(self, data: Any) -> List[str]:
        """Type-check a form payload; missing values are allowed (drafts)."""
        if not isinstance(data, dict):
            return ["form data must be an object"]
        fields = self.field_map()
        errors = []
        for key, value in data.items():
            field = fields.get(key)
            if field is None:
                errors.append(f"{key}: unknown field")
                continue
            if not field.holds_value:
                errors.append(f"{key}: section fields do not hold data")
                continue
            if field.is_empty(value):
                continue
            message = field.check(value)
            if message:
                errors.append(f"{key}: {message}")
        return errors

    def missing_required(self, data: Dict[str, Any]) -> List[str]:
        return [
            f.id for f in self.fields
            if f.holds_value and f.required and f.is_active(data) and f.is_empty(data.get(f.id))
        ]

    def attachment_references(self, data: Dict[str, Any]) -> List[str]:
        refs = []
        for f in self.fields:
            if isinstance(f, FileField):
                refs.extend(f.references(data.get(f.id)))
        return refs


class RequiredSigner(BaseModel):
    role: str
    order: int = Field(gt=0)
    is_mandatory: bool = True
    signature_type: Optional[str] = None

    @field_validator("role")
    @classmethod
    def _normalize_role(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("signer role must not be blank")
        return value
