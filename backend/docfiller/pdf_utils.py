"""
Low-level PDF utilities for filling AcroForm-based templates.

Wraps pypdf behind the small surface the fillers need:

    document = PdfFormDocument.load(template_bytes)
    form = document.get_form()
    form.set_text(name, value) / form.check(name)
    document.flatten()
    filled = document.save()

Values are collected on the form object and pushed into the page widgets
in one pass when the document is flattened or saved.
"""

from __future__ import annotations

import io
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from pypdf import PdfReader, PdfWriter
from pypdf.generic import NameObject

logger = logging.getLogger(__name__)


class FieldKind(str, Enum):
    TEXT = "text"
    CHECKBOX = "checkbox"
    CHOICE = "choice"
    SIGNATURE = "signature"
    UNKNOWN = "unknown"


_FIELD_TYPES = {
    "/Tx": FieldKind.TEXT,
    "/Btn": FieldKind.CHECKBOX,
    "/Ch": FieldKind.CHOICE,
    "/Sig": FieldKind.SIGNATURE,
}


class FieldWriteError(Exception):
    """Base class for failures writing a single form field."""

    def __init__(self, field_name: str, message: str):
        super().__init__(message)
        self.field_name = field_name


class FieldNotFoundError(FieldWriteError):
    def __init__(self, field_name: str):
        super().__init__(field_name, f"Field '{field_name}' not in template")


class FieldTypeError(FieldWriteError):
    def __init__(self, field_name: str, expected: FieldKind, actual: FieldKind):
        super().__init__(
            field_name,
            f"Field '{field_name}' is a {actual.value} field, expected {expected.value}",
        )
        self.expected = expected
        self.actual = actual


def field_kind(field: Dict[str, Any]) -> FieldKind:
    return _FIELD_TYPES.get(field.get("/FT"), FieldKind.UNKNOWN)


def checkbox_on_state(field: Dict[str, Any]) -> str:
    """Export value that renders a checkbox as checked (usually /Yes or /1)."""
    for state in field.get("/_States_", []) or []:
        if isinstance(state, str) and state != "/Off":
            return state
    return "/Yes"


class PdfForm:
    """Field accessor over a snapshot of the template's fields."""

    def __init__(self, fields: Optional[Dict[str, Any]] = None):
        self._fields: Dict[str, Any] = dict(fields or {})
        self._values: Dict[str, str] = {}

    def field_names(self) -> List[str]:
        return list(self._fields)

    def field_kind(self, name: str) -> FieldKind:
        if name not in self._fields:
            raise FieldNotFoundError(name)
        return field_kind(self._fields[name])

    def set_text(self, name: str, value: str) -> None:
        self._require(name, FieldKind.TEXT)
        self._values[name] = str(value)

    def check(self, name: str) -> None:
        self._require(name, FieldKind.CHECKBOX)
        self._values[name] = checkbox_on_state(self._fields[name])

    @property
    def values(self) -> Dict[str, str]:
        return dict(self._values)

    def _require(self, name: str, expected: FieldKind) -> None:
        actual = self.field_kind(name)
        if actual is not expected:
            raise FieldTypeError(name, expected, actual)


class PdfFormDocument:
    """One in-memory copy of a template, created per fill request."""

    def __init__(self, writer: PdfWriter):
        self._writer = writer
        self._form: Optional[PdfForm] = None
        self._flattened = False

    @classmethod
    def load(cls, data: bytes) -> "PdfFormDocument":
        reader = PdfReader(io.BytesIO(data), strict=False)
        writer = PdfWriter(clone_from=reader)
        return cls(writer)

    @property
    def flattened(self) -> bool:
        return self._flattened

    def get_form(self) -> PdfForm:
        if self._form is None:
            self._form = PdfForm(self._writer.get_fields() or {})
        return self._form

    def flatten(self) -> None:
        """Render field values into page content and drop the interactive form."""
        if self._flattened:
            return
        self._apply_values(flatten=True)
        self._writer.remove_annotations(subtypes="/Widget")
        root = self._writer._root_object
        if "/AcroForm" in root:
            del root[NameObject("/AcroForm")]
        self._flattened = True

    def save(self) -> bytes:
        if not self._flattened:
            self._apply_values(flatten=False)
        buffer = io.BytesIO()
        self._writer.write(buffer)
        return buffer.getvalue()

    def _apply_values(self, flatten: bool) -> None:
        values = self.get_form().values
        if not values:
            return
        for page in self._writer.pages:
            if "/Annots" not in page:
                continue
            self._writer.update_page_form_field_values(
                page,
                values,
                auto_regenerate=not flatten,
                flatten=flatten,
            )
        logger.debug("Applied %d field values (flatten=%s)", len(values), flatten)
