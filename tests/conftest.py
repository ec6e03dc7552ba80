import datetime as dt
import io
from typing import Dict, Iterable, Optional

import pytest

from docfiller.fillers import FieldWriter
from docfiller.mapping import TemplateMapping, load_mapping
from docfiller.pdf_utils import FieldKind, FieldNotFoundError, FieldTypeError

TODAY = dt.date(2026, 10, 19)


class FakeForm:
    """In-memory stand-in for PdfForm: same surface, records writes."""

    def __init__(self, kinds: Dict[str, FieldKind]):
        self.kinds = dict(kinds)
        self.texts: Dict[str, str] = {}
        self.checked = set()

    def field_names(self):
        return list(self.kinds)

    def field_kind(self, name):
        if name not in self.kinds:
            raise FieldNotFoundError(name)
        return self.kinds[name]

    def set_text(self, name, value):
        self._require(name, FieldKind.TEXT)
        self.texts[name] = str(value)

    def check(self, name):
        self._require(name, FieldKind.CHECKBOX)
        self.checked.add(name)

    def _require(self, name, expected):
        actual = self.field_kind(name)
        if actual is not expected:
            raise FieldTypeError(name, expected, actual)


def template_kinds(mapping: TemplateMapping) -> Dict[str, FieldKind]:
    kinds = {spec.path: spec.kind for spec in mapping.fields.values()}
    for pair in mapping.pairs.values():
        kinds[pair.yes] = FieldKind.CHECKBOX
        kinds[pair.no] = FieldKind.CHECKBOX
    for grid in mapping.grids.values():
        for row in range(1, grid.rows + 1):
            for column in range(1, grid.columns + 1):
                kinds[grid.cell(row, column)] = FieldKind.TEXT
    return kinds


@pytest.fixture
def mapping() -> TemplateMapping:
    return load_mapping()


@pytest.fixture
def form(mapping) -> FakeForm:
    return FakeForm(template_kinds(mapping))


@pytest.fixture
def writer(form, mapping) -> FieldWriter:
    return FieldWriter(form, mapping)


def make_submission(**overrides) -> dict:
    data = {
        "masterData": {
            "customerNumber": "KD-1",
            "firstName": "Anna",
            "lastName": "Muster",
            "birthDate": "1990-04-12",
            "street": "Hauptstraße 5",
            "postalCode": "10115",
            "city": "Berlin",
        },
        "generalInfo": {
            "activityStartDate": "2026-01-01",
            "activityEndDate": "2026-12-31",
            "isIndefinite": False,
            "activityLocation": "Berlin",
            "activityType": "Grafikdesign",
        },
        "workingTime": {"type": "constant", "constantHours": 20},
        "income": {
            "type": "existing",
            "existingActivity": {"scope": "same", "isUnchanged": True, "monthlyIncome": 150},
        },
        "declarationConfirmed": True,
    }
    data.update(overrides)
    return data


def week(start: str, hours: Optional[Iterable[float]] = None, **extra) -> dict:
    days = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
    values = list(hours) if hours is not None else [0] * 7
    entry = {"id": start, "startDate": start, "hours": dict(zip(days, values))}
    entry.update(extra)
    return entry


def build_template_pdf(text_fields: Iterable[str] = (), checkboxes: Iterable[str] = ()) -> bytes:
    """Small AcroForm PDF with the given field names, built with reportlab."""
    from reportlab.lib.pagesizes import A4
    from reportlab.pdfgen import canvas

    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    y = 780
    for name in text_fields:
        c.acroForm.textfield(name=name, x=50, y=y, width=300, height=18, borderWidth=0.5)
        y -= 30
    for name in checkboxes:
        c.acroForm.checkbox(name=name, x=50, y=y, size=14, buttonStyle="check")
        y -= 30
    c.showPage()
    c.save()
    return buffer.getvalue()
