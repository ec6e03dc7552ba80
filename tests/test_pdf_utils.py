import io
import json

import pytest
from pypdf import PdfReader

from conftest import build_template_pdf
from docfiller.pdf_utils import (
    FieldKind,
    FieldNotFoundError,
    FieldTypeError,
    PdfForm,
    PdfFormDocument,
    checkbox_on_state,
    field_kind,
)
from docfiller.template_scanner import TemplateScanner, main


@pytest.fixture
def template() -> bytes:
    return build_template_pdf(text_fields=["customer", "city"], checkboxes=["agree"])


def test_form_lists_fields_and_kinds(template) -> None:
    form = PdfFormDocument.load(template).get_form()
    assert set(form.field_names()) == {"customer", "city", "agree"}
    assert form.field_kind("customer") is FieldKind.TEXT
    assert form.field_kind("agree") is FieldKind.CHECKBOX


def test_form_rejects_unknown_and_mistyped_fields(template) -> None:
    form = PdfFormDocument.load(template).get_form()
    with pytest.raises(FieldNotFoundError):
        form.set_text("missing", "x")
    with pytest.raises(FieldTypeError):
        form.set_text("agree", "x")
    with pytest.raises(FieldTypeError):
        form.check("customer")
    assert form.values == {}


def test_save_keeps_interactive_fields_with_values(template) -> None:
    document = PdfFormDocument.load(template)
    form = document.get_form()
    form.set_text("customer", "KD-1")
    form.check("agree")

    fields = PdfReader(io.BytesIO(document.save())).get_fields()

    assert fields["customer"]["/V"] == "KD-1"
    assert fields["agree"]["/V"] == form.values["agree"]
    assert form.values["agree"] != "/Off"


def test_flatten_removes_the_interactive_form(template) -> None:
    document = PdfFormDocument.load(template)
    document.flatten()
    reader = PdfReader(io.BytesIO(document.save()))

    assert document.flattened
    assert not reader.get_fields()
    annotations = reader.pages[0].get("/Annots") or []
    assert all(a.get_object().get("/Subtype") != "/Widget" for a in annotations)


def test_field_helpers() -> None:
    assert field_kind({"/FT": "/Tx"}) is FieldKind.TEXT
    assert field_kind({"/FT": "/Sig"}) is FieldKind.SIGNATURE
    assert field_kind({}) is FieldKind.UNKNOWN
    assert checkbox_on_state({"/_States_": ["/Off", "/1"]}) == "/1"
    assert checkbox_on_state({}) == "/Yes"


def test_pdf_form_check_uses_on_state() -> None:
    form = PdfForm({"box": {"/FT": "/Btn", "/_States_": ["/Off", "/Ja"]}})
    form.check("box")
    assert form.values == {"box": "/Ja"}


def test_scanner_reports_fields(template) -> None:
    scan = TemplateScanner().scan_template(template)
    assert scan["has_fields"]
    assert scan["field_count"] == 3
    assert scan["page_count"] == 1
    kinds = {f["name"]: f["kind"] for f in scan["form_fields"]}
    assert kinds == {"customer": "text", "city": "text", "agree": "checkbox"}


def test_scanner_checks_mapping_against_template(template, mapping) -> None:
    missing = TemplateScanner().check_mapping(template, mapping)
    assert set(missing["fields"]) == set(mapping.fields)
    assert set(missing["pairs"]) == set(mapping.pairs)
    assert len(missing["grids"]) == 50


def test_scanner_cli_lists_fields_and_unmapped_keys(tmp_path, template, capsys) -> None:
    path = tmp_path / "form.pdf"
    path.write_bytes(template)

    assert main([str(path)]) == 0

    out = capsys.readouterr().out
    assert "Total fields found: 3" in out
    assert "1. customer (text)" in out
    assert "[v1] fields: 'master.full_name' not found in template" in out


def test_scanner_cli_accepts_mapping_path(tmp_path, template, mapping, capsys) -> None:
    config = mapping.model_dump(mode="json")
    config["version"] = "v2-test"
    mapping_path = tmp_path / "custom.json"
    mapping_path.write_text(json.dumps(config), encoding="utf-8")
    path = tmp_path / "form.pdf"
    path.write_bytes(template)

    assert main([str(path), str(mapping_path)]) == 0
    assert "[v2-test] pairs:" in capsys.readouterr().out


def test_scanner_cli_requires_template() -> None:
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 2
