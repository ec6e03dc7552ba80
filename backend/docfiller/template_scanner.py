"""
PDF Template Scanner

Lists the form fields of a template and checks a mapping table against them.
Useful when the issuing authority publishes a new revision of the form.

    python -m docfiller.template_scanner path/to/original-form.pdf
"""

from __future__ import annotations

import argparse
import io
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Union

from pypdf import PdfReader

from .mapping import DEFAULT_MAPPING, TemplateMapping, load_mapping
from .pdf_utils import FieldKind, checkbox_on_state, field_kind

logger = logging.getLogger(__name__)


class TemplateScanner:
    """Scans PDF templates for form fields"""

    def scan_template(self, source: Union[bytes, Path, str]) -> Dict:
        reader = self._open(source)
        fields = reader.get_fields() or {}
        if not fields:
            logger.warning("Template has no fillable form fields")

        form_fields: List[Dict] = []
        for name, field in fields.items():
            kind = field_kind(field)
            info = {"name": name, "kind": kind.value}
            if kind is FieldKind.CHECKBOX:
                info["on_state"] = checkbox_on_state(field)
            form_fields.append(info)

        return {
            "has_fields": bool(form_fields),
            "field_count": len(form_fields),
            "page_count": len(reader.pages),
            "form_fields": form_fields,
        }

    def check_mapping(self, source: Union[bytes, Path, str], mapping: TemplateMapping) -> Dict[str, List[str]]:
        """Return mapped paths absent from the template, grouped by section."""
        names = {f["name"] for f in self.scan_template(source)["form_fields"]}
        missing: Dict[str, List[str]] = {"fields": [], "pairs": [], "grids": []}

        for key, spec in mapping.fields.items():
            if spec.path not in names:
                missing["fields"].append(key)
        for key, pair in mapping.pairs.items():
            if pair.yes not in names or pair.no not in names:
                missing["pairs"].append(key)
        for key, grid in mapping.grids.items():
            for row in range(1, grid.rows + 1):
                for column in range(1, grid.columns + 1):
                    if grid.cell(row, column) not in names:
                        missing["grids"].append(f"{key}[{row},{column}]")
        return missing

    @staticmethod
    def _open(source: Union[bytes, Path, str]) -> PdfReader:
        if isinstance(source, bytes):
            return PdfReader(io.BytesIO(source), strict=False)
        return PdfReader(str(source), strict=False)


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(
        prog="python -m docfiller.template_scanner",
        description="List the form fields of a PDF template and check a mapping table against them",
    )
    ap.add_argument("template", help="PDF template path")
    ap.add_argument("mapping", nargs="?", default=DEFAULT_MAPPING, help="Mapping name or JSON path")
    args = ap.parse_args(argv)

    scanner = TemplateScanner()
    scan = scanner.scan_template(args.template)
    print("PDF Form Fields Analysis:")
    print("=========================")
    print(f"Total fields found: {scan['field_count']}")
    if not scan["has_fields"]:
        print("No form fields detected. This might be a non-interactive PDF.")
        return 1

    for index, field in enumerate(scan["form_fields"], start=1):
        print(f"{index}. {field['name']} ({field['kind']})")

    mapping = load_mapping(args.mapping)
    missing = scanner.check_mapping(args.template, mapping)
    for section, keys in missing.items():
        for key in keys:
            print(f"[{mapping.version}] {section}: '{key}' not found in template")
    return 0


if __name__ == "__main__":
    sys.exit(main())
