"""
Versioned field mapping tables for the declaration template.

A mapping table translates semantic keys ("master.full_name",
"income.unchanged", ...) into the field paths of one template revision. The
tables live as JSON files under `field_mappings/` so that a new template
revision only requires a new data file.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Union

from cachetools import LRUCache, cached
from pydantic import BaseModel, Field, ValidationError

from .pdf_utils import FieldKind

logger = logging.getLogger(__name__)

MAPPINGS_DIR = Path(__file__).resolve().parent / "field_mappings"
DEFAULT_MAPPING = "arbeitsbescheinigung_v1"

# Keys the section fillers write through. A table missing one of these is
# rejected at load time instead of silently skipping a whole section.
REQUIRED_FIELDS = (
    "master.customer_number",
    "master.full_name",
    "master.birth_date",
    "master.street",
    "master.postal_code_city",
    "general.start_date",
    "general.end_date",
    "general.location",
    "general.activity_type",
    "general.indefinite",
    "working_time.constant",
    "working_time.variable",
    "working_time.weekly_hours",
    "income.same_scope",
    "income.existing_monthly_income",
    "income.detailed.monthly_income",
    "income.detailed.business_expenses",
    "income.detailed.depreciation",
    "income.detailed.income_tax",
    "income.detailed.church_tax",
    "income.detailed.solidarity_tax",
    "income.detailed.tax_year",
    "income.detailed.tax_return_reason",
    "declaration.date",
    "declaration.location",
)
REQUIRED_PAIRS = (
    "income.unchanged",
    "income.low_income",
    "income.flat_rate_expenses",
    "income.tax_assessment_attached",
    "income.tax_return_submitted",
    "income.tax_return_attached",
)
REQUIRED_GRIDS = ("working_time.weeks",)


class TemplateMappingError(ValueError):
    """Raised for unknown or malformed mapping tables."""


class FieldSpec(BaseModel):
    path: str
    kind: FieldKind = FieldKind.TEXT
    # Lowercase substrings tried when `path` is not present in the template.
    patterns: List[str] = Field(default_factory=list)


class CheckboxPair(BaseModel):
    """Two independent checkbox fields standing in for one Yes/No answer."""

    yes: str
    no: str


class GridSpec(BaseModel):
    """Row/column addressed block of text fields, e.g. the weekly hours table."""

    path: str
    rows: int = Field(gt=0)
    columns: int = Field(gt=0)

    def cell(self, row: int, column: int) -> str:
        """Return the field path of a 1-based (row, column) cell."""
        if not 1 <= row <= self.rows:
            raise IndexError(f"row {row} outside 1..{self.rows}")
        if not 1 <= column <= self.columns:
            raise IndexError(f"column {column} outside 1..{self.columns}")
        return self.path.format(row=row, column=column)


class TemplateMapping(BaseModel):
    version: str
    description: str = ""
    template_file: str = "original-form.pdf"
    fields: Dict[str, FieldSpec] = Field(default_factory=dict)
    pairs: Dict[str, CheckboxPair] = Field(default_factory=dict)
    grids: Dict[str, GridSpec] = Field(default_factory=dict)

    def field(self, key: str) -> FieldSpec:
        try:
            return self.fields[key]
        except KeyError:
            raise TemplateMappingError(f"Mapping {self.version} has no field '{key}'") from None

    def pair(self, key: str) -> CheckboxPair:
        try:
            return self.pairs[key]
        except KeyError:
            raise TemplateMappingError(f"Mapping {self.version} has no checkbox pair '{key}'") from None

    def grid(self, key: str) -> GridSpec:
        try:
            return self.grids[key]
        except KeyError:
            raise TemplateMappingError(f"Mapping {self.version} has no grid '{key}'") from None

    def missing_keys(self) -> List[str]:
        missing = [k for k in REQUIRED_FIELDS if k not in self.fields]
        missing += [k for k in REQUIRED_PAIRS if k not in self.pairs]
        missing += [k for k in REQUIRED_GRIDS if k not in self.grids]
        return missing


def _resolve_mapping_path(name_or_path: Union[str, Path]) -> Path:
    candidate = Path(name_or_path)
    if candidate.suffix == ".json" and candidate.exists():
        return candidate
    candidate = MAPPINGS_DIR / f"{name_or_path}.json"
    if candidate.exists():
        return candidate
    raise TemplateMappingError(f"Mapping table '{name_or_path}' not found in {MAPPINGS_DIR}")


def parse_mapping(config: Dict) -> TemplateMapping:
    """Validate a mapping table given as a plain dict."""
    try:
        mapping = TemplateMapping.model_validate(config)
    except ValidationError as exc:
        raise TemplateMappingError(f"Invalid mapping table: {exc}") from exc

    missing = mapping.missing_keys()
    if missing:
        raise TemplateMappingError(
            f"Mapping {mapping.version} is missing required keys: {', '.join(missing)}"
        )
    return mapping


@cached(cache=LRUCache(maxsize=8), key=lambda name_or_path=DEFAULT_MAPPING: str(name_or_path))
def load_mapping(name_or_path: Union[str, Path] = DEFAULT_MAPPING) -> TemplateMapping:
    """Load a mapping table by name (file stem under `field_mappings/`) or path."""
    mapping_file = _resolve_mapping_path(name_or_path)
    try:
        with mapping_file.open("r", encoding="utf-8") as f:
            config = json.load(f)
    except json.JSONDecodeError as exc:
        raise TemplateMappingError(f"Mapping file {mapping_file.name} is not valid JSON: {exc}") from exc

    mapping = parse_mapping(config)
    logger.info(
        "Loaded mapping %s (%d fields, %d pairs, %d grids) from %s",
        mapping.version,
        len(mapping.fields),
        len(mapping.pairs),
        len(mapping.grids),
        mapping_file.name,
    )
    return mapping
