"""
Section fillers for the self-employment income declaration.

Each filler consumes one branch of the submission and writes through a
`FieldWriter`. Writes never raise: every attempt is recorded as a
`WriteResult` so a missing or mistyped field only costs that one value.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from .calendar_utils import format_german_date
from .field_locator import locate
from .mapping import TemplateMapping
from .pdf_utils import FieldNotFoundError, FieldWriteError, PdfForm
from .schema import (
    CalendarWeek,
    DetailedInfo,
    ExistingActivity,
    FormData,
    GeneralInfo,
    Income,
    MasterData,
    NewActivity,
    WorkingTime,
)

logger = logging.getLogger(__name__)

MAX_WEEK_ROWS = 5

# Column layout of the weekly hours table.
COLUMN_START_DATE = 1
COLUMN_CALENDAR_WEEK = 2
COLUMN_TOTAL = 3
FIRST_DAY_COLUMN = 4

DETAILED_AMOUNTS = (
    ("income.detailed.monthly_income", "monthly_income"),
    ("income.detailed.business_expenses", "business_expenses"),
    ("income.detailed.depreciation", "depreciation"),
    ("income.detailed.income_tax", "income_tax"),
    ("income.detailed.church_tax", "church_tax"),
    ("income.detailed.solidarity_tax", "solidarity_tax"),
)


class YesNo(str, Enum):
    YES = "yes"
    NO = "no"

    @classmethod
    def of(cls, value: Optional[bool]) -> "YesNo":
        return cls.YES if value else cls.NO


class Outcome(str, Enum):
    WRITTEN = "written"
    SKIPPED = "skipped"
    MISSING = "missing"
    FAILED = "failed"


@dataclass(frozen=True)
class WriteResult:
    target: str
    field: Optional[str]
    outcome: Outcome
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome in (Outcome.WRITTEN, Outcome.SKIPPED)


def format_number(value: float) -> str:
    """Render 20.0 as "20" and 7.5 as "7.5"."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class FieldWriter:
    """Writes semantic keys of a mapping table into one form."""

    def __init__(self, form: PdfForm, mapping: TemplateMapping):
        self.form = form
        self.mapping = mapping
        # Taken once per fill; pattern lookups scan this snapshot.
        self.field_names: List[str] = form.field_names()
        self.results: List[WriteResult] = []

    # ------------------------------------------------------------------
    # Public write operations
    # ------------------------------------------------------------------
    def text(self, key: str, value: Optional[str]) -> WriteResult:
        spec = self.mapping.field(key)
        if value is None:
            return self._record(key, None, Outcome.SKIPPED, "no value")
        name = locate(self.field_names, spec.path, spec.patterns)
        if name is None:
            return self._record(key, spec.path, Outcome.MISSING, "no matching field")
        return self._write(key, name, lambda: self.form.set_text(name, value))

    def check(self, key: str) -> WriteResult:
        spec = self.mapping.field(key)
        name = locate(self.field_names, spec.path, spec.patterns)
        if name is None:
            return self._record(key, spec.path, Outcome.MISSING, "no matching field")
        return self._write(key, name, lambda: self.form.check(name))

    def choose(self, key: str, answer: YesNo) -> WriteResult:
        """Check exactly one field of a Yes/No checkbox pair."""
        pair = self.mapping.pair(key)
        name = pair.yes if answer is YesNo.YES else pair.no
        return self._write(f"{key}.{answer.value}", name, lambda: self.form.check(name))

    def cell(self, key: str, row: int, column: int, value: str) -> WriteResult:
        target = f"{key}[{row},{column}]"
        try:
            name = self.mapping.grid(key).cell(row, column)
        except IndexError as exc:
            # Mapping tables may describe a smaller table than the form has.
            logger.warning("No grid cell for %s: %s", target, exc)
            return self._record(target, None, Outcome.MISSING, str(exc))
        return self._write(target, name, lambda: self.form.set_text(name, value))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _write(self, target: str, name: str, action) -> WriteResult:
        try:
            action()
        except FieldNotFoundError as exc:
            logger.warning("Field not found for %s: %s", target, exc)
            return self._record(target, name, Outcome.MISSING, str(exc))
        except FieldWriteError as exc:
            logger.warning("Could not write %s: %s", target, exc)
            return self._record(target, name, Outcome.FAILED, str(exc))
        except Exception as exc:
            logger.warning("Unexpected error writing %s to %s: %s", target, name, exc, exc_info=True)
            return self._record(target, name, Outcome.FAILED, str(exc))
        return self._record(target, name, Outcome.WRITTEN)

    def _record(self, target: str, name: Optional[str], outcome: Outcome, detail: str = "") -> WriteResult:
        result = WriteResult(target, name, outcome, detail)
        self.results.append(result)
        return result

    def results_since(self, start: int) -> List[WriteResult]:
        return self.results[start:]


# ----------------------------------------------------------------------
# Section fillers
# ----------------------------------------------------------------------
def fill_master_data(writer: FieldWriter, master_data: MasterData) -> List[WriteResult]:
    """Stammdaten: exact field path first, pattern search as fallback."""
    start = len(writer.results)
    targets = (
        ("master.customer_number", master_data.customer_number),
        ("master.full_name", master_data.full_name),
        ("master.birth_date", master_data.birth_date),
        ("master.street", master_data.street),
        ("master.postal_code_city", master_data.postal_code_city),
    )
    for key, value in targets:
        writer.text(key, value if value and value.strip() else None)
    return writer.results_since(start)


def fill_general_info(writer: FieldWriter, general_info: GeneralInfo) -> List[WriteResult]:
    start = len(writer.results)
    end_date = "" if general_info.is_indefinite else general_info.activity_end_date
    writer.text("general.start_date", general_info.activity_start_date)
    writer.text("general.end_date", end_date)
    writer.text("general.location", general_info.activity_location)
    writer.text("general.activity_type", general_info.activity_type)
    if general_info.is_indefinite:
        writer.check("general.indefinite")
    return writer.results_since(start)


def fill_working_time(writer: FieldWriter, working_time: WorkingTime) -> List[WriteResult]:
    start = len(writer.results)
    if working_time.type == "constant":
        writer.check("working_time.constant")
        hours = working_time.constant_hours
        writer.text("working_time.weekly_hours", format_number(hours) if hours is not None else None)
    elif working_time.type == "variable":
        writer.check("working_time.variable")
        for row, week in enumerate(working_time.calendar_weeks[:MAX_WEEK_ROWS], start=1):
            _fill_week_row(writer, row, week)
    return writer.results_since(start)


def _fill_week_row(writer: FieldWriter, row: int, week: CalendarWeek) -> None:
    grid = "working_time.weeks"
    writer.cell(grid, row, COLUMN_START_DATE, week.start_date)
    if week.calendar_week is not None:
        writer.cell(grid, row, COLUMN_CALENDAR_WEEK, str(week.calendar_week))

    total = round(week.hours.total, 2)
    if total > 0:
        writer.cell(grid, row, COLUMN_TOTAL, format_number(float(total)))
    for offset, hours in enumerate(week.hours.ordered()):
        # Days without hours stay blank instead of showing "0".
        if hours > 0:
            writer.cell(grid, row, FIRST_DAY_COLUMN + offset, format_number(float(hours)))


def fill_income(writer: FieldWriter, income: Income) -> List[WriteResult]:
    start = len(writer.results)
    if income.type == "existing" and income.existing_activity is not None:
        _fill_existing_activity(writer, income.existing_activity)
    elif income.type == "new" and income.new_activity is not None:
        _fill_new_activity(writer, income.new_activity)

    if income.requires_detailed_section and income.detailed_info is not None:
        _fill_detailed_info(writer, income.detailed_info)
    return writer.results_since(start)


def _fill_existing_activity(writer: FieldWriter, activity: ExistingActivity) -> None:
    if activity.scope == "same":
        writer.check("income.same_scope")
    writer.choose("income.unchanged", YesNo.of(activity.is_unchanged))
    if activity.monthly_income is not None:
        writer.text("income.existing_monthly_income", format_number(activity.monthly_income))


def _fill_new_activity(writer: FieldWriter, activity: NewActivity) -> None:
    if activity.expected_income is None:
        return
    writer.choose("income.low_income", YesNo.of(activity.expected_income == "low"))


def _fill_detailed_info(writer: FieldWriter, info: DetailedInfo) -> None:
    for key, attribute in DETAILED_AMOUNTS:
        value = getattr(info, attribute)
        # Zero is a real answer; only absent amounts are skipped.
        if value is not None:
            writer.text(key, format_number(value))

    if info.tax_assessment_attached and info.tax_year is not None:
        writer.text("income.detailed.tax_year", str(info.tax_year))
    if info.tax_return_reason:
        writer.text("income.detailed.tax_return_reason", info.tax_return_reason)

    writer.choose("income.flat_rate_expenses", YesNo.of(info.expense_treatment == "flat"))
    writer.choose("income.tax_assessment_attached", YesNo.of(info.tax_assessment_attached))
    writer.choose("income.tax_return_submitted", YesNo.of(info.tax_return_submitted))
    writer.choose("income.tax_return_attached", YesNo.of(info.tax_return_attached))


def mark_declaration(writer: FieldWriter, today: dt.date, activity_location: str) -> List[WriteResult]:
    """Confirmation of correctness: date (DD.MM.YYYY) and place."""
    start = len(writer.results)
    writer.text("declaration.date", format_german_date(today))
    writer.text("declaration.location", activity_location)
    return writer.results_since(start)


def fill_all(writer: FieldWriter, form_data: FormData, today: dt.date) -> List[WriteResult]:
    start = len(writer.results)
    fill_master_data(writer, form_data.master_data)
    fill_general_info(writer, form_data.general_info)
    fill_working_time(writer, form_data.working_time)
    fill_income(writer, form_data.income)
    if form_data.declaration_confirmed:
        mark_declaration(writer, today, form_data.general_info.activity_location)
    return writer.results_since(start)


def summarize(results: Sequence[WriteResult]) -> dict:
    summary = {outcome.value: 0 for outcome in Outcome}
    for result in results:
        summary[result.outcome.value] += 1
    return summary
