"""
Submission models for the self-employment income declaration.

JSON payloads use the camelCase keys of the web form (`masterData`,
`isIndefinite`, ...); attributes are snake_case. Both spellings are accepted
on input.
"""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .calendar_utils import calendar_week, total_hours, validate_date_range, week_range

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
MAX_CALENDAR_WEEKS = 5


class FormModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MasterData(FormModel):
    customer_number: str = Field(min_length=1)
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    birth_date: str = Field(min_length=1)
    street: str = Field(min_length=1)
    postal_code: str = Field(min_length=1)
    city: str = Field(min_length=1)

    @property
    def full_name(self) -> str:
        return f"{self.last_name}, {self.first_name}"

    @property
    def postal_code_city(self) -> str:
        return f"{self.postal_code} {self.city}"


class GeneralInfo(FormModel):
    activity_start_date: str = Field(min_length=1)
    activity_end_date: Optional[str] = None
    is_indefinite: bool = False
    activity_location: str = Field(min_length=1)
    activity_type: str = Field(min_length=1)

    @model_validator(mode="after")
    def _check_period(self) -> "GeneralInfo":
        if not self.is_indefinite and self.activity_end_date:
            if not validate_date_range(self.activity_start_date, self.activity_end_date):
                raise ValueError("activityEndDate must not be before activityStartDate")
        return self


class WeekHours(FormModel):
    monday: float = Field(default=0, ge=0, le=24)
    tuesday: float = Field(default=0, ge=0, le=24)
    wednesday: float = Field(default=0, ge=0, le=24)
    thursday: float = Field(default=0, ge=0, le=24)
    friday: float = Field(default=0, ge=0, le=24)
    saturday: float = Field(default=0, ge=0, le=24)
    sunday: float = Field(default=0, ge=0, le=24)

    def ordered(self) -> List[float]:
        """Day values Monday to Sunday."""
        return [getattr(self, day) for day in WEEKDAYS]

    @property
    def total(self) -> float:
        return total_hours(self.ordered())


class CalendarWeek(FormModel):
    id: str = ""
    start_date: str
    end_date: Optional[str] = None
    calendar_week: Optional[int] = None
    hours: WeekHours = Field(default_factory=WeekHours)

    @model_validator(mode="after")
    def _derive_week(self) -> "CalendarWeek":
        # End date and week number follow from the start date when the client omits them.
        if self.end_date is None:
            self.end_date = week_range(self.start_date)[1]
        elif not validate_date_range(self.start_date, self.end_date):
            raise ValueError("endDate must not be before startDate")
        if self.calendar_week is None:
            self.calendar_week = calendar_week(self.start_date)
        return self


class WorkingTime(FormModel):
    type: Literal["constant", "variable"]
    constant_hours: Optional[float] = Field(default=None, ge=0, le=168)
    calendar_weeks: List[CalendarWeek] = Field(default_factory=list, max_length=MAX_CALENDAR_WEEKS)


class ExistingActivity(FormModel):
    scope: Optional[Literal["same", "different"]] = None
    monthly_income: Optional[float] = Field(default=None, ge=0)
    is_unchanged: Optional[bool] = None


class NewActivity(FormModel):
    expected_income: Optional[Literal["low", "high"]] = None


class DetailedInfo(FormModel):
    monthly_income: Optional[float] = Field(default=None, ge=0)
    expense_treatment: Literal["flat", "detailed"] = "flat"
    business_expenses: Optional[float] = Field(default=None, ge=0)
    depreciation: Optional[float] = Field(default=None, ge=0)
    income_tax: Optional[float] = Field(default=None, ge=0)
    church_tax: Optional[float] = Field(default=None, ge=0)
    solidarity_tax: Optional[float] = Field(default=None, ge=0)
    tax_year: Optional[int] = None
    tax_return_submitted: Optional[bool] = None
    tax_return_attached: Optional[bool] = None
    tax_assessment_attached: Optional[bool] = None
    tax_return_reason: Optional[str] = None


class Income(FormModel):
    type: Literal["existing", "new", "detailed"]
    existing_activity: Optional[ExistingActivity] = None
    new_activity: Optional[NewActivity] = None
    detailed_info: Optional[DetailedInfo] = None

    @property
    def requires_detailed_section(self) -> bool:
        """Section 3.3 applies to larger existing or new activities and to explicit detail."""
        if self.type == "detailed":
            return True
        if self.type == "existing":
            return self.existing_activity is not None and self.existing_activity.scope == "different"
        if self.type == "new":
            return self.new_activity is not None and self.new_activity.expected_income == "high"
        return False


class FormData(FormModel):
    master_data: MasterData
    general_info: GeneralInfo
    working_time: WorkingTime
    income: Income
    declaration_confirmed: bool = False
