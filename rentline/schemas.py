# rentline/schemas.py
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .domain.timeline import (
    TimelineEventRecurrence,
    TimelineEventType,
    parse_event_type,
    to_naive_utc,
)


class CamelIn(BaseModel):
    """Request bodies accept both snake_case and the camelCase the web client sends."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -------------------- Properties --------------------

class PropertyCreate(BaseModel):
    name: str = Field(min_length=1)
    address_line1: Optional[str] = None
    city: Optional[str] = None
    postcode: Optional[str] = None
    lease_start_date: Optional[date] = None
    lease_end_date: Optional[date] = None
    rent_amount: Optional[float] = Field(default=None, ge=0)
    rent_due_day: Optional[int] = Field(default=None, ge=1, le=31)
    currency: Optional[str] = None

    @model_validator(mode="after")
    def _lease_order(self) -> "PropertyCreate":
        if self.lease_start_date and self.lease_end_date and self.lease_end_date < self.lease_start_date:
            raise ValueError("lease_end_date cannot be before lease_start_date")
        return self


class PropertyOut(BaseModel):
    id: str
    name: str
    address_line1: Optional[str] = None
    city: Optional[str] = None
    postcode: Optional[str] = None
    lease_start_date: Optional[date] = None
    lease_end_date: Optional[date] = None
    rent_amount: Optional[float] = None
    details: dict[str, Any] = Field(default_factory=dict)
    created_by: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class PropertyUserCreate(CamelIn):
    user_id: str
    user_role: Literal["owner", "tenant"] = "tenant"


class PropertyUserOut(BaseModel):
    property_id: str
    user_id: str
    user_role: str
    model_config = ConfigDict(from_attributes=True)


# -------------------- Timeline --------------------

class _EventDates(BaseModel):
    @field_validator("start_date", "end_date", "recurrence_end_date", mode="after", check_fields=False)
    @classmethod
    def _naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)

    @field_validator("event_type", mode="before", check_fields=False)
    @classmethod
    def _lenient_type(cls, v: Any) -> Any:
        return None if v is None else parse_event_type(v)


class TimelineEventCreate(_EventDates):
    property_id: str
    title: str = Field(min_length=1)
    description: Optional[str] = None
    event_type: TimelineEventType = TimelineEventType.CUSTOM
    start_date: datetime
    end_date: Optional[datetime] = None
    is_all_day: bool = False
    recurrence_type: TimelineEventRecurrence = TimelineEventRecurrence.NONE
    recurrence_end_date: Optional[datetime] = None
    notification_days_before: Optional[int] = Field(default=None, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _date_order(self) -> "TimelineEventCreate":
        if not self.title.strip():
            raise ValueError("title is required")
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        if self.recurrence_end_date is not None and self.recurrence_end_date < self.start_date:
            raise ValueError("recurrence_end_date cannot be before start_date")
        return self


class TimelineEventUpdate(_EventDates):
    """Partial update; only fields actually sent are applied."""

    title: Optional[str] = None
    description: Optional[str] = None
    event_type: Optional[TimelineEventType] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_all_day: Optional[bool] = None
    recurrence_type: Optional[TimelineEventRecurrence] = None
    recurrence_end_date: Optional[datetime] = None
    notification_days_before: Optional[int] = Field(default=None, ge=0)
    is_completed: Optional[bool] = None
    metadata: Optional[dict[str, Any]] = None


class TimelineEventOut(BaseModel):
    id: str
    property_id: str
    user_id: str
    title: str
    description: Optional[str] = None
    event_type: str
    start_date: datetime
    end_date: Optional[datetime] = None
    is_all_day: bool
    recurrence_type: str
    recurrence_end_date: Optional[datetime] = None
    notification_days_before: Optional[int] = None
    is_completed: bool
    assigned_to: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="meta")
    created_at: datetime
    updated_at: datetime
    property_name: Optional[str] = None

    # derived for display
    icon_kind: Optional[str] = None
    supports_completion: Optional[bool] = None
    label: Optional[str] = None

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class TimelineEventList(BaseModel):
    status: str = "success"
    data: list[TimelineEventOut]


class DayGroup(BaseModel):
    day: date
    event_ids: list[str]


class UpcomingEventsOut(BaseModel):
    status: str = "success"
    days: int
    data: list[TimelineEventOut]
    groups: list[DayGroup]


class TimelinePageOut(BaseModel):
    status: str = "success"
    data: list[TimelineEventOut]
    total: int
    visible_count: int
    has_more: bool


class TaskAssign(CamelIn):
    user_id: Optional[str] = None
    notification_days_before: Optional[int] = Field(default=None, ge=0)


class TimelineSyncIn(CamelIn):
    auto_generate_lease_events: bool = True
    auto_generate_rent_due_dates: bool = True
    rent_due_day: Optional[int] = Field(default=None, ge=1, le=31)
    upfront_rent_paid: int = Field(default=0, ge=0)
    include_inspections: bool = False
    inspection_frequency: Literal["annual", "biannual", "quarterly"] = "annual"
    include_maintenance_reminders: bool = False
    include_property_taxes: bool = False
    include_insurance: bool = False
    start_date: Optional[date] = None
    clear_all_events: bool = False


class TimelineSyncOut(BaseModel):
    ok: bool = True
    created: int
    skipped_existing: int
    cleared: int = 0


# -------------------- Agreements --------------------

class CheckItemIn(CamelIn):
    text: str = Field(min_length=1)
    checked: bool = False
    assigned_to: Optional[str] = None
    notification_days_before: Optional[int] = Field(default=None, ge=0)


class CheckItemOut(BaseModel):
    text: str
    checked: bool = False
    assigned_to: Optional[str] = None
    notification_days_before: Optional[int] = None
    completed_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    event_id: Optional[str] = None


class AgreementCreate(CamelIn):
    property_id: str
    title: str = Field(min_length=1)
    check_items: list[CheckItemIn] = Field(default_factory=list)
    due_date: Optional[datetime] = None

    @field_validator("due_date", mode="after")
    @classmethod
    def _naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class AgreementUpdate(CamelIn):
    title: Optional[str] = None
    check_items: Optional[list[CheckItemIn]] = None
    due_date: Optional[datetime] = None

    @field_validator("due_date", mode="after")
    @classmethod
    def _naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class AgreementOut(BaseModel):
    id: str
    property_id: str
    title: str
    created_by: str
    due_date: Optional[datetime] = None
    check_items: list[CheckItemOut]
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class AgreementTaskAction(CamelIn):
    item_index: int = Field(ge=0)
    action: Literal["assign", "unassign", "complete"]
    user_id: Optional[str] = None
    notification_days_before: Optional[int] = Field(default=None, ge=0)
    # redundant with the path; checked for consistency when present
    agreement_id: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _legacy_task_index(cls, data: Any) -> Any:
        # older web builds post taskIndex
        if isinstance(data, dict) and "taskIndex" in data and "itemIndex" not in data and "item_index" not in data:
            data = {**data, "itemIndex": data["taskIndex"]}
        return data


# -------------------- Usage --------------------

class UsageCheckOut(BaseModel):
    feature: str
    allowed: bool
    current_usage: int
    limit: Optional[int] = None  # None => unlimited
    plan: Optional[str] = None
    reason: Optional[str] = None


class UsageIncrementIn(BaseModel):
    feature: str = Field(min_length=1)


class UsageIncrementOut(BaseModel):
    feature: str
    new_usage: int


# -------------------- Dashboard --------------------

class DashboardSummaryOut(BaseModel):
    properties: int
    open_tasks: int
    overdue: int
    upcoming: list[TimelineEventOut]
    horizon_days: int
    generated_at: datetime
