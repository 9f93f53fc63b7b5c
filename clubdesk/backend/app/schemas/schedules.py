from typing import List, Literal, Optional
from pydantic import BaseModel, Field

RecurrenceRule = Literal["none", "daily", "weekly", "monthly"]
Scope = Literal["this", "all"]


class ScheduleBase(BaseModel):
    title: str
    date: str                    # ISO date YYYY-MM-DD
    start_hour: Optional[int] = Field(None, ge=0, le=23)
    start_minute: Optional[int] = Field(None, ge=0, le=59)
    end_hour: Optional[int] = Field(None, ge=0, le=23)
    end_minute: Optional[int] = Field(None, ge=0, le=59)
    gather_hour: Optional[int] = Field(None, ge=0, le=23)
    gather_minute: Optional[int] = Field(None, ge=0, le=59)
    venue: Optional[str] = None  # empty -> "undecided" on create
    notes: Optional[str] = None
    category_id: Optional[str] = None
    category_ids: List[str] = []
    student_can_register: bool = True


class ScheduleCreate(ScheduleBase):
    recurrence_rule: RecurrenceRule = "none"
    recurrence_interval: Optional[int] = None    # validated server side, must be >= 1
    recurrence_end_date: Optional[str] = None    # default: date + 365 days


class ScheduleUpdate(BaseModel):
    title: Optional[str] = None
    date: Optional[str] = None   # ignored when scope=all
    start_hour: Optional[int] = Field(None, ge=0, le=23)
    start_minute: Optional[int] = Field(None, ge=0, le=59)
    end_hour: Optional[int] = Field(None, ge=0, le=23)
    end_minute: Optional[int] = Field(None, ge=0, le=59)
    gather_hour: Optional[int] = Field(None, ge=0, le=23)
    gather_minute: Optional[int] = Field(None, ge=0, le=59)
    venue: Optional[str] = None
    notes: Optional[str] = None
    category_id: Optional[str] = None
    category_ids: Optional[List[str]] = None
    student_can_register: Optional[bool] = None


class Schedule(ScheduleBase):
    id: int
    venue: str
    recurrence_rule: RecurrenceRule = "none"
    recurrence_interval: int = 1
    recurrence_end_date: Optional[str] = None
    parent_schedule_id: Optional[int] = None
    series_id: Optional[int] = None


class SeriesCreated(BaseModel):
    root: Schedule
    total_created: int
    all_rows: List[Schedule]


class ScheduleDeleted(BaseModel):
    deleted: bool
    count: int
