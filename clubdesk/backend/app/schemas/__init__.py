from .schedules import (
    RecurrenceRule,
    Scope,
    ScheduleBase,
    ScheduleCreate,
    ScheduleUpdate,
    Schedule,
    SeriesCreated,
    ScheduleDeleted,
)
