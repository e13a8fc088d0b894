"""Pydantic request schemas used by the API.

Schemas keep API input shapes stable and provide validation for
controller handlers and tests. Create schemas carry the presence checks
for required fields; update schemas are fully optional and carry the
target `id` so controllers can report a missing id as a 400.
"""

import datetime as dt
from typing import List, Literal, Optional, Union
from pydantic import BaseModel, Field, field_validator

SyllabusStatus = Literal["Pending", "InProgress", "Completed", "Revised"]
HHMM_PATTERN = r"^([01]?\d|2[0-3]):[0-5]\d$"


class RegisterIn(BaseModel):
    """Payload for user registration."""
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)
    name: Optional[str] = None


class LoginIn(BaseModel):
    email: str
    password: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str
    token_type: str = "bearer"


class UpdateIn(BaseModel):
    """Base for partial updates addressed by `id`."""
    id: Optional[int] = None


class AssignmentIn(BaseModel):
    title: str = Field(min_length=1)
    subject: Optional[str] = None
    subject_id: Optional[int] = None
    due: Optional[dt.date] = None
    priority: Optional[str] = None
    status: str = "Pending"
    platform: Optional[str] = None
    description: Optional[str] = None


class AssignmentUpdate(UpdateIn):
    title: Optional[str] = None
    subject: Optional[str] = None
    subject_id: Optional[int] = None
    due: Optional[dt.date] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    platform: Optional[str] = None
    description: Optional[str] = None


def _date_only_to_datetime(value):
    """Accept a bare `YYYY-MM-DD` where a timestamp is expected.

    Runs before parsing; the result is made timezone-aware by `_assume_utc`.
    """
    if isinstance(value, str) and len(value) == 10:
        return dt.datetime.combine(dt.date.fromisoformat(value), dt.time(), tzinfo=dt.timezone.utc)
    if isinstance(value, dt.date) and not isinstance(value, dt.datetime):
        return dt.datetime.combine(value, dt.time(), tzinfo=dt.timezone.utc)
    return value


def _assume_utc(value):
    """Timestamps are stored as UTC; a value without an offset is taken as UTC."""
    if isinstance(value, dt.datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.timezone.utc)
        return value.astimezone(dt.timezone.utc)
    return value


class ExamIn(BaseModel):
    """Exam creation payload.

    `title` falls back to `type` and then to "Exam". When `time` is given
    as HH:MM it is merged into `date`.
    """
    title: Optional[str] = None
    type: Optional[str] = None
    date: dt.datetime
    time: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)
    subject_id: Optional[int] = None
    syllabus: Optional[str] = None
    room: Optional[str] = None
    seat: Optional[str] = None

    coerce_date = field_validator("date", mode="before")(_date_only_to_datetime)
    date_as_utc = field_validator("date", mode="after")(_assume_utc)


class ExamUpdate(UpdateIn):
    title: Optional[str] = None
    date: Optional[dt.datetime] = None
    time: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)
    subject_id: Optional[int] = None
    syllabus: Optional[str] = None
    room: Optional[str] = None
    seat: Optional[str] = None

    coerce_date = field_validator("date", mode="before")(_date_only_to_datetime)
    date_as_utc = field_validator("date", mode="after")(_assume_utc)


class IdeaIn(BaseModel):
    content: str = Field(min_length=1)
    status: str = "brainstorm"
    tag_ids: Optional[List[int]] = None


class IdeaUpdate(UpdateIn):
    content: Optional[str] = None
    status: Optional[str] = None
    tag_ids: Optional[List[int]] = None


class DailyLogIn(BaseModel):
    date: dt.date
    mood: Optional[str] = None
    note: Optional[str] = None
    sleep: Optional[float] = Field(default=None, ge=0, le=24)
    study_time: Optional[int] = Field(default=None, ge=0)
    subject_id: Optional[int] = None


class DailyLogUpdate(UpdateIn):
    date: Optional[dt.date] = None
    mood: Optional[str] = None
    note: Optional[str] = None
    sleep: Optional[float] = Field(default=None, ge=0, le=24)
    study_time: Optional[int] = Field(default=None, ge=0)
    subject_id: Optional[int] = None


def _join_tech(value):
    if isinstance(value, list):
        return ",".join(str(v).strip() for v in value if str(v).strip())
    return value


class ProjectIn(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    progress: int = Field(default=0, ge=0, le=100)
    status: str = "Planning"
    tech: Union[List[str], str] = ""
    github_url: Optional[str] = None
    tag_ids: Optional[List[int]] = None

    join_tech = field_validator("tech", mode="after")(_join_tech)


class ProjectUpdate(UpdateIn):
    title: Optional[str] = None
    description: Optional[str] = None
    progress: Optional[int] = Field(default=None, ge=0, le=100)
    status: Optional[str] = None
    tech: Optional[Union[List[str], str]] = None
    github_url: Optional[str] = None
    tag_ids: Optional[List[int]] = None

    join_tech = field_validator("tech", mode="after")(_join_tech)


class ResourceIn(BaseModel):
    title: str = Field(min_length=1)
    type: Optional[str] = None
    url: Optional[str] = None
    category: Optional[str] = None
    meta: Optional[str] = None
    subject_id: Optional[int] = None
    syllabus_module_id: Optional[int] = None
    scouted_by_ai: bool = False
    tag_ids: Optional[List[int]] = None


class ResourceUpdate(UpdateIn):
    title: Optional[str] = None
    type: Optional[str] = None
    url: Optional[str] = None
    category: Optional[str] = None
    meta: Optional[str] = None
    subject_id: Optional[int] = None
    syllabus_module_id: Optional[int] = None
    scouted_by_ai: Optional[bool] = None
    tag_ids: Optional[List[int]] = None


class ScheduleEventIn(BaseModel):
    title: str = Field(min_length=1)
    type: Optional[str] = None
    time: Optional[str] = None
    duration: Optional[str] = None
    location: Optional[str] = None
    day: Optional[str] = None
    subject_id: Optional[int] = None


class ScheduleEventUpdate(UpdateIn):
    title: Optional[str] = None
    type: Optional[str] = None
    time: Optional[str] = None
    duration: Optional[str] = None
    location: Optional[str] = None
    day: Optional[str] = None
    subject_id: Optional[int] = None


class SemesterIn(BaseModel):
    name: str = Field(min_length=1)
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    is_current: bool = False


class SemesterUpdate(UpdateIn):
    name: Optional[str] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    is_current: Optional[bool] = None


class SubjectIn(BaseModel):
    name: str = Field(min_length=1)
    code: Optional[str] = None
    credits: Optional[int] = None
    type: Optional[str] = None
    slot: Optional[str] = None
    teacher_name: Optional[str] = None
    teacher_email: Optional[str] = None
    cabin_no: Optional[str] = None
    lab_room: Optional[str] = None
    class_room: Optional[str] = None
    semester_id: Optional[int] = None
    da: Optional[float] = None


class SubjectUpdate(UpdateIn):
    name: Optional[str] = None
    code: Optional[str] = None
    credits: Optional[int] = None
    type: Optional[str] = None
    slot: Optional[str] = None
    teacher_name: Optional[str] = None
    teacher_email: Optional[str] = None
    cabin_no: Optional[str] = None
    lab_room: Optional[str] = None
    class_room: Optional[str] = None
    semester_id: Optional[int] = None
    cat1: Optional[float] = None
    cat2: Optional[float] = None
    da: Optional[float] = None
    fat: Optional[float] = None
    lab_internal: Optional[float] = None
    lab_fat: Optional[float] = None


class SnippetIn(BaseModel):
    title: str = Field(min_length=1)
    content: str
    type: str = "text"
    language: str = "text"
    tag_ids: Optional[List[int]] = None


class SnippetUpdate(UpdateIn):
    title: Optional[str] = None
    content: Optional[str] = None
    type: Optional[str] = None
    language: Optional[str] = None
    tag_ids: Optional[List[int]] = None


class TagIn(BaseModel):
    # presence is checked by the tag service so a blank name reports `name is required`
    name: Optional[str] = None
    color: str = "#6366f1"


class TagUpdate(UpdateIn):
    name: Optional[str] = None
    color: Optional[str] = None


class BookIn(BaseModel):
    title: str = Field(min_length=1)
    author: Optional[str] = None
    status: str = "toread"
    total: int = Field(default=100, gt=0)
    progress: int = Field(default=0, ge=0)
    due_date: Optional[dt.date] = None


class BookUpdate(UpdateIn):
    title: Optional[str] = None
    author: Optional[str] = None
    status: Optional[str] = None
    total: Optional[int] = Field(default=None, gt=0)
    progress: Optional[int] = Field(default=None, ge=0)
    due_date: Optional[dt.date] = None


class TodoIn(BaseModel):
    text: str = Field(min_length=1)
    parent_id: Optional[int] = None
    description: Optional[str] = None
    completed: bool = False
    due_date: Optional[dt.date] = None
    due_time: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)
    priority: int = Field(default=4, ge=1, le=4)
    subject_id: Optional[int] = None
    tag_ids: Optional[List[int]] = None


class TodoUpdate(UpdateIn):
    text: Optional[str] = None
    parent_id: Optional[int] = None
    description: Optional[str] = None
    completed: Optional[bool] = None
    due_date: Optional[dt.date] = None
    due_time: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)
    priority: Optional[int] = Field(default=None, ge=1, le=4)
    subject_id: Optional[int] = None
    tag_ids: Optional[List[int]] = None


class SyllabusModuleIn(BaseModel):
    title: str = Field(min_length=1)
    topics: Optional[str] = None


class SyllabusBulkIn(BaseModel):
    """Replace or append the module list of one subject."""
    subject_id: int
    modules: List[SyllabusModuleIn]
    mode: Literal["replace", "append"] = "replace"


class SyllabusModuleUpdate(UpdateIn):
    title: Optional[str] = None
    topics: Optional[str] = None
    position: Optional[int] = None
    status: Optional[SyllabusStatus] = None
    last_studied_at: Optional[dt.datetime] = None
    strength: Optional[float] = Field(default=None, gt=0)

    studied_as_utc = field_validator("last_studied_at", mode="after")(_assume_utc)


class SettingsIn(BaseModel):
    display_name: Optional[str] = None
    email: Optional[str] = None
    department: Optional[str] = None
    current_sem_id: Optional[int] = None
    focus_duration: Optional[int] = Field(default=None, gt=0)
    break_duration: Optional[int] = Field(default=None, gt=0)
    email_notifications: Optional[bool] = None
    notification_email: Optional[str] = None
    resend_api_key: Optional[str] = None


class NotificationCheckIn(BaseModel):
    email: Optional[str] = None


class NotificationTestIn(BaseModel):
    email: str = Field(min_length=3)
