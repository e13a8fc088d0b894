"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Every record except `User` belongs to exactly one user through
`user_id`; the shared columns live on `OwnedRecord`.
"""

import datetime as dt
from typing import Optional
from sqlalchemy import Index, UniqueConstraint, text
from sqlmodel import SQLModel, Field


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `email`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, nullable=False, unique=True)
    name: Optional[str] = None
    password_hash: str
    created_at: dt.datetime = Field(default_factory=utcnow)


class OwnedRecord(SQLModel):
    """Columns shared by every per-user table."""
    user_id: int = Field(foreign_key="user.id", index=True)
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)


class Assignment(OwnedRecord, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    subject: Optional[str] = None
    subject_id: Optional[int] = None
    due: Optional[dt.date] = None
    priority: Optional[str] = None
    status: str = "Pending"
    platform: Optional[str] = None
    description: Optional[str] = None


class Exam(OwnedRecord, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    date: dt.datetime = Field(index=True)
    subject_id: Optional[int] = None
    syllabus: Optional[str] = None
    room: Optional[str] = None
    seat: Optional[str] = None


class Idea(OwnedRecord, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    content: str
    status: str = "brainstorm"


class DailyLog(OwnedRecord, table=True):
    """One journal entry: mood, sleep and study time for a day."""
    id: Optional[int] = Field(default=None, primary_key=True)
    date: dt.date = Field(index=True)
    mood: Optional[str] = None
    note: Optional[str] = None
    sleep: Optional[float] = None
    study_time: Optional[int] = None
    subject_id: Optional[int] = None


class Project(OwnedRecord, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: str = ""
    progress: int = 0
    status: str = "Planning"
    # comma separated list of technologies
    tech: str = ""
    github_url: Optional[str] = None


class Resource(OwnedRecord, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    type: Optional[str] = None
    url: Optional[str] = None
    category: Optional[str] = None
    meta: Optional[str] = None
    subject_id: Optional[int] = None
    syllabus_module_id: Optional[int] = None
    scouted_by_ai: bool = False


class ScheduleEvent(OwnedRecord, table=True):
    """A recurring timetable slot (`day` + `time`)."""
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    type: Optional[str] = None
    time: Optional[str] = None
    duration: Optional[str] = None
    location: Optional[str] = None
    day: Optional[str] = None
    subject_id: Optional[int] = None


class Semester(OwnedRecord, table=True):
    """An academic term.

    At most one semester per user may have `is_current` set; the partial
    unique index rejects a second one at the storage layer.
    """
    __table_args__ = (
        Index(
            "uq_semester_current_per_user",
            "user_id",
            unique=True,
            sqlite_where=text("is_current = 1"),
            postgresql_where=text("is_current"),
        ),
    )
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    is_current: bool = False


class Subject(OwnedRecord, table=True):
    """A course taken in a semester, with its assessment marks."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    code: Optional[str] = None
    credits: Optional[int] = None
    type: Optional[str] = None
    slot: Optional[str] = None
    teacher_name: Optional[str] = None
    teacher_email: Optional[str] = None
    cabin_no: Optional[str] = None
    lab_room: Optional[str] = None
    class_room: Optional[str] = None
    semester_id: Optional[int] = Field(default=None, foreign_key="semester.id")
    cat1: Optional[float] = None
    cat2: Optional[float] = None
    da: Optional[float] = None
    fat: Optional[float] = None
    lab_internal: Optional[float] = None
    lab_fat: Optional[float] = None


class SyllabusModule(OwnedRecord, table=True):
    """A unit of a subject's syllabus tracked for revision.

    `strength` is the stability constant of the forgetting curve; a larger
    value means slower decay.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    subject_id: int = Field(foreign_key="subject.id", index=True)
    title: str
    topics: Optional[str] = None
    position: int = 0
    status: str = "Pending"
    last_studied_at: Optional[dt.datetime] = None
    strength: Optional[float] = 1.0


class Snippet(OwnedRecord, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    content: str
    type: str = "text"
    language: str = "text"


class Tag(OwnedRecord, table=True):
    """A label; `name` is stored lowercased and is unique per user."""
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_tag_user_name"),)
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    color: str = "#6366f1"


TAGGABLE_TYPES = ("todo", "project", "idea", "snippet", "resource")


class TagLink(OwnedRecord, table=True):
    """Attaches a tag to one todo, project, idea, snippet or resource."""
    __table_args__ = (
        UniqueConstraint("tag_id", "item_type", "item_id", name="uq_taglink_tag_item"),
        Index("ix_taglink_item", "item_type", "item_id"),
    )
    id: Optional[int] = Field(default=None, primary_key=True)
    tag_id: int = Field(foreign_key="tag.id", index=True)
    item_type: str
    item_id: int


class Book(OwnedRecord, table=True):
    """A book on the reading list; `progress` counts pages out of `total`."""
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    author: Optional[str] = None
    status: str = "toread"
    total: int = 100
    progress: int = 0
    due_date: Optional[dt.date] = None


class Todo(OwnedRecord, table=True):
    """A task; a todo with `parent_id` set is a subtask of that todo."""
    id: Optional[int] = Field(default=None, primary_key=True)
    parent_id: Optional[int] = Field(default=None, foreign_key="todo.id", index=True)
    text: str
    description: Optional[str] = None
    completed: bool = False
    completed_at: Optional[dt.datetime] = None
    due_date: Optional[dt.date] = None
    due_time: Optional[str] = None
    priority: int = 4
    subject_id: Optional[int] = None


class UserSettings(OwnedRecord, table=True):
    """Per-user preferences; one row per user, created on first read."""
    __table_args__ = (UniqueConstraint("user_id", name="uq_usersettings_user"),)
    id: Optional[int] = Field(default=None, primary_key=True)
    display_name: str = "Student"
    email: Optional[str] = None
    department: str = "CSE"
    current_sem_id: Optional[int] = None
    focus_duration: int = 25
    break_duration: int = 5
    email_notifications: bool = False
    notification_email: Optional[str] = None
    resend_api_key: Optional[str] = None


class NotificationLog(OwnedRecord, table=True):
    """Append-only record of items already included in a digest email.

    Keyed by (user, item, day) so a digest never repeats an item on the
    same day, across restarts and across processes.
    """
    __table_args__ = (
        UniqueConstraint("user_id", "item_type", "item_id", "notify_date", name="uq_notificationlog_item_day"),
    )
    id: Optional[int] = Field(default=None, primary_key=True)
    item_type: str
    item_id: int
    notify_date: dt.date
