"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and auxiliary logic. Services are intentionally thin: they perform
validation, execute domain logic and persist records via repositories.
Client errors are raised as `ValueError` and ownership failures as
`RecordNotFound`; controllers translate both into HTTP responses.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Generic, List, Optional, TypeVar
from passlib.context import CryptContext
import jwt
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session
from . import models, repositories
from .config import settings
from .utils.mailer import EmailDeliveryError, resolve_api_key, send_email
from .utils.retention import rank_by_retention

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
NOT_FOUND = "Not Found or Unauthorized"

logger = logging.getLogger("studyboard.services")

T = TypeVar("T")


class RecordNotFound(LookupError):
    """The record does not exist or is owned by another user."""

    def __init__(self):
        super().__init__(NOT_FOUND)


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, email: str, password: str, name: Optional[str] = None) -> models.User:
        """Create a new user with a hashed password.

        Returns the persisted `User` instance.
        """
        hashed = PWD_CTX.hash(password)
        u = models.User(email=email.strip().lower(), name=name, password_hash=hashed)
        return self.user_repo.create(u)

    def authenticate(self, email: str, password: str) -> Optional[str]:
        """Verify credentials and return a signed JWT token on success.

        Returns `None` if authentication fails.
        """
        user = self.user_repo.get_by_email(email.strip().lower())
        if not user:
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        return issue_token(user)


def issue_token(user: models.User) -> str:
    expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
    payload = {"user_id": user.id, "email": user.email, "exp": int(expire.timestamp())}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


REFERENCES = {
    "subject_id": models.Subject,
    "semester_id": models.Semester,
    "syllabus_module_id": models.SyllabusModule,
    "parent_id": models.Todo,
    "current_sem_id": models.Semester,
}


def check_references(session: Session, user_id: int, values: Dict[str, Any]) -> None:
    """Refuse ids in `values` that point at another user's (or no) record.

    Raises `RecordNotFound`, so a foreign id and a missing id look the same.
    """
    for field, model in REFERENCES.items():
        ref = values.get(field)
        if ref is not None and repositories.OwnedRepository(session, model).get_owned(user_id, ref) is None:
            raise RecordNotFound()


class CrudService(Generic[T]):
    """Ownership-scoped list/create/update/delete for one entity.

    Subclasses override `prepare_create` / `prepare_update` to derive
    fields, or the operations themselves for multi-step writes.
    """
    def __init__(self, session: Session, repo: repositories.OwnedRepository):
        self.session = session
        self.repo = repo

    def list(self, user_id: int) -> List[T]:
        return self.repo.list(user_id)

    def prepare_create(self, user_id: int, values: Dict[str, Any]) -> Dict[str, Any]:
        return values

    def prepare_update(self, record: T, values: Dict[str, Any]) -> Dict[str, Any]:
        return values

    def get(self, user_id: int, record_id: int) -> T:
        record = self.repo.get_owned(user_id, record_id)
        if record is None:
            raise RecordNotFound()
        return record

    def create(self, user_id: int, values: Dict[str, Any]) -> T:
        check_references(self.session, user_id, values)
        return self.repo.create(user_id, self.prepare_create(user_id, values))

    def update(self, user_id: int, record_id: int, values: Dict[str, Any]) -> T:
        record = self.get(user_id, record_id)
        check_references(self.session, user_id, values)
        return self.repo.update(record, self.prepare_update(record, values))

    def delete(self, user_id: int, record_id: int) -> None:
        self.repo.delete(self.get(user_id, record_id))


class TaggedCrudService(CrudService[T]):
    """CRUD for records that carry tags.

    Create and update accept `tag_ids`; on update a given list replaces the
    record's tags and an absent one leaves them alone. Records are returned
    as dicts with a `tags` list.
    """
    def __init__(self, session: Session, repo: repositories.OwnedRepository, item_type: str):
        super().__init__(session, repo)
        self.item_type = item_type
        self.links = repositories.TagLinkRepository(session)
        self.tags = repositories.TagRepository(session)

    def serialize(self, user_id: int, records: List[T]) -> List[dict]:
        tags = self.links.tags_for(user_id, self.item_type, [r.id for r in records])
        return [{**r.model_dump(), "tags": [t.model_dump() for t in tags.get(r.id, [])]} for r in records]

    def _check_tags(self, user_id: int, tag_ids: Optional[List[int]]) -> None:
        for tag_id in tag_ids or ():
            if self.tags.get_owned(user_id, tag_id) is None:
                raise RecordNotFound()

    def _write(self, user_id: int, write, tag_ids: Optional[List[int]]) -> dict:
        try:
            record = write()
            self.session.flush()
            if tag_ids is not None:
                self.links.replace(user_id, self.item_type, record.id, tag_ids)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(record)
        return self.serialize(user_id, [record])[0]

    def list(self, user_id):
        return self.serialize(user_id, self.repo.list(user_id))

    def create(self, user_id, values):
        values = dict(values)
        tag_ids = values.pop("tag_ids", None)
        check_references(self.session, user_id, values)
        self._check_tags(user_id, tag_ids)
        values = self.prepare_create(user_id, values)
        return self._write(user_id, lambda: self.repo.create(user_id, values, commit=False), tag_ids)

    def update(self, user_id, record_id, values):
        record = self.get(user_id, record_id)
        values = dict(values)
        tag_ids = values.pop("tag_ids", None)
        check_references(self.session, user_id, values)
        self._check_tags(user_id, tag_ids)
        values = self.prepare_update(record, values)
        return self._write(user_id, lambda: self.repo.update(record, values, commit=False), tag_ids)

    def delete(self, user_id, record_id):
        record = self.get(user_id, record_id)
        self.links.delete_for_items(user_id, self.item_type, [record.id])
        self.repo.delete(record)


def _merge_time(day: datetime, hhmm: Optional[str]) -> datetime:
    if day.tzinfo is None:
        day = day.replace(tzinfo=timezone.utc)
    if not hhmm:
        return day
    hours, minutes = (int(p) for p in hhmm.split(":"))
    return day.replace(hour=hours, minute=minutes, second=0, microsecond=0)


class ExamService(CrudService[models.Exam]):
    """Exams: title falls back to the exam type; `time` is folded into `date`."""

    def prepare_create(self, user_id, values):
        values = dict(values)
        values["title"] = values.get("title") or values.pop("type", None) or "Exam"
        values["date"] = _merge_time(values["date"], values.pop("time", None))
        return values

    def prepare_update(self, record, values):
        values = dict(values)
        hhmm = values.pop("time", None)
        if hhmm:
            values["date"] = _merge_time(values.get("date") or record.date, hhmm)
        return values


class TodoService(TaggedCrudService[models.Todo]):
    """Todos with tags and subtasks.

    `completed_at` follows the `completed` flag. Listing returns top-level
    todos with their direct subtasks nested under `subtasks`; deleting a
    todo deletes its subtasks too.
    """
    repo: repositories.TodoRepository

    def __init__(self, session: Session):
        super().__init__(session, repositories.TodoRepository(session), "todo")

    def prepare_create(self, user_id, values):
        values = dict(values)
        values["completed_at"] = models.utcnow() if values.get("completed") else None
        return values

    def prepare_update(self, record, values):
        values = dict(values)
        completed = values.get("completed")
        if completed is not None and completed != record.completed:
            values["completed_at"] = models.utcnow() if completed else None
        parent_id = values.get("parent_id")
        if parent_id is not None and (parent_id == record.id or parent_id in self.repo.descendant_ids(record.user_id, record.id)):
            raise ValueError("invalid parent_id: a todo cannot be nested under itself")
        return values

    def list(self, user_id, view=None, tag_id=None, search=None, today=None):
        if view and view not in repositories.TODO_VIEWS:
            raise ValueError(f"invalid view: {view}")
        today = today or datetime.now(timezone.utc).date()
        search = search.strip() if search else None
        todos = self.repo.top_level(user_id, today, view=view, tag_id=tag_id, search=search)
        subtasks = self.repo.subtasks_of(user_id, [t.id for t in todos])
        by_parent: Dict[int, List[dict]] = {}
        for sub in self.serialize(user_id, subtasks):
            by_parent.setdefault(sub["parent_id"], []).append(sub)
        return [{**todo, "subtasks": by_parent.get(todo["id"], [])} for todo in self.serialize(user_id, todos)]

    def delete(self, user_id, record_id):
        self.repo.delete_tree(user_id, self.get(user_id, record_id))


class SemesterService(CrudService[models.Semester]):
    """Semesters with a single current semester per user.

    Setting `is_current` clears the flag on the user's other semesters and
    sets it on the target inside one transaction. The partial unique index
    on `semester(user_id) WHERE is_current` makes a concurrent writer fail
    instead of leaving two current semesters; that writer rolls back and
    retries once.
    """
    repo: repositories.SemesterRepository

    def __init__(self, session: Session):
        super().__init__(session, repositories.SemesterRepository(session))

    def _with_retry(self, write):
        try:
            return write()
        except IntegrityError:
            self.session.rollback()
            logger.warning("current semester conflict; retrying once")
            return write()

    def create(self, user_id, values):
        if not values.get("is_current"):
            return super().create(user_id, values)

        def write():
            self.repo.clear_current(user_id)
            return self.repo.create(user_id, values)
        return self._with_retry(write)

    def update(self, user_id, record_id, values):
        record = self.get(user_id, record_id)
        if not values.get("is_current"):
            return self.repo.update(record, values)

        def write():
            self.repo.clear_current(user_id, keep_id=record_id)
            return self.repo.update(self.get(user_id, record_id), values)
        return self._with_retry(write)


def normalize_tag_name(name: Optional[str]) -> str:
    return (name or "").strip().lower()


class TagService(CrudService[models.Tag]):
    """Tags are unique per user by lowercased, trimmed name."""
    repo: repositories.TagRepository

    def __init__(self, session: Session):
        super().__init__(session, repositories.TagRepository(session))
        self.links = repositories.TagLinkRepository(session)

    def list(self, user_id):
        """Tags by name, each with `usage_count`: how many records carry it."""
        counts = self.links.usage_counts(user_id)
        return [{**tag.model_dump(), "usage_count": counts.get(tag.id, 0)} for tag in self.repo.list(user_id)]

    def create(self, user_id, values):
        name = normalize_tag_name(values.get("name"))
        if not name:
            raise ValueError("name is required")
        existing = self.repo.get_by_name(user_id, name)
        if existing:
            return existing
        return self.repo.create(user_id, {**values, "name": name})

    def update(self, user_id, record_id, values):
        record = self.get(user_id, record_id)
        values = dict(values)
        if "name" in values:
            name = normalize_tag_name(values["name"])
            if not name:
                raise ValueError("name is required")
            clash = self.repo.get_by_name(user_id, name)
            if clash and clash.id != record.id:
                raise ValueError(f"tag '{name}' already exists")
            values["name"] = name
        return self.repo.update(record, values)

    def delete(self, user_id, record_id):
        record = self.get(user_id, record_id)
        self.links.delete_for_tag(record.id)
        self.repo.delete(record)


class SyllabusService(CrudService[models.SyllabusModule]):
    """Syllabus modules grouped by subject."""
    repo: repositories.SyllabusRepository

    def __init__(self, session: Session):
        super().__init__(session, repositories.SyllabusRepository(session))
        self.subjects = repositories.OwnedRepository(session, models.Subject)

    def list_for_subject(self, user_id: int, subject_id: int) -> List[models.SyllabusModule]:
        return self.repo.list(user_id, models.SyllabusModule.subject_id == subject_id)

    def save_modules(self, user_id: int, subject_id: int, modules: List[Dict[str, Any]], mode: str = "replace") -> int:
        """Replace or append a subject's modules in a single transaction.

        Returns the number of modules written.
        """
        if self.subjects.get_owned(user_id, subject_id) is None:
            raise RecordNotFound()
        try:
            if mode == "replace":
                self.repo.delete_for_subject(user_id, subject_id)
                start = 0
            else:
                start = self.repo.count_for_subject(user_id, subject_id)
            for offset, mod in enumerate(modules):
                self.repo.create(user_id, {
                    "subject_id": subject_id,
                    "title": mod["title"],
                    "topics": mod.get("topics"),
                    "position": start + offset,
                    "status": "Pending",
                }, commit=False)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return len(modules)

    def prepare_update(self, record, values):
        values = dict(values)
        status = values.get("status")
        if status in ("Completed", "Revised") and status != record.status and not values.get("last_studied_at"):
            values["last_studied_at"] = models.utcnow()
        return values


class RetentionService:
    """Rank a user's studied modules by forgetting-curve retention."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.SyllabusRepository(session)

    def ranking(self, user_id: int, now: Optional[datetime] = None) -> List[dict]:
        return rank_by_retention(self.repo.studied(user_id), now=now)


class SettingsService:
    """Per-user settings; the stored email API key is never returned."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.SettingsRepository(session)

    @staticmethod
    def to_public(row: models.UserSettings) -> dict:
        out = row.model_dump(exclude={"resend_api_key"})
        out["has_resend_api_key"] = bool(row.resend_api_key)
        return out

    def get(self, user_id: int) -> models.UserSettings:
        return self.repo.get_or_create(user_id)

    def update(self, user_id: int, values: Dict[str, Any]) -> models.UserSettings:
        check_references(self.session, user_id, values)
        row = self.repo.get_or_create(user_id)
        for key, value in values.items():
            if value is None and key not in ("notification_email", "email", "current_sem_id", "resend_api_key"):
                continue
            setattr(row, key, value)
        row.updated_at = models.utcnow()
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row


def upcoming_exams(repo: repositories.OwnedRepository, user_id: int, today: date) -> List[dict]:
    """Exams from the start of `today` (UTC) through the next 7 days."""
    day_start = datetime.combine(today, time(), tzinfo=timezone.utc)
    exams = []
    for e in repo.list(user_id, models.Exam.date >= day_start, models.Exam.date <= day_start + timedelta(days=7)):
        exams.append({
            "id": e.id,
            "title": e.title,
            "date": e.date.isoformat(),
            "days_until": (e.date.date() - today).days,
            "room": e.room,
            "seat": e.seat,
        })
    return exams


def _due_moment(day: Optional[date], hhmm: Optional[str] = None) -> Optional[datetime]:
    """Turn a stored due date (+ optional HH:MM) into an aware UTC datetime.

    Items without a due date, or with an unparseable time, yield None and
    are skipped by the scanner.
    """
    if day is None:
        return None
    at = time(23, 59)
    if hhmm:
        try:
            hours, minutes = (int(p) for p in hhmm.split(":"))
            at = time(hours, minutes)
        except ValueError:
            logger.warning("ignoring malformed due time %r", hhmm)
    return datetime.combine(day, at, tzinfo=timezone.utc)


class NotificationService:
    """Send one digest email per run for items due soon.

    Items already included in a digest today are skipped using the
    persisted `NotificationLog`, so reruns and restarts do not resend.
    Log rows are written only after the email API accepts the message.
    """
    def __init__(self, session: Session):
        self.session = session
        self.assignments = repositories.OwnedRepository(session, models.Assignment)
        self.todos = repositories.OwnedRepository(session, models.Todo)
        self.exams = repositories.OwnedRepository(session, models.Exam, (models.Exam.date.asc(),))
        self.settings_repo = repositories.SettingsRepository(session)
        self.log_repo = repositories.NotificationLogRepository(session)

    def collect(self, user_id: int, now: datetime) -> Dict[str, List[dict]]:
        """Return due-soon assignments/todos not yet notified today plus upcoming exams."""
        window_start = now - timedelta(hours=1)
        window_end = now + timedelta(hours=settings.NOTIFY_WINDOW_HOURS)
        already_sent = self.log_repo.sent_keys(user_id, now.date())

        due_soon = []
        pending_assignments = self.assignments.list(user_id, models.Assignment.status != "Completed")
        for a in pending_assignments:
            due = _due_moment(a.due)
            if due is None or not (window_start <= due <= window_end) or ("assignment", a.id) in already_sent:
                continue
            due_soon.append({"item_type": "assignment", "id": a.id, "title": a.title, "subject": a.subject, "due": due.isoformat(), "priority": a.priority})
        for t in self.todos.list(user_id, models.Todo.completed == False):  # noqa: E712
            due = _due_moment(t.due_date, t.due_time)
            if due is None or not (window_start <= due <= window_end) or ("todo", t.id) in already_sent:
                continue
            due_soon.append({"item_type": "todo", "id": t.id, "title": t.text, "subject": None, "due": due.isoformat(), "priority": t.priority})
        due_soon.sort(key=lambda item: item["due"])

        return {"due_soon": due_soon, "exams": upcoming_exams(self.exams, user_id, now.date())}

    @staticmethod
    def render(user_name: Optional[str], due_soon: List[dict], exams: List[dict]) -> tuple:
        """Return `(subject, html)` for the digest."""
        if due_soon:
            n = len(due_soon)
            subject = f"{n} item{'s' if n > 1 else ''} due in the next 24 hours"
        elif exams:
            subject = f"Exam alert: {exams[0]['title']} on {exams[0]['date'][:10]}"
        else:
            subject = "Your Study Board daily digest"
        greeting = f"Hi {user_name}," if user_name else "Hi,"
        rows = "".join(f"<li>{item['title']} ({item['item_type']}) due {item['due'][:16].replace('T', ' ')}</li>" for item in due_soon)
        exam_rows = "".join(f"<li>{e['title']} on {e['date'][:16].replace('T', ' ')}</li>" for e in exams)
        html = f"<p>{greeting}</p>"
        if rows:
            html += f"<h3>Due soon</h3><ul>{rows}</ul>"
        if exam_rows:
            html += f"<h3>Upcoming exams</h3><ul>{exam_rows}</ul>"
        return subject, html

    def check(self, user: models.User, email: Optional[str] = None, now: Optional[datetime] = None) -> dict:
        now = now or datetime.now(timezone.utc)
        user_settings = self.settings_repo.get(user.id)
        recipient = email or (user_settings.notification_email if user_settings else None) or user.email
        if not recipient:
            raise ValueError("email is required")
        api_key = resolve_api_key(user_settings.resend_api_key if user_settings else None)
        if settings.EMAIL_BACKEND == "resend" and not api_key:
            raise ValueError("email service not configured; add a Resend API key in settings")

        found = self.collect(user.id, now)
        due_soon, exams = found["due_soon"], found["exams"]
        if not due_soon:
            return {"message": "No new notifications"}

        display_name = (user_settings.display_name if user_settings else None) or user.name
        subject, html = self.render(display_name, due_soon, exams)
        message_id = send_email(recipient, subject, html, api_key=api_key)
        self.log_repo.record(user.id, now.date(), [(item["item_type"], item["id"]) for item in due_soon])
        logger.info("digest sent to user %s with %d items", user.id, len(due_soon))
        return {
            "message": "Email sent",
            "id": message_id,
            "summary": {
                "assignments": sum(1 for i in due_soon if i["item_type"] == "assignment"),
                "todos": sum(1 for i in due_soon if i["item_type"] == "todo"),
                "exams": len(exams),
            },
            "items": due_soon,
        }

    def send_test(self, user: models.User, email: str) -> dict:
        """Send a fixed test message so the user can check their email setup."""
        user_settings = self.settings_repo.get(user.id)
        api_key = resolve_api_key(user_settings.resend_api_key if user_settings else None)
        if settings.EMAIL_BACKEND == "resend" and not api_key:
            raise ValueError("email service not configured; add a Resend API key in settings")
        message_id = send_email(email, "Study Board test email", TEST_EMAIL_HTML, api_key=api_key)
        return {"message": "Email sent", "id": message_id}


TEST_EMAIL_HTML = (
    "<h1>It works!</h1>"
    "<p>This is a test email from your Study Board.</p>"
    "<p>Notifications will arrive here for:</p>"
    "<ul><li>Assignments due in 24 hours</li><li>Important tasks</li></ul>"
)

DIGEST_KINDS = ("morning", "evening")


class DigestService:
    """Scheduled digest sent to every user who opted in to email notifications.

    A `morning` digest goes out when anything is overdue, due today or
    tomorrow, or when an exam is within the week. An `evening` digest goes
    out only for overdue items or items due tomorrow. One user's delivery
    failure is reported in the results and does not stop the run.
    """
    def __init__(self, session: Session):
        self.session = session
        self.settings_repo = repositories.SettingsRepository(session)
        self.assignments = repositories.OwnedRepository(session, models.Assignment, (models.Assignment.due.asc(), models.Assignment.id.asc()))
        self.todos = repositories.OwnedRepository(session, models.Todo, (models.Todo.due_date.asc(), models.Todo.id.asc()))
        self.exams = repositories.OwnedRepository(session, models.Exam, (models.Exam.date.asc(),))

    def gather(self, user_id: int, today: date) -> Dict[str, List[dict]]:
        found: Dict[str, List[dict]] = {"overdue": [], "due_today": [], "due_tomorrow": [], "due_this_week": []}
        open_assignments = self.assignments.list(
            user_id,
            models.Assignment.status != "Completed",
            models.Assignment.due != None,  # noqa: E711
        )
        for a in open_assignments:
            days_left = (a.due - today).days
            item = {"id": a.id, "title": a.title, "subject": a.subject, "due": a.due.isoformat()}
            if days_left < 0:
                found["overdue"].append(item)
            elif days_left == 0:
                found["due_today"].append(item)
            elif days_left == 1:
                found["due_tomorrow"].append(item)
            elif days_left <= 7:
                found["due_this_week"].append(item)
        found["pending_todos"] = [
            {"id": t.id, "title": t.text, "due": t.due_date.isoformat()}
            for t in self.todos.list(user_id, models.Todo.completed == False, models.Todo.due_date <= today)  # noqa: E712
        ]
        found["exams"] = upcoming_exams(self.exams, user_id, today)
        return found

    @staticmethod
    def subject_line(kind: str, found: Dict[str, List[dict]]) -> Optional[str]:
        """Return the email subject, or None when this kind of digest has nothing to say."""
        overdue = len(found["overdue"])
        if kind == "evening":
            if overdue:
                return f"{overdue} item{'s' if overdue > 1 else ''} overdue"
            if found["due_tomorrow"]:
                return f"Prep for tomorrow: {len(found['due_tomorrow'])} items"
            return None
        pending = overdue + len(found["due_today"]) + len(found["due_tomorrow"]) + len(found["pending_todos"])
        if not pending and not found["exams"]:
            return None
        if overdue:
            return f"{overdue} overdue! Morning briefing"
        if any(e["days_until"] <= 1 for e in found["exams"]):
            return "Exam soon! Get ready"
        return f"Your day ahead: {pending} items"

    @staticmethod
    def render(display_name: Optional[str], found: Dict[str, List[dict]]) -> str:
        sections = (
            ("Overdue", "overdue"),
            ("Due today", "due_today"),
            ("Due tomorrow", "due_tomorrow"),
            ("Later this week", "due_this_week"),
            ("Open todos", "pending_todos"),
        )
        html = f"<p>Hi {display_name or 'there'},</p>"
        for heading, key in sections:
            if found[key]:
                rows = "".join(f"<li>{item['title']} (due {item['due']})</li>" for item in found[key])
                html += f"<h3>{heading}</h3><ul>{rows}</ul>"
        if found["exams"]:
            rows = "".join(f"<li>{e['title']} in {e['days_until']} day(s)</li>" for e in found["exams"])
            html += f"<h3>Upcoming exams</h3><ul>{rows}</ul>"
        return html

    def run(self, kind: str = "morning", now: Optional[datetime] = None) -> dict:
        if kind not in DIGEST_KINDS:
            raise ValueError(f"invalid type: {kind}")
        today = (now or datetime.now(timezone.utc)).date()
        results = []
        for row in self.settings_repo.subscribed():
            result = {"user_id": row.user_id, "email": row.notification_email}
            results.append(result)
            api_key = resolve_api_key(row.resend_api_key)
            if settings.EMAIL_BACKEND == "resend" and not api_key:
                result["status"] = "skipped_no_key"
                continue
            found = self.gather(row.user_id, today)
            subject = self.subject_line(kind, found)
            if subject is None:
                result["status"] = "skipped_nothing_due"
                continue
            try:
                result["id"] = send_email(row.notification_email, subject, self.render(row.display_name, found), api_key=api_key)
            except EmailDeliveryError as exc:
                logger.error("%s digest for user %s failed: %s", kind, row.user_id, exc)
                result["status"] = "failed"
                continue
            result["status"] = "sent"
        logger.info("%s digest run: %d users", kind, len(results))
        return {"success": True, "type": kind, "results": results}


SEARCH_TYPES = ("todos", "projects", "ideas", "snippets", "resources", "tags")


class SearchService:
    """Substring search across the caller's records."""
    def __init__(self, session: Session):
        self.session = session
        self.targets = {
            "todos": (repositories.OwnedRepository(session, models.Todo), (models.Todo.text, models.Todo.description)),
            "projects": (repositories.OwnedRepository(session, models.Project), (models.Project.title, models.Project.description, models.Project.tech)),
            "ideas": (repositories.OwnedRepository(session, models.Idea), (models.Idea.content,)),
            "snippets": (repositories.OwnedRepository(session, models.Snippet), (models.Snippet.title, models.Snippet.content)),
            "resources": (repositories.OwnedRepository(session, models.Resource), (models.Resource.title, models.Resource.category)),
            "tags": (repositories.TagRepository(session), (models.Tag.name,)),
        }

    def search(self, user_id: int, query: Optional[str], kind: Optional[str] = None) -> dict:
        if not query or len(query.strip()) < 2:
            raise ValueError("q must be at least 2 characters")
        if kind and kind != "all" and kind not in SEARCH_TYPES:
            raise ValueError(f"invalid type: {kind}")
        wanted = SEARCH_TYPES if not kind or kind == "all" else (kind,)
        results: Dict[str, Any] = {}
        for name in wanted:
            repo, columns = self.targets[name]
            results[name] = [
                {**row.model_dump(), "_type": name[:-1]}
                for row in repo.search(user_id, query.strip(), columns)
            ]
        if not kind or kind == "all":
            results["all"] = [row for name in SEARCH_TYPES if name != "tags" for row in results[name]]
            results["total_count"] = len(results["all"]) + len(results["tags"])
        return results
