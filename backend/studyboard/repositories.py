"""Repository classes encapsulating database operations.

Every per-user table goes through `OwnedRepository`, which filters all
reads and writes on `user_id`. A record owned by someone else is
indistinguishable from a missing one: both come back as `None`.
Repositories return SQLModel objects and perform commits/refreshes where
appropriate.
"""

from typing import Any, Dict, Generic, Iterable, List, Optional, Sequence, Type, TypeVar
from sqlmodel import Session, SQLModel, select
import datetime as dt
from sqlalchemy import and_, delete, func, or_, update
from . import models

T = TypeVar("T", bound=SQLModel)


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by email or `None` if not found."""
        stmt = select(models.User).where(models.User.email == email)
        return self.session.exec(stmt).first()

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)

    def delete_with_owned_records(self, user: models.User) -> None:
        """Delete the user and every row it owns in a single commit."""
        for model in OWNED_MODELS:
            self.session.exec(delete(model).where(model.user_id == user.id))
        self.session.delete(user)
        self.session.commit()


class OwnedRepository(Generic[T]):
    """Ownership-scoped CRUD for one per-user model.

    `order_by` holds the column expressions used by `list`; when empty the
    primary key order is used.
    """
    def __init__(self, session: Session, model: Type[T], order_by: Sequence[Any] = ()):
        self.session = session
        self.model = model
        self.order_by = tuple(order_by) or (model.id,)

    def list(self, user_id: int, *criteria) -> List[T]:
        """Return every record owned by `user_id`, optionally filtered further."""
        stmt = select(self.model).where(self.model.user_id == user_id, *criteria).order_by(*self.order_by)
        return self.session.exec(stmt).all()

    def get_owned(self, user_id: int, record_id: int) -> Optional[T]:
        """Fetch a record only if it exists and belongs to `user_id`."""
        record = self.session.get(self.model, record_id)
        if record is None or record.user_id != user_id:
            return None
        return record

    def create(self, user_id: int, values: Dict[str, Any], commit: bool = True) -> T:
        """Create a record owned by `user_id` from a field mapping."""
        fields = {k: v for k, v in values.items() if k in self.model.model_fields}
        fields["user_id"] = user_id
        record = self.model(**fields)
        self.session.add(record)
        if commit:
            self.session.commit()
            self.session.refresh(record)
        return record

    def update(self, record: T, values: Dict[str, Any], commit: bool = True) -> T:
        """Apply a partial update to a record already checked for ownership.

        Unknown keys and ownership columns are ignored; an explicit null on
        a non-nullable column is dropped rather than sent to the database.
        """
        columns = self.model.__table__.c
        for key, value in values.items():
            if key in ("id", "user_id", "created_at") or key not in columns:
                continue
            if value is None and not columns[key].nullable:
                continue
            setattr(record, key, value)
        record.updated_at = models.utcnow()
        self.session.add(record)
        if commit:
            self.session.commit()
            self.session.refresh(record)
        return record

    def delete(self, record: T) -> None:
        self.session.delete(record)
        self.session.commit()

    def search(self, user_id: int, term: str, columns: Sequence[Any], limit: int = 10) -> List[T]:
        """Case-insensitive substring search over `columns`.

        `%` and `_` in `term` match literally.
        """
        clauses = [col.icontains(term, autoescape=True) for col in columns]
        stmt = (
            select(self.model)
            .where(self.model.user_id == user_id, or_(*clauses))
            .order_by(*self.order_by)
            .limit(limit)
        )
        return self.session.exec(stmt).all()


class SemesterRepository(OwnedRepository[models.Semester]):
    """Semesters, including the per-user single current flag."""
    def __init__(self, session: Session):
        super().__init__(session, models.Semester, (models.Semester.created_at.desc(), models.Semester.id.desc()))

    def clear_current(self, user_id: int, keep_id: Optional[int] = None) -> None:
        """Unset `is_current` on the user's semesters except `keep_id`.

        Does not commit; the caller sets the new current semester in the
        same transaction.
        """
        stmt = update(models.Semester).where(
            models.Semester.user_id == user_id,
            models.Semester.is_current == True,  # noqa: E712
        )
        if keep_id is not None:
            stmt = stmt.where(models.Semester.id != keep_id)
        self.session.exec(stmt.values(is_current=False))

    def current_for_user(self, user_id: int) -> List[models.Semester]:
        stmt = select(models.Semester).where(models.Semester.user_id == user_id, models.Semester.is_current == True)  # noqa: E712
        return self.session.exec(stmt).all()


class TagRepository(OwnedRepository[models.Tag]):
    def __init__(self, session: Session):
        super().__init__(session, models.Tag, (models.Tag.name.asc(),))

    def get_by_name(self, user_id: int, name: str) -> Optional[models.Tag]:
        """Return the user's tag with the already-normalized `name`."""
        stmt = select(models.Tag).where(models.Tag.user_id == user_id, models.Tag.name == name)
        return self.session.exec(stmt).first()


class TagLinkRepository:
    """Links between tags and the records they label.

    Writes do not commit unless `commit=True`; callers bundle them with the
    write to the labelled record.
    """
    def __init__(self, session: Session):
        self.session = session

    def tags_for(self, user_id: int, item_type: str, item_ids: Iterable[int]) -> Dict[int, List[models.Tag]]:
        """Map each item id to its tags, sorted by name."""
        item_ids = list(item_ids)
        if not item_ids:
            return {}
        stmt = (
            select(models.TagLink.item_id, models.Tag)
            .join(models.Tag, models.Tag.id == models.TagLink.tag_id)
            .where(
                models.TagLink.user_id == user_id,
                models.TagLink.item_type == item_type,
                models.TagLink.item_id.in_(item_ids),
            )
            .order_by(models.Tag.name.asc())
        )
        found: Dict[int, List[models.Tag]] = {}
        for item_id, tag in self.session.exec(stmt).all():
            found.setdefault(item_id, []).append(tag)
        return found

    def replace(self, user_id: int, item_type: str, item_id: int, tag_ids: Iterable[int], commit: bool = False) -> None:
        self.delete_for_items(user_id, item_type, [item_id])
        for tag_id in dict.fromkeys(tag_ids):
            self.session.add(models.TagLink(user_id=user_id, tag_id=tag_id, item_type=item_type, item_id=item_id))
        if commit:
            self.session.commit()

    def delete_for_items(self, user_id: int, item_type: str, item_ids: Iterable[int]) -> None:
        self.session.exec(
            delete(models.TagLink).where(
                models.TagLink.user_id == user_id,
                models.TagLink.item_type == item_type,
                models.TagLink.item_id.in_(list(item_ids)),
            )
        )

    def delete_for_tag(self, tag_id: int) -> None:
        self.session.exec(delete(models.TagLink).where(models.TagLink.tag_id == tag_id))

    def usage_counts(self, user_id: int) -> Dict[int, int]:
        """Number of labelled records per tag id."""
        stmt = (
            select(models.TagLink.tag_id, func.count())
            .where(models.TagLink.user_id == user_id)
            .group_by(models.TagLink.tag_id)
        )
        return {tag_id: count for tag_id, count in self.session.exec(stmt).all()}

    def tagged_item_ids(self, user_id: int, item_type: str, tag_id: Optional[int] = None, name_contains: Optional[str] = None):
        """Subquery of item ids carrying a given tag, or a tag whose name contains `name_contains`."""
        stmt = (
            select(models.TagLink.item_id)
            .join(models.Tag, models.Tag.id == models.TagLink.tag_id)
            .where(models.TagLink.user_id == user_id, models.TagLink.item_type == item_type)
        )
        if tag_id is not None:
            stmt = stmt.where(models.TagLink.tag_id == tag_id)
        if name_contains:
            stmt = stmt.where(models.Tag.name.icontains(name_contains, autoescape=True))
        return stmt


TODO_VIEWS = ("all", "inbox", "today", "upcoming", "completed")


class TodoRepository(OwnedRepository[models.Todo]):
    """Todos and their subtasks."""
    def __init__(self, session: Session):
        super().__init__(session, models.Todo, (
            models.Todo.completed.asc(),
            models.Todo.priority.asc(),
            models.Todo.due_date.asc(),
            models.Todo.created_at.desc(),
            models.Todo.id.desc(),
        ))
        self.links = TagLinkRepository(session)

    def top_level(
        self,
        user_id: int,
        today: dt.date,
        view: Optional[str] = None,
        tag_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> List[models.Todo]:
        """List todos without a parent, filtered by view, tag and text.

        Views: `inbox` (no due date), `today` (due today or overdue and open),
        `upcoming` (due within the next 7 days), `completed`; `all` or None
        applies no view filter.
        """
        Todo = models.Todo
        criteria = [Todo.parent_id == None]  # noqa: E711
        if view == "inbox":
            criteria.append(Todo.due_date == None)  # noqa: E711
        elif view == "today":
            criteria.append(or_(Todo.due_date == today, and_(Todo.due_date < today, Todo.completed == False)))  # noqa: E712
        elif view == "upcoming":
            criteria.append(Todo.due_date.between(today, today + dt.timedelta(days=7)))
        elif view == "completed":
            criteria.append(Todo.completed == True)  # noqa: E712
        if tag_id is not None:
            criteria.append(Todo.id.in_(self.links.tagged_item_ids(user_id, "todo", tag_id=tag_id)))
        if search:
            criteria.append(or_(
                Todo.text.icontains(search, autoescape=True),
                Todo.description.icontains(search, autoescape=True),
                Todo.id.in_(self.links.tagged_item_ids(user_id, "todo", name_contains=search)),
            ))
        return self.list(user_id, *criteria)

    def subtasks_of(self, user_id: int, parent_ids: Iterable[int]) -> List[models.Todo]:
        parent_ids = list(parent_ids)
        if not parent_ids:
            return []
        stmt = (
            select(models.Todo)
            .where(models.Todo.user_id == user_id, models.Todo.parent_id.in_(parent_ids))
            .order_by(models.Todo.created_at.asc(), models.Todo.id.asc())
        )
        return self.session.exec(stmt).all()

    def descendant_ids(self, user_id: int, todo_id: int) -> List[int]:
        """Ids of every subtask below `todo_id`, at any depth."""
        seen = {todo_id}
        found: List[int] = []
        frontier = [todo_id]
        while frontier:
            stmt = select(models.Todo.id).where(models.Todo.user_id == user_id, models.Todo.parent_id.in_(frontier))
            frontier = [i for i in self.session.exec(stmt).all() if i not in seen]
            seen.update(frontier)
            found.extend(frontier)
        return found

    def delete_tree(self, user_id: int, todo: models.Todo) -> None:
        """Delete a todo, its subtasks and their tag links in one commit."""
        ids = [todo.id] + self.descendant_ids(user_id, todo.id)
        self.links.delete_for_items(user_id, "todo", ids)
        self.session.exec(delete(models.Todo).where(models.Todo.user_id == user_id, models.Todo.id.in_(ids)))
        self.session.commit()


class SyllabusRepository(OwnedRepository[models.SyllabusModule]):
    def __init__(self, session: Session):
        super().__init__(session, models.SyllabusModule, (models.SyllabusModule.position.asc(), models.SyllabusModule.id.asc()))

    def count_for_subject(self, user_id: int, subject_id: int) -> int:
        stmt = select(func.count()).select_from(models.SyllabusModule).where(
            models.SyllabusModule.user_id == user_id,
            models.SyllabusModule.subject_id == subject_id,
        )
        return self.session.exec(stmt).one()

    def delete_for_subject(self, user_id: int, subject_id: int) -> None:
        """Remove a subject's modules without committing."""
        self.session.exec(
            delete(models.SyllabusModule).where(
                models.SyllabusModule.user_id == user_id,
                models.SyllabusModule.subject_id == subject_id,
            )
        )

    def studied(self, user_id: int) -> List[models.SyllabusModule]:
        """Modules eligible for retention scoring."""
        return self.list(user_id, models.SyllabusModule.status.in_(("Completed", "Revised")))


class SettingsRepository:
    """Get-or-create access to the per-user `UserSettings` row."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, user_id: int) -> Optional[models.UserSettings]:
        stmt = select(models.UserSettings).where(models.UserSettings.user_id == user_id)
        return self.session.exec(stmt).first()

    def get_or_create(self, user_id: int) -> models.UserSettings:
        existing = self.get(user_id)
        if existing:
            return existing
        row = models.UserSettings(user_id=user_id)
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row

    def subscribed(self) -> List[models.UserSettings]:
        """Settings of every user who opted in to digests and gave an address."""
        stmt = select(models.UserSettings).where(
            models.UserSettings.email_notifications == True,  # noqa: E712
            models.UserSettings.notification_email != None,  # noqa: E711
        ).order_by(models.UserSettings.user_id.asc())
        return self.session.exec(stmt).all()


class NotificationLogRepository:
    """Append-only log of items already included in a digest."""
    def __init__(self, session: Session):
        self.session = session

    def sent_keys(self, user_id: int, notify_date) -> set:
        stmt = select(models.NotificationLog.item_type, models.NotificationLog.item_id).where(
            models.NotificationLog.user_id == user_id,
            models.NotificationLog.notify_date == notify_date,
        )
        return {(item_type, item_id) for item_type, item_id in self.session.exec(stmt).all()}

    def record(self, user_id: int, notify_date, keys) -> None:
        for item_type, item_id in keys:
            self.session.add(models.NotificationLog(user_id=user_id, item_type=item_type, item_id=item_id, notify_date=notify_date))
        self.session.commit()


# children before parents so foreign keys never dangle mid-delete
OWNED_MODELS = (
    models.NotificationLog,
    models.TagLink,
    models.Book,
    models.Resource,
    models.SyllabusModule,
    models.Assignment,
    models.Exam,
    models.Idea,
    models.DailyLog,
    models.Project,
    models.ScheduleEvent,
    models.Snippet,
    models.Tag,
    models.Todo,
    models.UserSettings,
    models.Subject,
    models.Semester,
)
