"""
Canonical tag vocabulary shared by every user.

Tag names are canonicalized (trimmed, lowercased) at every write boundary.
Users do not own tags; a user may rename or delete a tag only while one of
their own tasks carries it. That permission is computed per request through
the task_tags join and is read-then-act: two users renaming the same tag
concurrently resolve as last-write-wins.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import ConflictError, EmptyNameError, InUseError, NotFoundError, PermissionDeniedError
from ..models.tag import Tag
from ..models.task import Task, task_tags

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TagRecord:
    """Detached view of a tag row, always carrying the canonical name."""
    id: int
    name: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


def canonicalize(name: Optional[str]) -> str:
    """Canonical form of a tag name: trimmed and lowercased."""
    return (name or "").strip().lower()


def canonicalize_all(names) -> List[str]:
    """Canonicalize, drop blanks and de-duplicate, keeping first-seen order."""
    seen = []
    for name in names or []:
        canonical = canonicalize(name)
        if canonical and canonical not in seen:
            seen.append(canonical)
    return seen


class TagStore:
    """Find-or-create, rename, delete and lookups over the tags table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _find_by_canonical(self, canonical: str) -> Optional[Tag]:
        result = await self.db.execute(
            select(Tag).where(func.lower(Tag.name) == canonical)
        )
        return result.scalars().first()

    async def find_or_create(self, name: str) -> TagRecord:
        """
        Resolve a tag name to its canonical row, inserting it if unseen.

        The insert runs in a savepoint. If a concurrent caller inserted the
        same canonical name first, the unique index rejects ours and the
        winner's row is read back instead.

        Raises:
            EmptyNameError: if the name is blank after trimming
        """
        canonical = canonicalize(name)
        if not canonical:
            raise EmptyNameError()

        tag = await self._find_by_canonical(canonical)
        if tag is not None:
            return TagRecord(id=tag.id, name=canonical)

        try:
            async with self.db.begin_nested():
                tag = Tag(name=canonical)
                self.db.add(tag)
        except IntegrityError:
            logger.warning(f"Tag '{canonical}' inserted concurrently, reading existing row")
            tag = await self._find_by_canonical(canonical)
            if tag is None:
                logger.error(f"Tag '{canonical}' insert failed and could not be re-read")
                raise
            return TagRecord(id=tag.id, name=canonical)

        logger.info(f"Created tag '{canonical}' (id={tag.id})")
        return TagRecord(id=tag.id, name=canonical)

    async def get(self, tag_id: int) -> TagRecord:
        tag = await self.db.get(Tag, tag_id)
        if tag is None:
            raise NotFoundError("Tag not found.")
        return TagRecord(id=tag.id, name=canonicalize(tag.name))

    async def user_uses_tag(self, tag_id: int, user_id: int) -> bool:
        """True when ``user_id`` owns at least one task carrying the tag."""
        usage = (
            select(task_tags.c.task_id)
            .join(Task, Task.id == task_tags.c.task_id)
            .where(task_tags.c.tag_id == tag_id, Task.user_id == user_id)
        )
        return bool(await self.db.scalar(select(usage.exists())))

    async def is_referenced(self, tag_id: int) -> bool:
        """True when any task, of any user, carries the tag."""
        usage = select(task_tags.c.task_id).where(task_tags.c.tag_id == tag_id)
        return bool(await self.db.scalar(select(usage.exists())))

    async def rename(self, tag_id: int, new_name: str, user_id: int) -> TagRecord:
        """
        Globally rename a tag on behalf of a user who uses it.

        Raises:
            NotFoundError: unknown tag
            EmptyNameError: blank new name
            PermissionDeniedError: none of the user's tasks carry the tag
            ConflictError: another tag already has this canonical name
        """
        trimmed = (new_name or "").strip()
        canonical = trimmed.lower()

        tag = await self.db.get(Tag, tag_id)
        if tag is None:
            raise NotFoundError("Tag not found.")
        if not canonical:
            raise EmptyNameError("New tag name cannot be empty.")

        if not await self.user_uses_tag(tag_id, user_id):
            raise PermissionDeniedError(
                "You do not have permission to update this tag as it is not associated with your tasks."
            )

        conflict = await self.db.scalar(
            select(Tag.id).where(func.lower(Tag.name) == canonical, Tag.id != tag_id)
        )
        if conflict is not None:
            raise ConflictError(f'A tag with the name "{trimmed}" already exists.')

        try:
            await self.db.execute(update(Tag).where(Tag.id == tag_id).values(name=canonical))
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError(f'A tag with the name "{trimmed}" already exists.')

        logger.info(f"User {user_id} renamed tag {tag_id} to '{canonical}'")
        return TagRecord(id=tag_id, name=canonical)

    async def delete(self, tag_id: int, user_id: int) -> None:
        """
        Delete a tag that no task in the system references any more.

        The usage check runs before any ownership check: a tag carried by any
        task, the caller's or another user's, is reported as in use. A tag
        nobody uses has no owner left to derive permission from, so any
        authenticated user may remove it.

        Raises:
            NotFoundError: unknown tag, or removed concurrently
            InUseError: some task (of any user) still carries the tag
        """
        tag = await self.db.get(Tag, tag_id)
        if tag is None:
            raise NotFoundError("Tag not found.")

        if await self.is_referenced(tag_id):
            logger.info(f"User {user_id} cannot delete tag {tag_id}: still in use")
            raise InUseError("Tag cannot be deleted as it is still associated with one or more tasks.")

        result = await self.db.execute(delete(Tag).where(Tag.id == tag_id))
        await self.db.commit()
        if result.rowcount == 0:
            raise NotFoundError("Tag not found or could not be deleted (it may have been removed by another process).")
        logger.info(f"User {user_id} deleted tag {tag_id}")

    def _user_tags_query(self, user_id: int):
        used_by_user = (
            select(task_tags.c.tag_id)
            .join(Task, Task.id == task_tags.c.task_id)
            .where(Task.user_id == user_id)
        )
        return (
            select(Tag.id, Tag.name)
            .where(Tag.id.in_(used_by_user))
            .order_by(func.lower(Tag.name).asc())
        )

    async def list_for_user(self, user_id: int) -> List[TagRecord]:
        """Distinct tags on the user's tasks, ordered by name."""
        rows = await self.db.execute(self._user_tags_query(user_id))
        return [TagRecord(id=row.id, name=canonicalize(row.name)) for row in rows]

    async def autocomplete(
        self,
        user_id: int,
        prefix: Optional[str],
        limit: int = 10,
        show_all: bool = False,
    ) -> List[TagRecord]:
        """
        Prefix search over the user's own tags.

        An empty prefix yields nothing, unless ``show_all`` is set, in which
        case every tag of the user is returned without a limit.
        """
        prefix = (prefix or "").lower()
        if not prefix:
            if show_all:
                return await self.list_for_user(user_id)
            return []

        stmt = (
            self._user_tags_query(user_id)
            .where(func.lower(Tag.name).startswith(prefix, autoescape=True))
            .limit(limit)
        )
        rows = await self.db.execute(stmt)
        return [TagRecord(id=row.id, name=canonicalize(row.name)) for row in rows]

    async def list_all(self) -> List[TagRecord]:
        """Every tag in the system, ordered by name (administrative use)."""
        rows = await self.db.execute(select(Tag.id, Tag.name).order_by(func.lower(Tag.name).asc()))
        return [TagRecord(id=row.id, name=canonicalize(row.name)) for row in rows]
