"""
Task CRUD for a single owner.

Tasks belonging to another user are reported exactly like missing ones.
Errors from the tag store propagate unchanged.
"""
import logging
from typing import Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import next_timestamp, utcnow
from ..core.errors import NotFoundError
from ..models.task import Task, task_tags
from .query_builder import TaskFilterEngine, TaskPage, TaskQuery
from .tag_store import TagStore
from .task_tags import TaskTagLinks

logger = logging.getLogger(__name__)

TASK_NOT_FOUND = "Task not found or not owned by user"
UPDATABLE_FIELDS = ("title", "description", "completed")


class TaskManager:
    """Create, read, update and delete tasks, keeping their tag links in step."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.tags = TagStore(db)
        self.links = TaskTagLinks(db, self.tags)
        self.engine = TaskFilterEngine(db, self.links)

    async def _owned(self, task_id: int, user_id: int) -> Optional[Task]:
        result = await self.db.execute(
            select(Task).where(Task.id == task_id, Task.user_id == user_id)
        )
        return result.scalars().first()

    async def list(self, user_id: int, query: TaskQuery = None) -> TaskPage:
        return await self.engine.list(user_id, query)

    async def get_by_id(self, task_id: int, user_id: int) -> dict:
        """
        Fetch one task with its tags.

        Raises:
            NotFoundError: the task does not exist or belongs to someone else
        """
        task = await self._owned(task_id, user_id)
        if task is None:
            raise NotFoundError(TASK_NOT_FOUND)
        return task.to_dict(tags=await self.links.list_for(task.id))

    async def create(
        self,
        owner_id: int,
        title: str,
        description: Optional[str] = None,
        completed: Optional[bool] = None,
        tag_names: Optional[Iterable[str]] = None,
    ) -> dict:
        """Insert a task (and its tags) and return it as ``get_by_id`` would."""
        now = utcnow()
        task = Task(
            title=title,
            description=description or "",
            completed=bool(completed) if completed is not None else False,
            user_id=owner_id,
            created_at=now,
            updated_at=now,
        )
        try:
            self.db.add(task)
            await self.db.flush()
            if tag_names:
                await self.links.attach(task.id, tag_names, owner_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"User {owner_id} created task {task.id}")
        return await self.get_by_id(task.id, owner_id)

    async def update(self, task_id: int, user_id: int, changes: dict) -> dict:
        """
        Apply a partial update.

        Only keys present in ``changes`` are touched. A ``tags`` key, even an
        empty list, replaces the whole tag set; without it tags are kept.
        """
        task = await self._owned(task_id, user_id)
        if task is None:
            raise NotFoundError(TASK_NOT_FOUND)

        try:
            for field in UPDATABLE_FIELDS:
                if field in changes:
                    setattr(task, field, changes[field])
            if "description" in changes and task.description is None:
                task.description = ""
            task.updated_at = next_timestamp(task.updated_at)

            if "tags" in changes:
                await self.links.replace(task.id, changes["tags"] or [])
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"User {user_id} updated task {task_id}")
        return await self.get_by_id(task_id, user_id)

    async def delete(self, task_id: int, user_id: int) -> bool:
        """Delete an owned task and its tag links; True if a row was removed."""
        task = await self._owned(task_id, user_id)
        if task is None:
            return False

        try:
            await self.db.execute(delete(task_tags).where(task_tags.c.task_id == task_id))
            result = await self.db.execute(
                delete(Task).where(Task.id == task_id, Task.user_id == user_id)
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        removed = result.rowcount > 0
        if removed:
            logger.info(f"User {user_id} deleted task {task_id}")
        return removed
