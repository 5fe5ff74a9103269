"""
Many-to-many links between tasks and canonical tags.

These helpers do not commit; the caller owns the transaction.
"""
import logging
from collections import defaultdict
from typing import Dict, Iterable, List

from sqlalchemy import delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.tag import Tag
from ..models.task import Task, task_tags
from .tag_store import TagRecord, TagStore, canonicalize, canonicalize_all

logger = logging.getLogger(__name__)


class TaskTagLinks:
    """Attach, replace and read the tag set of a task."""

    def __init__(self, db: AsyncSession, tag_store: TagStore = None):
        self.db = db
        self.tags = tag_store or TagStore(db)

    async def attach(self, task_id: int, tag_names: Iterable[str], owner_id: int) -> None:
        """
        Link the named tags to a task owned by ``owner_id``.

        Names are de-duplicated after canonicalization and created on first
        use. Links that already exist are left alone.
        """
        names = canonicalize_all(tag_names)
        if not names:
            return

        owner = await self.db.scalar(select(Task.user_id).where(Task.id == task_id))
        if owner is None or owner != owner_id:
            logger.warning(f"attach: task {task_id} not found or not owned by user {owner_id}")
            return

        linked = set(
            (await self.db.scalars(select(task_tags.c.tag_id).where(task_tags.c.task_id == task_id))).all()
        )
        new_links = []
        for name in names:
            tag = await self.tags.find_or_create(name)
            if tag.id not in linked:
                linked.add(tag.id)
                new_links.append({"task_id": task_id, "tag_id": tag.id})

        if new_links:
            await self.db.execute(insert(task_tags), new_links)
        logger.debug(f"Task {task_id}: linked {len(new_links)} new tag(s) of {len(names)} requested")

    async def clear(self, task_id: int) -> None:
        await self.db.execute(delete(task_tags).where(task_tags.c.task_id == task_id))

    async def replace(self, task_id: int, tag_names: Iterable[str]) -> None:
        """Drop every link of the task, then attach ``tag_names`` (may be empty)."""
        owner = await self.db.scalar(select(Task.user_id).where(Task.id == task_id))
        await self.clear(task_id)
        if owner is not None:
            await self.attach(task_id, tag_names, owner)

    async def list_for(self, task_id: int) -> List[TagRecord]:
        return (await self.list_for_many([task_id])).get(task_id, [])

    async def list_for_many(self, task_ids: Iterable[int]) -> Dict[int, List[TagRecord]]:
        """Tags of several tasks in one query, keyed by task id."""
        task_ids = list(task_ids)
        if not task_ids:
            return {}

        rows = await self.db.execute(
            select(task_tags.c.task_id, Tag.id, Tag.name)
            .join(Tag, Tag.id == task_tags.c.tag_id)
            .where(task_tags.c.task_id.in_(task_ids))
            .order_by(task_tags.c.task_id, func.lower(Tag.name))
        )
        grouped = defaultdict(list)
        for row in rows:
            grouped[row.task_id].append(TagRecord(id=row.id, name=canonicalize(row.name)))
        return dict(grouped)
