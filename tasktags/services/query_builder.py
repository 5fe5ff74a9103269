"""
Filter engine for listing a user's tasks.

A listing request is normalized into a ``TaskQuery``. Its tag part is one of
three filter shapes:

    NoTagFilter()          no tag restriction
    AnyOf(("a", "b"))      task carries at least one of the tags
    AllOf(("a", "b"))      task carries every one of the tags

The query is compiled once into a list of SQLAlchemy predicates. Both the
page statement and the count statement are built from that same list, so
``total`` always agrees with what paging through the results returns.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple, Union

from sqlalchemy import Select, asc, desc, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import get_settings
from ..models.tag import Tag
from ..models.task import Task, task_tags
from .tag_store import canonicalize_all
from .task_tags import TaskTagLinks

logger = logging.getLogger(__name__)

settings = get_settings()

MATCH_ALL = "all"
MATCH_ANY = "any"

SORTABLE_COLUMNS = {
    "createdAt": Task.created_at,
    "updatedAt": Task.updated_at,
    "title": Task.title,
    "completed": Task.completed,
}
DEFAULT_SORT_FIELD = "createdAt"
DEFAULT_SORT_DIRECTION = "DESC"


@dataclass(frozen=True)
class NoTagFilter:
    pass


@dataclass(frozen=True)
class AnyOf:
    names: Tuple[str, ...]


@dataclass(frozen=True)
class AllOf:
    names: Tuple[str, ...]


TagFilter = Union[NoTagFilter, AnyOf, AllOf]


def parse_tag_names(raw: Union[str, Iterable[str], None]) -> List[str]:
    """
    Canonical tag names from a comma-separated string or a list.

    ``" Work, ,home,,WORK "`` becomes ``["work", "home"]``.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = raw.split(",")
    return canonicalize_all(raw)


def tag_filter(names: Union[str, Iterable[str], None], mode: Optional[str] = None) -> TagFilter:
    """Build the tag filter; an absent or unknown ``mode`` means ``all``."""
    canonical = tuple(parse_tag_names(names))
    if not canonical:
        return NoTagFilter()
    if (mode or "").strip().lower() == MATCH_ANY:
        return AnyOf(canonical)
    return AllOf(canonical)


@dataclass(frozen=True)
class SortSpec:
    field: str = DEFAULT_SORT_FIELD
    direction: str = DEFAULT_SORT_DIRECTION

    @classmethod
    def parse(cls, sort_field: Optional[str], sort_direction: Optional[str] = None) -> "SortSpec":
        """
        Unknown or missing fields fall back to the default sort. A known field
        sorts descending only when DESC is asked for explicitly.
        """
        if sort_field not in SORTABLE_COLUMNS:
            return cls()
        direction = "DESC" if (sort_direction or "").upper() == "DESC" else "ASC"
        return cls(field=sort_field, direction=direction)

    @classmethod
    def from_sort_by(cls, sort_by: Optional[str]) -> "SortSpec":
        """Parse the combined ``<field>_<DIR>`` form, e.g. ``title_ASC``."""
        if not sort_by:
            return cls()
        sort_field, _, sort_direction = sort_by.partition("_")
        return cls.parse(sort_field, sort_direction)

    def order_by(self) -> list:
        order = desc if self.direction == "DESC" else asc
        # id breaks ties so that pages never overlap or skip rows
        return [order(SORTABLE_COLUMNS[self.field]), order(Task.id)]


@dataclass(frozen=True)
class TaskQuery:
    completed: Optional[bool] = None
    tags: TagFilter = field(default_factory=NoTagFilter)
    sort: SortSpec = field(default_factory=SortSpec)
    page: int = 1
    page_size: int = settings.default_page_size

    @classmethod
    def from_params(
        cls,
        completed: Optional[bool] = None,
        tag_names: Union[str, Iterable[str], None] = None,
        tag_match_mode: Optional[str] = None,
        sort_field: Optional[str] = None,
        sort_direction: Optional[str] = None,
        sort_by: Optional[str] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        max_page_size: Optional[int] = None,
    ) -> "TaskQuery":
        """Normalize raw listing options; out-of-range paging is clamped, never rejected."""
        if sort_by:
            sort = SortSpec.from_sort_by(sort_by)
        else:
            sort = SortSpec.parse(sort_field, sort_direction) if sort_field else SortSpec()

        max_page_size = max_page_size or settings.max_page_size
        page_size = page_size or settings.default_page_size
        return cls(
            completed=completed,
            tags=tag_filter(tag_names, tag_match_mode),
            sort=sort,
            page=max(int(page or 1), 1),
            page_size=min(max(int(page_size), 1), max_page_size),
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass
class TaskPage:
    items: List[dict]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0

    def to_dict(self) -> dict:
        return {
            "tasks": self.items,
            "total": self.total,
            "page": self.page,
            "limit": self.page_size,
            "total_pages": self.total_pages,
        }


def compile_tag_filter(tags: TagFilter):
    """Predicate on ``Task.id`` for a tag filter, or None for NoTagFilter."""
    if isinstance(tags, NoTagFilter):
        return None

    tag_name = func.lower(Tag.name)
    matching = (
        select(task_tags.c.task_id)
        .join(Tag, Tag.id == task_tags.c.tag_id)
        .where(tag_name.in_(tags.names))
    )
    if isinstance(tags, AllOf):
        # names are already de-duplicated, so len() is the required match count
        matching = matching.group_by(task_tags.c.task_id).having(
            func.count(distinct(tag_name)) == len(tags.names)
        )
    elif not isinstance(tags, AnyOf):
        raise TypeError(f"Unsupported tag filter: {tags!r}")
    return Task.id.in_(matching)


def compile_predicates(user_id: int, query: TaskQuery) -> list:
    """Every WHERE condition of a listing; ownership always comes first."""
    predicates = [Task.user_id == user_id]
    if query.completed is not None:
        predicates.append(Task.completed == query.completed)
    tag_predicate = compile_tag_filter(query.tags)
    if tag_predicate is not None:
        predicates.append(tag_predicate)
    return predicates


def page_statement(predicates: list, query: TaskQuery) -> Select:
    return (
        select(Task)
        .where(*predicates)
        .order_by(*query.sort.order_by())
        .limit(query.page_size)
        .offset(query.offset)
    )


def count_statement(predicates: list) -> Select:
    return select(func.count()).select_from(select(Task.id).where(*predicates).subquery())


class TaskFilterEngine:
    """Runs a ``TaskQuery`` for one user and hydrates the page with tags."""

    def __init__(self, db: AsyncSession, links: TaskTagLinks = None):
        self.db = db
        self.links = links or TaskTagLinks(db)

    async def list(self, user_id: int, query: TaskQuery = None) -> TaskPage:
        query = query or TaskQuery()
        predicates = compile_predicates(user_id, query)
        logger.debug(f"Listing tasks for user {user_id}: {query}")

        total = await self.db.scalar(count_statement(predicates))
        tasks = (await self.db.scalars(page_statement(predicates, query))).all()

        tags_by_task = await self.links.list_for_many(task.id for task in tasks)
        items = [task.to_dict(tags=tags_by_task.get(task.id, [])) for task in tasks]
        return TaskPage(items=items, total=total or 0, page=query.page, page_size=query.page_size)
