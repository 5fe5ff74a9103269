from typing import Optional
from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import get_current_user, CurrentUser
from ..core.config import get_settings
from ..core.database import get_db
from ..core.errors import NotFoundError
from ..schemas.task import TaskCreate, TaskUpdate, TaskResponse, TaskList
from ..services.query_builder import TaskQuery
from ..services.task_manager import TASK_NOT_FOUND, TaskManager

settings = get_settings()

router = APIRouter()


def get_task_manager(db: AsyncSession = Depends(get_db)) -> TaskManager:
    return TaskManager(db)


@router.get("", response_model=TaskList)
async def get_tasks(
    page: int = Query(1, ge=1, description="Page number, starting at 1"),
    limit: int = Query(
        settings.default_page_size, ge=1, le=settings.max_page_size, description="Number of tasks per page"
    ),
    completed: Optional[bool] = Query(None, description="Filter by completion"),
    sort_by: Optional[str] = Query(
        None, alias="sortBy", max_length=50,
        description="<field>_<ASC|DESC> with field one of createdAt, updatedAt, title, completed"
    ),
    tags: Optional[str] = Query(None, max_length=200, description="Comma-separated tag names"),
    tag_match_mode: Optional[str] = Query(
        None, alias="tagMatchMode", description="'all' (default) or 'any'"
    ),
    current_user: CurrentUser = Depends(get_current_user),
    manager: TaskManager = Depends(get_task_manager)
):
    """Get tasks for the authenticated user with filtering, sorting and pagination"""
    query = TaskQuery.from_params(
        completed=completed,
        tag_names=tags,
        tag_match_mode=tag_match_mode,
        sort_by=sort_by,
        page=page,
        page_size=limit,
    )
    result = await manager.list(current_user.user_id, query)
    return TaskList.model_validate(result.to_dict())


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    current_user: CurrentUser = Depends(get_current_user),
    manager: TaskManager = Depends(get_task_manager)
):
    """Create a new task for the authenticated user"""
    task = await manager.create(
        current_user.user_id,
        title=task_data.title,
        description=task_data.description,
        completed=task_data.completed,
        tag_names=task_data.tags,
    )
    return TaskResponse.model_validate(task)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int = Path(..., gt=0),
    current_user: CurrentUser = Depends(get_current_user),
    manager: TaskManager = Depends(get_task_manager)
):
    """Get a specific task by ID"""
    task = await manager.get_by_id(task_id, current_user.user_id)
    return TaskResponse.model_validate(task)


@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_update: TaskUpdate,
    task_id: int = Path(..., gt=0),
    current_user: CurrentUser = Depends(get_current_user),
    manager: TaskManager = Depends(get_task_manager)
):
    """Update a task"""
    task = await manager.update(task_id, current_user.user_id, task_update.changes())
    return TaskResponse.model_validate(task)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: int = Path(..., gt=0),
    current_user: CurrentUser = Depends(get_current_user),
    manager: TaskManager = Depends(get_task_manager)
):
    """Delete a task"""
    if not await manager.delete(task_id, current_user.user_id):
        raise NotFoundError(TASK_NOT_FOUND)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
