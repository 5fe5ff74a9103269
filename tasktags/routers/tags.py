from typing import List, Optional
from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import get_current_user, CurrentUser
from ..core.config import get_settings
from ..core.database import get_db
from ..schemas.tag import TagRename, TagResponse
from ..services.tag_store import TagStore

settings = get_settings()

router = APIRouter()


def get_tag_store(db: AsyncSession = Depends(get_db)) -> TagStore:
    return TagStore(db)


@router.get("", response_model=List[TagResponse])
async def get_tags(
    current_user: CurrentUser = Depends(get_current_user),
    store: TagStore = Depends(get_tag_store)
):
    """Tags used by any of the caller's tasks, sorted by name"""
    return [tag.to_dict() for tag in await store.list_for_user(current_user.user_id)]


@router.get("/autocomplete", response_model=List[TagResponse])
async def autocomplete_tags(
    q: Optional[str] = Query(None, max_length=50, description="Name prefix, case-insensitive"),
    limit: int = Query(settings.autocomplete_limit, ge=1, le=settings.max_page_size),
    show_all: bool = Query(False, alias="showAll", description="List every tag when q is empty"),
    current_user: CurrentUser = Depends(get_current_user),
    store: TagStore = Depends(get_tag_store)
):
    """Prefix search over the caller's tags"""
    tags = await store.autocomplete(current_user.user_id, q, limit=limit, show_all=show_all)
    return [tag.to_dict() for tag in tags]


@router.put("/{tag_id}", response_model=TagResponse)
async def rename_tag(
    payload: TagRename,
    tag_id: int = Path(..., gt=0),
    current_user: CurrentUser = Depends(get_current_user),
    store: TagStore = Depends(get_tag_store)
):
    """Rename a tag for every user; the caller must have a task carrying it"""
    tag = await store.rename(tag_id, payload.name, current_user.user_id)
    return tag.to_dict()


@router.delete("/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tag(
    tag_id: int = Path(..., gt=0),
    current_user: CurrentUser = Depends(get_current_user),
    store: TagStore = Depends(get_tag_store)
):
    """Delete a tag that no task references any more"""
    await store.delete(tag_id, current_user.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
