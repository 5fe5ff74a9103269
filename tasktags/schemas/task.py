"""
Pydantic schemas for tasks.
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, constr, model_validator
from pydantic.alias_generators import to_camel

from .tag import TagResponse

TagName = constr(strip_whitespace=True, min_length=1, max_length=50)


class TaskBase(BaseModel):
    """Base task schema"""
    title: str = Field(..., min_length=3, max_length=100, description="Task title")
    description: Optional[str] = Field(None, max_length=500, description="Task description")
    completed: Optional[bool] = Field(None, description="Completion flag, false when omitted")


class TaskCreate(TaskBase):
    """Schema for creating a task"""
    tags: Optional[List[TagName]] = Field(None, description="Tag names; case and surrounding spaces are ignored")


class TaskUpdate(BaseModel):
    """Schema for updating a task; only the fields sent are changed"""
    title: Optional[str] = Field(None, min_length=3, max_length=100, description="Task title")
    description: Optional[str] = Field(None, max_length=500, description="Task description")
    completed: Optional[bool] = Field(None, description="Completion flag")
    tags: Optional[List[TagName]] = Field(None, description="Replaces the whole tag set when present")

    @model_validator(mode="after")
    def check_fields(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        for name in sorted(self.model_fields_set):
            if getattr(self, name) is None:
                raise ValueError(f"{name} must not be null")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class TaskResponse(BaseModel):
    """Schema for task response"""
    id: int = Field(..., description="Task ID")
    title: str = Field(..., description="Task title")
    description: str = Field("", description="Task description")
    completed: bool = Field(..., description="Completion flag")
    user_id: int = Field(..., description="User ID who owns the task")
    created_at: datetime = Field(..., description="Task creation timestamp")
    updated_at: datetime = Field(..., description="Task update timestamp")
    tags: List[TagResponse] = Field(default_factory=list, description="All tags on the task")

    class Config:
        from_attributes = True
        populate_by_name = True
        alias_generator = to_camel


class TaskList(BaseModel):
    """Schema for paginated task list"""
    tasks: List[TaskResponse] = Field(..., description="Tasks on this page")
    total: int = Field(..., description="Number of tasks matching the filters")
    page: int = Field(..., description="Current page, starting at 1")
    limit: int = Field(..., description="Page size")
    total_pages: int = Field(..., description="Number of pages for this page size")

    class Config:
        populate_by_name = True
        alias_generator = to_camel
