"""
Pydantic schemas for tags.
"""
from pydantic import BaseModel, Field, constr


class TagResponse(BaseModel):
    """Canonical tag"""
    id: int = Field(..., description="Tag ID")
    name: str = Field(..., description="Canonical (trimmed, lowercase) tag name")

    class Config:
        from_attributes = True


class TagRename(BaseModel):
    """Schema for renaming a tag"""
    name: constr(strip_whitespace=True, min_length=1, max_length=50) = Field(..., description="New tag name")
