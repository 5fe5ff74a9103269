from sqlalchemy import Column, Index, Integer, String, func
from ..core.database import Base

TAG_NAME_MAX_LENGTH = 50


class Tag(Base):
    """Globally shared label; ``name`` is always stored in canonical form"""
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(TAG_NAME_MAX_LENGTH), unique=True, nullable=False)

    def __repr__(self):
        return f"<Tag(id={self.id}, name='{self.name}')>"


# Case-insensitive uniqueness, also guarding rows written outside this service
Index("uq_tags_name_lower", func.lower(Tag.name), unique=True)
