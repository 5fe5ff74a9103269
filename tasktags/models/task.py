from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Table, Text
from ..core.database import Base, utcnow


# Task <-> tag links; removed with either side
task_tags = Table(
    "task_tags",
    Base.metadata,
    Column("task_id", Integer, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True, index=True),
)


class Task(Base):
    """Task model for database"""
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    completed = Column(Boolean, nullable=False, default=False, index=True)

    # Owner; immutable after creation
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    def to_dict(self, tags=None) -> dict:
        """Convert task to dictionary, attaching the given tags"""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "completed": bool(self.completed),
            "user_id": self.user_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "tags": [tag.to_dict() for tag in (tags or [])],
        }

    def __repr__(self):
        return f"<Task(id={self.id}, title='{self.title}', completed={self.completed})>"
