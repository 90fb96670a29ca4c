from sqlalchemy import Column, Integer, String, Boolean, DateTime
from datetime import datetime, timezone
from todo_service.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every backend stores without conversion"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Task(Base):
    """Task model for database"""
    __tablename__ = "tasks"
    __table_args__ = {
        "sqlite_autoincrement": True,
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    completed = Column(Boolean, default=False, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=True)

    def __repr__(self):
        return f"<Task(id={self.id}, title='{self.title}', completed={self.completed})>"
