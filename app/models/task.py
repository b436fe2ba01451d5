"""
Tasks, their update log and the replies threaded under each update.

Updates and replies live in their own tables keyed by parent id; nothing in
the application deletes or edits them, they only go away with a hard task
delete.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Text, Boolean, DateTime, Integer, ForeignKey, Index
from sqlalchemy.orm import relationship
import enum

from ..database import Base


class TaskStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    BLOCKED = "BLOCKED"


class TaskPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


# Statuses that end the employee-driven part of the lifecycle
TERMINAL_STATUSES = (TaskStatus.COMPLETED.value, TaskStatus.CANCELLED.value)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    assigned_to_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    assigned_by_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    department = Column(String(100), nullable=False, index=True)

    # Weak self-reference; cycles are rejected when the link is written
    parent_task_id = Column(String(36), ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True, index=True)

    status = Column(String(20), nullable=False, default=TaskStatus.PENDING.value, index=True)
    priority = Column(String(10), nullable=False, default=TaskPriority.MEDIUM.value)

    start_date = Column(DateTime, nullable=True)
    due_date = Column(DateTime, nullable=True)
    is_daily_plan = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime, nullable=True)

    # Approval gates (false -> true only)
    hod_approved = Column(Boolean, nullable=False, default=False)
    hod_approved_at = Column(DateTime, nullable=True)
    hod_approved_by_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    director_approved = Column(Boolean, nullable=False, default=False)
    director_approved_at = Column(DateTime, nullable=True)
    director_approved_by_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])
    assigned_by = relationship("User", foreign_keys=[assigned_by_id])
    hod_approved_by = relationship("User", foreign_keys=[hod_approved_by_id])
    director_approved_by = relationship("User", foreign_keys=[director_approved_by_id])
    parent_task = relationship("Task", remote_side=[id], foreign_keys=[parent_task_id])
    updates = relationship(
        "TaskUpdate",
        back_populates="task",
        order_by="TaskUpdate.sequence",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_tasks_daily_plan_start", "is_daily_plan", "start_date"),
    )

    def __repr__(self):
        return f"<Task {self.title} - {self.status}>"


class TaskUpdate(Base):
    """Entry in a task's update log (progress remarks, approvals, reopen...)"""
    __tablename__ = "task_updates"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    task_id = Column(String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    # Position in the task's log, assigned on append
    sequence = Column(Integer, nullable=False, default=0)

    comment = Column(Text, nullable=False)
    remarks = Column(Text, nullable=True)
    updated_by_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    status = Column(String(20), nullable=True)
    previous_status = Column(String(20), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    task = relationship("Task", back_populates="updates")
    updated_by = relationship("User", foreign_keys=[updated_by_id])
    replies = relationship(
        "TaskReply",
        back_populates="update",
        order_by="TaskReply.sequence",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<TaskUpdate {self.previous_status} -> {self.status}>"


class TaskReply(Base):
    __tablename__ = "task_replies"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    update_id = Column(String(36), ForeignKey("task_updates.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False, default=0)

    message = Column(Text, nullable=False)
    replied_by_id = Column(String(36), ForeignKey("users.id"), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    update = relationship("TaskUpdate", back_populates="replies")
    replied_by = relationship("User", foreign_keys=[replied_by_id])
