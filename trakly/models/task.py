from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, CheckConstraint, Index, UniqueConstraint, func
)
from trakly.database import Base

TASK_TYPES = ("Assignment", "Surprise Test")
TASK_STATUSES = ("pending", "completed")
TASK_PRIORITIES = ("low", "medium", "high")
MAX_TASK_NUMBER = 5

class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)  # Owner
    type = Column(String, nullable=False)          # Assignment, Surprise Test
    subject_code = Column(String, nullable=False)  # snapshot of the owner's subject at creation
    subject_name = Column(String, nullable=False)
    task_number = Column(Integer, nullable=False)  # slot 1–5
    semester = Column(String, nullable=False, default="1")
    deadline = Column(DateTime(timezone=True), nullable=False)
    reminder_time = Column(DateTime(timezone=True), nullable=True)  # NULL = no reminder armed
    description = Column(Text, nullable=True)
    pdf_url = Column(String, nullable=True)
    status = Column(String, nullable=False, default="pending")    # pending, completed
    priority = Column(String, nullable=False, default="medium")  # low, medium, high
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Only five legal slot values and no duplicates within a group, so the
    # quota of five tasks per group holds at the storage layer as well.
    __table_args__ = (
        UniqueConstraint("user_id", "type", "subject_code", "semester", "task_number", name="uq_task_slot"),
        CheckConstraint(f"task_number >= 1 AND task_number <= {MAX_TASK_NUMBER}", name="ck_task_number_range"),
        Index("ix_tasks_user_status", "user_id", "status"),
        Index("ix_tasks_deadline", "deadline"),
        Index("ix_tasks_reminder_due", "status", "reminder_time"),
    )

    @property
    def title(self) -> str:
        return f"{self.type} {self.task_number} - {self.subject_code}"
