from pydantic import Field, field_validator
from datetime import datetime
from typing import List, Literal, Optional
from trakly.schemas.common import CamelModel, UtcDatetime

TaskType = Literal["Assignment", "Surprise Test"]
TaskStatus = Literal["pending", "completed"]
TaskPriority = Literal["low", "medium", "high"]

class TaskCreate(CamelModel):
    type: TaskType
    subject_code: str = Field(..., min_length=1)
    # Range is a slot question, answered by the quota policy
    task_number: int
    semester: str = Field("1", min_length=1)
    deadline: UtcDatetime
    description: Optional[str] = Field(None, max_length=500)
    priority: TaskPriority = "medium"
    reminder_time: Optional[UtcDatetime] = None

    @field_validator("subject_code", "semester", "description", mode="before")
    @classmethod
    def strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("description")
    @classmethod
    def blank_description(cls, value: Optional[str]) -> Optional[str]:
        return value or None

class TaskUpdate(CamelModel):
    description: Optional[str] = Field(None, max_length=500)
    deadline: Optional[UtcDatetime] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    reminder_time: Optional[UtcDatetime] = None  # explicit null disarms the reminder

class SubjectSnapshot(CamelModel):
    subject_code: str
    subject_name: str

class TaskResponse(CamelModel):
    id: int
    user_id: int
    type: str
    subject: SubjectSnapshot
    task_number: int
    semester: str
    title: str
    deadline: datetime
    reminder_time: Optional[datetime]
    description: Optional[str]
    pdf_url: Optional[str]
    status: str
    priority: str
    urgency: int  # 0 not urgent, 1 within 3 days, 2 within 24h, 3 overdue
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

class TaskStats(CamelModel):
    total: int
    completed: int
    pending: int
    overdue: int
    due_soon: int

class MessageResponse(CamelModel):
    message: str
