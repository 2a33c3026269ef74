from datetime import datetime, timedelta
from typing import List, Optional, Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from trakly.core.clock import as_utc
from trakly.core.errors import NotTaskOwner, TaskNotFound
from trakly.models.task import Task
from trakly.schemas.task import SubjectSnapshot, TaskResponse, TaskStats


def urgency_level(deadline: datetime, now: datetime) -> int:
    deadline = as_utc(deadline)
    if deadline <= now:
        return 3  # overdue
    hours_remaining = (deadline - now).total_seconds() / 3600
    if hours_remaining < 24:
        return 2
    if hours_remaining < 72:
        return 1
    return 0


def pdf_download_url(task: Task) -> Optional[str]:
    # The stored reference stays internal; clients fetch through the owner-checked route
    return f"/api/tasks/{task.id}/pdf" if task.pdf_url else None


def task_to_response(task: Task, now: datetime) -> TaskResponse:
    return TaskResponse(
        id=task.id,
        user_id=task.user_id,
        type=task.type,
        subject=SubjectSnapshot(subject_code=task.subject_code, subject_name=task.subject_name),
        task_number=task.task_number,
        semester=task.semester,
        title=task.title,
        deadline=as_utc(task.deadline),
        reminder_time=as_utc(task.reminder_time),
        description=task.description,
        pdf_url=pdf_download_url(task),
        status=task.status,
        priority=task.priority,
        urgency=urgency_level(task.deadline, now),
        created_at=as_utc(task.created_at),
        updated_at=as_utc(task.updated_at),
    )


async def get_owned_task(db: AsyncSession, task_id: int, user_id: int) -> Task:
    result = await db.execute(select(Task).where(Task.id == task_id))
    task = result.scalar_one_or_none()
    if task is None:
        raise TaskNotFound("Task not found")
    if task.user_id != user_id:
        raise NotTaskOwner("Not authorized to access this task")
    return task


async def list_tasks(
    db: AsyncSession,
    user_id: int,
    status: Optional[str] = None,
    task_type: Optional[str] = None,
    subject_code: Optional[str] = None,
    semester: Optional[str] = None,
    priority: Optional[str] = None,
) -> Sequence[Task]:
    query = select(Task).where(Task.user_id == user_id)
    if status:
        query = query.where(Task.status == status)
    if task_type:
        query = query.where(Task.type == task_type)
    if subject_code:
        query = query.where(Task.subject_code == subject_code)
    if semester:
        query = query.where(Task.semester == semester)
    if priority:
        query = query.where(Task.priority == priority)
    result = await db.execute(query.order_by(Task.created_at.desc(), Task.id.desc()))
    return result.scalars().all()


def upcoming_tasks(tasks: Sequence[Task], now: datetime, days: int = 7) -> List[Task]:
    """Pending tasks due between now and now + days, soonest first."""
    horizon = now + timedelta(days=days)
    upcoming = [
        task for task in tasks
        if task.status != "completed" and now <= as_utc(task.deadline) <= horizon
    ]
    return sorted(upcoming, key=lambda task: as_utc(task.deadline))


def task_stats(tasks: Sequence[Task], now: datetime) -> TaskStats:
    completed = overdue = due_soon = 0
    for task in tasks:
        if task.status == "completed":
            completed += 1
            continue
        # Only consider deadline if task is not completed
        deadline = as_utc(task.deadline)
        if deadline < now:
            overdue += 1
        elif deadline - now <= timedelta(hours=24):
            due_soon += 1

    return TaskStats(
        total=len(tasks),
        completed=completed,
        pending=len(tasks) - completed,
        overdue=overdue,
        due_soon=due_soon,
    )
