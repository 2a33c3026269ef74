import logging
from typing import Optional, Set
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from trakly.core.errors import QuotaExceeded, SlotUnavailable, TraklyError, UnknownSubject
from trakly.models.task import Task, MAX_TASK_NUMBER
from trakly.models.user import User, UserSubject
from trakly.schemas.task import TaskCreate

logger = logging.getLogger(__name__)

ALL_SLOTS = frozenset(range(1, MAX_TASK_NUMBER + 1))


def _require(**params) -> None:
    for name, value in params.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            raise TraklyError(f"{name} is required", field=name)


def _group_filter(user_id: int, task_type: str, subject_code: str, semester: str):
    return (
        Task.user_id == user_id,
        Task.type == task_type,
        Task.subject_code == subject_code,
        Task.semester == semester,
    )


async def available_slots(
    db: AsyncSession, user_id: int, task_type: str, subject_code: str, semester: str
) -> Set[int]:
    """Slot numbers still free for (owner, type, subject, semester). Empty set means the group is full."""
    _require(type=task_type, subjectCode=subject_code, semester=semester)
    result = await db.execute(
        select(Task.task_number).where(*_group_filter(user_id, task_type, subject_code, semester))
    )
    used = set(result.scalars().all())
    return set(ALL_SLOTS - used)


async def count_group(db: AsyncSession, user_id: int, task_type: str, subject_code: str, semester: str) -> int:
    result = await db.execute(
        select(func.count(Task.id)).where(*_group_filter(user_id, task_type, subject_code, semester))
    )
    return result.scalar_one() or 0


async def find_subject(db: AsyncSession, user_id: int, subject_code: str) -> Optional[UserSubject]:
    result = await db.execute(
        select(UserSubject)
        .where(UserSubject.user_id == user_id)
        .where(UserSubject.subject_code == subject_code)
    )
    return result.scalar_one_or_none()


async def allocate(
    db: AsyncSession, owner: User, task_in: TaskCreate, pdf_url: Optional[str] = None
) -> Task:
    """
    Persist a new task in the requested slot.

    Checks run in order and the first failure wins:
      1. the slot is free (a full group reports QuotaExceeded instead)
      2. the group holds fewer than five tasks
      3. the subject is one of the owner's subjects
    The uq_task_slot constraint closes the window between check and insert.
    """
    owner_id = owner.id
    slots = await available_slots(db, owner_id, task_in.type, task_in.subject_code, task_in.semester)
    if task_in.task_number not in slots:
        if not slots:
            raise QuotaExceeded(
                f"Maximum of {MAX_TASK_NUMBER} {task_in.type} tasks reached for "
                f"{task_in.subject_code} in semester {task_in.semester}",
                field="taskNumber",
            )
        raise SlotUnavailable(
            f"Task number {task_in.task_number} is not available; choose one of {sorted(slots)}",
            field="taskNumber",
        )

    existing = await count_group(db, owner_id, task_in.type, task_in.subject_code, task_in.semester)
    if existing >= MAX_TASK_NUMBER:
        raise QuotaExceeded(
            f"Maximum of {MAX_TASK_NUMBER} {task_in.type} tasks reached for "
            f"{task_in.subject_code} in semester {task_in.semester}",
            field="taskNumber",
        )

    subject = await find_subject(db, owner_id, task_in.subject_code)
    if subject is None:
        raise UnknownSubject(
            f"Subject {task_in.subject_code} is not in your subject list",
            field="subjectCode",
        )

    task = Task(
        user_id=owner_id,
        type=task_in.type,
        subject_code=subject.subject_code,
        subject_name=subject.subject_name,
        task_number=task_in.task_number,
        semester=task_in.semester,
        deadline=task_in.deadline,
        reminder_time=task_in.reminder_time,
        description=task_in.description,
        pdf_url=pdf_url,
        status="pending",
        priority=task_in.priority,
    )
    db.add(task)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info(
            "Slot %s for user %s (%s/%s/%s) was taken concurrently",
            task_in.task_number, owner_id, task_in.type, task_in.subject_code, task_in.semester,
        )
        raise SlotUnavailable(
            f"Task number {task_in.task_number} was just taken; pick another",
            field="taskNumber",
        )
    await db.refresh(task)
    return task
