from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from trakly.database import get_db
from trakly.core.auth import get_current_user
from trakly.core.clock import Clock, system_clock
from trakly.schemas.extraction import ExtractionResponse, QuestionAnswerResponse
from trakly.schemas.task import (
    MessageResponse, TaskCreate, TaskPriority, TaskResponse, TaskStats, TaskStatus, TaskType, TaskUpdate
)
from trakly.services import quota
from trakly.services.extraction import QuestionExtractor, get_extractor
from trakly.services.storage import LocalFileStore, get_file_store
from trakly.services.tasks import (
    get_owned_task, list_tasks, task_stats, task_to_response, upcoming_tasks
)

router = APIRouter(prefix="/tasks", tags=["tasks"])

def get_clock() -> Clock:
    return system_clock

@router.get("", response_model=List[TaskResponse])
async def get_tasks(
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    type_filter: Optional[TaskType] = Query(None, alias="type"),
    subject_code: Optional[str] = Query(None, alias="subjectCode"),
    semester: Optional[str] = None,
    priority: Optional[TaskPriority] = None,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    clock: Clock = Depends(get_clock)
):
    tasks = await list_tasks(
        db, current_user.id,
        status=status_filter, task_type=type_filter, subject_code=subject_code,
        semester=semester, priority=priority,
    )
    now = clock.now()
    return [task_to_response(task, now) for task in tasks]

@router.get("/upcoming", response_model=List[TaskResponse])
async def get_upcoming_tasks(
    days: int = Query(7, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    clock: Clock = Depends(get_clock)
):
    now = clock.now()
    tasks = await list_tasks(db, current_user.id, status="pending")
    return [task_to_response(task, now) for task in upcoming_tasks(tasks, now, days)]

@router.get("/stats", response_model=TaskStats)
async def get_task_stats(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    clock: Clock = Depends(get_clock)
):
    tasks = await list_tasks(db, current_user.id)
    return task_stats(tasks, clock.now())

@router.get("/available-task-numbers", response_model=List[int])
async def get_available_task_numbers(
    task_type: TaskType = Query(..., alias="type"),
    subject_code: str = Query(..., alias="subjectCode", min_length=1),
    semester: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    slots = await quota.available_slots(db, current_user.id, task_type, subject_code.strip(), semester.strip())
    return sorted(slots)

@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_type: str = Form(..., alias="type"),
    subject_code: str = Form(..., alias="subjectCode"),
    task_number: str = Form(..., alias="taskNumber"),
    deadline: str = Form(...),
    semester: str = Form("1"),
    description: Optional[str] = Form(None),
    priority: Optional[str] = Form(None),
    reminder_time: Optional[str] = Form(None, alias="reminderTime"),
    pdf: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    store: LocalFileStore = Depends(get_file_store),
    clock: Clock = Depends(get_clock)
):
    payload = {
        "type": task_type,
        "subjectCode": subject_code,
        "taskNumber": task_number,
        "deadline": deadline,
        "semester": semester,
        "description": description,
        "reminderTime": reminder_time or None,
    }
    if priority:
        payload["priority"] = priority
    try:
        task_in = TaskCreate.model_validate(payload)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False))

    # Upload only once the form itself is valid; drop it again if the slot is refused
    pdf_url = await store.save(pdf) if pdf is not None and pdf.filename else None
    try:
        task = await quota.allocate(db, current_user, task_in, pdf_url=pdf_url)
    except Exception:
        if pdf_url:
            store.delete(pdf_url)
        raise
    return task_to_response(task, clock.now())

@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    clock: Clock = Depends(get_clock)
):
    task = await get_owned_task(db, task_id, current_user.id)
    return task_to_response(task, clock.now())

@router.get("/{task_id}/pdf", response_class=FileResponse)
async def download_task_pdf(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    store: LocalFileStore = Depends(get_file_store)
):
    task = await get_owned_task(db, task_id, current_user.id)
    if not task.pdf_url:
        raise HTTPException(404, "No PDF attached to this task")
    path = store.path_for(task.pdf_url)
    if not path.is_file():
        raise HTTPException(404, "Stored PDF is missing")
    # Stored names are <uuid>-<original name>
    return FileResponse(path, media_type="application/pdf", filename=path.name.split("-", 1)[-1])

@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    task_in: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    clock: Clock = Depends(get_clock)
):
    task = await get_owned_task(db, task_id, current_user.id)

    changes = task_in.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(400, "No valid fields to update")
    for key in ("deadline", "status", "priority"):
        if key in changes and changes[key] is None:
            raise HTTPException(400, f"{key} cannot be cleared")
    for key, value in changes.items():
        setattr(task, key, value)

    db.add(task)
    await db.commit()
    await db.refresh(task)
    return task_to_response(task, clock.now())

@router.patch("/{task_id}/complete", response_model=TaskResponse)
async def complete_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    clock: Clock = Depends(get_clock)
):
    task = await get_owned_task(db, task_id, current_user.id)
    if task.status == "completed":
        raise HTTPException(400, "Task already completed")

    task.status = "completed"
    db.add(task)
    await db.commit()
    await db.refresh(task)
    return task_to_response(task, clock.now())

@router.delete("/{task_id}", response_model=MessageResponse)
async def delete_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    store: LocalFileStore = Depends(get_file_store)
):
    task = await get_owned_task(db, task_id, current_user.id)
    pdf_url = task.pdf_url
    await db.delete(task)
    await db.commit()
    if pdf_url:
        store.delete(pdf_url)
    return MessageResponse(message="Task deleted successfully")

@router.post("/{task_id}/answers", response_model=ExtractionResponse)
async def get_answers(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    extractor: QuestionExtractor = Depends(get_extractor)
):
    task = await get_owned_task(db, task_id, current_user.id)
    result = await extractor.run(task.pdf_url)
    return ExtractionResponse(
        questions=[QuestionAnswerResponse(question=qa.question, answer=qa.answer or "") for qa in result.questions],
        message=result.message,
    )
