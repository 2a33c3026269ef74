from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from trakly.database import get_db
from trakly.core.auth import get_current_user
from trakly.schemas.user import Subject, SubjectListResponse
from trakly.services.accounts import add_subject, list_subjects, remove_subject

router = APIRouter(prefix="/users", tags=["users"])

def _as_list(subjects) -> SubjectListResponse:
    return SubjectListResponse(
        subjects=[Subject(subject_code=s.subject_code, subject_name=s.subject_name) for s in subjects]
    )

@router.get("/subjects", response_model=SubjectListResponse)
async def get_subjects(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return _as_list(await list_subjects(db, current_user.id))

@router.post("/subjects", response_model=SubjectListResponse)
async def create_subject(
    subject_in: Subject,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return _as_list(await add_subject(db, current_user, subject_in))

@router.delete("/subjects/{subject_code}", response_model=SubjectListResponse)
async def delete_subject(
    subject_code: str,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    if not await remove_subject(db, current_user, subject_code):
        raise HTTPException(404, "Subject not found")
    return _as_list(await list_subjects(db, current_user.id))
