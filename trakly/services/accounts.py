import logging
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from trakly.core.errors import TraklyError
from trakly.models.user import User, UserSubject
from trakly.schemas.user import Subject, UserResponse

logger = logging.getLogger(__name__)


async def list_subjects(db: AsyncSession, user_id: int) -> List[UserSubject]:
    result = await db.execute(
        select(UserSubject)
        .where(UserSubject.user_id == user_id)
        .order_by(UserSubject.created_at, UserSubject.id)
    )
    return list(result.scalars().all())


async def user_response(db: AsyncSession, user: User) -> UserResponse:
    subjects = await list_subjects(db, user.id)
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        college=user.college,
        year=user.year,
        branch=user.branch,
        subjects=[Subject(subject_code=s.subject_code, subject_name=s.subject_name) for s in subjects],
    )


async def add_subject(db: AsyncSession, user: User, subject_in: Subject) -> List[UserSubject]:
    db.add(UserSubject(
        user_id=user.id,
        subject_code=subject_in.subject_code,
        subject_name=subject_in.subject_name,
    ))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise TraklyError(f"Subject {subject_in.subject_code} already added", field="subjectCode")
    return await list_subjects(db, user.id)


async def remove_subject(db: AsyncSession, user: User, subject_code: str) -> bool:
    result = await db.execute(
        select(UserSubject)
        .where(UserSubject.user_id == user.id)
        .where(UserSubject.subject_code == subject_code)
    )
    subject = result.scalar_one_or_none()
    if subject is None:
        return False
    # Tasks keep their own copy of the subject, nothing to cascade
    await db.delete(subject)
    await db.commit()
    return True


async def upsert_google_user(db: AsyncSession, google_id: str, email: str, name: Optional[str]) -> User:
    """Find by Google id, else link an existing account by email, else sign up."""
    email = email.lower()
    result = await db.execute(select(User).where(User.google_id == google_id))
    user = result.scalar_one_or_none()
    if user:
        return user

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user:
        user.google_id = google_id
        logger.info("Linked Google account to existing user %s", user.id)
    else:
        user = User(google_id=google_id, email=email, name=name or email.split("@")[0])
        db.add(user)
        logger.info("Created user from Google sign-in: %s", email)
    await db.commit()
    await db.refresh(user)
    return user
