from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from trakly.core.security import create_access_token
from trakly.database import Base, get_db
from trakly.main import app
from trakly.models.task import Task
from trakly.models.user import User, UserSubject
from trakly.routers.task import get_clock
from trakly.services.mailer import DeliveryResult
from trakly.services.storage import LocalFileStore, get_file_store
from trakly.utils.password import hash_password

T0 = datetime(2025, 1, 9, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def set(self, value: datetime) -> None:
        self.current = value

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class FakeSender:
    """Records every send; `fail_for` addresses (or all, with fail_all) get a failure result."""

    def __init__(self):
        self.sent: List[tuple] = []
        self.attempts = 0
        self.fail_all = False
        self.fail_for: set = set()
        self.raise_for: set = set()

    async def send(self, to: str, subject: str, body: str) -> DeliveryResult:
        self.attempts += 1
        if to in self.raise_for:
            raise RuntimeError("transport exploded")
        if self.fail_all or to in self.fail_for:
            return DeliveryResult(ok=False, error="smtp down")
        self.sent.append((to, subject, body))
        return DeliveryResult(ok=True)


class FakeAI:
    """Answers prompts with `handler(prompt)`; an exception from the handler propagates like an SDK error."""

    def __init__(self, handler: Callable[[str], str]):
        self.handler = handler
        self.prompts: List[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.handler(prompt)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def file_store(tmp_path):
    return LocalFileStore(str(tmp_path / "uploads"), max_bytes=1024 * 1024)


@pytest.fixture
async def client(session_factory, clock, file_store):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_file_store] = lambda: file_store
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def make_user(
    db: AsyncSession,
    email: str = "asha@example.edu",
    password: Optional[str] = "secret123",
    subjects=(("CS301", "Data Structures"),),
    name: str = "Asha",
) -> User:
    user = User(
        name=name,
        email=email,
        hashed_password=hash_password(password) if password else None,
        college="GEC",
        year="2nd",
        branch="CSE",
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    for code, subject_name in subjects:
        db.add(UserSubject(user_id=user.id, subject_code=code, subject_name=subject_name))
    await db.commit()
    return user


async def add_task(
    db: AsyncSession,
    user: User,
    task_number: int,
    task_type: str = "Assignment",
    subject_code: str = "CS301",
    subject_name: str = "Data Structures",
    semester: str = "1",
    **fields,
) -> Task:
    fields.setdefault("deadline", T0 + timedelta(days=1))
    task = Task(
        user_id=user.id,
        type=task_type,
        subject_code=subject_code,
        subject_name=subject_name,
        task_number=task_number,
        semester=semester,
        **fields,
    )
    db.add(task)
    await db.commit()
    await db.refresh(task)
    return task


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}
