"""
Shared fixtures: isolated in-memory database, HTTP client and token helpers.

Environment overrides are applied before anything from `glance` is imported
so the cached settings pick them up.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "console")

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from jose import jwt  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from glance.core.config import settings  # noqa: E402
from glance.core.database import Base, get_db  # noqa: E402
from glance.main import app  # noqa: E402
from glance.models.events import WidgetEvent  # noqa: E402
from glance.models.workspace import Widget, Workspace, WorkspaceMember, WorkspaceRole  # noqa: E402

# ── Test database: isolated in-memory SQLite ──────────────────────────────────
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
TestSessionLocal = async_sessionmaker(
    bind=test_engine, class_=AsyncSession, expire_on_commit=False
)


async def override_get_db():
    async with TestSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db

MEMBER_ID = "0b6f3c1e-member"
OUTSIDER_ID = "7d2a9e44-outsider"


def make_token(user_id: str, expires_in: timedelta = timedelta(hours=1), **claims) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "aud": settings.AUTH_JWT_AUDIENCE,
        "role": "authenticated",
        "email": f"{user_id}@example.com",
        "iat": now,
        "exp": now + expires_in,
        **claims,
    }
    return jwt.encode(payload, settings.AUTH_JWT_SECRET, algorithm=settings.AUTH_JWT_ALGORITHM)


def auth_headers(user_id: str = MEMBER_ID) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


async def add_events(
    db: AsyncSession,
    widget_id: str,
    session_id: str,
    events: list[tuple[str, datetime]],
) -> None:
    db.add_all([
        WidgetEvent(
            widget_id=widget_id,
            session_id=session_id,
            event_type=event_type,
            created_at=created_at,
        )
        for event_type, created_at in events
    ])
    await db.commit()


# ── Fixtures ───────────────────────────────────────────────────────────────────
@pytest_asyncio.fixture
async def setup_db():
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def client(setup_db):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def db_session(setup_db):
    async with TestSessionLocal() as session:
        yield session


@pytest_asyncio.fixture
async def workspace(db_session: AsyncSession) -> Workspace:
    ws = Workspace(name="Acme Docs")
    db_session.add(ws)
    await db_session.commit()
    await db_session.refresh(ws)

    db_session.add(
        WorkspaceMember(workspace_id=ws.id, user_id=MEMBER_ID, role=WorkspaceRole.MEMBER)
    )
    await db_session.commit()
    return ws


@pytest_asyncio.fixture
async def widget(db_session: AsyncSession, workspace: Workspace) -> Widget:
    w = Widget(workspace_id=workspace.id, name="Help Tab")
    db_session.add(w)
    await db_session.commit()
    await db_session.refresh(w)
    return w
