"""Pytest fixtures for engine and API testing."""
import asyncio
import os
from datetime import datetime, timezone

# Configure the app before it is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["AUTHORIZATION_MODE"] = "enforced"
os.environ["RATE_LIMIT_ENABLED"] = "0"

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database.engine import build_engine, get_db, init_db
from app.features.members.models import Member, MemberStatus
from app.features.permissions.defaults import seed_defaults
from app.features.permissions.dependencies import resolve_caller
from app.features.permissions.models import Role
from app.features.users.auth import issue_token
from app.features.users.models import User
from app.main import app


# ============================================================================
# Engine-level fixtures (in-memory aiosqlite)
# ============================================================================

@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test."""
    test_engine = build_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def roles(db) -> dict[str, Role]:
    """Seed the default catalog; system roles keyed by name."""
    await seed_defaults(db)
    result = await db.execute(select(Role).where(Role.is_system_role.is_(True)))
    return {role.name: role for role in result.scalars().all()}


async def make_user(db: AsyncSession, email: str, name: str | None = None) -> User:
    user = User(external_id=f"ext-{email}", email=email, name=name or email.split("@")[0])
    db.add(user)
    await db.commit()
    return user


async def make_member(
    db: AsyncSession,
    email: str,
    role: Role,
    status: MemberStatus = MemberStatus.ACTIVE,
    user: User | None = None,
) -> Member:
    """Insert a member directly, bypassing invitation checks."""
    if user is None and status == MemberStatus.ACTIVE:
        user = await make_user(db, email)
    member = Member(
        email=email,
        role_id=role.id,
        status=status,
        invited_at=datetime.now(timezone.utc),
        user_id=user.id if user else None,
    )
    db.add(member)
    await db.commit()
    return member


async def caller_for(db: AsyncSession, user: User | None, mode=None):
    return await resolve_caller(db, user.id if user else None, mode)


@pytest_asyncio.fixture
async def owner(db, roles):
    """An active Owner; the team is past bootstrap."""
    member = await make_member(db, "owner@co.com", roles["Owner"])
    user = await db.get(User, member.user_id)
    return user


@pytest_asyncio.fixture
async def admin(db, roles, owner):
    """An active level-80 Admin alongside the owner."""
    member = await make_member(db, "admin@co.com", roles["Admin"])
    return await db.get(User, member.user_id)


# ============================================================================
# API fixtures (file-backed sqlite, shared by the TestClient's event loop)
# ============================================================================

@pytest.fixture
def api_engine(tmp_path):
    api_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")

    async def prepare():
        await init_db(api_engine)
        session_factory = async_sessionmaker(api_engine, class_=AsyncSession, expire_on_commit=False)
        async with session_factory() as session:
            await seed_defaults(session)

    asyncio.run(prepare())
    yield api_engine


@pytest.fixture
def client(api_engine):
    """Test client with database override."""
    session_factory = async_sessionmaker(api_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(email: str, name: str | None = None) -> dict[str, str]:
    token = issue_token(f"sub-{email}", email, name or email.split("@")[0])
    return {"Authorization": f"Bearer {token}"}
