"""
Pytest fixtures for the delegation service tests.
"""

import os
import tempfile

# Point the app at a throwaway database before anything imports app.core.config
_TEST_DIR = tempfile.mkdtemp(prefix="cinema-console-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TEST_DIR, 'test.db')}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Annotated, AsyncGenerator, Dict, List

import pytest
import pytest_asyncio
from fastapi import Depends
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.base import Base
from app.core.database.engine import AsyncSessionLocal, engine, get_db, import_models
from app.features.partners.models import Partner, staff_partners
from app.features.permissions.catalog import invalidate_catalog_cache, seed_catalog
from app.features.permissions.client import DelegationApiClient
from app.features.staff.dependencies import get_current_user
from app.features.staff.models import Staff, StaffRole
from app.main import app


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create every table, and drop them after the test."""
    import_models()
    invalidate_catalog_cache()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    invalidate_catalog_cache()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """A session on the test database with the permission catalog seeded."""
    async with AsyncSessionLocal() as session:
        await seed_catalog(session)
        yield session
        await session.rollback()


async def _create_staff(db: AsyncSession, key: str, full_name: str, role: StaffRole) -> Staff:
    staff = Staff(
        appwrite_id=f"appwrite-{key}",
        email=f"{key}@example.com",
        full_name=full_name,
        role=role,
    )
    db.add(staff)
    await db.commit()
    return staff


@pytest_asyncio.fixture
async def manager(db_session: AsyncSession) -> Staff:
    """A manager, the only role allowed to delegate."""
    return await _create_staff(db_session, "manager", "Mai Nguyen", StaffRole.MANAGER)


@pytest_asyncio.fixture
async def staff_a(db_session: AsyncSession) -> Staff:
    return await _create_staff(db_session, "staff-a", "An Le", StaffRole.MANAGER_STAFF)


@pytest_asyncio.fixture
async def staff_b(db_session: AsyncSession) -> Staff:
    return await _create_staff(db_session, "staff-b", "Binh Do", StaffRole.MANAGER_STAFF)


@pytest_asyncio.fixture
async def partners(db_session: AsyncSession) -> List[Partner]:
    """Three partners, none assigned yet."""
    created = [
        Partner(name="Starlight Cinemas", tax_code="0101234567", address="12 Le Loi"),
        Partner(name="Riverside Movie House", tax_code="0107654321", address="88 Tran Hung Dao"),
        Partner(name="Galaxy Screens", tax_code="0109988776", address="5 Nguyen Hue"),
    ]
    db_session.add_all(created)
    await db_session.commit()
    return created


async def assign(db: AsyncSession, staff: Staff, *partner_list: Partner, by: Staff = None) -> None:
    """Put partners under a staff member's supervision."""
    await db.execute(
        insert(staff_partners),
        [
            {
                "staff_id": staff.id,
                "partner_id": partner.id,
                "assigned_by_id": by.id if by is not None else None,
            }
            for partner in partner_list
        ],
    )
    await db.commit()


@pytest_asyncio.fixture
async def assigned(
    db_session: AsyncSession,
    manager: Staff,
    staff_a: Staff,
    staff_b: Staff,
    partners: List[Partner]
) -> List[Partner]:
    """staff_a manages every partner; staff_b manages only the first."""
    await assign(db_session, staff_a, *partners, by=manager)
    await assign(db_session, staff_b, partners[0], by=manager)
    return partners


@pytest.fixture
def acting(manager: Staff) -> Dict[str, int]:
    """Which staff member the API treats as authenticated; tests may switch it."""
    return {"id": manager.id}


@pytest_asyncio.fixture
async def client(acting: Dict[str, int]) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the app with authentication bypassed."""

    async def _current_user(db: Annotated[AsyncSession, Depends(get_db)]) -> Staff:
        return await db.get(Staff, acting["id"])

    app.dependency_overrides[get_current_user] = _current_user
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Authorization": "Bearer test-token"},
    ) as http:
        yield http
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def api(client: AsyncClient) -> AsyncGenerator[DelegationApiClient, None]:
    """DelegationApiClient routed straight into the app."""
    async with DelegationApiClient(
        "http://test",
        access_token="test-token",
        transport=ASGITransport(app=app),
    ) as delegation_api:
        yield delegation_api

