"""Fixtures de test / Test fixtures."""

import os

# Avant tout import du package / Before any package import
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("DEBUG", "true")

from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

import autoconnect.models  # noqa: E402,F401
from autoconnect.database import Base, get_db  # noqa: E402
from autoconnect.main import app  # noqa: E402
from autoconnect.models import User, Vehicle  # noqa: E402
from autoconnect.utils.auth import create_access_token  # noqa: E402


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_factory):
    counter = {"n": 0}

    async def _make(role: str = "vehicle_owner", nic: str | None = None, **kwargs) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            first_name=kwargs.pop("first_name", f"User{n}"),
            last_name=kwargs.pop("last_name", "Test"),
            email=kwargs.pop("email", f"user{n}@example.com"),
            phone=kwargs.pop("phone", f"+9477000000{n}"),
            nic_number=nic,
            role=role,
            **kwargs,
        )
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _make


@pytest.fixture
def make_vehicle(session_factory):
    counter = {"n": 0}

    async def _make(owner: User | None = None, owner_nic: str | None = None, **kwargs) -> Vehicle:
        counter["n"] += 1
        vehicle = Vehicle(
            registration_number=kwargs.pop("registration_number", f"CAB-{1000 + counter['n']}"),
            make=kwargs.pop("make", "Toyota"),
            model=kwargs.pop("model", "Corolla"),
            year_of_manufacture=kwargs.pop("year_of_manufacture", 2018),
            owner_id=owner.id if owner else None,
            owner_nic=owner_nic if owner_nic is not None else (owner.nic_number if owner else None),
            **kwargs,
        )
        async with session_factory() as session:
            session.add(vehicle)
            await session.commit()
        return vehicle

    return _make


@pytest.fixture
async def world(make_user, make_vehicle):
    """Admin, propriétaire, co-titulaire (même NIC), inconnu, véhicule.
    Admin, owner, co-holder sharing the owner's NIC, stranger, one vehicle.
    """
    admin = await make_user(role="admin", nic="ADMIN0001V")
    owner = await make_user(nic="199012345678")
    creator = await make_user(nic="199012345678", role="service_provider")
    stranger = await make_user(nic="887766554V")
    vehicle = await make_vehicle(owner=owner)
    return SimpleNamespace(admin=admin, owner=owner, creator=creator, stranger=stranger, vehicle=vehicle)


@pytest.fixture
def auth():
    """En-têtes Bearer pour un utilisateur / Bearer headers for a user."""

    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}

    return _headers
