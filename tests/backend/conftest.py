import datetime as dt
import os
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from tortoise import Tortoise

from scribeflow.core import db as db_module
from scribeflow.core.security import hash_password
from scribeflow.main import app, install_workflow
from scribeflow.models.user import User
from scribeflow.services.entities import Role
from scribeflow.services.factory import build_services
from scribeflow.services.identity import DirectoryIdentityProvider, TortoiseIdentityProvider
from scribeflow.services.persistence import MemorySegmentSink
from scribeflow.services.scheduler import ManualScheduler


TEST_DB_URL = "sqlite://:memory:?cache=shared"
os.environ["DATABASE_URL"] = TEST_DB_URL
db_module.DB_URL = TEST_DB_URL
db_module.TORTOISE_ORM["connections"]["default"] = TEST_DB_URL


class TickingClock:
    """Deterministic clock: every call returns one second later than the last."""

    def __init__(self, start: dt.datetime = dt.datetime(2024, 3, 1, 9, 0, tzinfo=dt.timezone.utc)):
        self.current = start

    def __call__(self) -> dt.datetime:
        self.current = self.current + dt.timedelta(seconds=1)
        return self.current


async def _init_test_db() -> None:
    """
    Initialize a clean in-memory SQLite database for every test.
    Ensures tables are recreated from scratch.
    """
    if Tortoise._inited:
        await Tortoise.close_connections()
    await Tortoise.init(config=db_module.TORTOISE_ORM)
    await Tortoise.generate_schemas()


# -------- unit-level collaborators --------
@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def sink():
    return MemorySegmentSink()


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def roster():
    """In-memory identity provider with one user per role."""
    return DirectoryIdentityProvider({
        "w1": Role.WORKER,
        "w2": Role.WORKER,
        "a1": Role.ADMIN,
        "s1": Role.SUPER_ADMIN,
    })


@pytest.fixture
def services(roster, sink, scheduler, clock):
    """Workflow services wired to in-memory collaborators and a virtual clock."""
    return build_services(identity=roster, sink=sink, scheduler=scheduler, delay_ms=2000, clock=clock)


@pytest.fixture
def seed_batch(services):
    """
    Factory fixture that ingests a batch as the admin and returns its segments.
    Workers are dealt segments round-robin.
    """

    async def _seed(count: int = 2, workers=("w1",), name: str = "batch"):
        batch = await services.ingestion.ingest(
            "a1",
            name,
            [{"filename": f"{name}_{i + 1:03d}.wav", "duration": 10.0 + i} for i in range(count)],
            list(workers),
        )
        return services.store.segments_in_batch(batch.id)

    return _seed


# -------- API-level fixtures --------
@pytest_asyncio.fixture
async def workflow(sink, scheduler):
    """
    Workflow services installed on the app. Roles resolve from the users
    table; auto-save timers only fire when the test advances `scheduler`.
    """
    services = build_services(
        identity=TortoiseIdentityProvider(),
        sink=sink,
        scheduler=scheduler,
        delay_ms=2000,
    )
    install_workflow(app, services)
    yield services
    await services.autosave.aclose()
    app.state.workflow = None


@pytest_asyncio.fixture
async def client(workflow):
    """
    Provide an HTTPX AsyncClient bound to the FastAPI app with a fresh DB.
    """
    await _init_test_db()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client
    await Tortoise.close_connections()


async def _create(role: str, password: str, name: str = None) -> tuple[User, str]:
    tag = uuid.uuid4().hex[:6]
    user = await User.create(
        name=name or f"{role}_{tag}",
        email=f"{role}_{tag}@example.com",
        password_hash=hash_password(password),
        role=role,
    )
    return user, password


@pytest_asyncio.fixture
async def create_worker():
    """Factory fixture to create worker users directly via ORM."""

    async def _create_worker(password: str = "WorkerPass!23") -> tuple[User, str]:
        return await _create("worker", password)

    return _create_worker


@pytest_asyncio.fixture
async def create_admin():
    """Factory fixture to create reviewer (admin) users directly via ORM."""

    async def _create_admin(password: str = "AdminPass!23") -> tuple[User, str]:
        return await _create("admin", password)

    return _create_admin


@pytest_asyncio.fixture
async def create_super_admin():
    """Factory fixture to create super-admin users for user management endpoints."""

    async def _create_super_admin(password: str = "SuperPass!23") -> tuple[User, str]:
        return await _create("super-admin", password)

    return _create_super_admin


@pytest_asyncio.fixture
async def auth_header_factory(client):
    """
    Helper fixture to obtain Authorization headers via the login endpoint.
    """

    async def _get_headers(user: User, password: str) -> dict[str, str]:
        resp = await client.post(
            "/api/v1/auth/login",
            json={"email": user.email, "password": password},
        )
        assert resp.status_code == 200, resp.text
        token = resp.json()["data"]["accessToken"]
        return {"Authorization": f"Bearer {token}"}

    return _get_headers
