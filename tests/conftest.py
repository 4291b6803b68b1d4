import httpx
import pytest
import pytest_asyncio
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from harmony.config import Settings, settings
from harmony.database import Base
from harmony.dependencies import get_db, create_access_token
from harmony.main import app
from harmony.models.user import User
from harmony.sync.api import BackendClient
from harmony.sync.session import MessagingSession

test_engine = create_engine(
    settings.test_database_url,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSession = sessionmaker(bind=test_engine)


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db():
    connection = test_engine.connect()
    transaction = connection.begin()
    session = TestSession(bind=connection)
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_user(db, email, name, password="secret123"):
    user = User(email=email, name=name, password_hash="x")
    user.set_password(password)
    db.add(user)
    db.flush()
    return user


@pytest.fixture
def member_user(db):
    return make_user(db, "member@test.com", "Member")


@pytest.fixture
def peer_user(db):
    return make_user(db, "peer@test.com", "Peer")


@pytest.fixture
def third_user(db):
    return make_user(db, "third@test.com", "Third")


@pytest.fixture
def member_headers(member_user):
    return {"Authorization": f"Bearer {create_access_token(member_user)}"}


@pytest.fixture
def peer_headers(peer_user):
    return {"Authorization": f"Bearer {create_access_token(peer_user)}"}


@pytest.fixture
def connection(db, member_user, peer_user):
    from harmony.models.connection import Connection

    conn = Connection(
        requester_id=member_user.id,
        receiver_id=peer_user.id,
        status="accepted",
    )
    db.add(conn)
    db.flush()
    return conn


@pytest.fixture
def sync_settings():
    # Pollers stay idle; tests drive every sync explicitly.
    return Settings(
        summary_poll_interval=60,
        thread_poll_interval=60,
        optimistic_max_cycles=2,
    )


@pytest_asyncio.fixture
async def http(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def session_for(http, sync_settings):
    """Build a MessagingSession for a user, talking to the in-process app."""
    sessions = []

    def factory(user):
        api = BackendClient(http, create_access_token(user))
        session = MessagingSession(user.id, api, sync_settings)
        sessions.append(session)
        return session

    yield factory
    for session in sessions:
        await session.aclose()
