"""Pytest fixtures for testing."""
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from redis.exceptions import RedisError

from core.attribute_mapper import AttributeMapper
from core.config import Settings
from core.person_cache import PersonCache
from core.user_session import UserSession
from directory.memory import InMemoryDirectory
from services.person_service import PersonService

TEST_USER_IDENTIFIER = "test-user"
EMAIL_ATTRIBUTE = "email"
BIRTHDATE_ATTRIBUTE = "birthDate"


class FakeRedis:
    """
    Dict-backed stand-in for redis.asyncio.Redis.

    Implements the commands the person cache uses and records the TTL of every
    write. With available set to False every command raises RedisError, like a
    client whose server went away.
    """

    def __init__(self) -> None:
        self.store: dict[str, bytes] = {}
        self.ttls: dict[str, int] = {}
        self.available = True
        self.closed = False

    def _check(self) -> None:
        if not self.available:
            raise RedisError("Connection refused")

    async def get(self, key: str) -> bytes | None:
        self._check()
        return self.store.get(key)

    async def setex(self, key: str, seconds: int, value: str | bytes) -> bool:
        self._check()
        self.store[key] = value.encode() if isinstance(value, str) else value
        self.ttls[key] = seconds
        return True

    async def ping(self) -> bool:
        self._check()
        return True

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> Settings:
    """Settings with the default core attributes and two local data attributes."""
    return Settings(
        _env_file=None,
        redis_enabled=False,
        session_ttl=600,
        local_data_mapping=[
            {"local_data_attribute": EMAIL_ATTRIBUTE, "source_attribute": "mail"},
            {
                "local_data_attribute": BIRTHDATE_ATTRIBUTE,
                "source_attribute": "dateofbirth",
                "default_value": "",
            },
        ],
    )


@pytest.fixture
def mapper(settings: Settings) -> AttributeMapper:
    """Attribute mapping built from the test settings."""
    return settings.build_attribute_mapper()


@pytest.fixture
def directory() -> InMemoryDirectory:
    """Directory with a handful of people (and one entry without identifier)."""
    return InMemoryDirectory([
        {"cn": ["john"], "givenName": ["John"], "sn": ["Doe"], "mail": ["john@example.com"],
         "dateofbirth": ["1994-06-24"]},
        {"cn": ["jane"], "givenName": ["Jane"], "sn": ["Doe"], "mail": ["jane@example.com"]},
        {"cn": ["max"], "givenName": ["Max"], "sn": ["Mustermann"]},
        {"cn": [TEST_USER_IDENTIFIER], "givenName": ["Test"], "sn": ["User"],
         "mail": ["test@example.com"], "dateofbirth": ["2000-01-01"]},
        {"givenName": ["No"], "sn": ["Identifier"]},
    ])


@pytest.fixture
def fake_redis() -> FakeRedis:
    """In-memory Redis stand-in."""
    return FakeRedis()


@pytest.fixture
def person_cache(fake_redis: FakeRedis) -> PersonCache:
    """Distributed person cache backed by the fake Redis."""
    return PersonCache(fake_redis)  # type: ignore[arg-type]


@pytest.fixture
def person_service(
    settings: Settings,
    directory: InMemoryDirectory,
    person_cache: PersonCache,
) -> PersonService:
    """Person service over the test directory, with the distributed cache."""
    return PersonService.from_settings(settings, directory, person_cache=person_cache)


@pytest.fixture
def user_session() -> UserSession:
    """Session of the interactive test user."""
    return UserSession(
        user_identifier=TEST_USER_IDENTIFIER,
        session_cache_key="session-1",
        session_ttl=600,
    )


@pytest.fixture
async def client(
    settings: Settings,
    person_service: PersonService,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client wired to the test person service."""
    from api.dependencies import get_settings, set_person_service  # noqa: PLC0415
    from api.main import app  # noqa: PLC0415

    set_person_service(person_service)
    app.dependency_overrides[get_settings] = lambda: settings

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    set_person_service(None)
