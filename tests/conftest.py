# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")

from neurapay.api.v1.dependencies import get_chain_reader_dep
from neurapay.db.session import Base
from neurapay.db.session import get_db as app_get_session
from neurapay.main import app as fastapi_app
from neurapay.services.chain import ServiceListing, ServiceNotFoundError

TEST_DB_URL = "sqlite://"

WALLET = "0x00000000000000000000000000000000000000ab"
OTHER_WALLET = "0x00000000000000000000000000000000000000cd"


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    # Services commit and roll back on their own, so tests get a plain session
    # and a table wipe afterwards instead of an outer transaction.
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


class FakeChainReader:
    """In-memory stand-in for the contract reader."""

    def __init__(self) -> None:
        self.access: dict[tuple[str, int], bool] = {}
        self.expiries: dict[tuple[str, int], int] = {}
        self.services: list[ServiceListing] = []
        self.error: Exception | None = None
        self.calls: list[tuple[object, ...]] = []

    def grant(self, wallet: str, service_id: int, expiry: int = 0) -> None:
        self.access[(wallet.lower(), service_id)] = True
        self.expiries[(wallet.lower(), service_id)] = expiry

    def _record(self, *call: object) -> None:
        self.calls.append(call)
        if self.error is not None:
            raise self.error

    def has_access(self, wallet: str, service_id: int) -> bool:
        self._record("has_access", wallet, service_id)
        return self.access.get((wallet.lower(), service_id), False)

    def get_access_expiry(self, wallet: str, service_id: int) -> int:
        self._record("get_access_expiry", wallet, service_id)
        return self.expiries.get((wallet.lower(), service_id), 0)

    def service_count(self) -> int:
        self._record("service_count")
        return len(self.services)

    def get_service(self, service_id: int) -> ServiceListing:
        self._record("get_service", service_id)
        for listing in self.services:
            if listing.id == service_id:
                return listing
        raise ServiceNotFoundError(f"service {service_id} does not exist")

    def get_service_catalog(self) -> list[ServiceListing]:
        self._record("get_service_catalog")
        return [listing for listing in self.services if listing.active]


def make_listing(service_id: int, *, price: str = "0.01", active: bool = True) -> ServiceListing:
    value = Decimal(price)
    return ServiceListing(
        id=service_id,
        name=f"Model {service_id}",
        category="text",
        description=f"Mock model number {service_id}",
        price=value,
        price_wei=int(value * 10**18),
        provider_address="0x0000000000000000000000000000000000000001",
        active=active,
    )


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


def at(seconds: float) -> datetime:
    """Aware UTC datetime for a unix timestamp."""
    return datetime.fromtimestamp(seconds, UTC)


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(at(1000))


@pytest.fixture()
def chain_reader() -> FakeChainReader:
    return FakeChainReader()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture(autouse=True)
def override_chain_reader(app: FastAPI, chain_reader: FakeChainReader) -> Iterator[None]:
    app.dependency_overrides[get_chain_reader_dep] = lambda: chain_reader
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_chain_reader_dep, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def override_dependency(app: FastAPI) -> Iterator[Callable[[Callable[..., object], Callable[..., object]], None]]:
    """Register extra dependency overrides that are removed after the test."""
    registered: list[Callable[..., object]] = []

    def _override(dependency: Callable[..., object], replacement: Callable[..., object]) -> None:
        app.dependency_overrides[dependency] = replacement
        registered.append(dependency)

    try:
        yield _override
    finally:
        for dependency in registered:
            app.dependency_overrides.pop(dependency, None)
