# tests/conftest.py
from __future__ import annotations

import base64
import io
import os
from collections.abc import Callable, Generator, Iterator
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.pop("REDIS_URL", None)
os.environ.pop("GEMINI_API_KEY", None)

from confessio.api.v1.dependencies import get_registry
from confessio.db.session import Base
from confessio.db.session import get_db as app_get_session
from confessio.main import app as fastapi_app
from confessio.repositories.confession_repo import ConfessionRepository
from confessio.schemas.confession import AnalysisResult, Avatar, Confession
from confessio.services.app_state import AppState
from confessio.services.gemini import StylingError
from confessio.services.local_store import LocalStore, clear_memory_store
from confessio.services.matchmaker import Matchmaker
from confessio.services.media import UploadedFrameDevice
from confessio.services.realtime import RealtimeChannel
from confessio.services.registry import ClientStateRegistry

TEST_DB_URL = "sqlite://"
CLIENT_ID = "test-client-0001"
OTHER_CLIENT_ID = "test-client-0002"
STYLED_PHOTO = "data:image/png;base64,c3R5bGVk"

_ID_COUNTER = count(1)


class FakeAnalyzer:
    """Analyzer double returning a fixed verdict and recording its inputs."""

    def __init__(self, result: AnalysisResult | None = None) -> None:
        self.result = result or AnalysisResult(
            sentiment="happy",
            emoji="🎉",
            tags=["campus", "exams", "coffee"],
            color_theme="#f97316",
            is_safe=True,
        )
        self.calls: list[tuple[str, str | None]] = []

    async def analyze_confession(self, text: str, image: str | None = None) -> AnalysisResult:
        self.calls.append((text, image))
        return self.result


class FakeStyler:
    """Image styler double; set ``fail`` to make every call raise."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple[str, str]] = []

    async def generate_styled_image(self, image: str, style: str) -> str:
        self.calls.append((image, style))
        if self.fail:
            raise StylingError("No image generated")
        return STYLED_PHOTO


def make_avatar(name: str = "Sleepy Owl") -> Avatar:
    return Avatar(name=name, color="#3b82f6", icon="🦉")


def make_confession(**overrides) -> Confession:
    """Build a stored-shape confession with unique id and increasing timestamp."""
    seq = next(_ID_COUNTER)
    data = {
        "id": f"c{seq:04d}",
        "type": "text",
        "text": f"confession number {seq}",
        "timestamp": 1_700_000_000_000 + seq * 1000,
        "author_avatar": make_avatar(),
        "tags": ["anonymous"],
    }
    data.update(overrides)
    return Confession(**data)


def make_frame(size: tuple[int, int] = (64, 32)) -> Image.Image:
    """Frame with a red left half and a blue right half."""
    width, height = size
    image = Image.new("RGB", size, (220, 20, 20))
    image.paste((20, 20, 220), (width // 2, 0, width, height))
    return image


def make_frame_data_url(size: tuple[int, int] = (64, 32)) -> str:
    buffer = io.BytesIO()
    make_frame(size).save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


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
def session_factory(engine: Engine) -> Iterator[sessionmaker[Session]]:
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    try:
        yield factory
    finally:
        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def clean_local_storage() -> Iterator[None]:
    clear_memory_store()
    yield
    clear_memory_store()


@pytest.fixture()
def channel() -> RealtimeChannel:
    return RealtimeChannel("test-channel")


@pytest.fixture()
def repo(session_factory: sessionmaker[Session], channel: RealtimeChannel) -> ConfessionRepository:
    return ConfessionRepository(session_factory, channel)


@pytest.fixture()
def analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()


@pytest.fixture()
def styler() -> FakeStyler:
    return FakeStyler()


@pytest.fixture()
def store() -> LocalStore:
    return LocalStore(CLIENT_ID, redis_url="")


@pytest.fixture()
def fake_clock() -> Callable[[], int]:
    ticks = count(1_800_000_000_000, 1000)
    return lambda: next(ticks)


@pytest.fixture()
def device() -> UploadedFrameDevice:
    return UploadedFrameDevice()


@pytest.fixture()
def matchmaker(device: UploadedFrameDevice, store: LocalStore, styler: FakeStyler) -> Matchmaker:
    return Matchmaker(device, store, styler)


@pytest.fixture()
def app_state(
    repo: ConfessionRepository,
    store: LocalStore,
    analyzer: FakeAnalyzer,
    matchmaker: Matchmaker,
    fake_clock: Callable[[], int],
) -> Iterator[AppState]:
    state = AppState(repo, store, analyzer, matchmaker, clock=fake_clock)
    state.load()
    try:
        yield state
    finally:
        state.close()


@pytest.fixture()
def registry(
    session_factory: sessionmaker[Session],
    analyzer: FakeAnalyzer,
    styler: FakeStyler,
    channel: RealtimeChannel,
) -> Iterator[ClientStateRegistry]:
    registry = ClientStateRegistry(
        session_factory,
        analyzer,
        styler,
        channel=channel,
        max_clients=4,
        redis_url="",
    )
    try:
        yield registry
    finally:
        registry.close_all()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    session_factory: sessionmaker[Session],
    registry: ClientStateRegistry,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_registry] = lambda: registry
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_registry, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def client_headers() -> dict[str, str]:
    return {"X-Client-Id": CLIENT_ID}


@pytest.fixture()
def other_client_headers() -> dict[str, str]:
    return {"X-Client-Id": OTHER_CLIENT_ID}
