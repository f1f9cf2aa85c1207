import os

# Must happen before livefeed.config builds the module-level settings
os.environ.setdefault("TRACING_ENABLED", "false")

import httpx
import pytest

from livefeed.config import Settings
from livefeed.database import get_sessionmaker
from livefeed.feed_service import FeedService
from livefeed.main import create_app

PASSWORD = "12345"
# Content is never decoded, only the name and declared type are checked
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class RecordingObserver:
    def __init__(self) -> None:
        self.events: list[dict] = []

    async def send(self, event: dict) -> None:
        self.events.append(event)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'feed.db'}",
        jwt_secret="test-secret",
        bcrypt_rounds=4,
        images_dir=str(tmp_path / "images"),
        tracing_enabled=False,
        kafka_enabled=False,
    )


@pytest.fixture
async def app(settings):
    application = create_app(settings)
    async with application.router.lifespan_context(application):
        yield application


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def recorder(app) -> RecordingObserver:
    observer = RecordingObserver()
    app.state.hub.connect(observer)
    return observer


@pytest.fixture
async def db(app):
    async with get_sessionmaker()() as session:
        yield session


@pytest.fixture
def service(app, db) -> FeedService:
    return FeedService(
        db,
        hub=app.state.hub,
        images=app.state.images,
        tokens=app.state.tokens,
        bcrypt_rounds=4,
        posts_per_page=2,
    )


@pytest.fixture
def register(client):
    """Sign up + log in over HTTP; returns (user_id, auth headers)."""

    async def _register(email: str = "a@b.com", name: str = "Ann", password: str = PASSWORD):
        resp = await client.put(
            "/auth/signup", json={"email": email, "name": name, "password": password}
        )
        assert resp.status_code == 201, resp.text
        resp = await client.post("/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.text
        body = resp.json()
        return body["user_id"], {"Authorization": f"Bearer {body['token']}"}

    return _register


@pytest.fixture
def upload(client):
    """Upload a PNG as the given user; returns the stored path."""

    async def _upload(headers: dict, filename: str = "photo.png") -> str:
        resp = await client.put(
            "/post-image",
            headers=headers,
            files={"image": (filename, PNG_BYTES, "image/png")},
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["file_path"]

    return _upload
