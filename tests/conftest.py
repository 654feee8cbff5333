import os

# Must be set before busbook reads its settings
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["LOCK_BACKEND"] = "local"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SEED_DEFAULT_TRIPS"] = "false"
os.environ["RESEND_API_KEY"] = ""
os.environ["TIMEZONE"] = "Asia/Kathmandu"
os.environ["DB_DSN"] = "sqlite+aiosqlite:///:memory:"

import httpx
import pytest

from busbook.infrastructure import build_engine, build_session_factory
from busbook.locks import TripLockManager
from busbook.models import Base
from busbook.services import (
    BookingService, EmailService, NotificationService, RequestContext
)


class MailRecorder:
    """Stands in for the email provider behind ``httpx.MockTransport``"""

    def __init__(self):
        self.requests = []
        self.fail = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            return httpx.Response(500, json={"message": "provider down"})
        self.requests.append(request)
        return httpx.Response(200, json={"id": f"msg-{len(self.requests)}"})


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'busbook-test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def locks():
    return TripLockManager("local", timeout=5.0)


@pytest.fixture
def mail():
    return MailRecorder()


@pytest.fixture
def notifier(mail):
    email = EmailService("test-key", transport=httpx.MockTransport(mail.handler))
    return NotificationService(email, currency="NPR", timezone="Asia/Kathmandu")


@pytest.fixture
def booking_service(session, locks, notifier):
    return BookingService(session, locks, notifier)


@pytest.fixture
def passenger():
    return RequestContext(user_id="ram@example.com", role="passenger")


@pytest.fixture
def admin():
    return RequestContext(user_id="admin@example.com", role="admin")
