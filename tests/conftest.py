"""Test configuration."""
import os
from collections.abc import AsyncIterator, Callable, Iterator
from datetime import timedelta
from pathlib import Path
from typing import Any

from alembic import command
from alembic.config import Config
import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

# --- Default env for the test run
os.environ.setdefault("DATABASE_URL", "sqlite:///./batcomman_test.db")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("PAYOS_CLIENT_ID", "test-client-id")
os.environ.setdefault("PAYOS_API_KEY", "test-api-key")
os.environ.setdefault("PAYOS_CHECKSUM_KEY", "test-checksum-key")
os.environ.setdefault("SMS_WEBHOOK_SECRET", "test-sms-secret")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("CHAT_WEBHOOK_URL", "https://chat.example.com/hooks/test")

from app.main import app  # noqa: E402
from app.config import get_settings  # noqa: E402
from app.db import get_db  # noqa: E402
from app.models import DailyOrder, PaymentChannel, PaymentIntent, PaymentIntentStatus  # noqa: E402
from app.services.notifications import ChatNotifier, get_chat_notifier  # noqa: E402
from app.services.psp_payos import PayOSClient, get_payos_client  # noqa: E402
from app.utils.time import utcnow  # noqa: E402

DB_PATH = Path("./batcomman_test.db")


def _run_migrations() -> None:
    cfg = Config(str(Path(__file__).resolve().parents[1] / "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", os.environ["DATABASE_URL"])
    command.upgrade(cfg, "head")


# --- (1) Fresh database file per session
if DB_PATH.exists():
    DB_PATH.unlink()

engine = create_engine(
    os.environ["DATABASE_URL"],
    connect_args={"check_same_thread": False},
    future=True,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False,
                                   future=True, expire_on_commit=False)

# --- (2) Schema comes from Alembic only
_run_migrations()


class PayOSStub:
    """Canned PayOS answers served through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}

    def add(self, method: str, path: str, status_code: int = 200, json: Any = None) -> None:
        self._routes[(method, path)] = lambda request: httpx.Response(status_code, json=json)

    def add_handler(
        self, method: str, path: str, handler: Callable[[httpx.Request], httpx.Response]
    ) -> None:
        self._routes[(method, path)] = handler

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self._routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(200, json={"code": "101", "desc": "Not stubbed", "data": None})
        return route(request)

    def client(self) -> PayOSClient:
        return PayOSClient(get_settings(), transport=httpx.MockTransport(self.handler))


@pytest.fixture
def db_session() -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture(autouse=True)
def override_db_dependency(db_session: Session) -> Iterator[None]:
    def _get_db() -> Iterator[Session]:
        yield db_session
    app.dependency_overrides[get_db] = _get_db
    yield
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def payos_stub() -> PayOSStub:
    return PayOSStub()


@pytest.fixture
def payos_client(payos_stub: PayOSStub) -> PayOSClient:
    return payos_stub.client()


@pytest.fixture(autouse=True)
def override_payos_client(payos_client: PayOSClient) -> Iterator[None]:
    app.dependency_overrides[get_payos_client] = lambda: payos_client
    yield
    app.dependency_overrides.pop(get_payos_client, None)


@pytest.fixture
def chat_requests() -> list[httpx.Request]:
    return []


@pytest.fixture
def chat_status() -> dict[str, int]:
    """Mutable status code answered by the fake chat webhook."""

    return {"code": 200}


@pytest.fixture
def notifier(chat_requests: list[httpx.Request], chat_status: dict[str, int]) -> ChatNotifier:
    def _handler(request: httpx.Request) -> httpx.Response:
        chat_requests.append(request)
        return httpx.Response(chat_status["code"], json={"success": chat_status["code"] == 200})

    return ChatNotifier(get_settings(), transport=httpx.MockTransport(_handler))


@pytest.fixture(autouse=True)
def override_chat_notifier(notifier: ChatNotifier) -> Iterator[None]:
    app.dependency_overrides[get_chat_notifier] = lambda: notifier
    yield
    app.dependency_overrides.pop(get_chat_notifier, None)


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def make_order(db_session: Session) -> Callable[..., DailyOrder]:
    """Factory for unpaid daily orders."""

    def _factory(
        *,
        user_id: str = "user-0001",
        user_name: str = "Nguyen Van A",
        user_email: str = "a@example.com",
        date: str = "2026-10-19",
        price: int = 25000,
        quantity: int = 1,
        is_paid: bool = False,
    ) -> DailyOrder:
        order = DailyOrder(
            date=date,
            user_id=user_id,
            user_name=user_name,
            user_email=user_email,
            menu_item_id="com-ga",
            menu_item_name="Cơm gà",
            menu_item_price=price,
            quantity=quantity,
            is_paid=is_paid,
        )
        db_session.add(order)
        db_session.commit()
        db_session.refresh(order)
        return order

    return _factory


@pytest.fixture
def make_intent(db_session: Session) -> Callable[..., PaymentIntent]:
    """Factory for pending payment intents written straight to the table."""

    def _factory(
        *,
        tracking_code: str = "BCM1234ABCD",
        user_id: str = "user-0001",
        amount: int = 50000,
        order_ids: list[Any] | None = None,
        channel: PaymentChannel = PaymentChannel.MANUAL,
        order_code: int | None = None,
        status: PaymentIntentStatus = PaymentIntentStatus.PENDING,
        expires_in: timedelta = timedelta(hours=24),
        date: str = "2026-10-19",
    ) -> PaymentIntent:
        intent = PaymentIntent(
            tracking_code=tracking_code,
            channel=channel,
            user_id=user_id,
            user_name="Nguyen Van A",
            user_email="a@example.com",
            amount=amount,
            order_ids=[str(order_id) for order_id in order_ids or []],
            date=date,
            description=tracking_code,
            status=status,
            expires_at=utcnow() + expires_in,
            order_code=order_code,
        )
        db_session.add(intent)
        db_session.commit()
        db_session.refresh(intent)
        return intent

    return _factory
