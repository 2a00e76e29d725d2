"""Shared test fixtures."""

import pytest
import respx

from sydney.client import TradingStoreClient, TradingStoreError
from sydney.completion import Completion
from sydney.market_data import MarketDataGateway
from sydney.memory import ConversationMemory

STORE_URL = "http://supabase.test"
API_KEY = "service-role-key"
USER_ID = "user-123"


class FakeCompletion:
    """Records prompts and answers with a canned reply (or raises)."""

    def __init__(self, reply: str = "Sounds good! 📈", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def generate(self, system_prompt, user_prompt, *, config=None):
        self.calls.append((system_prompt, user_prompt))
        if self.error:
            raise self.error
        return Completion(text=self.reply, metrics={"input_tokens": 10, "output_tokens": 5, "total_tokens": 15})

    async def complete(self, system_prompt, user_prompt):
        return (await self.generate(system_prompt, user_prompt)).text


class FakeStore:
    """In-memory stand-in for TradingStoreClient."""

    def __init__(self, sessions=None, trades=None, fail: bool = False):
        self.sessions = sessions or []
        self.trades = trades or []
        self.fail = fail

    def _check(self):
        if self.fail:
            raise TradingStoreError("HTTP 500: boom", status_code=500)

    async def list_sessions(self, user_id):
        self._check()
        return [s for s in self.sessions if s["user_id"] == user_id]

    async def list_trades(self, user_id):
        self._check()
        own = {s["id"] for s in self.sessions if s["user_id"] == user_id}
        return [t for t in self.trades if t["session_id"] in own]

    async def find_sessions_by_name(self, user_id, name):
        self._check()
        return [
            s for s in await self.list_sessions(user_id) if name.lower() in s["name"].lower()
        ]


@pytest.fixture
def mock_http():
    """RESPX router intercepting every httpx request."""
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest.fixture
def mock_store_api():
    """RESPX router scoped to the test data store REST endpoint."""
    with respx.mock(base_url=f"{STORE_URL}/rest/v1", assert_all_called=False) as router:
        yield router


@pytest.fixture
async def store_client(mock_store_api):
    async with TradingStoreClient(base_url=STORE_URL, api_key=API_KEY) as c:
        yield c


@pytest.fixture
async def gateway(mock_http):
    async with MarketDataGateway(alpha_vantage_key="test-key", tavily_key="tvly-test") as g:
        yield g


@pytest.fixture
def memory():
    return ConversationMemory()


@pytest.fixture
def sessions():
    return [
        {"id": "s-1", "user_id": USER_ID, "name": "BTC 5 Minute", "initial_capital": 1000, "current_capital": 1150},
        {"id": "s-2", "user_id": USER_ID, "name": "EURUSD Swing", "initial_capital": 5000, "current_capital": 4800},
        {"id": "s-3", "user_id": "someone-else", "name": "BTC Scalps", "initial_capital": 100, "current_capital": 90},
    ]


@pytest.fixture
def trades():
    return [
        {
            "id": "t-1",
            "session_id": "s-1",
            "margin": 100,
            "roi": 50,
            "entry_side": "Long",
            "profit_loss": 50,
            "comments": "clean breakout",
            "trading_sessions": {"name": "BTC 5 Minute"},
        },
        {
            "id": "t-2",
            "session_id": "s-2",
            "margin": 200,
            "roi": -10,
            "entry_side": "Short",
            "profit_loss": -20,
            "trading_sessions": {"name": "EURUSD Swing"},
        },
    ]


@pytest.fixture
def fake_store(sessions, trades):
    return FakeStore(sessions=sessions, trades=trades)


@pytest.fixture
def fake_completion():
    return FakeCompletion()

