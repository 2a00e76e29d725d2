"""Tests for MessageRouter: joke, session switch, live data and chat routes."""

import random

import httpx
import pytest

from sydney.completion import CompletionError
from sydney.jokes import TRADING_JOKES, format_joke
from sydney.market_data import ALPHA_VANTAGE_BASE_URL, COINGECKO_BASE_URL
from sydney.router import (
    _FOLLOW_UPS,
    APOLOGY_MESSAGE,
    MessageRouter,
    extract_session_name,
    is_joke_request,
    is_session_switch_request,
    joke_category,
    joke_difficulty,
)

USER_ID = "user-123"
JOKES = {j.id: j for j in TRADING_JOKES}

BTC_PAYLOAD = {"bitcoin": {"usd": 43250.5, "usd_24h_change": 2.5, "last_updated_at": 1704456000}}


class FixedRandom:
    """Stand-in for random.Random: fixed random() value, always picks the first item."""

    def __init__(self, value: float):
        self.value = value

    def random(self) -> float:
        return self.value

    def choice(self, seq):
        return seq[0]


class ExplodingGateway:
    async def enrich(self, message):
        raise RuntimeError("provider returned garbage")


@pytest.fixture
def make_router(memory, gateway, fake_completion, fake_store):
    def _make(rng=None, store=fake_store):
        return MessageRouter(
            memory=memory,
            gateway=gateway,
            completion=fake_completion,
            store=store,
            rng=rng or random.Random(7),
        )

    return _make


class TestIntentDetection:
    @pytest.mark.parametrize(
        "text",
        ["Tell me a joke", "say something funny", "another one!", "haha", "lol", "make me laugh"],
    )
    def test_joke_requests(self, text):
        assert is_joke_request(text)

    @pytest.mark.parametrize("text", ["What's Bitcoin price today?", "load the BTC session", "hello"])
    def test_not_joke_requests(self, text):
        assert not is_joke_request(text)

    @pytest.mark.parametrize(
        "text, category",
        [
            ("a crypto joke please", "crypto"),
            ("bitcoin joke", "crypto"),
            ("joke about the bear market", "market"),
            ("tell me a joke", "trading"),
        ],
    )
    def test_joke_category(self, text, category):
        assert joke_category(text) == category

    @pytest.mark.parametrize(
        "text, difficulty",
        [
            ("tell me a hard joke", "advanced"),
            ("something nerdy and funny", "advanced"),
            ("an easy joke please", "easy"),
            ("tell me a joke", None),
        ],
    )
    def test_joke_difficulty(self, text, difficulty):
        assert joke_difficulty(text) == difficulty

    @pytest.mark.parametrize(
        "text, name",
        [
            ("Load the BTC session", "BTC"),
            ("please open my EURUSD Swing session", "EURUSD Swing"),
            ("change to the BTC 5 Minute session", "BTC 5 Minute"),
            ("switch to scalping", None),
        ],
    )
    def test_extract_session_name(self, text, name):
        assert is_session_switch_request(text)
        assert extract_session_name(text) == name


class TestJokeRoute:
    async def test_first_joke_without_follow_up(self, make_router, memory, fake_completion):
        router = make_router(rng=FixedRandom(0.99))
        reply = await router.handle_message(USER_ID, "tell me a joke")

        assert reply.route == "joke"
        assert reply.content == format_joke(JOKES["joke_1"])
        assert memory.used_jokes(USER_ID) == ["joke_1"]
        assert [m.role for m in memory.messages(USER_ID)] == ["user", "assistant"]
        assert fake_completion.calls == []

    async def test_follow_up_question_appended(self, make_router):
        router = make_router(rng=FixedRandom(0.0))
        reply = await router.handle_message(USER_ID, "tell me a joke")
        assert reply.content.endswith("\n\n" + _FOLLOW_UPS[0])

    async def test_second_joke_gets_transition_and_is_new(self, make_router, memory):
        router = make_router(rng=FixedRandom(0.99))
        await router.handle_message(USER_ID, "tell me a joke")
        reply = await router.handle_message(USER_ID, "another one")

        assert reply.content.startswith("You're in a good mood! 😄 Here's another one:\n\n")
        assert JOKES["joke_1"].setup not in reply.content
        assert memory.used_jokes(USER_ID) == ["joke_1", "joke_3"]

    async def test_category_from_keywords(self, make_router, memory):
        router = make_router(rng=FixedRandom(0.99))
        reply = await router.handle_message(USER_ID, "got a crypto joke?")
        assert reply.content == format_joke(JOKES["joke_4"])

    async def test_difficulty_request_picks_matching_joke(self, make_router, memory):
        advanced = [j for j in TRADING_JOKES if j.difficulty == "advanced"]
        router = make_router(rng=FixedRandom(0.99))

        first = await router.handle_message(USER_ID, "tell me a hard joke")
        assert first.content == format_joke(advanced[0])

        second = await router.handle_message(USER_ID, "another hard joke")
        assert advanced[1].setup in second.content

    async def test_exhausted_difficulty_falls_back_to_category(self, make_router, memory):
        advanced = [j.id for j in TRADING_JOKES if j.difficulty == "advanced"]
        for joke_id in advanced:
            memory.mark_joke_used(USER_ID, joke_id)
        router = make_router(rng=FixedRandom(0.99))

        reply = await router.handle_message(USER_ID, "tell me a hard joke")
        assert reply.route == "joke"
        assert memory.used_jokes(USER_ID)[-1] not in advanced

    async def test_never_runs_out_of_jokes(self, make_router, memory):
        router = make_router()
        for _ in range(40):
            reply = await router.handle_message(USER_ID, "joke")
            assert reply.route == "joke"
        assert len(memory.used_jokes(USER_ID)) == 15

    def test_follow_up_rate_is_about_forty_percent(self, make_router):
        router = make_router(rng=random.Random(123))
        n = 500
        follow_ups = sum(
            any(f in router.handle_joke(USER_ID, "joke") for f in _FOLLOW_UPS) for _ in range(n)
        )
        assert 0.3 * n < follow_ups < 0.5 * n


class TestSessionSwitchRoute:
    async def test_partial_name_match(self, make_router, memory):
        router = make_router()
        reply = await router.handle_message(USER_ID, "Load the BTC session")

        assert reply.route == "session_switch"
        assert reply.switched_session_id == "s-1"
        assert "BTC 5 Minute" in reply.content
        assert reply.content.startswith("✅")
        assert memory.messages(USER_ID)[-1].content == reply.content

    async def test_other_users_sessions_not_matched(self, make_router):
        router = make_router()
        reply = await router.handle_message(USER_ID, "open the scalps session")
        assert reply.switched_session_id is None
        assert "couldn't find" in reply.content

    async def test_missing_name_asks_for_one(self, make_router):
        router = make_router()
        reply = await router.handle_message(USER_ID, "switch to dark mode")
        assert reply.route == "session_switch"
        assert reply.switched_session_id is None
        assert "Which session" in reply.content

    async def test_no_store_means_not_found(self, make_router):
        router = make_router(store=None)
        reply = await router.handle_message(USER_ID, "Load the BTC session")
        assert "couldn't find" in reply.content

    async def test_store_failure_apologises(self, make_router, fake_store, memory):
        fake_store.fail = True
        router = make_router()
        reply = await router.handle_message(USER_ID, "Load the BTC session")
        assert reply.route == "error"
        assert reply.content == APOLOGY_MESSAGE
        assert [m.role for m in memory.messages(USER_ID)] == ["user"]


class TestChatRoute:
    async def test_plain_chat_uses_memory_and_trading_summary(self, make_router, fake_completion, memory):
        router = make_router()
        memory.append(USER_ID, "user", "hi")
        memory.append(USER_ID, "assistant", "Hey there!")

        reply = await router.handle_message(USER_ID, "how are you doing")

        assert reply.route == "chat"
        assert reply.content == "Sounds good! 📈"
        assert reply.has_live_data is False
        assert reply.run_id

        system_prompt, user_prompt = fake_completion.calls[0]
        assert user_prompt == "how are you doing"
        assert "user: hi\nassistant: Hey there!\nuser: how are you doing" in system_prompt
        assert "Total Trades: 2" in system_prompt
        assert "Win Rate: 50.0%" in system_prompt
        assert memory.messages(USER_ID)[-1].content == "Sounds good! 📈"

    async def test_live_data_is_spliced_into_prompt(self, make_router, fake_completion, mock_http):
        mock_http.get(f"{COINGECKO_BASE_URL}/simple/price").mock(
            return_value=httpx.Response(200, json=BTC_PAYLOAD)
        )
        router = make_router()
        reply = await router.handle_message(USER_ID, "What's Bitcoin price today?")

        assert reply.has_live_data is True
        system_prompt, user_prompt = fake_completion.calls[0]
        assert "LIVE DATA" in user_prompt
        assert "Bitcoin (BTC)" in user_prompt
        assert 'Original user message: "What\'s Bitcoin price today?"' in system_prompt

    async def test_unreachable_provider_sends_original_message(self, make_router, fake_completion, mock_http):
        mock_http.get(f"{COINGECKO_BASE_URL}/simple/price").mock(
            side_effect=httpx.ConnectError("unreachable")
        )
        router = make_router()
        reply = await router.handle_message(USER_ID, "What's Bitcoin price today?")

        assert reply.route == "chat"
        assert reply.has_live_data is False
        assert fake_completion.calls[0][1] == "What's Bitcoin price today?"

    async def test_gateway_failure_falls_back_to_plain_chat(self, make_router, fake_completion, mock_http):
        mock_http.get(ALPHA_VANTAGE_BASE_URL).mock(
            return_value=httpx.Response(200, json={"Realtime Currency Exchange Rate": "n/a"})
        )
        router = make_router()
        reply = await router.handle_message(USER_ID, "What's EURJPY doing?")

        assert reply.route == "chat"
        assert reply.has_live_data is False
        assert fake_completion.calls[0][1] == "What's EURJPY doing?"

    async def test_raising_gateway_still_answers(self, memory, fake_completion, fake_store):
        router = MessageRouter(
            memory=memory,
            gateway=ExplodingGateway(),
            store=fake_store,
            completion=fake_completion,
        )
        reply = await router.handle_message(USER_ID, "What's Bitcoin price today?")

        assert reply.route == "chat"
        assert reply.has_live_data is False
        assert fake_completion.calls[0][1] == "What's Bitcoin price today?"

    async def test_completion_failure_is_not_remembered(self, make_router, fake_completion, memory):
        fake_completion.error = CompletionError("backend down")
        router = make_router()
        reply = await router.handle_message(USER_ID, "how are you doing")

        assert reply.route == "error"
        assert reply.content == APOLOGY_MESSAGE
        assert "backend down" in reply.metrics["error"]
        assert [m.role for m in memory.messages(USER_ID)] == ["user"]

        fake_completion.error = None
        await router.handle_message(USER_ID, "still there?")
        system_prompt, _ = fake_completion.calls[-1]
        assert APOLOGY_MESSAGE not in system_prompt

    async def test_store_failure_apologises(self, make_router, fake_store, fake_completion):
        fake_store.fail = True
        router = make_router()
        reply = await router.handle_message(USER_ID, "how are you doing")
        assert reply.content == APOLOGY_MESSAGE
        assert fake_completion.calls == []

    async def test_runs_without_a_store(self, make_router, fake_completion):
        router = make_router(store=None)
        reply = await router.handle_message(USER_ID, "how are you doing")
        assert reply.route == "chat"
        assert "Total Trades: 0" in fake_completion.calls[0][0]
