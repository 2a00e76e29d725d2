import logging
import os
from datetime import datetime
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Header, HTTPException
from pydantic import BaseModel

from .client import TradingStoreClient
from .completion import DEFAULT_MODEL, CompletionBackend
from .greetings import daily_greeting
from .market_data import MarketDataGateway
from .memory import ChatHistoryStore, ConversationMemory
from .observability import configure_tracing
from .router import APOLOGY_MESSAGE, MessageRouter, RouterReply

load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("sydney")

app = FastAPI(title="Sydney", version="0.1.0")

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", DEFAULT_MODEL)
ALPHA_VANTAGE_API_KEY = os.getenv("ALPHA_VANTAGE_API_KEY", "demo")
TAVILY_API_KEY = os.getenv("TAVILY_API_KEY")
REDIS_URL = os.getenv("REDIS_URL")
MEMORY_IDLE_TTL = float(os.getenv("SYDNEY_MEMORY_IDLE_TTL", str(24 * 60 * 60)))

# Transcript persistence is optional; memory for prompts is always in-process
_redis_client = None
if REDIS_URL:
    try:
        import redis.asyncio as aioredis

        _redis_client = aioredis.from_url(REDIS_URL, decode_responses=False)
        logger.info("Redis transcript store: connected (%s)", REDIS_URL.split("@")[-1] if "@" in REDIS_URL else "local")
    except ImportError:
        logger.warning("redis package not installed — using in-memory fallback")
    except Exception as e:
        logger.warning("Redis connection failed — using in-memory fallback: %s", e)
else:
    logger.info("REDIS_URL not set — using in-memory transcript store")

store: TradingStoreClient | None = None
if SUPABASE_URL:
    store = TradingStoreClient(base_url=SUPABASE_URL, api_key=SUPABASE_SERVICE_ROLE_KEY)
else:
    logger.warning("SUPABASE_URL not set — chat runs without trading data")

memory = ConversationMemory(idle_ttl_seconds=MEMORY_IDLE_TTL)
chat_history_store = ChatHistoryStore(redis_client=_redis_client)
gateway = MarketDataGateway(alpha_vantage_key=ALPHA_VANTAGE_API_KEY, tavily_key=TAVILY_API_KEY)
router = MessageRouter(
    memory=memory,
    gateway=gateway,
    completion=CompletionBackend(model=OPENAI_MODEL),
    store=store,
)

tracing_active = configure_tracing()
logger.info("LangSmith tracing: %s", "enabled" if tracing_active else "disabled")


class ChatRequest(BaseModel):
    message: str
    session_id: Optional[str] = None


class ChatResponse(BaseModel):
    role: str = "assistant"
    content: str
    route: str
    has_live_data: bool = False
    switched_session_id: Optional[str] = None
    run_id: Optional[str] = None
    metrics: Optional[dict] = None


class FeedbackRequest(BaseModel):
    run_id: str
    score: float
    comment: Optional[str] = None


def _require_user(user_id: Optional[str]) -> str:
    user_id = (user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing user id")
    return user_id


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "tracing": tracing_active,
        "chat_history": "redis" if chat_history_store.is_persistent else "in-memory",
        "trading_store": store is not None,
    }


@app.post("/chat", response_model=ChatResponse)
async def chat(body: ChatRequest, x_user_id: Optional[str] = Header(None)):
    user_id = _require_user(x_user_id)

    try:
        reply = await router.handle_message(user_id, body.message, session_id=body.session_id)
    except Exception as e:
        logger.error("Chat turn failed user=%s: %s", user_id, e)
        reply = RouterReply(content=APOLOGY_MESSAGE, route="error")

    # The transcript shows everything, apologies included
    await chat_history_store.append_turn(user_id, body.message, reply.content, reply.route)

    return ChatResponse(
        content=reply.content,
        route=reply.route,
        has_live_data=reply.has_live_data,
        switched_session_id=reply.switched_session_id,
        run_id=reply.run_id,
        metrics=reply.metrics or None,
    )


@app.get("/chat/history")
async def get_chat_history(x_user_id: Optional[str] = Header(None)):
    """Return the displayed transcript for the current user."""
    user_id = _require_user(x_user_id)
    history = await chat_history_store.get_history(user_id)
    return {"history": history}


@app.delete("/chat/history")
async def clear_chat_history(x_user_id: Optional[str] = Header(None)):
    """Clear the transcript and the conversation memory for the current user."""
    user_id = _require_user(x_user_id)
    await chat_history_store.clear_history(user_id)
    memory.clear(user_id)
    return {"status": "ok"}


@app.get("/chat/stats")
async def chat_stats(x_user_id: Optional[str] = Header(None)):
    user_id = _require_user(x_user_id)
    stats = memory.stats(user_id)
    last: Optional[datetime] = stats["last_activity"]
    return {
        **stats,
        "last_activity": last.isoformat() if last else None,
        "mood": memory.infer_mood(user_id),
        "suggestions": memory.suggestions(user_id),
    }


@app.get("/greeting")
async def greeting(name: Optional[str] = None, x_user_id: Optional[str] = Header(None)):
    user_id = _require_user(x_user_id)
    return {"greeting": daily_greeting(user_id, user_name=name)}


@app.post("/feedback")
async def feedback(body: FeedbackRequest):
    """Submit user feedback (thumbs up/down) for a chat reply.

    Linked to the LangSmith trace via the run_id returned by /chat.
    """
    try:
        from langsmith import Client

        ls_client = Client()
        ls_client.create_feedback(
            run_id=body.run_id,
            key="user-score",
            score=body.score,
            comment=body.comment,
        )
        return {"status": "ok", "run_id": body.run_id}
    except ImportError:
        raise HTTPException(
            status_code=501,
            detail="langsmith package not installed",
        )
    except Exception as e:
        logger.error("Failed to submit feedback run_id=%s: %s", body.run_id, e)
        raise HTTPException(status_code=500, detail=str(e))
