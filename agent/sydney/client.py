import logging

import httpx

logger = logging.getLogger("sydney.client")


class TradingStoreError(Exception):
    """Raised when a trading data store call fails for any reason."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class TradingStoreClient:
    """Async client for the trading sessions/trades tables over PostgREST.

    Reuses a single httpx.AsyncClient for connection pooling.
    Call close() when done, or use as an async context manager.
    """

    def __init__(self, base_url: str, api_key: str, timeout: float = 15):
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=f"{self.base_url}/rest/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
            timeout=timeout,
        )

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Make an HTTP request with unified error handling."""
        try:
            resp = await self._http.request(method, path, **kwargs)
            resp.raise_for_status()
            return resp
        except httpx.TimeoutException:
            logger.error("Timeout: %s %s", method, path)
            raise TradingStoreError(f"Request timed out: {method} {path}")
        except httpx.ConnectError as e:
            logger.error("Connection error: %s %s — %s", method, path, e)
            raise TradingStoreError(f"Cannot connect to trading store: {e}")
        except httpx.HTTPStatusError as e:
            logger.warning(
                "HTTP %d: %s %s", e.response.status_code, method, path
            )
            raise TradingStoreError(
                f"HTTP {e.response.status_code}: {e.response.text}",
                status_code=e.response.status_code,
            )

    async def close(self):
        await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def _select(self, table: str, params: dict) -> list[dict]:
        resp = await self._request("GET", f"/{table}", params=params)
        data = resp.json()
        return data if isinstance(data, list) else []

    async def list_sessions(self, user_id: str) -> list[dict]:
        """All of a user's trading sessions, newest first."""
        return await self._select(
            "trading_sessions",
            {"select": "*", "user_id": f"eq.{user_id}", "order": "created_at.desc"},
        )

    async def list_trades(self, user_id: str) -> list[dict]:
        """All of a user's trades with their session name, newest first."""
        return await self._select(
            "trades",
            {
                "select": "*,trading_sessions!inner(name)",
                "trading_sessions.user_id": f"eq.{user_id}",
                "order": "created_at.desc",
            },
        )

    async def find_sessions_by_name(self, user_id: str, name: str) -> list[dict]:
        """Sessions whose name contains *name*, case-insensitively."""
        # PostgREST treats * as the ilike wildcard; strip ones the user typed
        needle = name.replace("*", "").replace(",", " ").strip()
        if not needle:
            return []
        return await self._select(
            "trading_sessions",
            {
                "select": "*",
                "user_id": f"eq.{user_id}",
                "name": f"ilike.*{needle}*",
                "order": "created_at.desc",
            },
        )
