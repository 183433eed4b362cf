from typing import Any, Sequence

import aiohttp
import orjson
from loguru import logger

from sqlitebruv.backends.base import Backend
from sqlitebruv.errors import BackendError
from sqlitebruv.types import FetchMode, Param, RunResult, Row

D1_BASE_URL = "https://api.cloudflare.com/client/v4"


class HttpBackend(Backend):
    """Shared session handling for the remote SQL services."""

    def __init__(self, url: str, token: str, timeout: float = 30):
        self.url = url
        self._token = token
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    def get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={
                    "Authorization": f"Bearer {self._token}",
                    "Content-Type": "application/json",
                },
            )
        return self._session

    async def post(self, body: dict[str, Any]) -> tuple[int, Any]:
        session = self.get_session()
        try:
            async with session.post(self.url, data=orjson.dumps(body)) as resp:
                raw = await resp.read()
                status = resp.status
        except aiohttp.ClientError as e:
            raise BackendError(f"{self.name} request failed: {e}") from e

        try:
            return status, orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise BackendError(
                f"{self.name} returned a non-JSON response (HTTP {status})", status=status
            ) from e

    async def close(self):
        if self._session is not None:
            await self._session.close()
            self._session = None


class D1Backend(HttpBackend):
    name = "d1"

    def __init__(
        self,
        account_id: str,
        database_id: str,
        api_key: str,
        base_url: str = D1_BASE_URL,
        timeout: float = 30,
    ):
        url = f"{base_url.rstrip('/')}/accounts/{account_id}/d1/database/{database_id}/query"
        super().__init__(url, api_key, timeout=timeout)

    async def execute(
        self, sql: str, params: Sequence[Param] = (), mode: FetchMode = "all"
    ) -> Any:
        status, data = await self.post({"sql": sql, "params": list(params)})

        if not isinstance(data, dict):
            raise BackendError(f"Unexpected D1 response (HTTP {status})", status=status)

        result = (data.get("result") or [{}])[0]
        if not (data.get("success") and result.get("success")):
            errors = data.get("errors")
            logger.warning(f"D1 query failed (HTTP {status}): {errors}")
            raise BackendError(
                orjson.dumps(errors).decode(), status=status, details=errors
            )

        rows: list[Row] = result.get("results") or []
        if mode == "one":
            return rows[0] if rows else None
        if mode == "all":
            return rows
        return RunResult(changes=(result.get("meta") or {}).get("changes"))


class TursoBackend(HttpBackend):
    name = "turso"

    def __init__(self, url: str, auth_token: str, timeout: float = 30):
        super().__init__(url, auth_token, timeout=timeout)

    async def execute(
        self, sql: str, params: Sequence[Param] = (), mode: FetchMode = "all"
    ) -> Any:
        status, data = await self.post(
            {"statements": [{"q": sql, "params": list(params)}]}
        )

        if status >= 400 or not isinstance(data, list) or not data:
            message = data.get("error") if isinstance(data, dict) else data
            raise BackendError(
                f"Turso request failed (HTTP {status}): {message}",
                status=status,
                details=data,
            )

        entry = data[0]
        if entry.get("error"):
            error = entry["error"]
            message = error.get("message") if isinstance(error, dict) else error
            raise BackendError(str(message), status=status, details=error)

        results = entry.get("results") or {}
        columns: list[str] = results.get("columns") or []
        rows: list[Row] = [
            dict(zip(columns, values)) for values in results.get("rows") or []
        ]
        if mode == "one":
            return rows[0] if rows else None
        if mode == "all":
            return rows
        return RunResult(changes=results.get("rows_affected"))
