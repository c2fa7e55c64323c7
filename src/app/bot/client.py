"""Async HTTP client for the CRM bot API.

Provides CrmBotApiClient with retry logic (tenacity, 3 attempts,
exponential backoff 1-10s) on transient failures: connection errors,
timeouts and 5xx answers. A 4xx answer is final and surfaces as
BotApiError carrying the server's message.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

logger = structlog.get_logger(__name__)


class BotApiError(Exception):
    """The bot API refused the request (4xx)."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, (httpx.ConnectError, httpx.TimeoutException)):
        return True
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code >= 500


_bot_api_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception(_is_transient),
    reraise=True,
)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or response.reason_phrase)
    return response.reason_phrase


class CrmBotApiClient:
    """Async client for the /api/bot endpoints.

    Args:
        base_url: Bot API root, e.g. ``http://localhost:8000/api/bot``.
        bot_key: Shared secret sent as ``X-Bot-Key``.
        platform: Chat platform name stored with account links.
        transport: Optional httpx transport (tests pass a MockTransport).
    """

    TIMEOUT = 10.0

    def __init__(
        self,
        base_url: str,
        bot_key: str,
        platform: str = "telegram",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = {
            "X-Bot-Key": bot_key,
            "Content-Type": "application/json",
        }
        self.platform = platform
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self.TIMEOUT,
            transport=self._transport,
        )

    @_bot_api_retry
    async def _request(self, method: str, path: str, json: dict | None = None) -> dict:
        async with self._client() as client:
            response = await client.request(method, path, json=json)
        if 400 <= response.status_code < 500:
            message = _error_message(response)
            logger.info(
                "bot_api.request_rejected",
                path=path,
                status_code=response.status_code,
            )
            raise BotApiError(response.status_code, message)
        response.raise_for_status()
        return response.json()

    # ── Accounts ────────────────────────────────────────────────────────────

    async def link_account(
        self,
        platform_user_id: str,
        email: str,
        password: str,
        platform_username: str | None = None,
    ) -> dict:
        return await self._request("POST", "/link-account", {
            "platform": self.platform,
            "platformUserId": platform_user_id,
            "platformUsername": platform_username,
            "email": email,
            "password": password,
        })

    async def unlink_account(self, platform_user_id: str) -> dict:
        return await self._request("POST", "/unlink-account", {
            "platform": self.platform,
            "platformUserId": platform_user_id,
        })

    async def user_info(self, platform_user_id: str) -> dict | None:
        """Linked user details, or None when the account is not linked."""
        try:
            return await self._request("GET", f"/user-info/{self.platform}/{platform_user_id}")
        except BotApiError as exc:
            if exc.status_code == 404:
                return None
            raise

    # ── Leads ───────────────────────────────────────────────────────────────

    async def create_lead(self, platform_user_id: str, lead: dict[str, Any]) -> dict:
        """Create a lead for the linked user; ``lead`` uses camelCase keys."""
        payload = {"platform": self.platform, "platformUserId": platform_user_id, **lead}
        data = await self._request("POST", "/leads", payload)
        logger.info("bot_api.lead_created", lead_id=data.get("lead", {}).get("id"))
        return data

    async def convert_lead(self, platform_user_id: str, lead_id: str) -> dict:
        return await self._request("POST", f"/leads/{lead_id}/convert", {
            "platform": self.platform,
            "platformUserId": platform_user_id,
        })

    async def stats(self, platform_user_id: str) -> dict:
        return await self._request("GET", f"/stats/{self.platform}/{platform_user_id}")

    async def health(self) -> dict:
        return await self._request("GET", "/health")
