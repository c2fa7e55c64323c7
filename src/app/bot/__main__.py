"""Run the lead-intake bot against a CRM bot API.

``python -m src.app.bot`` (or the ``maple-crm-bot`` script) wires the API
client, session store and conversation handler from settings and chats on
the console: every line typed is one message from a single local chat user.
A chat platform integration drives the same handler with its own messages.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Callable

import httpx
import structlog

from src.app.api.middleware.logging import configure_structlog
from src.app.bot.client import CrmBotApiClient
from src.app.bot.flow import BotReply, ConversationHandler
from src.app.bot.sessions import BotSessionStore
from src.app.config import Settings, get_settings

logger = structlog.get_logger(__name__)


def build_handler(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> ConversationHandler:
    api = CrmBotApiClient(
        settings.BOT_API_BASE_URL,
        settings.BOT_SECRET_KEY,
        platform=settings.BOT_PLATFORM,
        transport=transport,
    )
    sessions = BotSessionStore(
        ttl_seconds=settings.BOT_SESSION_TTL_SECONDS,
        max_sessions=settings.BOT_SESSION_MAX,
    )
    return ConversationHandler(api, sessions)


def render_reply(reply: BotReply) -> str:
    """Reply text with its choices as a numbered list."""
    lines = [reply.text]
    lines.extend(f"  {number}. {choice}" for number, choice in enumerate(reply.choices, start=1))
    return "\n".join(lines)


class ConsoleChat:
    """Line-based adapter: reads messages, prints replies.

    A bare number answers with the matching choice of the last reply.
    """

    def __init__(
        self,
        handler: ConversationHandler,
        platform_user_id: str = "console",
        read_line: Callable[[str], str] = input,
        write: Callable[[str], None] = print,
    ) -> None:
        self.handler = handler
        self.platform_user_id = platform_user_id
        self._read_line = read_line
        self._write = write
        self._choices: list[str] = []

    def _resolve(self, text: str) -> str:
        if text.isdigit() and 1 <= int(text) <= len(self._choices):
            return self._choices[int(text) - 1]
        return text

    async def send(self, text: str) -> None:
        replies = await self.handler.handle_message(self.platform_user_id, self._resolve(text))
        self._choices = replies[-1].choices if replies else []
        for reply in replies:
            self._write(render_reply(reply))

    async def run(self) -> None:
        await self.send("/start")
        while True:
            try:
                line = await asyncio.to_thread(self._read_line, "> ")
            except EOFError:
                break
            if line.strip():
                self.handler.sessions.purge_expired()
                await self.send(line.strip())


def main() -> int:
    settings = get_settings()
    configure_structlog()
    if not settings.BOT_SECRET_KEY:
        logger.error("bot.not_configured", missing="BOT_SECRET_KEY")
        return 1
    logger.info("bot.starting", api=settings.BOT_API_BASE_URL, platform=settings.BOT_PLATFORM)
    try:
        asyncio.run(ConsoleChat(build_handler(settings)).run())
    except KeyboardInterrupt:
        pass
    logger.info("bot.stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
