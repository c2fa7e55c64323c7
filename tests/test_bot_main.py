"""Tests for the bot runner: wiring from settings and the console chat.

The console chat talks to the real bot API routes through httpx's
ASGITransport, so a scripted conversation links an account and files a
lead end to end.
"""

from __future__ import annotations

import pytest
from httpx import ASGITransport

from src.app.bot import __main__ as bot_main
from src.app.bot.__main__ import ConsoleChat, build_handler, render_reply
from src.app.bot.flow import BotReply
from src.app.crm.schemas import EntityKind
from tests.fakes import make_app, make_settings, seed_user


def _script(*lines: str):
    pending = list(lines)

    def read_line(prompt: str) -> str:
        if not pending:
            raise EOFError
        return pending.pop(0)

    return read_line


def test_build_handler_uses_settings():
    settings = make_settings(
        BOT_PLATFORM="slack", BOT_SESSION_TTL_SECONDS=60, BOT_SESSION_MAX=5
    )

    handler = build_handler(settings)

    assert handler.platform == "slack"
    assert handler.sessions.ttl_seconds == 60
    assert handler.sessions.max_sessions == 5


def test_render_reply_numbers_choices():
    reply = BotReply("Is this an inbound or outbound lead?", ["Inbound", "Outbound"])
    assert render_reply(reply) == "Is this an inbound or outbound lead?\n  1. Inbound\n  2. Outbound"
    assert render_reply(BotReply("Done")) == "Done"


@pytest.mark.asyncio
async def test_console_chat_links_and_files_a_lead(repo):
    user = await seed_user(repo)
    settings = make_settings(BOT_API_BASE_URL="http://test/api/bot")
    handler = build_handler(settings, transport=ASGITransport(app=make_app(repo, settings)))
    output: list[str] = []
    chat = ConsoleChat(
        handler,
        read_line=_script(
            "/link", "nitin.gupta", "s3cret",
            "/newlead", "Acme Foods", "1", "2", "Ravi Mehta", "ravi@acme.example",
            "+91 98100 00000", "1", "3",
        ),
        write=output.append,
    )

    await chat.run()

    assert any(text.startswith("Account linked successfully!") for text in output)
    (lead,) = repo.rows[EntityKind.LEAD].values()
    assert lead["company_name"] == "Acme Foods"
    assert lead["sector"] == "Technology"
    assert lead["transaction_type"] == "Fundraising"
    assert lead["inbound_source"] == "LGT"
    assert lead["owner_id"] == user.id
    assert len(handler.sessions) == 0


@pytest.mark.asyncio
async def test_console_chat_ignores_blank_lines_and_out_of_range_numbers(repo):
    handler = build_handler(make_settings())
    output: list[str] = []
    chat = ConsoleChat(handler, read_line=_script("", "/link", "7"), write=output.append)

    await chat.run()

    assert output[-1] == "Now enter your CRM password:"
    assert handler.sessions.get(handler.platform, "console").data["email"] == "7"


def test_main_requires_bot_secret(monkeypatch):
    monkeypatch.setattr(bot_main, "get_settings", lambda: make_settings(BOT_SECRET_KEY=""))
    assert bot_main.main() == 1
