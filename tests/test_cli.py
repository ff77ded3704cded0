import io
from types import SimpleNamespace

import pytest
from rich.console import Console
from typer.testing import CliRunner

from client import ichat_cli
from client.session import View
from shared.errors import SessionExpiredError
from shared.models import SystemKind, SystemMessage, UserMessage


@pytest.fixture
def output(monkeypatch):
    buffer = io.StringIO()
    monkeypatch.setattr(ichat_cli, "console", Console(file=buffer, width=120, color_system=None))
    return buffer


def chat_state(*messages):
    return SimpleNamespace(view=View.CHAT, room_token="AB12CD", messages=tuple(messages))


def test_feed_printer_prints_only_new_entries(output):
    printer = ichat_cli.FeedPrinter()
    first = UserMessage(id=1, user_name="Ann", text="hello", timestamp="t")
    second = SystemMessage(id="local-1", text="Bo is connected", timestamp="t", kind=SystemKind.CONNECTED)

    printer(chat_state(first))
    printer(chat_state(first, second))

    text = output.getvalue()
    assert text.count("hello") == 1
    assert text.count("Bo is connected") == 1


def test_feed_printer_reprints_after_snapshot_replace(output):
    printer = ichat_cli.FeedPrinter()
    old = UserMessage(id=1, user_name="Ann", text="old", timestamp="t")
    new = UserMessage(id=9, user_name="Bo", text="fresh", timestamp="t")

    printer(chat_state(old))
    printer(chat_state(new))

    text = output.getvalue()
    assert "fresh" in text
    assert "Room AB12CD" in text


def test_user_text_is_not_treated_as_markup(output):
    ichat_cli.print_message(UserMessage(id=1, user_name="Ann", text="[bold]x[/bold]", timestamp="t"))

    assert "[bold]x[/bold]" in output.getvalue()


def test_run_reports_bad_config(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text("- not\n- a mapping\n")
    monkeypatch.setenv("ICHAT_CONFIG", str(path))

    result = CliRunner().invoke(ichat_cli.app, [])

    assert result.exit_code == 2


@pytest.mark.asyncio
async def test_menu_greeting_shows_name_literally(output, monkeypatch):
    async def answer(prompt=""):
        return "/quit"

    monkeypatch.setattr(ichat_cli, "ainput", answer)
    session = SimpleNamespace(user_name="[red]Ann")

    assert await ichat_cli.menu_screen(session) is False
    assert "Hello, [red]Ann" in output.getvalue()


@pytest.mark.asyncio
async def test_expiry_notice_panel(output):
    await ichat_cli.show_notice(SessionExpiredError("AB12CD"))

    text = output.getvalue()
    assert "Chat session has expired due to inactivity" in text
    assert "press Enter" not in text
