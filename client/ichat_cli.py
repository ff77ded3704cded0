#!/usr/bin/env python3

from __future__ import annotations
import asyncio
from typing import List, Optional

import typer
from aioconsole import ainput
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from shared.config import ClientConfig, load_config
from shared.errors import ChatError, ConfigError
from shared.log import get_logger, set_level
from shared.models import Message, SystemMessage
from .channel import RealtimeChannel
from .gateway import TokenGateway
from .session import SessionStateMachine, View

app = typer.Typer(help="iChat terminal client")
console = Console()
logger = get_logger(__name__)

EMOJIS: List[str] = ["😊", "😂", "😍", "👍", "🎉", "🔥", "😢", "🙏", "👋", "❤️"]


class FeedPrinter:
    """
    Prints the feed incrementally. A snapshot replace (or a cleared feed)
    shows up as a feed whose head no longer matches what was printed, in
    which case the whole feed is printed again.
    """

    def __init__(self) -> None:
        self._printed: List[Message] = []

    def __call__(self, session: SessionStateMachine) -> None:
        if session.view is not View.CHAT:
            self._printed = []
            return
        messages = session.messages
        head = list(messages[:len(self._printed)])
        if head != self._printed:
            if messages:
                console.rule(f"Room {session.room_token}")
            self._printed = []
        for message in messages[len(self._printed):]:
            print_message(message)
        self._printed = list(messages)


def print_message(message: Message) -> None:
    if isinstance(message, SystemMessage):
        console.print(f"[dim italic]{escape(message.text)}[/]")
    else:
        console.print(f"[bold cyan]{escape(message.user_name)}[/]: {escape(message.text)}", highlight=False)


async def show_notice(error: ChatError) -> None:
    console.print(Panel(error.user_message or str(error), title="Notice", style="bold red"))


def _print_users(session: SessionStateMachine) -> None:
    table = Table(title="Connected Users")
    table.add_column("Name")
    for name in session.connected_users:
        table.add_row(name)
    console.print(table)


def _print_emojis() -> None:
    table = Table(title="Emoji")
    table.add_column("#")
    table.add_column("Emoji")
    for i, emoji in enumerate(EMOJIS, start=1):
        table.add_row(str(i), emoji)
    console.print(table)


async def welcome_screen(session: SessionStateMachine) -> None:
    console.print(Panel("Connect instantly with token-based rooms", title="iChat"))
    while session.view is View.WELCOME:
        name = await ainput("Enter your name: ")
        if not session.submit_name(name):
            console.print("[red]Please enter a name[/]")


async def menu_screen(session: SessionStateMachine) -> bool:
    """Returns False when the user asked to quit."""
    console.print(f"\n[bold]Hello, {escape(session.user_name)}[/]")
    console.print("  1) Start New Chat\n  2) Join Chat\n  /quit")
    choice = (await ainput(": ")).strip()
    if choice in {"/quit", "/exit"}:
        return False
    if choice == "1":
        if not await session.start_new_chat():
            logger.debug("Start New Chat did not reach the chat view")
    elif choice == "2":
        await token_modal(session)
    else:
        console.print("Pick 1 or 2")
    return True


async def token_modal(session: SessionStateMachine) -> None:
    session.open_token_modal()
    while session.token_modal_open:
        raw = (await ainput("Enter 6-character token (/cancel): ")).strip()
        if raw == "/cancel":
            session.cancel_token_modal()
            break
        if await session.submit_token(raw):
            break
        console.print(f"[red]{session.token_error}[/]")


async def chat_screen(session: SessionStateMachine, printer: FeedPrinter) -> None:
    console.print(f"[bold green]Room: {escape(session.room_token or '')}[/]  (/back, /users, /emoji \\[n])")
    printer(session)
    while session.view is View.CHAT:
        line = await ainput("")
        if session.view is not View.CHAT:
            # Expired while we were waiting for input
            break
        stripped = line.strip()
        if stripped == "/back":
            await session.back_to_menu()
            break
        if stripped == "/users":
            _print_users(session)
            continue
        if stripped == "/emoji":
            session.toggle_emoji_picker()
            _print_emojis()
            continue
        if stripped.startswith("/emoji "):
            index = stripped[len("/emoji "):].strip()
            if index.isdigit() and 1 <= int(index) <= len(EMOJIS):
                session.append_emoji(EMOJIS[int(index) - 1])
                console.print(f"[dim]draft: {escape(session.draft)}[/]")
            else:
                console.print(f"Pick 1..{len(EMOJIS)}")
            continue
        if not await session.send_message(session.draft + line):
            console.print("[dim]Nothing sent (empty or over 500 characters)[/]")
            session.set_draft("")


async def run_client(config: ClientConfig) -> None:
    gateway = TokenGateway(config.backend_url, timeout=config.http_timeout)

    def make_channel() -> RealtimeChannel:
        return RealtimeChannel(config.backend_url, socketio_path=config.socketio_path)

    printer = FeedPrinter()
    async with SessionStateMachine(gateway, make_channel, notifier=show_notice) as session:
        session.subscribe(printer)
        await welcome_screen(session)
        while True:
            if session.view is View.CHAT:
                await chat_screen(session, printer)
                continue
            if not await menu_screen(session):
                break


@app.command()
def run(
    backend: Optional[str] = typer.Option(None, help="Backend base URL (default: $ICHAT_BACKEND_URL)"),
    log_level: Optional[str] = typer.Option(None, help="DEBUG, INFO, WARNING or ERROR"),
):
    """Start the interactive chat client."""
    try:
        config = load_config().with_backend(backend)
    except ConfigError as e:
        console.print(f"[red]Config error[/]: {e}")
        raise typer.Exit(code=2)
    level = log_level or config.log_level
    if level:
        set_level(level)
    console.print(f"[dim]Backend {config.backend_url}[/]")
    try:
        asyncio.run(run_client(config))
    except (KeyboardInterrupt, EOFError):
        console.print("\nBye")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
