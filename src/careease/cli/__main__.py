"""CLI entry point for the CareEase client."""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from typing_extensions import Annotated

from ..core.alarms import AlarmWatcher
from ..core.config import Settings, load_settings
from ..core.exceptions import ApiError, CareEaseError
from ..core.logging import setup_logging
from ..core.models import (
    AlarmCreate,
    Category,
    ChatCreate,
    ChatStatus,
    Priority,
    ReviewCreate,
    User,
    minutes_from_now,
)
from ..core.preferences import Theme
from ..core.reports import ReportFilters, build_report
from .terminal import ClientContext, parse_chat_input

app = typer.Typer(
    name="careease",
    help="CareEase care-assistance client"
)
alarms_app = typer.Typer(help="Manage reminders")
app.add_typer(alarms_app, name="alarms")

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to YAML config file (default: careease.yaml lookup)"),
]


@app.callback()
def main(
    ctx: typer.Context,
    config: ConfigOption = None,
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="Override the configured log level")] = None,
):
    """CareEase care-assistance client."""
    load_dotenv()
    try:
        settings = load_settings(config)
    except CareEaseError as e:
        typer.echo(f"Error loading configuration: {e}", err=True)
        raise typer.Exit(1)
    setup_logging(log_level or settings.log_level)
    ctx.obj = settings


def _run(ctx: typer.Context, command, *args):
    """Run an async command body with a fresh client context."""
    settings: Settings = ctx.obj

    async def runner():
        async with ClientContext.create(settings) as client:
            return await command(client, *args)

    try:
        return asyncio.run(runner())
    except KeyboardInterrupt:
        typer.echo("\nInterrupted")
    except CareEaseError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)


async def _require_user(client: ClientContext) -> User:
    user = await client.auth.restore()
    if user is None:
        typer.echo("Not logged in. Run `careease login` first.", err=True)
        raise typer.Exit(1)
    return user


#%% Account

@app.command()
def login(
    ctx: typer.Context,
    email: Annotated[str, typer.Option("--email", "-e", prompt=True, help="Account email")],
    password: Annotated[str, typer.Option("--password", prompt=True, hide_input=True, help="Account password")],
):
    """Sign in and store the session token."""

    async def body(client: ClientContext):
        try:
            await client.auth.login(email, password)
        except ApiError:
            # Already reported through the notifier
            raise typer.Exit(1)

    _run(ctx, body)


@app.command()
def logout(ctx: typer.Context):
    """Sign out and forget the stored token."""

    async def body(client: ClientContext):
        if not client.preferences.token:
            typer.echo("Not logged in.")
            return
        await client.auth.logout()

    _run(ctx, body)


@app.command()
def whoami(ctx: typer.Context):
    """Show the signed-in user."""

    async def body(client: ClientContext):
        user = await _require_user(client)
        typer.echo(f"{user.full_name} <{user.email}>")
        typer.echo(f"Role: {user.role}")
        if user.last_login:
            typer.echo(f"Last login: {user.last_login:%Y-%m-%d %H:%M}")

    _run(ctx, body)


#%% Chats

@app.command()
def chats(
    ctx: typer.Context,
    status: Annotated[Optional[ChatStatus], typer.Option("--status", "-s", help="Only chats with this status")] = None,
    page: Annotated[int, typer.Option("--page", "-p", min=1)] = 1,
    limit: Annotated[int, typer.Option("--limit", "-n", min=1)] = 10,
):
    """List your chats."""

    async def body(client: ClientContext):
        await _require_user(client)
        result = await client.chats.list_chats(page=page, limit=limit, status=status)
        if not result.chats:
            typer.echo("No chats yet.")
            return
        for chat in result.chats:
            last = f"{chat.last_activity:%Y-%m-%d %H:%M}" if chat.last_activity else "-"
            typer.echo(f"{chat.id}  [{chat.status.value}] {chat.title} ({len(chat.messages)} messages, {last})")
        pg = result.pagination
        typer.echo(f"Page {pg.current}/{pg.pages}, {pg.total} chats")

    _run(ctx, body)


@app.command("new-chat")
def new_chat(
    ctx: typer.Context,
    title: Annotated[str, typer.Option("--title", "-t", prompt=True)],
    issue: Annotated[str, typer.Option("--issue", "-i", prompt=True, help="Describe what you need help with")],
    category: Annotated[Category, typer.Option("--category")] = Category.HEALTH,
    priority: Annotated[Priority, typer.Option("--priority")] = Priority.MEDIUM,
):
    """Start a new chat."""

    async def body(client: ClientContext):
        await _require_user(client)
        chat = await client.chats.create_chat(
            ChatCreate(title=title, issue=issue, category=category, priority=priority)
        )
        client.notifier.success("Chat created")
        typer.echo(f"Chat ID: {chat.id}")
        typer.echo(f"Continue with: careease chat {chat.id}")

    _run(ctx, body)


@app.command()
def chat(
    ctx: typer.Context,
    chat_id: Annotated[str, typer.Argument(help="Chat to open")],
):
    """Open a chat interactively.

    Type a message and press enter to send it. `/switch <id>` opens another
    chat and `/quit` leaves.
    """

    async def body(client: ClientContext):
        await _require_user(client)
        view = client.transcript()
        await view.open_session(chat_id)
        view.start_polling(client.settings.poll_interval)
        typer.echo("Type a message. /switch <id> opens another chat, /quit leaves.")
        try:
            while True:
                try:
                    line = await asyncio.to_thread(input)
                except EOFError:
                    break
                kind, target = parse_chat_input(line)
                if kind == "quit":
                    break
                if kind == "switch":
                    if target is None:
                        typer.echo("Usage: /switch <chat id>", err=True)
                    else:
                        await view.open_session(target)
                    continue
                await view.submit(line)
        finally:
            await view.close()

    _run(ctx, body)


@app.command()
def review(
    ctx: typer.Context,
    chat_id: Annotated[Optional[str], typer.Argument(help="Chat to rate; omit to list chats awaiting a rating")] = None,
    rating: Annotated[int, typer.Option("--rating", "-r", min=1, max=5)] = 5,
    feedback: Annotated[str, typer.Option("--feedback", "-f")] = "",
):
    """Rate a resolved chat."""

    async def body(client: ClientContext):
        await _require_user(client)
        if chat_id is None:
            pending = await client.users.pending_ratings()
            if not pending:
                typer.echo("No chats awaiting a rating.")
            for c in pending:
                typer.echo(f"{c.id}  {c.title}")
            return
        await client.chats.add_review(chat_id, ReviewCreate(rating=rating, feedback=feedback))
        client.notifier.success("Thank you for your feedback!")

    _run(ctx, body)


#%% Alarms

@alarms_app.command("list")
def alarms_list(ctx: typer.Context):
    """List your alarms."""

    async def body(client: ClientContext):
        await _require_user(client)
        alarms = await client.users.list_alarms()
        if not alarms:
            typer.echo("No alarms set.")
        for alarm in sorted(alarms, key=lambda a: a.time):
            state = "done" if alarm.is_completed else ("on" if alarm.is_active else "off")
            line = f"{alarm.id}  [{state}] {alarm.time.astimezone():%Y-%m-%d %H:%M}  {alarm.name}"
            if alarm.description:
                line += f" - {alarm.description}"
            typer.echo(line)

    _run(ctx, body)


@alarms_app.command("add")
def alarms_add(
    ctx: typer.Context,
    name: Annotated[str, typer.Option("--name", "-n", prompt=True)],
    at: Annotated[Optional[datetime], typer.Option("--at", help="Local date and time")] = None,
    in_minutes: Annotated[Optional[float], typer.Option("--in", help="Minutes from now")] = None,
    description: Annotated[Optional[str], typer.Option("--description", "-d")] = None,
):
    """Create an alarm at a given time or a number of minutes from now."""
    if (at is None) == (in_minutes is None):
        typer.echo("Give exactly one of --at or --in", err=True)
        raise typer.Exit(1)
    when = at.astimezone() if at is not None else minutes_from_now(in_minutes)

    async def body(client: ClientContext):
        await _require_user(client)
        alarm = await client.users.create_alarm(AlarmCreate(name=name, time=when, description=description))
        client.notifier.success("Alarm set successfully!")
        typer.echo(f"Alarm ID: {alarm.id}")

    _run(ctx, body)


@alarms_app.command("toggle")
def alarms_toggle(ctx: typer.Context, alarm_id: Annotated[str, typer.Argument()]):
    """Switch an alarm on or off."""

    async def body(client: ClientContext):
        await _require_user(client)
        current = {a.id: a for a in await client.users.list_alarms()}
        if alarm_id not in current:
            typer.echo(f"No alarm with ID {alarm_id}", err=True)
            raise typer.Exit(1)
        alarm = await client.users.set_alarm_active(alarm_id, not current[alarm_id].is_active)
        client.notifier.success("Alarm updated")
        typer.echo(f"{alarm.name}: {'on' if alarm.is_active else 'off'}")

    _run(ctx, body)


@alarms_app.command("delete")
def alarms_delete(ctx: typer.Context, alarm_id: Annotated[str, typer.Argument()]):
    """Delete an alarm."""

    async def body(client: ClientContext):
        await _require_user(client)
        await client.users.delete_alarm(alarm_id)
        client.notifier.success("Alarm deleted")

    _run(ctx, body)


@alarms_app.command("watch")
def alarms_watch(
    ctx: typer.Context,
    dismiss: Annotated[bool, typer.Option("--dismiss", help="Switch alarms off once announced")] = False,
):
    """Watch alarms and announce them when they come due."""

    async def body(client: ClientContext):
        await _require_user(client)
        watcher = AlarmWatcher(
            client.users,
            client.notifier,
            check_interval=client.settings.alarm_check_interval,
            due_window=client.settings.alarm_due_window,
        )
        if dismiss:
            watcher.on_due = watcher.dismiss
        await watcher.start()
        typer.echo("Watching alarms, press Ctrl-C to stop.")
        try:
            while watcher.running:
                await asyncio.sleep(1)
        finally:
            await watcher.stop()

    _run(ctx, body)


#%% Reports and preferences

@app.command()
def report(
    ctx: typer.Context,
    search: Annotated[str, typer.Option("--search", "-q")] = "",
    category: Annotated[Optional[Category], typer.Option("--category")] = None,
    priority: Annotated[Optional[Priority], typer.Option("--priority")] = None,
    status: Annotated[Optional[ChatStatus], typer.Option("--status")] = None,
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Write the report to a file")] = None,
    limit: Annotated[int, typer.Option("--limit", min=1)] = 100,
):
    """Build a text report of your statistics and chats."""

    async def body(client: ClientContext):
        await _require_user(client)
        stats = await client.users.dashboard_stats()
        page = await client.chats.list_chats(limit=limit)
        filters = ReportFilters(search=search, category=category, priority=priority, status=status)
        text = build_report(stats, page.chats, filters)
        if output is None:
            typer.echo(text)
            return
        output.write_text(text, encoding="utf-8")
        client.notifier.success(f"Report written to {output}")

    _run(ctx, body)


@app.command()
def theme(
    ctx: typer.Context,
    choice: Annotated[Optional[str], typer.Argument(help="light, dark, system or toggle")] = None,
):
    """Show or change the display theme."""

    async def body(client: ClientContext):
        prefs = client.preferences
        if choice == "toggle":
            prefs.toggle_theme()
        elif choice is not None:
            try:
                prefs.theme = Theme(choice)
            except ValueError:
                typer.echo(f"Unknown theme: {choice}", err=True)
                raise typer.Exit(1)
        typer.echo(f"Theme: {prefs.theme.value} (effective: {prefs.effective_theme().value})")

    _run(ctx, body)


@app.command()
def validate_config(ctx: typer.Context):
    """Validate configuration without contacting the API."""
    settings: Settings = ctx.obj
    typer.echo("✅ Configuration is valid")
    typer.echo(f"API URL: {settings.api_url}")
    typer.echo(f"Request timeout: {settings.request_timeout}s")
    typer.echo(f"Preferences file: {settings.preferences_path}")
    typer.echo(f"Log directory: {settings.log_dir}")
    typer.echo(f"Reveal interval: {settings.reveal_interval}s per word")
    typer.echo(f"Poll interval: {settings.poll_interval}s")
    typer.echo(f"Alarm checks: every {settings.alarm_check_interval}s, due within ±{settings.alarm_due_window}s")


if __name__ == "__main__":
    app()
