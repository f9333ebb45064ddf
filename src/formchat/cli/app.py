"""CLI entrypoint for formchat."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from formchat.chat.transport import HttpChatTransport
from formchat.cli.render import TerminalRenderer
from formchat.config import Settings, get_settings
from formchat.errors import FormChatError, TransportError
from formchat.forms import FormDefinition, load_form
from formchat.hook_runtime import Notifier
from formchat.http import build_client
from formchat.logging_utils import configure_logging
from formchat.progress import FieldProgressTracker
from formchat.session import FormSession
from formchat.state import Stage
from formchat.submission import HttpPersistenceClient

QUIT_COMMANDS = {",quit", ",exit", ",q"}
RETRY_COMMAND = ",retry"

app = typer.Typer(name="formchat", help="Fill out forms through a conversation.", add_completion=False)


def _load_form_or_exit(form_file: Path) -> FormDefinition:
    try:
        return load_form(form_file)
    except FormChatError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(1) from exc


@app.command("fields")
def fields(form_file: Path = typer.Argument(..., help="YAML form definition")) -> None:  # noqa: B008
    """Show the ordered fields of a form."""

    form = _load_form_or_exit(form_file)
    tracker = FieldProgressTracker(form.descriptors())
    table = Table(title=form.title or form.id)
    table.add_column("#", justify="right")
    table.add_column("identifier")
    table.add_column("order", justify="right")
    for position, descriptor in enumerate(tracker.fields, start=1):
        table.add_row(str(position), descriptor.identifier, str(descriptor.order))
    Console().print(table)


@app.command("fill")
def fill(
    form_file: Path = typer.Argument(..., help="YAML form definition"),  # noqa: B008
    api_base: str | None = typer.Option(None, "--api-base", help="Base URL of the form API"),
    preview: bool = typer.Option(False, "--preview", help="Run the session in preview mode"),
    log_level: str | None = typer.Option(None, "--log-level", help="Log level"),
) -> None:
    """Fill out a form interactively."""

    form = _load_form_or_exit(form_file)
    settings = get_settings(api_base=api_base, preview=preview or None, log_level=log_level)
    configure_logging(profile="chat", level=settings.log_level)
    try:
        asyncio.run(run_interactive(form, settings))
    except KeyboardInterrupt:
        typer.echo("")
        raise typer.Exit(130) from None


async def run_interactive(form: FormDefinition, settings: Settings) -> None:
    tracker = FieldProgressTracker(form.descriptors())
    renderer = TerminalRenderer(tracker)
    notifier = Notifier()
    notifier.register(renderer, name="terminal")

    async with build_client(settings) as client:
        session = FormSession.from_definition(
            form,
            transport=HttpChatTransport(settings, client),
            persistence=HttpPersistenceClient(settings, client),
            notifier=notifier,
            settings=settings,
        )
        renderer.welcome(form.title)
        try:
            await session.begin()
        except TransportError:
            # Reported through on_chat_failed; ,retry re-sends the greeting.
            pass

        while session.stage is Stage.FIELDS:
            text = (await renderer.get_user_input()).strip()
            if text in QUIT_COMMANDS:
                return
            try:
                if text == RETRY_COMMAND:
                    await session.retry_chat()
                else:
                    session.set_input(text)
                    await session.submit_input()
            except TransportError:
                continue

        outcome = await session.wait_for_submission()
        while outcome is not None and not outcome.ok:
            answer = (await renderer.get_user_input()).strip()
            if answer in QUIT_COMMANDS:
                return
            if answer == RETRY_COMMAND:
                outcome = await session.retry_submission() or outcome
            else:
                renderer.info("Type ,retry to save again or ,quit to leave.")
        renderer.end()
