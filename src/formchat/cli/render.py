"""Terminal presentation of a form session."""

from __future__ import annotations

from prompt_toolkit import PromptSession
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console

from formchat.hookspecs import hookimpl
from formchat.progress import NO_FIELD_INDEX, FieldProgressTracker, strip_marker
from formchat.types import Turn


class TerminalRenderer:
    """Rich renderer registered as a notification plugin."""

    def __init__(self, tracker: FieldProgressTracker, console: Console | None = None) -> None:
        self.console: Console = console or Console()
        self._tracker = tracker
        self._prompt_session: PromptSession[str] | None = None
        self._streaming = False

    def welcome(self, title: str) -> None:
        self._print(f"[bold blue]{title or 'Form'}[/bold blue]")
        self._print(f"[dim]{len(self._tracker.fields)} questions. Type ,quit to leave or ,retry after an error.[/dim]")

    def info(self, message: str) -> None:
        self._print(message)

    def error(self, message: str) -> None:
        self._print(f"[bold red]Error:[/bold red] {message}")

    def end(self) -> None:
        self._print("[bold green]Thanks, you're all done.[/bold green]")

    async def get_user_input(self) -> str:
        if self._prompt_session is None:
            self._prompt_session = PromptSession()
        with patch_stdout(raw=True):
            return await self._prompt_session.prompt_async("> ")

    @hookimpl
    def on_turn_delta(self, delta: str) -> None:
        if not self._streaming:
            self._streaming = True
            self.console.print("[bold yellow]Agent:[/bold yellow] ", end="")
        self.console.print(delta, end="", markup=False, highlight=False)

    @hookimpl
    def on_turn_finished(self, turn: Turn) -> None:
        if self._streaming:
            self.console.print()
            self._streaming = False
        else:
            self._print(f"[bold yellow]Agent:[/bold yellow] {strip_marker(turn.content)}")
        if turn.answered_field is None:
            return
        index = self._tracker.lookup_field_index(turn.answered_field)
        if index != NO_FIELD_INDEX:
            self._print(f"[dim]Question {index + 1} of {len(self._tracker.fields)}[/dim]")

    @hookimpl
    def on_chat_failed(self, error: Exception) -> None:
        self._streaming = False
        self.error(f"{error} (type ,retry to ask again)")

    @hookimpl
    def on_submission_started(self) -> None:
        self._print("[dim]Saving form details...[/dim]")

    @hookimpl
    def on_submission_succeeded(self) -> None:
        self._print("[green]Form details saved successfully.[/green]")

    @hookimpl
    def on_submission_failed(self, error: Exception) -> None:
        self.error(f"Unable to save form details: {error} (type ,retry to save again)")

    def _print(self, message: str) -> None:
        self.console.print(message)
