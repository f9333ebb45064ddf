from __future__ import annotations

from rich.console import Console

from formchat.cli.render import TerminalRenderer
from formchat.progress import FieldProgressTracker
from formchat.types import FieldDescriptor, Turn


def _renderer() -> tuple[TerminalRenderer, Console]:
    console = Console(record=True, width=120)
    tracker = FieldProgressTracker([FieldDescriptor("name", 0), FieldDescriptor("email", 1)])
    return TerminalRenderer(tracker, console=console), console


def test_finished_turn_shows_question_counter() -> None:
    renderer, console = _renderer()
    turn = FieldProgressTracker([FieldDescriptor("email", 1)]).annotate(Turn.agent("Your email? [email]"))

    renderer.on_turn_finished(turn)

    output = console.export_text()
    assert "Your email?" in output
    assert "[email]" not in output
    assert "Question 2 of 2" in output


def test_streamed_turn_is_not_printed_twice() -> None:
    renderer, console = _renderer()

    renderer.on_turn_delta("Hello ")
    renderer.on_turn_delta("there")
    renderer.on_turn_finished(Turn.agent("Hello there"))

    assert console.export_text().count("Hello there") == 1


def test_submission_failure_mentions_retry() -> None:
    renderer, console = _renderer()

    renderer.on_submission_failed(RuntimeError("http_503: Service Unavailable"))

    output = console.export_text()
    assert "Unable to save form details" in output
    assert ",retry" in output
