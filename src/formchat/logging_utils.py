"""Loguru setup and the per-form logging context."""

from __future__ import annotations

import contextlib
import sys
from collections.abc import Generator
from contextvars import ContextVar
from typing import Literal

import loguru
from loguru import logger
from rich import get_console
from rich.logging import RichHandler

LogProfile = Literal["default", "chat"]

DEFAULT_FORMAT = "{time:HH:mm:ss.SSS} | {level:<7} | form={extra[form]} | {name}:{line} | {message}"

_active_form: ContextVar[str] = ContextVar("formchat_form", default="-")
_configured: tuple[LogProfile, str] | None = None


def current_form() -> str:
    return _active_form.get()


@contextlib.contextmanager
def form_context(form_id: str) -> Generator[None, None, None]:
    """Tag every log record emitted inside the block with `form_id`."""
    token = _active_form.set(form_id)
    try:
        yield
    finally:
        _active_form.reset(token)


def _tag_form(record: loguru.Record) -> None:
    record["extra"]["form"] = current_form()


def configure_logging(*, profile: LogProfile = "default", level: str = "INFO") -> None:
    """Install one loguru sink for the process; repeated calls with the same arguments are no-ops.

    The `chat` profile writes through rich.
    """
    global _configured
    wanted = (profile, level.upper())
    if _configured == wanted:
        return

    logger.remove()
    logger.configure(patcher=_tag_form)
    if profile == "chat":
        sink = RichHandler(console=get_console(), show_time=False, show_path=False, markup=False)
        logger.add(sink, level=wanted[1], format="[{extra[form]}] {message}", backtrace=False, diagnose=False)
    else:
        logger.add(sys.stderr, level=wanted[1], format=DEFAULT_FORMAT, backtrace=False, diagnose=False)
    _configured = wanted
