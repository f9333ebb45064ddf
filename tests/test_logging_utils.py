from __future__ import annotations

from loguru import logger

from formchat import logging_utils
from formchat.logging_utils import configure_logging, current_form, form_context


def test_form_context_is_scoped() -> None:
    assert current_form() == "-"
    with form_context("f1"):
        assert current_form() == "f1"
        with form_context("f2"):
            assert current_form() == "f2"
        assert current_form() == "f1"
    assert current_form() == "-"


def test_records_carry_active_form(monkeypatch) -> None:
    monkeypatch.setattr(logging_utils, "_configured", None)
    configure_logging(level="debug")
    seen: list[str] = []
    sink_id = logger.add(lambda message: seen.append(message.record["extra"]["form"]), level="DEBUG")
    try:
        with form_context("signup"):
            logger.debug("session.reset form_id={}", "signup")
        logger.debug("outside")
    finally:
        logger.remove(sink_id)

    assert seen == ["signup", "-"]
