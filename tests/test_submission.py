from __future__ import annotations

import asyncio

import pytest

from formchat.errors import SubmissionError
from formchat.submission import FINISH_TURN_ID, SubmissionManager, build_payload
from formchat.types import Role, Turn

HISTORY = (Turn.user("hello", turn_id="greeting"), Turn.agent("Thanks! [finish]", turn_id="a1"))


def test_payload_appends_synthetic_finish_turn() -> None:
    payload = build_payload(HISTORY, is_preview=True)

    assert payload.messages[:2] == HISTORY
    closing = payload.messages[-1]
    assert (closing.id, closing.role, closing.content) == (FINISH_TURN_ID, Role.USER, "finish")
    assert payload.to_wire()["isFormSubmitted"] is True
    assert payload.to_wire()["isPreview"] is True


@pytest.mark.asyncio
async def test_commit_success_notifies_in_order(persistence, notifier, plugin) -> None:
    manager = SubmissionManager(persistence, notifier)

    outcome = await manager.commit(HISTORY, "f1")

    assert outcome is not None and outcome.ok
    assert manager.submitted is True
    assert plugin.names() == ["on_submission_started", "on_submission_succeeded"]
    assert len(persistence.stored) == 1


@pytest.mark.asyncio
async def test_failure_then_manual_retry_replays_same_payload(persistence, notifier, plugin) -> None:
    persistence.failures = 1
    submitted_flags: list[bool] = []
    manager = SubmissionManager(persistence, notifier, on_submitted=lambda: submitted_flags.append(True))

    first = await manager.commit(HISTORY, "f1")

    assert first is not None and not first.ok
    assert manager.submitted is True
    assert manager.last_failed is not None
    failed = [data for name, data in plugin.events if name == "on_submission_failed"]
    assert len(failed) == 1

    second = await failed[0]["retry"]()

    assert second is not None and second.ok
    assert manager.submitted is True
    assert manager.last_failed is None
    assert plugin.names().count("on_submission_succeeded") == 1
    assert len(persistence.writes) == 2
    assert persistence.writes[0][1] == persistence.writes[1][1]
    assert len(persistence.stored) == 1
    assert submitted_flags == [True, True]


@pytest.mark.asyncio
async def test_retry_without_failure_is_noop(persistence, notifier) -> None:
    manager = SubmissionManager(persistence, notifier)

    assert await manager.retry() is None
    assert persistence.writes == []


@pytest.mark.asyncio
async def test_concurrent_commit_is_refused(notifier) -> None:
    release = asyncio.Event()
    writes: list[str] = []

    class _SlowPersistence:
        async def write(self, form_id, payload) -> None:
            writes.append(form_id)
            await release.wait()

    manager = SubmissionManager(_SlowPersistence(), notifier)
    first = asyncio.create_task(manager.commit(HISTORY, "f1"))
    await asyncio.sleep(0)

    assert manager.busy is True
    assert await manager.commit(HISTORY, "f1") is None

    release.set()
    outcome = await first
    assert outcome is not None and outcome.ok
    assert writes == ["f1"]
    assert manager.busy is False


@pytest.mark.asyncio
async def test_second_retry_press_does_nothing(persistence, notifier) -> None:
    persistence.failures = 1
    manager = SubmissionManager(persistence, notifier)
    await manager.commit(HISTORY, "f1")

    assert (await manager.retry()).ok
    assert await manager.retry() is None
    assert len(persistence.writes) == 2


@pytest.mark.asyncio
async def test_unexpected_client_error_still_offers_retry(notifier) -> None:
    class _Broken:
        async def write(self, form_id, payload) -> None:
            raise RuntimeError("disk full")

    manager = SubmissionManager(_Broken(), notifier)

    outcome = await manager.commit(HISTORY, "f1")

    assert outcome is not None and not outcome.ok
    assert "disk full" in (outcome.error or "")
    assert manager.last_failed is not None


@pytest.mark.asyncio
async def test_retry_pressed_while_retry_in_flight_is_ignored(notifier) -> None:
    release = asyncio.Event()
    writes: list[str] = []

    class _FlakyPersistence:
        async def write(self, form_id, payload) -> None:
            writes.append(form_id)
            if len(writes) == 1:
                raise SubmissionError("http_503: Service Unavailable", status_code=503)
            await release.wait()

    manager = SubmissionManager(_FlakyPersistence(), notifier)
    await manager.commit(HISTORY, "f1")

    first_retry = asyncio.create_task(manager.retry())
    await asyncio.sleep(0)

    assert manager.busy is True
    assert await manager.retry() is None

    release.set()
    outcome = await first_retry
    assert outcome is not None and outcome.ok
    assert len(writes) == 2
