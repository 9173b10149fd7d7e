from __future__ import annotations

import asyncio

import pytest

from acs_email.utils import CancellationError, CancellationTokenSource


def test_cancel_is_one_shot() -> None:
    source = CancellationTokenSource()

    assert source.cancel(reason="first")
    assert not source.cancel(reason="second")
    assert source.token.cancelled
    assert source.token.reason == "first"


def test_raise_if_cancelled() -> None:
    source = CancellationTokenSource()
    source.token.raise_if_cancelled()

    source.cancel(reason="stop")

    with pytest.raises(CancellationError) as excinfo:
        source.token.raise_if_cancelled()
    assert excinfo.value.reason == "stop"


def test_callbacks_run_once_and_can_unsubscribe() -> None:
    source = CancellationTokenSource()
    fired: list[str | None] = []
    skipped: list[str | None] = []

    source.token.on_cancel(lambda token: fired.append(token.reason))
    unsubscribe = source.token.on_cancel(lambda token: skipped.append(token.reason))
    unsubscribe()
    source.cancel(reason="done")
    source.cancel(reason="again")

    assert fired == ["done"]
    assert skipped == []


def test_callback_registered_after_cancel_runs_immediately() -> None:
    source = CancellationTokenSource()
    source.cancel()
    fired: list[bool] = []

    source.token.on_cancel(lambda token: fired.append(token.cancelled))

    assert fired == [True]


@pytest.mark.asyncio
async def test_sleep_returns_false_when_not_cancelled() -> None:
    source = CancellationTokenSource()

    assert await source.token.sleep(0.01) is False


@pytest.mark.asyncio
async def test_sleep_wakes_on_cancel() -> None:
    source = CancellationTokenSource()
    loop = asyncio.get_running_loop()
    loop.call_later(0.01, source.cancel)

    cancelled = await asyncio.wait_for(source.token.sleep(30), timeout=5)

    assert cancelled is True
