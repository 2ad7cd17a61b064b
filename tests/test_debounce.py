"""Tests for :mod:`codeforge.editor.debounce`."""

from __future__ import annotations

import asyncio

import pytest

from codeforge.editor.debounce import DebounceTimer


def test_negative_delay_is_rejected() -> None:
    with pytest.raises(ValueError):
        DebounceTimer(-1, lambda: None)


@pytest.mark.asyncio
async def test_rearming_collapses_into_one_call() -> None:
    calls: list[int] = []
    timer = DebounceTimer(0.03, lambda: calls.append(1))

    for _ in range(5):
        timer.arm()
        await asyncio.sleep(0.005)
    assert calls == []
    await asyncio.sleep(0.1)

    assert calls == [1]
    assert timer.armed is False


@pytest.mark.asyncio
async def test_cancel_prevents_callback() -> None:
    calls: list[int] = []
    timer = DebounceTimer(0.01, lambda: calls.append(1))

    timer.arm()
    timer.cancel()
    await asyncio.sleep(0.05)

    assert calls == []
    assert timer.armed is False


@pytest.mark.asyncio
async def test_callback_errors_are_contained() -> None:
    def explode() -> None:
        raise RuntimeError("boom")

    timer = DebounceTimer(0.0, explode)
    timer.arm()
    await asyncio.sleep(0.01)

    assert timer.armed is False


def test_explicit_loop_allows_arming_outside_coroutine() -> None:
    loop = asyncio.new_event_loop()
    try:
        calls: list[int] = []
        timer = DebounceTimer(0.0, lambda: calls.append(1), loop=loop)

        timer.arm()
        loop.run_until_complete(asyncio.sleep(0.01))

        assert calls == [1]
    finally:
        loop.close()
