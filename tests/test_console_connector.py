# tests/test_console_connector.py

from __future__ import annotations

import builtins

import pytest

from focus_planner.connectors.console_connector import run_console_loop
from focus_planner.core.state import AppState


def _feed(monkeypatch: pytest.MonkeyPatch, lines: list[str]) -> None:
    pending = iter(lines)

    def fake_input(prompt: str = "") -> str:
        try:
            return next(pending)
        except StopIteration:
            raise EOFError from None

    monkeypatch.setattr(builtins, "input", fake_input)


@pytest.mark.asyncio
async def test_console_runs_commands_and_reports_errors(
    state: AppState, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    _feed(monkeypatch, ["/add Water plants", "hello", "/done nope", "/commit x", "/exit", "/add never"])

    await run_console_loop(state)

    out = capsys.readouterr().out
    assert "Added 'Water plants'" in out
    assert "Commands start with '/'" in out
    assert "Not found: task nope" in out
    assert "Usage: /commit" in out
    assert [t.title for t in await state.tasks.fetch_tasks()] == ["Water plants"]


@pytest.mark.asyncio
async def test_console_stops_on_eof(state: AppState, monkeypatch: pytest.MonkeyPatch) -> None:
    _feed(monkeypatch, [])
    await run_console_loop(state)
