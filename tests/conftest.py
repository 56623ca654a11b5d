from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from orchestrator.config import RunnerConfig
from orchestrator.models import ScenarioSource
from orchestrator.reporting import StatusReporter


class FakePage:
    """Just enough of playwright's async Page for the orchestrator."""

    def __init__(self, content: str = "", closed: bool = False):
        self.closed = closed
        self.html = content
        self.screenshots: list[str] = []
        self.goto = AsyncMock()
        self.wait_for_load_state = AsyncMock()
        self.evaluate = AsyncMock()
        self.button = MagicMock()
        self.button.click = AsyncMock()
        self.wait_for_selector = AsyncMock(return_value=self.button)
        self.locator = MagicMock()

    def is_closed(self) -> bool:
        return self.closed

    async def screenshot(self, path=None, **_):
        if self.closed:
            raise RuntimeError("Target page, context or browser has been closed")
        self.screenshots.append(path)

    async def content(self) -> str:
        return self.html


class FakeSession:
    def __init__(self, page: FakePage | None = None):
        self.page = page or FakePage()
        self.context = MagicMock()
        self.context.clear_cookies = AsyncMock()
        self.reopened = 0
        self.closed = False

    async def reopen(self):
        self.reopened += 1
        self.page = FakePage()
        return self.page

    async def close(self):
        self.closed = True


class FakeAgent:
    """
    failures: instruction -> exception raised every time
    fail_once: instructions that raise only on their first call
    hang: instructions that never settle
    """

    def __init__(self, failures=None, fail_once=(), hang=()):
        self.calls: list[str] = []
        self.failures = dict(failures or {})
        self.fail_once = set(fail_once)
        self.hang = set(hang)
        self.page = None

    def attach(self, page):
        self.page = page

    async def act(self, instruction: str) -> None:
        self.calls.append(instruction)
        if instruction in self.hang:
            await asyncio.Event().wait()
        if instruction in self.fail_once:
            self.fail_once.discard(instruction)
            raise RuntimeError(f"could not do {instruction}")
        if instruction in self.failures:
            raise self.failures[instruction]


class RecordingSink:
    def __init__(self):
        self.records: list[dict] = []

    def log(self, record: dict) -> None:
        self.records.append(record)

    def statuses(self) -> list[str]:
        return [r["fields"]["status"]["value"] for r in self.records]


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides) -> RunnerConfig:
        opts = dict(
            app_base_url="https://app.example.test",
            user_name="qa@example.test",
            password="s3cret",
            screenshots_dir=tmp_path / "shots",
            reports_dir=tmp_path / "reports",
            upload_cache_path=tmp_path / "audio.mp3",
            idle_wait_s=0,
            login_settle_s=0,
            step_timeout_s=1.0,
            poll_interval_s=5,
            poll_ceiling_s=15,
            stagger_s=0,
        )
        opts.update(overrides)
        return RunnerConfig(**opts)
    return _make


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def reporter(sink):
    return StatusReporter(sink)


def scenario(identifier: str, *lines: str, title: str | None = None) -> ScenarioSource:
    return ScenarioSource(identifier=identifier, title=title or f"title {identifier}",
                          description="\n".join(lines))
