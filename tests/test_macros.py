from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import TimeoutError as PWTimeoutError

from orchestrator import macros
from orchestrator.exceptions import MacroError
from orchestrator.models import Step

from tests.conftest import FakeAgent, FakePage


def file_input(hidden=False):
    el = MagicMock()
    el.evaluate = AsyncMock(return_value=hidden)
    el.set_input_files = AsyncMock()
    return el


@pytest.mark.asyncio
async def test_fetch_asset_reuses_cached_file(tmp_path):
    cached = tmp_path / "audio.mp3"
    cached.write_bytes(b"ID3")
    with patch("orchestrator.macros.requests.get") as get:
        assert await macros.fetch_asset("https://example.test/a.mp3", cached) == cached
    get.assert_not_called()


@pytest.mark.asyncio
async def test_fetch_asset_downloads_when_missing(tmp_path):
    dest = tmp_path / "cache" / "audio.mp3"
    resp = MagicMock(content=b"ID3data")
    with patch("orchestrator.macros.requests.get", return_value=resp) as get:
        await macros.fetch_asset("https://example.test/a.mp3", dest)
    get.assert_called_once()
    assert dest.read_bytes() == b"ID3data"


@pytest.mark.asyncio
async def test_inject_file_sets_visible_input(tmp_path):
    el = file_input()
    page = MagicMock(query_selector=AsyncMock(return_value=el))
    await macros.inject_file(page, tmp_path / "audio.mp3")
    el.set_input_files.assert_awaited_once_with(str(tmp_path / "audio.mp3"))


@pytest.mark.asyncio
async def test_inject_file_reveals_hidden_input(tmp_path):
    hidden, revealed = file_input(hidden=True), file_input()
    browse = MagicMock(click=AsyncMock())
    page = MagicMock(
        query_selector=AsyncMock(side_effect=[hidden, browse, revealed]),
        evaluate=AsyncMock(),
        wait_for_timeout=AsyncMock(),
    )
    await macros.inject_file(page, tmp_path / "audio.mp3")

    page.evaluate.assert_awaited_once()
    browse.click.assert_awaited_once()
    hidden.set_input_files.assert_not_awaited()
    revealed.set_input_files.assert_awaited_once()


@pytest.mark.asyncio
async def test_inject_file_without_input_fails(tmp_path):
    page = MagicMock(query_selector=AsyncMock(return_value=None))
    with pytest.raises(MacroError, match="File input not found on page."):
        await macros.inject_file(page, tmp_path / "audio.mp3")


@pytest.mark.asyncio
async def test_toggle_media_never_raises():
    page = MagicMock(evaluate=AsyncMock(side_effect=RuntimeError("no media element")))
    await macros.toggle_media(page)


@pytest.mark.asyncio
async def test_transcript_becomes_ready_after_a_few_polls():
    page = FakePage()
    page_states = iter(["busy", "busy", "<b>View transcript</b>"])

    async def content():
        return next(page_states)
    page.content = content

    with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
        await macros.wait_for_transcript(page, interval_s=5, ceiling_s=240)

    assert sleep.await_count == 2
    page.button.click.assert_awaited_once()


@pytest.mark.asyncio
async def test_transcript_button_missing_is_macro_error():
    page = FakePage(content="TRANSCRIPT GENERATED")
    page.wait_for_selector.side_effect = PWTimeoutError("timeout")
    with pytest.raises(MacroError, match="View transcript"):
        await macros.wait_for_transcript(page, interval_s=5, ceiling_s=10)


@pytest.mark.asyncio
async def test_follow_on_failure_is_wrapped(make_config):
    config = make_config()
    agent = FakeAgent(failures={"I click 'Transcribe'": RuntimeError("element not found")})
    with patch("orchestrator.macros.fetch_asset", new_callable=AsyncMock), \
         patch("orchestrator.macros.inject_file", new_callable=AsyncMock):
        with pytest.raises(MacroError, match="Post-upload step 2 failed"):
            await macros.run_upload_macro(FakePage(), agent, config,
                                          [Step(text="I click 'Transcribe'", ordinal=2)])


@pytest.mark.asyncio
async def test_media_check_runs_when_enabled(make_config):
    page = FakePage(content="TRANSCRIPT GENERATED")
    with patch("orchestrator.macros.fetch_asset", new_callable=AsyncMock), \
         patch("orchestrator.macros.inject_file", new_callable=AsyncMock), \
         patch("orchestrator.macros.toggle_media", new_callable=AsyncMock) as toggle:
        consumed = await macros.run_upload_macro(page, FakeAgent(), make_config(media_check=True), [])
    assert consumed == 0
    toggle.assert_awaited_once_with(page)


@pytest.mark.asyncio
async def test_document_not_ready_is_macro_error():
    page = FakePage()
    page.wait_for_selector.side_effect = PWTimeoutError("timeout")
    with pytest.raises(MacroError, match="View document"):
        await macros.wait_for_document(page, ceiling_s=1)
