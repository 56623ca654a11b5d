from __future__ import annotations
import asyncio, math
from pathlib import Path
from typing import List

import requests
from playwright.async_api import TimeoutError as PWTimeoutError

from orchestrator.config import RunnerConfig
from orchestrator.dispatch import act_with_timeout
from orchestrator.exceptions import MacroError
from orchestrator.models import Step

TRANSCRIPT_MARKERS = ("TRANSCRIPT GENERATED", "View transcript")
VIEW_TRANSCRIPT = "text=View transcript"
VIEW_DOCUMENT = "text=View document"
BROWSE_FILES = "text=Browse files"
CODE_CELL_SELECTOR = (
    "input[autocomplete='one-time-code'], input[inputmode='numeric'], "
    "input[type='tel'], input[type='number'], input[maxlength='1']"
)
CODE_LENGTH = 6


# ---------- idle ----------

async def idle_wait(seconds: float) -> None:
    print(f"[idle] ⏳ Staying idle for {seconds:.0f}s (no agent call)...")
    await asyncio.sleep(seconds)


# ---------- upload ----------

def _download(url: str, dest: Path, timeout: float = 60.0) -> Path:
    r = requests.get(url, timeout=timeout)
    r.raise_for_status()
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(r.content)
    return dest

async def fetch_asset(url: str, dest: Path) -> Path:
    """Downloads once per cache path; later uploads reuse the local copy."""
    dest = Path(dest)
    if dest.exists() and dest.stat().st_size > 0:
        return dest
    await asyncio.to_thread(_download, url, dest)
    print(f"[upload] ⬇️ Asset saved locally: {dest}")
    return dest

async def inject_file(page, path: Path) -> None:
    file_input = await page.query_selector("input[type='file']")
    if not file_input:
        raise MacroError("File input not found on page.")

    hidden = await file_input.evaluate(
        "el => { const s = window.getComputedStyle(el); return s.display === 'none' || s.visibility === 'hidden'; }"
    )
    if hidden:
        print("[upload] File input is hidden, revealing it...")
        await page.evaluate(
            "() => { const el = document.querySelector(\"input[type='file']\"); if (el) el.style.display = 'block'; }"
        )
        browse = await page.query_selector(BROWSE_FILES)
        if browse:
            print("[upload] Clicking 'Browse files' to activate input...")
            await browse.click()
            await page.wait_for_timeout(1000)
        file_input = await page.query_selector("input[type='file']")
        if not file_input:
            raise MacroError("File input disappeared after reveal.")

    await file_input.set_input_files(str(path))
    print("[upload] 📤 File injected.")

async def toggle_media(page) -> None:
    """Play then pause the first media element. Failures are only logged."""
    try:
        await page.evaluate(
            "async () => { const m = document.querySelector('audio, video');"
            " if (!m) throw new Error('no media element'); await m.play(); m.pause(); }"
        )
        print("[upload] ▶️ Media play/pause ok")
    except Exception as e:
        print(f"[WARN] media play/pause failed (ignored): {e}")

async def wait_for_transcript(page, *, interval_s: float, ceiling_s: float) -> None:
    polls = max(1, math.ceil(ceiling_s / interval_s))
    for _ in range(polls):
        content = await page.content()
        if any(m in content for m in TRANSCRIPT_MARKERS):
            break
        print(f"[upload] 🕒 Transcript not ready yet, waiting {interval_s:.0f}s...")
        await asyncio.sleep(interval_s)
    else:
        raise MacroError("Timeout waiting for transcript generation")

    try:
        btn = await page.wait_for_selector(VIEW_TRANSCRIPT, state="visible", timeout=int(ceiling_s * 1000))
    except PWTimeoutError as e:
        raise MacroError("'View transcript' button not found after transcript was ready") from e
    await btn.click()
    print("[upload] 📄 Clicked 'View transcript'")

async def run_upload_macro(page, agent, config: RunnerConfig, follow_on: List[Step]) -> int:
    """
    Upload sequence + the fixed follow-on steps. Returns how many of the
    following steps were consumed so the executor can skip them.
    """
    print("[upload] 🎧 Starting upload sequence...")
    local = await fetch_asset(config.upload_asset_url, config.upload_cache_path)
    await inject_file(page, local)

    for step in follow_on:
        print(f"[upload] ➡️ Post-upload step {step.ordinal}: {step.text!r}")
        try:
            await act_with_timeout(agent, step.text, config.step_timeout_s)
        except Exception as e:
            raise MacroError(f"Post-upload step {step.ordinal} failed ({step.text!r}): {e}") from e

    if config.media_check:
        await toggle_media(page)

    await wait_for_transcript(page, interval_s=config.poll_interval_s, ceiling_s=config.poll_ceiling_s)
    return len(follow_on)


# ---------- document ----------

async def wait_for_document(page, *, ceiling_s: float) -> None:
    print("[document] ⏳ Waiting for the document to be ready...")
    try:
        btn = await page.wait_for_selector(VIEW_DOCUMENT, state="visible", timeout=int(ceiling_s * 1000))
    except PWTimeoutError as e:
        raise MacroError("Timeout waiting for 'View document'") from e
    await btn.click()
    print("[document] 📄 Clicked 'View document'")


# ---------- one-time code ----------

async def enter_code(page, code: str) -> None:
    cells = page.locator(CODE_CELL_SELECTOR)
    found = await cells.count()
    if found < CODE_LENGTH:
        raise MacroError(f"Expected {CODE_LENGTH} code input cells, found {found}")
    for idx, digit in enumerate(code[:CODE_LENGTH]):
        await cells.nth(idx).fill(digit)
    print(f"[code] 🔢 Entered {CODE_LENGTH}-digit code")
